# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Alembic environment for the tcadmin schema (users, RBAC tables, menus,
login history and the single-use token tables).

The connection string is ``settings.database_url`` from etc/app.conf, the
same one the service uses.  SQLite targets get batch mode so ALTERs in later
revisions work there too.
"""

import sys
from pathlib import Path

# backend/ must be importable for core.*, database and models
_BACKEND_DIR = Path(__file__).resolve().parent.parent
if str(_BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(_BACKEND_DIR))

from alembic import context  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402

from core.config import settings  # noqa: E402
from database import Base  # noqa: E402
import models  # noqa: F401, E402

target_metadata = Base.metadata
_is_sqlite = settings.database_url.startswith("sqlite")


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=_is_sqlite,
        **kwargs,
    )


def run_migrations_online() -> None:
    engine = create_engine(settings.database_url)
    try:
        with engine.connect() as conn:
            _configure(connection=conn)
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


def run_migrations_offline() -> None:
    _configure(url=settings.database_url, literal_binds=True)
    with context.begin_transaction():
        context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
