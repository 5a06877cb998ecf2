# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Login history recorder.

Writes go through a short-lived session of their own, so a failed insert can
neither roll back nor block the login it describes.  Failures are logged and
dropped.
"""

from typing import Callable, Optional

from sqlalchemy.orm import Session

from core.logger import logger
from models.login_history import STATUS_FAILED, STATUS_SUCCESS
from repository import Repository

__all__ = ["STATUS_FAILED", "STATUS_SUCCESS", "record_login_attempt"]


def record_login_attempt(
    session_factory: Callable[[], Session],
    user_id: int,
    status: str,
    reason: Optional[str] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> bool:
    """
    Append one audit row.  Returns True when the row was stored.

    *reason* is only kept for failed attempts.
    """
    if status not in (STATUS_SUCCESS, STATUS_FAILED):
        raise ValueError(f"Unknown login status: {status!r}")

    db = session_factory()
    try:
        Repository(db).create_login_history(
            {
                "user_id": user_id,
                "status": status,
                "failure_reason": reason if status == STATUS_FAILED else None,
                "ip_address": ip_address,
                "user_agent": user_agent,
            }
        )
        return True
    except Exception:
        db.rollback()
        logger.exception("Could not record login attempt | user_id=%s status=%s", user_id, status)
        return False
    finally:
        db.close()
