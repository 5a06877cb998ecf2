"""Shared fixtures: in-memory database, app with overridden sessions, users and roles."""

import os
import tempfile

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TCADMIN_LOG_DIR"] = tempfile.mkdtemp(prefix="tcadmin-log-")
os.environ["APP_ENV"] = "dev"
os.environ["GUARD_DEFAULT_POLICY"] = "allow"
os.environ["REQUIRE_VERIFIED_EMAIL"] = "false"
os.environ["SUPER_ADMIN_EMAIL"] = "root@tc.com"
os.environ["FIRST_ADMIN_EMAIL"] = "root@tc.com"
os.environ["FIRST_ADMIN_PASSWORD"] = "root-password-1"

from collections.abc import Callable, Generator  # noqa: E402

import pytest  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from core.dependencies import get_session_factory  # noqa: E402
from core.permissions import RoutePermission  # noqa: E402
from core.security import generate_uuid, hash_password  # noqa: E402
from database import Base, get_db  # noqa: E402
from main import create_app  # noqa: E402
from models import ADMIN_ROLE, Permission, Role, RolePermission, User, UserRole  # noqa: E402

# Hashes written by fixtures use fewer rounds than production; the record
# carries its own count so verification is unaffected.
FAST_ROUNDS = 1000
PASSWORD = "correct-horse-1"


@pytest.fixture
def engine() -> Generator[Engine]:
    """One in-memory SQLite database shared by every session in a test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory: sessionmaker) -> Generator[Session]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def app(session_factory: sessionmaker) -> FastAPI:
    app = create_app(session_factory=session_factory)

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    return app


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient]:
    with TestClient(app, follow_redirects=False) as client:
        yield client


# ---------------------------------------------------------------------------
# Data helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def make_user(db: Session) -> Callable[..., User]:
    def _make(email: str, password: str = PASSWORD, **fields) -> User:
        user = User(
            uuid=generate_uuid(),
            email=email,
            password_hash=hash_password(password, iterations=FAST_ROUNDS),
            first_name=fields.pop("first_name", "Test"),
            last_name=fields.pop("last_name", "User"),
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_role(db: Session) -> Callable[..., Role]:
    """Create a role granting *permission_names*, creating missing permissions."""

    def _make(name: str, *permission_names: str) -> Role:
        role = Role(name=name)
        db.add(role)
        db.flush()
        for perm_name in permission_names:
            perm = db.query(Permission).filter(Permission.name == perm_name).first()
            if perm is None:
                perm = Permission(name=perm_name)
                db.add(perm)
                db.flush()
            db.add(RolePermission(role_id=role.id, permission_id=perm.id))
        db.commit()
        db.refresh(role)
        return role

    return _make


@pytest.fixture
def assign(db: Session) -> Callable[[User, Role], None]:
    def _assign(user: User, role: Role) -> None:
        db.add(UserRole(user_id=user.id, role_id=role.id))
        db.commit()

    return _assign


@pytest.fixture
def admin_user(make_user, make_role, assign) -> User:
    """A user holding every route permission through the admin role."""
    user = make_user("admin@tc.com", first_name="Ada", last_name="Admin")
    role = make_role(ADMIN_ROLE, *(p.value for p in RoutePermission))
    assign(user, role)
    return user


def login(client: TestClient, email: str, password: str = PASSWORD):
    return client.post("/auth/login", json={"email": email, "password": password})


@pytest.fixture
def admin_client(client: TestClient, admin_user: User) -> TestClient:
    response = login(client, admin_user.email)
    assert response.status_code == 200
    return client
