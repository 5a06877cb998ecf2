"""Login history recorder, list endpoint and Excel export."""

import io
from datetime import timedelta

import pytest
from openpyxl import load_workbook
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from admin.login_history import EXPORT_HEADERS
from conftest import login
from core.login_history import STATUS_FAILED, STATUS_SUCCESS, record_login_attempt
from models import LoginHistory
from repository import utcnow


class TestRecorder:
    def test_records_failure_with_reason(self, session_factory, make_user, db) -> None:
        user = make_user("h1@x.com")
        assert record_login_attempt(session_factory, user.id, STATUS_FAILED, "Invalid password", "10.1.1.1", "ua")
        row = db.query(LoginHistory).one()
        assert (row.status, row.failure_reason, row.ip_address, row.user_agent) == (
            "failed", "Invalid password", "10.1.1.1", "ua",
        )

    def test_success_drops_reason(self, session_factory, make_user, db) -> None:
        user = make_user("h2@x.com")
        record_login_attempt(session_factory, user.id, STATUS_SUCCESS, "ignored")
        assert db.query(LoginHistory).one().failure_reason is None

    def test_unknown_status(self, session_factory) -> None:
        with pytest.raises(ValueError):
            record_login_attempt(session_factory, 1, "maybe")

    def test_storage_error_is_swallowed(self) -> None:
        broken = sessionmaker(bind=create_engine("sqlite://"))
        assert record_login_attempt(broken, 1, STATUS_FAILED, "Invalid password") is False


@pytest.fixture
def history(db, admin_user, make_user):
    other = make_user("guest@x.com", first_name="Gus", last_name="Guest")
    now = utcnow()
    db.add_all([
        LoginHistory(user_id=admin_user.id, status="success", login_at=now - timedelta(days=3)),
        LoginHistory(user_id=other.id, status="failed", failure_reason="Invalid password",
                     login_at=now - timedelta(days=2)),
        LoginHistory(user_id=other.id, status="success", login_at=now - timedelta(days=1)),
    ])
    db.commit()
    return other


class TestListEndpoint:
    def test_newest_first(self, admin_client, history) -> None:
        entries = admin_client.get("/login-history").json()["entries"]
        # the admin_client login itself is the newest row
        assert [e["status"] for e in entries] == ["success", "success", "failed", "success"]
        assert entries[0]["user_email"] == "admin@tc.com"
        assert entries[1]["user_name"] == "Gus Guest"

    def test_filters(self, admin_client, history) -> None:
        by_email = admin_client.get("/login-history", params={"emails": ["guest@x.com"]}).json()["entries"]
        assert len(by_email) == 2
        assert {e["user_email"] for e in by_email} == {"guest@x.com"}

        failed = admin_client.get("/login-history", params={"status": "failed"}).json()["entries"]
        assert [e["failure_reason"] for e in failed] == ["Invalid password"]

        limited = admin_client.get("/login-history", params={"limit": 1}).json()["entries"]
        assert len(limited) == 1

    def test_limit_bounds(self, admin_client) -> None:
        assert admin_client.get("/login-history", params={"limit": 0}).status_code == 422
        assert admin_client.get("/login-history", params={"limit": 1001}).status_code == 422
        assert admin_client.get("/login-history", params={"status": "weird"}).status_code == 422

    def test_needs_permission(self, client, make_user, make_role, assign) -> None:
        user = make_user("nohist@x.com")
        assign(user, make_role("plain", "dashboard:view"))
        login(client, user.email)
        assert client.get("/login-history").headers["location"] == "/unauthorized"


class TestExport:
    def test_workbook(self, admin_client, history) -> None:
        response = admin_client.get("/login-history/export", params={"emails": ["guest@x.com"]})
        assert response.status_code == 200
        assert response.headers["content-type"].startswith(
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        )
        assert "login-history.xlsx" in response.headers["content-disposition"]

        sheet = load_workbook(io.BytesIO(response.content)).active
        rows = list(sheet.iter_rows(values_only=True))
        assert list(rows[0]) == EXPORT_HEADERS
        assert len(rows) == 3
        assert rows[1][2] == "guest@x.com"
        assert rows[1][4] == "success"
        assert rows[2][5] == "Invalid password"
