"""Single-use verification and reset tokens at the repository level."""

from datetime import timedelta

import pytest

from core.exceptions import TokenExpiredOrUsed
from core.security import generate_token
from models import PasswordResetToken
from repository import Repository, utcnow


def _later(minutes: int = 30):
    return utcnow() + timedelta(minutes=minutes)


class TestResetTokens:
    def test_consume_updates_password_and_ends_session(self, db, make_user) -> None:
        user = make_user("r1@x.com", session_token="s" * 64, session_expires_at=_later())
        repo = Repository(db)
        token = generate_token()
        repo.create_reset_token(user.email, token, _later())

        assert repo.find_active_reset_token(token) is not None
        updated = repo.consume_reset_token_and_update_password(token, "pbkdf2_sha256$1$aa$bb")

        assert updated.id == user.id
        db.refresh(user)
        assert user.password_hash == "pbkdf2_sha256$1$aa$bb"
        assert user.session_token is None
        assert repo.find_active_reset_token(token) is None

    def test_second_use_fails(self, db, make_user) -> None:
        user = make_user("r2@x.com")
        repo = Repository(db)
        token = generate_token()
        repo.create_reset_token(user.email, token, _later())
        repo.consume_reset_token_and_update_password(token, "first")

        with pytest.raises(TokenExpiredOrUsed):
            repo.consume_reset_token_and_update_password(token, "second")
        db.refresh(user)
        assert user.password_hash == "first"

    def test_expired_token(self, db, make_user) -> None:
        user = make_user("r3@x.com")
        repo = Repository(db)
        repo.create_reset_token(user.email, "t" * 64, utcnow() - timedelta(seconds=1))
        assert repo.find_active_reset_token("t" * 64) is None
        with pytest.raises(TokenExpiredOrUsed):
            repo.consume_reset_token_and_update_password("t" * 64, "x")

    def test_unknown_token(self, db) -> None:
        with pytest.raises(TokenExpiredOrUsed):
            Repository(db).consume_reset_token_and_update_password("missing", "x")

    def test_orphan_token_is_left_unused(self, db) -> None:
        repo = Repository(db)
        repo.create_reset_token("gone@x.com", "o" * 64, _later())
        with pytest.raises(TokenExpiredOrUsed):
            repo.consume_reset_token_and_update_password("o" * 64, "x")

        row = db.query(PasswordResetToken).filter(PasswordResetToken.token == "o" * 64).one()
        db.refresh(row)
        assert row.used_at is None


class TestVerificationTokens:
    def test_consume_marks_user_verified(self, db, make_user) -> None:
        user = make_user("v1@x.com")
        repo = Repository(db)
        repo.create_verification_token(user.id, "v" * 64, _later())

        verified = repo.consume_verification_token("v" * 64)
        assert verified.id == user.id
        db.refresh(user)
        assert user.email_verified_at is not None

        with pytest.raises(TokenExpiredOrUsed):
            repo.consume_verification_token("v" * 64)

    def test_expired(self, db, make_user) -> None:
        user = make_user("v2@x.com")
        repo = Repository(db)
        repo.create_verification_token(user.id, "w" * 64, utcnow() - timedelta(minutes=1))
        assert repo.find_active_verification_token("w" * 64) is None
        with pytest.raises(TokenExpiredOrUsed):
            repo.consume_verification_token("w" * 64)
