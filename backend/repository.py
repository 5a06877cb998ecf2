# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Narrow persistence interface consumed by the auth core.

The session manager, permission resolver, login-history recorder and the
token flows only ever reach the database through :class:`Repository`, so the
queries that decide who a request belongs to and what it may do live in one
place.  The administrative CRUD routers query the ORM directly.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session, selectinload

from core.exceptions import TokenExpiredOrUsed
from database import atomic
from models import (
    EmailVerificationToken,
    LoginHistory,
    PasswordResetToken,
    Role,
    RolePermission,
    User,
    UserRole,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Repository:
    def __init__(self, db: Session):
        self.db = db

    # -- Users ---------------------------------------------------------------

    def find_user_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).first()

    def find_user_by_id(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def find_user_by_session_token(self, token: str) -> Optional[User]:
        """Return the user owning an unexpired session *token*, or None."""
        return (
            self.db.query(User)
            .filter(User.session_token == token, User.session_expires_at > utcnow())
            .first()
        )

    def update_user(self, user_id: int, patch: dict[str, Any]) -> Optional[User]:
        user = self.find_user_by_id(user_id)
        if user is None:
            return None
        for field, value in patch.items():
            setattr(user, field, value)
        self.db.commit()
        return user

    # -- Roles ---------------------------------------------------------------

    def find_roles_for_user(self, user_id: int) -> list[Role]:
        """Every role the user holds, with its permission bundle loaded."""
        return (
            self.db.query(Role)
            .join(UserRole, UserRole.role_id == Role.id)
            .filter(UserRole.user_id == user_id)
            .options(selectinload(Role.role_permissions).selectinload(RolePermission.permission))
            .all()
        )

    # -- Login history -------------------------------------------------------

    def create_login_history(self, entry: dict[str, Any]) -> LoginHistory:
        row = LoginHistory(**entry)
        self.db.add(row)
        self.db.commit()
        return row

    # -- Email verification --------------------------------------------------

    def create_verification_token(
        self, user_id: int, token: str, expires_at: datetime
    ) -> EmailVerificationToken:
        row = EmailVerificationToken(user_id=user_id, token=token, expires_at=expires_at)
        self.db.add(row)
        self.db.commit()
        return row

    def find_active_verification_token(self, token: str) -> Optional[EmailVerificationToken]:
        return (
            self.db.query(EmailVerificationToken)
            .filter(
                EmailVerificationToken.token == token,
                EmailVerificationToken.used_at.is_(None),
                EmailVerificationToken.expires_at > utcnow(),
            )
            .first()
        )

    def consume_verification_token(self, token: str) -> User:
        """
        Mark *token* used and the owning user verified, in one transaction.

        Raises ``TokenExpiredOrUsed`` if the token is unknown, expired or was
        consumed first by a concurrent request.
        """
        now = utcnow()
        with atomic(self.db):
            row = self.find_active_verification_token(token)
            if row is None:
                raise TokenExpiredOrUsed()
            claimed = self.db.execute(
                update(EmailVerificationToken)
                .where(
                    EmailVerificationToken.id == row.id,
                    EmailVerificationToken.used_at.is_(None),
                )
                .values(used_at=now)
            ).rowcount
            if claimed != 1:
                raise TokenExpiredOrUsed()
            user = self.find_user_by_id(row.user_id)
            if user is None:
                raise TokenExpiredOrUsed()
            user.email_verified_at = now
        return user

    # -- Password reset ------------------------------------------------------

    def create_reset_token(self, email: str, token: str, expires_at: datetime) -> PasswordResetToken:
        row = PasswordResetToken(email=email, token=token, expires_at=expires_at)
        self.db.add(row)
        self.db.commit()
        return row

    def find_active_reset_token(self, token: str) -> Optional[PasswordResetToken]:
        return (
            self.db.query(PasswordResetToken)
            .filter(
                PasswordResetToken.token == token,
                PasswordResetToken.used_at.is_(None),
                PasswordResetToken.expires_at > utcnow(),
            )
            .first()
        )

    def consume_reset_token_and_update_password(self, token: str, password_hash: str) -> User:
        """
        Consume *token*, store the new password hash and end the user's current
        session, all in one transaction.  Either every change lands or none.

        Raises ``TokenExpiredOrUsed`` for unknown, expired or already-used
        tokens, and for tokens whose email no longer belongs to an account.
        """
        with atomic(self.db):
            row = self.find_active_reset_token(token)
            if row is None:
                raise TokenExpiredOrUsed()
            claimed = self.db.execute(
                update(PasswordResetToken)
                .where(PasswordResetToken.id == row.id, PasswordResetToken.used_at.is_(None))
                .values(used_at=utcnow())
            ).rowcount
            if claimed != 1:
                raise TokenExpiredOrUsed()
            user = self.find_user_by_email(row.email)
            if user is None:
                raise TokenExpiredOrUsed()
            user.password_hash = password_hash
            user.session_token = None
            user.session_expires_at = None
        return user
