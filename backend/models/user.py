# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""User ORM model."""

from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base

GENDERS = ("male", "female", "other")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # Stable external identifier.  Never used as a credential.
    uuid = Column(String(36), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    first_name = Column(String(100), nullable=False, server_default="")
    last_name = Column(String(100), nullable=False, server_default="")
    phone = Column(String(32), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(Enum(*GENDERS, name="user_gender"), nullable=True)
    avatar_url = Column(String(500), nullable=True)
    # NULL for accounts without a usable password (e.g. pending invite)
    password_hash = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    email_verified_at = Column(DateTime(timezone=True), nullable=True)
    # Current session credential; rotated on every login, cleared on logout
    session_token = Column(String(64), unique=True, nullable=True, index=True)
    session_expires_at = Column(DateTime(timezone=True), nullable=True)
    last_login = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    user_roles = relationship(
        "UserRole",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def roles(self):
        return [ur.role for ur in self.user_roles]
