# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""LoginHistory ORM model – one append-only row per login attempt."""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base

STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"


class LoginHistory(Base):
    __tablename__ = "login_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status = Column(
        Enum(STATUS_SUCCESS, STATUS_FAILED, name="login_status"),
        nullable=False,
        index=True,
    )
    failure_reason = Column(String(255), nullable=True)   # only set when failed
    ip_address = Column(String(45), nullable=True)        # supports IPv6
    user_agent = Column(String(512), nullable=True)
    login_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    user = relationship("User")
