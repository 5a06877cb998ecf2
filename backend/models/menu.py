# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""Menu ORM model – the sidebar tree."""

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class Menu(Base):
    __tablename__ = "menus"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    href = Column(String(255), nullable=True)   # NULL for pure group headers
    icon = Column(String(64), nullable=True)
    order = Column(Integer, nullable=False, default=0)
    parent_id = Column(
        Integer,
        ForeignKey("menus.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    # Optional extra gate on top of the href-derived "<page>:view" permission
    permission_id = Column(
        Integer,
        ForeignKey("permissions.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    parent = relationship("Menu", remote_side=[id])
    permission = relationship("Permission")
