# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""AuditLog ORM model – tracks account lifecycle events."""

from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.sql import func

from database import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # No foreign key: rows outlive a deleted account
    actor_id = Column(String(36), nullable=True, index=True)
    actor_email = Column(String(255), nullable=True)
    action = Column(String(64), nullable=False, index=True)   # e.g. "user_login"
    detail = Column(Text, nullable=True)                      # never secrets or vault content
    request_ip = Column(String(45), nullable=True)            # Client IP address (supports IPv6)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
