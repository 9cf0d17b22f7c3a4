# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""User ORM model – the credential store."""

import uuid

from sqlalchemy import Column, String, Enum, DateTime
from sqlalchemy.sql import func

from database import Base


def _new_user_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_user_id)
    # Always stored trimmed and lower-cased, which makes the unique index
    # case-insensitive in practice.
    email = Column(String(255), unique=True, nullable=False, index=True)
    display_name = Column(String(120), nullable=True)
    # passlib pbkdf2_sha256 string; embeds its own salt.  Never leaves
    # auth.credentials.
    password_hash = Column(String(255), nullable=False)
    # base64(16 random bytes), used only for vault key derivation.  Must not
    # change once assigned or the vault becomes undecryptable.  Nullable only
    # for legacy rows.
    encryption_salt = Column(String(64), nullable=True)
    role = Column(Enum("admin", "user", name="user_role"), nullable=False, default="user")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
