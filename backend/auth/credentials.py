# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Credential store – the only module that reads or writes user rows.

Security notes
--------------
* ``verify`` raises the *same* ``InvalidCredentials`` whether the email is
  unknown or the password is wrong, and it spends the same hashing effort
  on both paths (a dummy hash is verified for unknown emails).
* ``encryption_salt`` is generated independently of the password hash's
  internal salt and never changes once assigned.
* ``password_hash`` and ``encryption_salt`` never leave this module; use
  ``public_user`` for anything sent to a client.
"""

import base64
import re
import secrets
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.config import settings
from core.errors import (
    DuplicateEmail,
    InvalidCredentials,
    ValidationError,
    VaultMigrationRequired,
    WeakPassword,
)
from core.logger import logger
from core.security import hash_password, verify_password
from models.user import User
from vault import store

MIN_PASSWORD_LENGTH = 8
SALT_BYTES = 16
DEFAULT_ROLE = "user"

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Verified against when the email is unknown so both failure paths cost the
# same.  Built lazily because the rounds come from settings.
_dummy_hash: Optional[str] = None


def _get_dummy_hash() -> str:
    global _dummy_hash
    if _dummy_hash is None:
        _dummy_hash = hash_password(secrets.token_urlsafe(16))
    return _dummy_hash


def normalize_email(email) -> str:
    return email.strip().lower() if isinstance(email, str) else ""


def new_encryption_salt() -> str:
    return base64.b64encode(secrets.token_bytes(SALT_BYTES)).decode("ascii")


def assign_role(email: str, existing_user_count: int) -> str:
    """
    One-time role assignment at registration: allow-listed emails become
    admin; with no allow-list configured, the very first user does.
    """
    allow_list = settings.admin_email_list
    if normalize_email(email) in allow_list:
        return "admin"
    if existing_user_count == 0 and not allow_list:
        return "admin"
    return DEFAULT_ROLE


def find_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == normalize_email(email)).first()


def find_by_id(db: Session, user_id: str) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def register(db: Session, email: str, password: str, display_name: Optional[str] = None) -> User:
    normalized = normalize_email(email)
    if not normalized or not _EMAIL_RE.match(normalized):
        raise ValidationError("A valid email address is required.")
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise WeakPassword()

    if find_by_email(db, normalized) is not None:
        raise DuplicateEmail()

    name = display_name.strip() if isinstance(display_name, str) else ""
    user = User(
        email=normalized,
        display_name=name[:120] or None,
        password_hash=hash_password(password),
        encryption_salt=new_encryption_salt(),
        role=assign_role(normalized, db.query(User).count()),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        # Lost a race against a concurrent registration of the same email
        db.rollback()
        raise DuplicateEmail() from exc
    db.refresh(user)
    logger.info("Registered user %s (%s) role=%s", user.id, user.email, user.role)
    return user


def verify(db: Session, email: str, password: str) -> User:
    user = find_by_email(db, email)
    if not isinstance(password, str) or not password:
        raise InvalidCredentials()

    if user is None:
        verify_password(password, _get_dummy_hash())
        raise InvalidCredentials()
    if not verify_password(password, user.password_hash):
        raise InvalidCredentials()
    return user


def record_login(db: Session, user: User) -> None:
    user.last_login_at = datetime.now(timezone.utc)
    db.commit()


def ensure_encryption_salt(db: Session, user: User) -> str:
    """
    Legacy rows may lack a salt.  Assigning one is only safe while no vault
    exists for the user; otherwise the existing vault would become
    undecryptable, so the caller gets ``VaultMigrationRequired``.
    """
    if user.encryption_salt:
        return user.encryption_salt
    if store.read_blob(db, user.id) is not None:
        logger.error("User %s has a vault but no encryption salt", user.id)
        raise VaultMigrationRequired()
    user.encryption_salt = new_encryption_salt()
    db.commit()
    logger.info("Assigned encryption salt to legacy user %s", user.id)
    return user.encryption_salt


def remove(db: Session, user_id: str) -> bool:
    """Delete the user row.  The caller deletes the vault blob separately."""
    deleted = db.query(User).filter(User.id == user_id).delete()
    db.commit()
    return bool(deleted)


def public_user(user: User) -> dict:
    """The only user view that may leave the server."""
    return {
        "id": user.id,
        "email": user.email,
        "name": user.display_name,
        "role": user.role or DEFAULT_ROLE,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
        "lastLoginAt": user.last_login_at.isoformat() if user.last_login_at else None,
    }
