# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Central security module.  All password, key-derivation and token primitives
and the auth guards live here.  Vault encryption itself is in vault.cipher.

Responsibilities
----------------
1. Password hashing / verification          (passlib pbkdf2_sha256)
2. Vault key derivation                     (PBKDF2-HMAC-SHA256, cryptography)
3. JWT issue / verify / revoke              (PyJWT / HS256 + revocation list)
4. FastAPI dependency guards                (get_current_auth, get_optional_auth,
                                             require_admin)

Both (1) and (2) are deliberately slow.  They are only ever called from
sync handlers, which FastAPI runs on its worker thread pool, so they never
stall the event loop.  Async callers use ``derive_encryption_key_async``.
"""

import base64
import binascii
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt as _jwt        # PyJWT
from passlib.hash import pbkdf2_sha256 as _pbkdf2
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from starlette.concurrency import run_in_threadpool

from core.config import settings
from core.errors import (
    Forbidden,
    InvalidSalt,
    TokenExpired,
    TokenMalformed,
    TokenRevoked,
    Unauthorized,
    ValidationError,
)
from core.logger import logger
from core.sessions import KEY_LENGTH, SessionState, revoked_tokens, session_store

# ---------------------------------------------------------------------------
# 1.  pbkdf2_sha256 – password hashing  (pure Python, no glibc constraint)
# ---------------------------------------------------------------------------
# Rounds come from settings; the default keeps one verification in the tens
# of milliseconds.  passlib embeds its own salt in the hash string, which is
# unrelated to the per-user vault salt.
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Hash a plaintext password with PBKDF2-SHA256 (passlib format)."""
    return _pbkdf2.using(rounds=settings.password_hash_rounds).hash(plain)


def verify_password(plain: str, stored_hash: str) -> bool:
    """
    Constant-time verification of a plaintext password against a
    pbkdf2_sha256 hash produced by :func:`hash_password`.
    """
    return _pbkdf2.verify(plain, stored_hash)


# ---------------------------------------------------------------------------
# 2.  Vault key derivation
# ---------------------------------------------------------------------------
# The key is re-derived at every login rather than stored, so this must be
# deterministic: same password + same salt → same 32 bytes.


def decode_salt(salt_b64: Optional[str]) -> bytes:
    if not salt_b64:
        raise InvalidSalt()
    try:
        salt = base64.b64decode(salt_b64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidSalt() from exc
    if not salt:
        raise InvalidSalt()
    return salt


def derive_encryption_key(password: str, salt_b64: Optional[str]) -> bytes:
    """
    Derive the 32-byte vault key from *password* and the user's stored
    base64 salt.  Raises ``InvalidSalt`` for an empty or malformed salt.
    """
    if not isinstance(password, str) or not password:
        raise ValidationError("Password is required to unlock the vault.")
    salt = decode_salt(salt_b64)
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=settings.kdf_iterations,
    )
    return kdf.derive(password.encode("utf-8"))


async def derive_encryption_key_async(password: str, salt_b64: Optional[str]) -> bytes:
    """Same as :func:`derive_encryption_key`, computed on the thread pool."""
    return await run_in_threadpool(derive_encryption_key, password, salt_b64)


# ---------------------------------------------------------------------------
# 3.  JWT – access tokens
# ---------------------------------------------------------------------------


def issue_token(user, expires_delta: Optional[timedelta] = None) -> str:
    """
    Sign a JWT with HS256 for *user*.

    Claims: sub (user id), email, role, iat, exp, iss, aud.  No vault
    content ever goes into a token.
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    payload = {
        "sub": user.id,
        "email": user.email,
        "role": user.role or "user",
        "iat": now,
        "exp": expire,
        "iss": settings.token_issuer,
        "aud": settings.token_audience,
    }
    return _jwt.encode(payload, settings.secret_key, algorithm="HS256")


def verify_token(token: str) -> dict:
    """
    Decode and verify a JWT.  Revocation is checked first so a revoked token
    fails with ``TokenRevoked`` even while its signature and expiry are
    still valid.
    """
    if not token:
        raise Unauthorized()
    if revoked_tokens.contains(token):
        raise TokenRevoked()
    try:
        return _jwt.decode(
            token,
            settings.secret_key,
            algorithms=["HS256"],
            audience=settings.token_audience,
            issuer=settings.token_issuer,
            options={"require": ["exp", "sub", "iss", "aud"]},
        )
    except _jwt.ExpiredSignatureError as exc:
        raise TokenExpired() from exc
    except _jwt.InvalidTokenError as exc:
        raise TokenMalformed() from exc


def revoke_token(token: Optional[str]) -> None:
    """
    Add *token* to the revocation list until its natural expiry.  Tokens
    whose expiry cannot be read are kept for one hour.
    """
    if not token:
        return
    try:
        claims = _jwt.decode(token, options={"verify_signature": False})
        expires_at = float(claims["exp"])
    except (_jwt.InvalidTokenError, KeyError, TypeError, ValueError):
        expires_at = time.time() + 3600
    revoked_tokens.add(token, expires_at)


# ---------------------------------------------------------------------------
# 4.  FastAPI dependency guards
# ---------------------------------------------------------------------------

# The tokenUrl here is only used by the auto-generated OpenAPI docs;
# the actual login endpoint is POST /api/login.  auto_error=False lets the
# guards fall back to the session-bound token.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/login", auto_error=False)


@dataclass
class AuthContext:
    """Who is calling, as proven by the token, plus their server session."""

    user_id: str
    email: str
    role: str
    token: str
    session: Optional[SessionState] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def get_session(request: Request) -> Optional[SessionState]:
    return session_store.get(request.cookies.get(settings.session_cookie_name))


def _authenticate(request: Request, bearer: Optional[str]) -> AuthContext:
    session = get_session(request)
    token = bearer or (session.token if session else None)
    if not token:
        raise Unauthorized()

    try:
        claims = verify_token(token)
    except Unauthorized:
        # A dead token takes its session (and cached key) with it
        if session is not None and session.token == token:
            session_store.destroy(session.sid)
        raise

    if session is not None and session.user_id != claims["sub"]:
        session = None

    return AuthContext(
        user_id=claims["sub"],
        email=claims.get("email", ""),
        role=claims.get("role") or "user",
        token=token,
        session=session,
    )


def get_current_auth(request: Request, bearer: Optional[str] = Depends(oauth2_scheme)) -> AuthContext:
    """
    Dependency: require a valid, unrevoked token from the Authorization
    header or the session.  Raises a 401-class error otherwise.
    """
    return _authenticate(request, bearer)


def get_optional_auth(
    request: Request, bearer: Optional[str] = Depends(oauth2_scheme)
) -> Optional[AuthContext]:
    """
    Dependency for read-mostly endpoints (chat): a bad or missing token just
    means an anonymous caller without vault personalization.
    """
    try:
        return _authenticate(request, bearer)
    except Unauthorized as exc:
        if bearer or get_session(request) is not None:
            logger.warning("Optional authentication skipped: %s", exc.detail)
        return None


def require_admin(auth: AuthContext = Depends(get_current_auth)) -> AuthContext:
    """
    Dependency: wraps :func:`get_current_auth` and additionally asserts
    ``role == 'admin'``.  Raises 403 otherwise.
    """
    if not auth.is_admin:
        raise Forbidden()
    return auth


# -- IP Address extraction ----------------------------------------------------


def get_client_ip(request: Request) -> str:
    """
    Extract the client IP address from the request.
    Checks X-Forwarded-For header first (for proxies), then falls back to client host.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # X-Forwarded-For can contain multiple IPs, take the first (original client)
        return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return "unknown"
