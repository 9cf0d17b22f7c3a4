# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Auth endpoints – register, login, logout.

Security notes
--------------
* Login returns the *same* error whether the email doesn't exist or the
  password is wrong.  This prevents user-enumeration attacks.
* The vault key is derived from the password right here, cached in a fresh
  server-side session, and the password is dropped.  The client only ever
  receives the JWT and an opaque session cookie.
* Any session cookie the client arrived with is destroyed first, so a
  pre-planted session id can never be promoted to an authenticated one.
"""

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from database import get_db
from core.audit import record_event
from core.config import settings
from core.logger import logger
from core.security import (
    AuthContext,
    derive_encryption_key,
    get_current_auth,
    get_session,
    issue_token,
    revoke_token,
)
from core.sessions import session_store
from auth import credentials
from auth.schemas import AuthResponse, LoginRequest, RegisterRequest, SuccessResponse
from models.user import User
from vault import service as vault_service

router = APIRouter(prefix="/api", tags=["auth"])


def _start_session(request: Request, response: Response, user: User, key: bytes) -> str:
    """Issue a token, cache *key* in a new server session, set the cookie."""
    previous = get_session(request)
    if previous is not None:
        session_store.destroy(previous.sid)

    token = issue_token(user)
    state = session_store.create(user.id, user.role, token, key)
    response.set_cookie(
        settings.session_cookie_name,
        state.sid,
        max_age=settings.session_ttl_seconds,
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
    )
    return token


def end_session(request: Request, response: Response, auth: AuthContext) -> None:
    """Revoke the caller's token, drop their session and key, clear the cookie."""
    revoke_token(auth.token)
    if auth.session is not None:
        session_store.destroy(auth.session.sid)
    current = get_session(request)
    if current is not None:
        session_store.destroy(current.sid)
    response.delete_cookie(
        settings.session_cookie_name,
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
    )


# ---------------------------------------------------------------------------
# POST /api/register
# ---------------------------------------------------------------------------


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    body: RegisterRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
):
    """Create the account, its empty vault, and a logged-in session."""
    user = credentials.register(db, body.email, body.password, body.name)
    key = derive_encryption_key(body.password, user.encryption_salt)
    vault = vault_service.ensure_vault(db, user.id, key, user.display_name or "")

    token = _start_session(request, response, user, key)
    record_event(db, request, "user_register", user.id, user.email, detail=f"role={user.role}")

    return AuthResponse(token=token, user=credentials.public_user(user), vault=vault)


# ---------------------------------------------------------------------------
# POST /api/login
# ---------------------------------------------------------------------------


@router.post("/login", response_model=AuthResponse)
def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
):
    """Verify credentials, re-derive the vault key and unlock the vault."""
    user = credentials.verify(db, body.email, body.password)

    salt = credentials.ensure_encryption_salt(db, user)
    key = derive_encryption_key(body.password, salt)
    vault = vault_service.ensure_vault(db, user.id, key, user.display_name or "")

    credentials.record_login(db, user)
    token = _start_session(request, response, user, key)
    record_event(db, request, "user_login", user.id, user.email)
    logger.info("User %s logged in", user.id)

    return AuthResponse(token=token, user=credentials.public_user(user), vault=vault)


# ---------------------------------------------------------------------------
# POST /api/logout
# ---------------------------------------------------------------------------


@router.post("/logout", response_model=SuccessResponse)
def logout(
    request: Request,
    response: Response,
    auth: AuthContext = Depends(get_current_auth),
    db: Session = Depends(get_db),
):
    """Revoke the token and forget the cached vault key."""
    end_session(request, response, auth)
    record_event(db, request, "user_logout", auth.user_id, auth.email)
    return SuccessResponse()
