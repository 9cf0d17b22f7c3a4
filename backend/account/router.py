# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Account endpoints – the caller's own profile, vault, export and deletion.

All routes require a valid token.  Routes that touch vault content also
need the key cached in the caller's session; without it they fail with
``ReauthenticationRequired`` and the client asks for the password again.
"""

from datetime import datetime, timezone

import orjson
from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from database import get_db
from core.audit import record_event
from core.errors import InvalidCredentials, NotFound, ValidationError
from core.logger import logger
from core.security import AuthContext, get_current_auth, verify_password
from core.sessions import session_store
from auth import credentials
from auth.credentials import MIN_PASSWORD_LENGTH
from auth.router import end_session
from auth.schemas import SuccessResponse
from account.schemas import AccountResponse, DeleteAccountRequest, VaultResponse, VaultUpdateRequest
from coaching.memory import exchange_memory
from vault import service as vault_service

router = APIRouter(prefix="/api/account", tags=["account"])


def _load_user(db: Session, auth: AuthContext):
    user = credentials.find_by_id(db, auth.user_id)
    if user is None:
        raise NotFound()
    return user


# ---------------------------------------------------------------------------
# GET /api/account/me
# ---------------------------------------------------------------------------


@router.get("/me", response_model=AccountResponse)
def me(
    auth: AuthContext = Depends(get_current_auth),
    db: Session = Depends(get_db),
):
    user = _load_user(db, auth)
    document, _key = vault_service.load_for_request(db, auth)
    return AccountResponse(user=credentials.public_user(user), vault=document)


# ---------------------------------------------------------------------------
# GET / PUT /api/account/vault
# ---------------------------------------------------------------------------


@router.get("/vault", response_model=VaultResponse)
def get_vault(
    auth: AuthContext = Depends(get_current_auth),
    db: Session = Depends(get_db),
):
    document, _key = vault_service.load_for_request(db, auth)
    return VaultResponse(vault=document)


@router.put("/vault", response_model=SuccessResponse)
def put_vault(
    body: VaultUpdateRequest,
    request: Request,
    auth: AuthContext = Depends(get_current_auth),
    db: Session = Depends(get_db),
):
    """
    Replace the whole vault.  An oversized document is rejected with 400
    and the stored vault stays as it was.
    """
    key = vault_service.resolve_key(auth)
    vault_service.replace_document(db, auth.user_id, key, body.vault.model_dump())
    record_event(db, request, "vault_replace", auth.user_id, auth.email)
    return SuccessResponse()


# ---------------------------------------------------------------------------
# POST /api/account/export  – JSON download of everything we hold
# ---------------------------------------------------------------------------


@router.post("/export")
def export_account(
    request: Request,
    auth: AuthContext = Depends(get_current_auth),
    db: Session = Depends(get_db),
):
    user = _load_user(db, auth)
    key = vault_service.resolve_key(auth)
    payload = {
        "generatedAt": datetime.now(timezone.utc).isoformat(),
        "user": credentials.public_user(user),
        "vault": vault_service.export_document(db, auth.user_id, key),
    }
    record_event(db, request, "vault_export", auth.user_id, auth.email)

    return Response(
        content=orjson.dumps(payload, option=orjson.OPT_INDENT_2),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="minimalism-export.json"'},
    )


# ---------------------------------------------------------------------------
# DELETE /api/account/conversations
# ---------------------------------------------------------------------------


@router.delete("/conversations", response_model=SuccessResponse)
def clear_conversations(
    request: Request,
    auth: AuthContext = Depends(get_current_auth),
    db: Session = Depends(get_db),
):
    """Empty the stored conversation history and the short-term chat memory."""
    key = vault_service.resolve_key(auth)

    def _clear(document: dict) -> None:
        document["conversationHistory"] = []

    vault_service.mutate(db, auth.user_id, key, _clear)
    exchange_memory.forget(auth.user_id)
    record_event(db, request, "conversations_clear", auth.user_id, auth.email)
    return SuccessResponse()


# ---------------------------------------------------------------------------
# DELETE /api/account
# ---------------------------------------------------------------------------


@router.delete("", response_model=SuccessResponse)
def delete_account(
    body: DeleteAccountRequest,
    request: Request,
    response: Response,
    auth: AuthContext = Depends(get_current_auth),
    db: Session = Depends(get_db),
):
    """
    Permanently delete the account.  The password is checked again even
    though the caller holds a valid token.  The vault blob goes first so a
    failure half-way never leaves an orphaned vault behind.
    """
    if not body.password or len(body.password) < MIN_PASSWORD_LENGTH:
        raise ValidationError("Password confirmation is required.")

    user = _load_user(db, auth)
    if not verify_password(body.password, user.password_hash):
        raise InvalidCredentials()

    email = user.email
    vault_service.delete_vault(db, auth.user_id)
    credentials.remove(db, auth.user_id)
    exchange_memory.forget(auth.user_id)

    end_session(request, response, auth)
    session_store.destroy_for_user(auth.user_id)

    record_event(db, request, "account_delete", auth.user_id, email)
    logger.info("Account %s deleted", auth.user_id)
    return SuccessResponse()
