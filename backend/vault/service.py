# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Vault service – the only code path that turns a key plus a user id into a
decrypted document and back.

Flow for every mutation:

    read blob → decrypt → mutator(document) → truncate history
              → encrypt (size ceiling) → write blob

No lock is taken: two concurrent mutations for the same user race and the
last write wins.  Decryption failures always propagate; a vault that does
not decrypt is never overwritten with a fresh one.
"""

from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy.orm import Session

from core.config import settings
from core.errors import ReauthenticationRequired
from core.logger import logger
from core.security import AuthContext
from core.sessions import session_store
from vault import cipher, store
from vault.cache import coaching_cache

Mutator = Callable[[dict], Optional[dict]]

DEFAULT_TARGET_ITEMS = 50


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def default_progress(user_id: str, now: Optional[str] = None) -> dict:
    return {
        "userId": user_id,
        "milestones": [],
        "currentPhase": "initial",
        "startDate": now or _now_iso(),
        "lastUpdate": None,
        "currentItemCount": None,
        "targetItemCount": DEFAULT_TARGET_ITEMS,
    }


def default_document(user_id: str, display_name: str = "") -> dict:
    """The empty vault every new account starts with."""
    now = _now_iso()
    profile = None
    if display_name:
        profile = {
            "userId": user_id,
            "name": display_name,
            "createdAt": now,
            "updatedAt": now,
            "phase": "initial",
            "motivation": "simplicity",
        }
    return {
        "profile": profile,
        "progress": default_progress(user_id, now),
        "goals": [],
        "decisions": [],
        "stories": [],
        "conversationHistory": [],
    }


def truncate_history(document: dict, limit: int) -> int:
    """
    Keep only the newest *limit* conversation entries.  Older entries are
    dropped silently.  Returns how many were removed.
    """
    history = document.get("conversationHistory")
    if not isinstance(history, list) or len(history) <= limit:
        return 0
    dropped = len(history) - limit
    document["conversationHistory"] = history[-limit:] if limit > 0 else []
    return dropped


def _load(db: Session, user_id: str, key: bytes) -> Optional[dict]:
    blob = store.read_blob(db, user_id)
    if blob is None:
        return None
    try:
        return cipher.decrypt(key, blob)
    except Exception as exc:
        logger.error("Vault decryption failed for user %s: %s", user_id, type(exc).__name__)
        raise


def _save(db: Session, user_id: str, key: bytes, document: dict) -> None:
    dropped = truncate_history(document, settings.max_conversation_history)
    if dropped:
        logger.info("Truncated %d conversation entries for user %s", dropped, user_id)
    blob = cipher.encrypt(key, document)
    store.write_blob(db, user_id, blob)
    coaching_cache.remember(user_id, document)


def ensure_vault(db: Session, user_id: str, key: bytes, display_name: str = "") -> dict:
    """
    Decrypt the user's vault, or create and persist the default document
    when none exists yet.  This is the only place a vault is created.
    """
    document = _load(db, user_id, key)
    if document is None:
        document = default_document(user_id, display_name)
        _save(db, user_id, key, document)
        logger.info("Vault created for user %s", user_id)
    else:
        coaching_cache.remember(user_id, document)
    return document


def resolve_key(auth: AuthContext) -> bytes:
    key = session_store.resolve_key(auth.session, auth.user_id)
    if key is None:
        raise ReauthenticationRequired()
    return key


def load_for_request(db: Session, auth: AuthContext) -> tuple[dict, bytes]:
    """
    Load the caller's vault with the key cached in their session.

    Raises ``ReauthenticationRequired`` when the session holds no key; the
    client recovers by showing the credential prompt again.
    """
    key = resolve_key(auth)
    return ensure_vault(db, auth.user_id, key), key


def mutate(db: Session, user_id: str, key: bytes, mutator: Mutator) -> dict:
    """
    Read-decrypt-apply-encrypt-write in one step.  *mutator* may return a
    new document or change the one it is given and return None.

    If encryption fails (e.g. ``VaultTooLarge``) nothing is written and the
    previously persisted vault is unchanged.
    """
    current = ensure_vault(db, user_id, key)
    result = mutator(current)
    document = current if result is None else result
    _save(db, user_id, key, document)
    return document


def replace_document(db: Session, user_id: str, key: bytes, document: dict) -> dict:
    """Whole-document replacement (PUT /api/account/vault)."""
    # The current vault must still decrypt: a wrong key must not overwrite it
    _load(db, user_id, key)
    _save(db, user_id, key, document)
    return document


def export_document(db: Session, user_id: str, key: bytes) -> dict:
    """Read-only load for data export.  Never writes, not even a default."""
    document = _load(db, user_id, key)
    if document is None:
        return default_document(user_id)
    return document


def delete_vault(db: Session, user_id: str) -> bool:
    coaching_cache.forget(user_id)
    return store.delete_blob(db, user_id)
