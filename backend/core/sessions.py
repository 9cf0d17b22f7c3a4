# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Process-wide, in-memory auth state.

Two structures live here:

* ``RevocationList`` – tokens logged out before their natural expiry.  An
  entry is kept only until the token's own ``exp``; expired entries are
  pruned lazily on every lookup so memory stays bounded.
* ``SessionStore`` – server-side sessions addressed by a random id carried
  in an HTTP-only cookie.  A session caches the vault encryption key that
  was derived at login so later requests can decrypt the vault without the
  password.  The key never leaves this process: it is not serialized, not
  logged and not sent to the client.

Both are caches in front of the authoritative state (password + salt, the
signed token).  Losing them costs the user a re-login, nothing more.

Sync FastAPI handlers run on a thread pool, so every mutation is guarded by
a lock.
"""

import secrets
import threading
import time
from dataclasses import dataclass, field
from typing import Optional

from core.config import settings

KEY_LENGTH = 32


class RevocationList:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, float] = {}  # token -> expiry (epoch seconds)

    def _prune_unlocked(self, now: float) -> None:
        expired = [token for token, expiry in self._entries.items() if expiry <= now]
        for token in expired:
            del self._entries[token]

    def add(self, token: str, expires_at: float) -> None:
        if not token:
            return
        with self._lock:
            self._entries[token] = expires_at

    def contains(self, token: str) -> bool:
        with self._lock:
            self._prune_unlocked(time.time())
            return token in self._entries

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            self._prune_unlocked(time.time())
            return len(self._entries)


@dataclass
class SessionState:
    sid: str
    user_id: str
    role: str
    token: str
    expires_at: float
    # repr=False keeps the key out of accidental log lines / tracebacks
    encryption_key: Optional[bytes] = field(default=None, repr=False)


class SessionStore:
    def __init__(self, ttl_seconds: int) -> None:
        self.ttl_seconds = ttl_seconds
        self._lock = threading.Lock()
        self._sessions: dict[str, SessionState] = {}

    def _prune_unlocked(self, now: float) -> None:
        expired = [sid for sid, state in self._sessions.items() if state.expires_at <= now]
        for sid in expired:
            del self._sessions[sid]

    def create(self, user_id: str, role: str, token: str, key: Optional[bytes] = None) -> SessionState:
        state = SessionState(
            sid=secrets.token_urlsafe(32),
            user_id=user_id,
            role=role,
            token=token,
            expires_at=time.time() + self.ttl_seconds,
        )
        with self._lock:
            self._prune_unlocked(time.time())
            self._sessions[state.sid] = state
        if key is not None:
            self.cache_key(state, key)
        return state

    def get(self, sid: Optional[str]) -> Optional[SessionState]:
        if not sid:
            return None
        with self._lock:
            self._prune_unlocked(time.time())
            return self._sessions.get(sid)

    def destroy(self, sid: Optional[str]) -> None:
        if not sid:
            return
        with self._lock:
            state = self._sessions.pop(sid, None)
        if state is not None:
            state.encryption_key = None

    def destroy_for_user(self, user_id: str) -> int:
        """Drop every session belonging to *user_id* (account deletion)."""
        with self._lock:
            doomed = [sid for sid, state in self._sessions.items() if state.user_id == user_id]
            states = [self._sessions.pop(sid) for sid in doomed]
        for state in states:
            state.encryption_key = None
        return len(states)

    def cache_key(self, state: SessionState, key: bytes) -> None:
        if len(key) != KEY_LENGTH:
            raise ValueError("encryption key must be exactly 32 bytes")
        with self._lock:
            state.encryption_key = bytes(key)

    def resolve_key(self, state: Optional[SessionState], user_id: str) -> Optional[bytes]:
        """
        Return the cached key, or None when the session is missing, belongs
        to somebody else, has expired or holds no usable key.
        """
        if state is None or state.user_id != user_id:
            return None
        with self._lock:
            if state.expires_at <= time.time() or self._sessions.get(state.sid) is not state:
                return None
            key = state.encryption_key
        if key is None or len(key) != KEY_LENGTH:
            return None
        return key

    def clear_key(self, state: Optional[SessionState]) -> None:
        """Forget the cached key but keep the session (re-unlock required)."""
        if state is None:
            return
        with self._lock:
            state.encryption_key = None

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()

    def __len__(self) -> int:
        with self._lock:
            self._prune_unlocked(time.time())
            return len(self._sessions)


# Module-level singletons – import these everywhere
revoked_tokens = RevocationList()
session_store = SessionStore(settings.session_ttl_seconds)
