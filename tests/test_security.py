# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Tests for core.security and core.sessions.

Tests cover:
- Vault key derivation (determinism, salt handling)
- Password hashing
- Token issue / verify / revoke
- Server-side session store and key cache
"""
import asyncio
import base64
import time
from datetime import timedelta
from types import SimpleNamespace

import pytest

from core.errors import InvalidSalt, TokenExpired, TokenMalformed, TokenRevoked, ValidationError
from core.security import (
    derive_encryption_key,
    derive_encryption_key_async,
    hash_password,
    issue_token,
    revoke_token,
    verify_password,
    verify_token,
)
from core.sessions import RevocationList, SessionStore

SALT = base64.b64encode(b"0123456789abcdef").decode("ascii")
OTHER_SALT = base64.b64encode(b"fedcba9876543210").decode("ascii")


def _user(**overrides):
    fields = {"id": "user-1", "email": "maya@example.com", "role": "user"}
    fields.update(overrides)
    return SimpleNamespace(**fields)


# --- Key derivation ---

class TestDeriveEncryptionKey:
    """Tests for PBKDF2 vault key derivation."""

    def test_same_inputs_same_key(self):
        """The key is re-derived at every login, so it must be stable."""
        assert derive_encryption_key("hunter2hunter2", SALT) == derive_encryption_key("hunter2hunter2", SALT)

    def test_key_is_32_bytes(self):
        assert len(derive_encryption_key("hunter2hunter2", SALT)) == 32

    def test_different_salt_different_key(self):
        assert derive_encryption_key("hunter2hunter2", SALT) != derive_encryption_key("hunter2hunter2", OTHER_SALT)

    def test_different_password_different_key(self):
        assert derive_encryption_key("hunter2hunter2", SALT) != derive_encryption_key("hunter3hunter3", SALT)

    @pytest.mark.parametrize("salt", [None, "", "not base64!!"])
    def test_invalid_salt(self, salt):
        with pytest.raises(InvalidSalt):
            derive_encryption_key("hunter2hunter2", salt)

    def test_empty_password(self):
        with pytest.raises(ValidationError):
            derive_encryption_key("", SALT)

    def test_async_variant_matches(self):
        key = asyncio.run(derive_encryption_key_async("hunter2hunter2", SALT))
        assert key == derive_encryption_key("hunter2hunter2", SALT)


# --- Password hashing ---

class TestPasswordHashing:

    def test_hash_verifies(self):
        stored = hash_password("correct-horse")
        assert verify_password("correct-horse", stored) is True
        assert verify_password("wrong-horse", stored) is False

    def test_hash_is_salted(self):
        assert hash_password("correct-horse") != hash_password("correct-horse")


# --- Tokens ---

class TestTokens:
    """Tests for JWT issue, verification and revocation."""

    def test_round_trip_claims(self):
        claims = verify_token(issue_token(_user(role="admin")))
        assert claims["sub"] == "user-1"
        assert claims["email"] == "maya@example.com"
        assert claims["role"] == "admin"
        assert {"iat", "exp", "iss", "aud"} <= set(claims)

    def test_expired_token(self):
        token = issue_token(_user(), expires_delta=timedelta(seconds=-5))
        with pytest.raises(TokenExpired):
            verify_token(token)

    def test_tampered_token(self):
        token = issue_token(_user())
        head, payload, signature = token.split(".")
        flipped = ("A" if signature[0] != "A" else "B") + signature[1:]
        with pytest.raises(TokenMalformed):
            verify_token(".".join([head, payload, flipped]))

    def test_garbage_token(self):
        with pytest.raises(TokenMalformed):
            verify_token("not-a-jwt")

    def test_revoked_token_rejected_before_expiry(self):
        token = issue_token(_user())
        revoke_token(token)
        with pytest.raises(TokenRevoked):
            verify_token(token)

    def test_revoking_garbage_is_harmless(self):
        revoke_token("not-a-jwt")
        revoke_token(None)


class TestRevocationList:

    def test_entries_expire(self):
        revoked = RevocationList()
        revoked.add("old", time.time() - 1)
        revoked.add("live", time.time() + 60)
        assert revoked.contains("old") is False
        assert revoked.contains("live") is True
        assert len(revoked) == 1


# --- Sessions ---

class TestSessionStore:
    """Tests for the server-side session store holding vault keys."""

    def test_create_and_resolve_key(self):
        store = SessionStore(ttl_seconds=60)
        state = store.create("user-1", "user", "token", b"k" * 32)
        assert store.get(state.sid) is state
        assert store.resolve_key(state, "user-1") == b"k" * 32

    def test_key_not_returned_for_other_user(self):
        store = SessionStore(ttl_seconds=60)
        state = store.create("user-1", "user", "token", b"k" * 32)
        assert store.resolve_key(state, "user-2") is None

    def test_destroy_wipes_key(self):
        store = SessionStore(ttl_seconds=60)
        state = store.create("user-1", "user", "token", b"k" * 32)
        store.destroy(state.sid)
        assert store.get(state.sid) is None
        assert store.resolve_key(state, "user-1") is None
        assert state.encryption_key is None

    def test_expired_session_is_gone(self):
        store = SessionStore(ttl_seconds=0)
        state = store.create("user-1", "user", "token", b"k" * 32)
        assert store.get(state.sid) is None
        assert store.resolve_key(state, "user-1") is None

    def test_destroy_for_user(self):
        store = SessionStore(ttl_seconds=60)
        store.create("user-1", "user", "a", b"k" * 32)
        store.create("user-1", "user", "b", b"k" * 32)
        keep = store.create("user-2", "user", "c", b"k" * 32)
        assert store.destroy_for_user("user-1") == 2
        assert len(store) == 1
        assert store.get(keep.sid) is keep

    def test_clear_key_keeps_session(self):
        store = SessionStore(ttl_seconds=60)
        state = store.create("user-1", "user", "token", b"k" * 32)
        store.clear_key(state)
        assert store.get(state.sid) is state
        assert store.resolve_key(state, "user-1") is None

    def test_rejects_short_key(self):
        store = SessionStore(ttl_seconds=60)
        state = store.create("user-1", "user", "token")
        with pytest.raises(ValueError):
            store.cache_key(state, b"short")

    def test_key_hidden_from_repr(self):
        store = SessionStore(ttl_seconds=60)
        state = store.create("user-1", "user", "token", b"secret-key-bytes-000000000000000")
        assert "secret-key-bytes" not in repr(state)
