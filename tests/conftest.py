# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Shared fixtures.

Settings are read once at import time, so the environment is prepared here
before any application module is imported: a throw-away SQLite database,
cheap KDF / hashing rounds and the language model in offline mode.
"""

import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="minimalism-tests-")

os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["SECRET_KEY"] = "test-secret-key-that-is-long-enough-for-hs256-signing-0123456789"
os.environ["KDF_ITERATIONS"] = "1000"
os.environ["PASSWORD_HASH_ROUNDS"] = "1000"
os.environ["LLM_OFFLINE"] = "true"
os.environ["ADMIN_EMAILS"] = "admin@example.com"
os.environ["CHAT_RATE_LIMIT"] = "5"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from database import Base, SessionLocal, engine  # noqa: E402
import models.user  # noqa: F401, E402
import models.vault_blob  # noqa: F401, E402
import models.audit_log  # noqa: F401, E402
from core.sessions import revoked_tokens, session_store  # noqa: E402
from coaching.limits import chat_limiter  # noqa: E402
from coaching.memory import exchange_memory  # noqa: E402
from vault.cache import coaching_cache  # noqa: E402
from main import app  # noqa: E402

PASSWORD = "correct-horse-battery"


@pytest.fixture(autouse=True)
def _fresh_state():
    """Empty tables and process-wide caches around every test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session_store.clear()
    revoked_tokens.clear()
    coaching_cache.clear()
    exchange_memory.clear()
    chat_limiter.reset()
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def register(client, email="maya@example.com", password=PASSWORD, name="Maya"):
    """Register through the API; the client keeps the session cookie."""
    resp = client.post("/api/register", json={"email": email, "password": password, "name": name})
    assert resp.status_code == 201, resp.text
    return resp.json()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
