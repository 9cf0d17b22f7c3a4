# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""Tests for the /api/account endpoints."""
import orjson

from conftest import PASSWORD, bearer, register
from core.config import settings
from models.audit_log import AuditLog
from models.user import User
from vault import store


def _vault(client):
    resp = client.get("/api/account/vault")
    assert resp.status_code == 200, resp.text
    return resp.json()["vault"]


class TestMe:

    def test_me(self, client):
        register(client)
        body = client.get("/api/account/me").json()
        assert body["user"]["email"] == "maya@example.com"
        assert body["vault"]["profile"]["name"] == "Maya"

    def test_requires_auth(self, client):
        assert client.get("/api/account/me").status_code == 401

    def test_token_without_session_needs_reauthentication(self, client):
        token = register(client)["token"]
        client.cookies.clear()
        resp = client.get("/api/account/vault", headers=bearer(token))
        assert resp.status_code == 401

    def test_other_users_session_is_ignored(self, client):
        maya = register(client)["token"]
        client.cookies.clear()
        register(client, email="sam@example.com", name="Sam")
        # Sam's cookie, Maya's token: the key in Sam's session is not Maya's
        resp = client.get("/api/account/vault", headers=bearer(maya))
        assert resp.status_code == 401


class TestVaultReadWrite:

    def test_put_then_get(self, client):
        register(client)
        vault = _vault(client)
        vault["profile"] = {"name": "Maya", "currentItems": 320, "lifestyle": "urban"}
        vault["goals"] = [{"text": "Donate winter coats"}]

        resp = client.put("/api/account/vault", json={"vault": vault})
        assert resp.status_code == 200
        assert resp.json() == {"success": True}

        stored = _vault(client)
        assert stored["profile"]["currentItems"] == 320
        assert stored["goals"] == [{"text": "Donate winter coats"}]

    def test_unknown_sections_are_kept(self, client):
        register(client)
        vault = _vault(client)
        vault["wishlist"] = ["nothing"]
        client.put("/api/account/vault", json={"vault": vault})
        assert _vault(client)["wishlist"] == ["nothing"]

    def test_oversized_vault_rejected_and_unchanged(self, client, db):
        register(client)
        user_id = db.query(User).one().id
        before = store.read_blob(db, user_id)

        vault = _vault(client)
        vault["stories"] = ["x" * (settings.max_vault_size_bytes + 1)]
        resp = client.put("/api/account/vault", json={"vault": vault})
        assert resp.status_code == 400

        db.expire_all()
        assert store.read_blob(db, user_id) == before
        assert _vault(client)["stories"] == []

    def test_missing_vault_field(self, client):
        register(client)
        assert client.put("/api/account/vault", json={}).status_code == 400

    def test_ciphertext_at_rest(self, client, db):
        register(client)
        vault = _vault(client)
        vault["goals"] = ["sell the rowing machine"]
        client.put("/api/account/vault", json={"vault": vault})
        blob = store.read_blob(db, db.query(User).one().id)
        assert "rowing" not in blob.ciphertext


class TestExport:

    def test_export_is_json_attachment(self, client, db):
        register(client)
        resp = client.post("/api/account/export")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("application/json")
        assert 'filename="minimalism-export.json"' in resp.headers["content-disposition"]

        payload = orjson.loads(resp.content)
        assert payload["generatedAt"]
        assert payload["user"]["email"] == "maya@example.com"
        assert payload["vault"]["profile"]["name"] == "Maya"
        assert db.query(AuditLog).filter(AuditLog.action == "vault_export").count() == 1


class TestClearConversations:

    def test_history_emptied(self, client):
        register(client)
        vault = _vault(client)
        vault["conversationHistory"] = [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}]
        client.put("/api/account/vault", json={"vault": vault})

        resp = client.delete("/api/account/conversations")
        assert resp.status_code == 200
        assert _vault(client)["conversationHistory"] == []


class TestDeleteAccount:

    def test_wrong_password(self, client):
        register(client)
        resp = client.request("DELETE", "/api/account", json={"password": "wrong-password"})
        assert resp.status_code == 401
        assert client.get("/api/account/me").status_code == 200

    def test_short_or_missing_password(self, client):
        register(client)
        assert client.request("DELETE", "/api/account", json={"password": "short"}).status_code == 400
        assert client.request("DELETE", "/api/account", json={}).status_code == 400

    def test_delete_removes_everything(self, client, db):
        token = register(client)["token"]
        user_id = db.query(User).one().id

        resp = client.request("DELETE", "/api/account", json={"password": PASSWORD})
        assert resp.status_code == 200

        db.expire_all()
        assert db.query(User).count() == 0
        assert store.read_blob(db, user_id) is None
        assert client.get("/api/account/me", headers=bearer(token)).status_code == 401
        relogin = client.post("/api/login", json={"email": "maya@example.com", "password": PASSWORD})
        assert relogin.status_code == 401
        assert db.query(AuditLog).filter(AuditLog.action == "account_delete").count() == 1
