# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""Tests for the /api/admin endpoints."""
import io

import pytest
from fastapi.testclient import TestClient
from openpyxl import load_workbook

from conftest import register
from main import app


@pytest.fixture
def admin_client():
    with TestClient(app) as test_client:
        register(test_client, email="admin@example.com", name="Admin")
        yield test_client


class TestRoleCheck:

    def test_regular_user_forbidden(self, client):
        register(client)
        assert client.get("/api/admin/progress-summary").status_code == 403
        assert client.get("/api/admin/progress-summary/export").status_code == 403
        assert client.get("/api/admin/audit-logs").status_code == 403

    def test_anonymous_unauthorized(self, client):
        assert client.get("/api/admin/progress-summary").status_code == 401


class TestProgressSummary:

    def test_summary_over_seen_users(self, client, admin_client):
        register(client)
        client.post("/api/progress", json={"itemCount": 300})
        client.post("/api/progress", json={"itemCount": 250})

        resp = admin_client.get("/api/admin/progress-summary")
        assert resp.status_code == 200
        summary = resp.json()["summary"]
        assert summary["totalTrackedUsers"] == 2
        assert summary["profileCount"] == 2
        assert summary["totalMilestones"] == 2
        assert summary["totalItemsReduced"] == 50
        assert summary["activeUsers"] == 1
        assert summary["phaseDistribution"] == {"reduction": 1, "initial": 1}
        assert resp.json()["storedVaults"] == 2

    def test_export_workbook(self, client, admin_client):
        register(client)
        client.post("/api/progress", json={"itemCount": 120})

        resp = admin_client.get("/api/admin/progress-summary/export")
        assert resp.status_code == 200
        assert "spreadsheetml" in resp.headers["content-type"]

        sheet = load_workbook(io.BytesIO(resp.content)).active
        rows = list(sheet.iter_rows(values_only=True))
        assert rows[0][0] == "User ID"
        assert len(rows) == 3
        assert any(row[1] == "refinement" and row[2] == 120 for row in rows[1:])


class TestAuditLogs:

    def test_newest_first_with_filters(self, client, admin_client):
        register(client)
        client.post("/api/account/export")

        logs = admin_client.get("/api/admin/audit-logs").json()["logs"]
        assert logs[0]["action"] == "vault_export"
        assert {"user_register", "vault_export"} <= {row["action"] for row in logs}

        mine = admin_client.get("/api/admin/audit-logs", params={"emails": "maya@example.com"}).json()["logs"]
        assert {row["actor_email"] for row in mine} == {"maya@example.com"}

        exports = admin_client.get("/api/admin/audit-logs", params={"action": "vault_export"}).json()["logs"]
        assert len(exports) == 1
