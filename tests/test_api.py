"""Tests for the FastAPI surface: health, flow listing and flow runs."""

from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from walle_e2e.api.routes import flows as flow_routes
from walle_e2e.api.routes import health as health_routes
from walle_e2e.core.errors import AuthStateError, LedgerError
from walle_e2e.core.flow import Flow
from walle_e2e.core.session import UiDriver
from walle_e2e.data.ledger import ResourceLedger
from walle_e2e.data.wallets import catalogue
from walle_e2e.flows import FLOWS, FlowDefinition
from walle_e2e.main import app
from tests.fakes import FakeClock, FakePage


class FakeSession:
    """Stands in for BrowserSession; records the options it was opened with."""

    opened: list = []

    def __init__(self, options, settings=None, require_auth=False):
        self.options = options
        self.require_auth = require_auth
        clock = FakeClock()
        self.driver = UiDriver.for_page(FakePage(clock), settings, clock=clock, sleep=clock.sleep)

    async def __aenter__(self):
        FakeSession.opened.append(self)
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return None


@pytest.fixture
def client(test_settings, monkeypatch):
    monkeypatch.setattr(health_routes, "get_settings", lambda: test_settings)
    monkeypatch.setattr(flow_routes, "get_settings", lambda: test_settings)
    FakeSession.opened = []
    with TestClient(app) as test_client:
        yield test_client


def register(monkeypatch, name, build, require_auth=False):
    monkeypatch.setitem(
        FLOWS, name, FlowDefinition(name, f"{name} flow", build, require_auth=require_auth)
    )


def demo_flow(fail: bool = False):
    def build(driver, settings):
        flow = Flow("demo")

        async def remember(ctx):
            ctx.data["agent_name"] = "Walle"

        async def check(ctx):
            if fail:
                raise AssertionError("thumbnail missing")

        flow.step("remember", remember)
        flow.step("check", check)
        return flow

    return build


# ---------------------------------------------------------------------------
# 1. Health
# ---------------------------------------------------------------------------

class TestHealth:
    def test_health(self, client):
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["environment"] == "development"

    def test_ready_without_auth_state(self, client):
        response = client.get("/api/v1/health/ready")
        body = response.json()
        assert body["ready"] is True
        assert body["checks"] == {"base_url_configured": True, "ledger_readable": True}
        assert body["auth_state_present"] is False

    def test_not_ready_with_corrupt_ledger(self, client, test_settings):
        test_settings.ledger_path.parent.mkdir(parents=True, exist_ok=True)
        test_settings.ledger_path.write_text("{broken", encoding="utf-8")

        body = client.get("/api/v1/health/ready").json()

        assert body["ready"] is False
        assert body["checks"]["ledger_readable"] is False

    def test_root(self, client, monkeypatch, test_settings):
        monkeypatch.setattr("walle_e2e.main.get_settings", lambda: test_settings)

        body = client.get("/").json()

        assert body["api"] == "/api/v1"
        assert body["base_url"] == test_settings.base_url
        assert body["flows"] == sorted(FLOWS)
        assert body["ledger_path"] == str(test_settings.ledger_path)


# ---------------------------------------------------------------------------
# 2. Flow listing and runs
# ---------------------------------------------------------------------------

class TestFlows:
    def test_list_flows(self, client):
        body = client.get("/api/v1/flows").json()
        assert [f["name"] for f in body] == [
            "agent-creation",
            "agent-exists-chat",
            "agent-selection",
            "bot-wallet-rejection",
            "chat-sessions",
            "homepage",
            "leaderboard-bubbles",
            "leaderboard-table",
            "my-agents",
        ]
        auth = {f["name"]: f["require_auth"] for f in body}
        assert auth["agent-creation"] is True
        assert auth["my-agents"] is True
        assert auth["leaderboard-table"] is False

    def test_unknown_flow_is_404(self, client):
        response = client.post("/api/v1/flows/run", json={"flow": "nope"})
        assert response.status_code == 404
        assert "agent-selection" in response.json()["detail"]

    def test_invalid_attempt_budget_is_422(self, client):
        response = client.post(
            "/api/v1/flows/run", json={"flow": "agent-selection", "max_attempts": 0}
        )
        assert response.status_code == 422

    def test_missing_auth_state_is_412(self, client):
        response = client.post("/api/v1/flows/run", json={"flow": "agent-creation"})
        assert response.status_code == 412
        assert "not found" in response.json()["detail"]

    def test_successful_run_is_reported_and_kept(self, client, monkeypatch):
        monkeypatch.setattr(flow_routes, "BrowserSession", FakeSession)
        register(monkeypatch, "demo", demo_flow())

        response = client.post(
            "/api/v1/flows/run",
            json={"flow": "demo", "browser": "firefox", "headless": False},
        )

        assert response.status_code == 200
        report = response.json()
        assert report["status"] == "succeeded"
        assert report["total_attempts"] == 1
        assert report["data"] == {"agent_name": "Walle"}
        assert [s["number"] for s in report["attempts"][0]["steps"]] == ["1", "2"]

        options = FakeSession.opened[0].options
        assert options.browser_type.value == "firefox"
        assert options.headless is False

        fetched = client.get(f"/api/v1/flows/{report['run_id']}").json()
        assert fetched["run_id"] == report["run_id"]
        history = client.get("/api/v1/flows/history").json()
        assert report["run_id"] in [r["run_id"] for r in history]

    def test_failed_run_is_a_report_not_an_error(self, client, monkeypatch):
        monkeypatch.setattr(flow_routes, "BrowserSession", FakeSession)
        register(monkeypatch, "demo", demo_flow(fail=True))

        response = client.post("/api/v1/flows/run", json={"flow": "demo"})

        assert response.status_code == 200
        report = response.json()
        assert report["status"] == "fatal_failed"
        assert report["attempts"][0]["failed_step"] == "2"
        assert "thumbnail missing" in report["error_message"]

    def test_ledger_error_is_409(self, client, monkeypatch):
        monkeypatch.setattr(flow_routes, "BrowserSession", FakeSession)

        def build(driver, settings):
            raise LedgerError("No unused resources left")

        register(monkeypatch, "demo", build)

        response = client.post("/api/v1/flows/run", json={"flow": "demo"})
        assert response.status_code == 409

    def test_expired_session_mid_flow_is_412(self, client, monkeypatch):
        monkeypatch.setattr(flow_routes, "BrowserSession", FakeSession)

        def build(driver, settings):
            flow = Flow("demo")

            async def open_my_agents(ctx):
                raise AuthStateError("My Agents asks to sign in; the stored session has expired")

            flow.step("open", open_my_agents)
            return flow

        register(monkeypatch, "demo", build, require_auth=True)

        response = client.post("/api/v1/flows/run", json={"flow": "demo"})

        assert response.status_code == 412
        assert "session has expired" in response.json()["detail"]
        assert FakeSession.opened[0].require_auth is True

    def test_exhausted_wallet_pool_is_409(self, client, monkeypatch, test_settings):
        monkeypatch.setattr(flow_routes, "BrowserSession", FakeSession)
        ledger = ResourceLedger(test_settings.ledger_path)
        for wallet in catalogue():
            ledger.mark_used(wallet.address)

        response = client.post("/api/v1/flows/run", json={"flow": "agent-creation"})

        assert response.status_code == 409
        assert "No unused resources" in response.json()["detail"]
        assert all(r["flow_name"] != "agent-creation" for r in flow_routes._run_history.values())

    def test_history_is_newest_first(self, client, monkeypatch):
        monkeypatch.setattr(flow_routes, "BrowserSession", FakeSession)
        register(monkeypatch, "demo", demo_flow())

        first = client.post("/api/v1/flows/run", json={"flow": "demo"}).json()
        second = client.post("/api/v1/flows/run", json={"flow": "demo"}).json()

        history = client.get("/api/v1/flows/history", params={"limit": 2}).json()
        assert [r["run_id"] for r in history] == [second["run_id"], first["run_id"]]

    def test_unknown_run_is_404(self, client):
        assert client.get("/api/v1/flows/does-not-exist").status_code == 404

    def test_reports_serialize_to_json(self, client, monkeypatch):
        monkeypatch.setattr(flow_routes, "BrowserSession", FakeSession)
        register(monkeypatch, "demo", demo_flow())

        run_id = client.post("/api/v1/flows/run", json={"flow": "demo"}).json()["run_id"]

        assert json.dumps(flow_routes._run_history[run_id])
