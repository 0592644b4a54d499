"""
Integration tests for WebInterface.

All tests use a real TokenLedger with an in-memory store and a mocked
Telegram notifier; no network or bot token required.
Run with:  pytest tests/integration/test_web_interface.py -v
"""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from hotspot_gate.core.exceptions import ProvisioningRejected
from hotspot_gate.gateway import ApprovalGateway
from hotspot_gate.interfaces.web import WebInterface
from hotspot_gate.ledger import RequestState

MAC = "AA:BB:CC:DD:EE:FF"

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def gateway(ledger, mock_notifier):
    return ApprovalGateway(ledger, notifier=mock_notifier)


@pytest.fixture
def client(gateway, mock_notifier):
    iface = WebInterface(gateway, notifier=mock_notifier, public_url="https://gate.example.com/")
    with TestClient(iface.app) as client:
        yield client


def _callback(data: str, chat_id: int = 42, message_id: int = 7) -> dict:
    return {
        "update_id": 1,
        "callback_query": {
            "id": "cb-1",
            "from": {"id": chat_id, "is_bot": False, "first_name": "Admin"},
            "data": data,
            "message": {"message_id": message_id, "chat": {"id": chat_id, "type": "private"}},
        },
    }


def _answer_text(mock_notifier) -> str:
    return mock_notifier.answer.call_args.args[1]


# ---------------------------------------------------------------------------
# Client endpoints
# ---------------------------------------------------------------------------


class TestClientRoutes:
    def test_request_returns_token(self, client, ledger):
        resp = client.post("/request", json={"mac": MAC, "ip": "10.5.50.2", "profile": "3h"})
        assert resp.status_code == 200
        token = resp.json()["token"]
        assert ledger.get(token).state is RequestState.PENDING

    def test_request_without_mac(self, client):
        resp = client.post("/request", json={"ip": "10.5.50.2"})
        assert resp.status_code == 400
        assert resp.json() == {"error": "mac required"}

    def test_request_notifies_admin(self, gateway, mock_notifier):
        iface = WebInterface(gateway, notifier=mock_notifier)
        with TestClient(iface.app) as client:
            client.post("/request", json={"mac": MAC})
        # shutdown waits for in-flight notifications
        mock_notifier.notify_request.assert_awaited_once()

    def test_status_unknown(self, client):
        assert client.get("/status", params={"token": "nope"}).json() == {"state": "UNKNOWN"}

    def test_status_known(self, client):
        token = client.post("/request", json={"mac": MAC}).json()["token"]
        body = client.get("/status", params={"token": token}).json()
        assert body["state"] == "PENDING"
        assert body["mac"] == MAC


# ---------------------------------------------------------------------------
# Backup links
# ---------------------------------------------------------------------------


class TestBackupLinks:
    def test_approve(self, client, ledger):
        token = ledger.create(mac=MAC).token
        resp = client.get("/approve", params={"token": token, "profile": "3h"})
        assert resp.status_code == 200
        assert resp.text == "✅ Approved (3h)."
        assert ledger.get(token).profile == "3h"

    def test_approve_twice_reports_state(self, client, ledger):
        token = ledger.create(mac=MAC).token
        client.get("/approve", params={"token": token, "profile": "1h"})
        resp = client.get("/approve", params={"token": token, "profile": "1h"})
        assert resp.text == "Already APPROVED"

    def test_approve_bad_profile(self, client, ledger):
        token = ledger.create(mac=MAC).token
        resp = client.get("/approve", params={"token": token, "profile": "24h"})
        assert resp.status_code == 400
        assert "1h / 3h" in resp.text
        assert ledger.get(token).state is RequestState.PENDING

    def test_approve_unknown_token(self, client):
        resp = client.get("/approve", params={"token": "0" * 32, "profile": "1h"})
        assert resp.status_code == 404

    def test_deny(self, client, ledger):
        token = ledger.create(mac=MAC).token
        assert client.get("/deny", params={"token": token}).text == "❌ Denied"
        assert client.get("/deny", params={"token": token}).text == "Already DENIED"


# ---------------------------------------------------------------------------
# Poller endpoints
# ---------------------------------------------------------------------------


class TestPollerRoutes:
    def test_approved_then_consume(self, client, ledger):
        token = ledger.create(mac=MAC).token
        ledger.approve(token, "1h")

        first = client.get("/approved", params={"limit": 5}).json()
        second = client.get("/approved", params={"limit": 5}).json()

        assert [(r["token"], r["profile"], r["state"]) for r in first] == [(token, "1h", "SENT")]
        assert second == []

        assert client.post("/consume", json={"token": token}).json() == {"ok": True}
        assert client.post("/consume", json={"token": token}).json() == {"ok": True}
        assert ledger.get(token).state is RequestState.CONSUMED

    def test_consume_unknown_is_ok(self, client):
        assert client.post("/consume", json={"token": "nope"}).json() == {"ok": True}
        assert client.get("/consume", params={"token": "nope"}).json() == {"ok": True}


# ---------------------------------------------------------------------------
# Telegram webhook
# ---------------------------------------------------------------------------


class TestTelegramWebhook:
    def test_approve_button(self, client, ledger, mock_notifier):
        token = ledger.create(mac=MAC).token

        resp = client.post("/tg/webhook", json=_callback(f"APPROVE|{token}|3h"))

        assert resp.status_code == 200
        assert ledger.get(token).profile == "3h"
        assert _answer_text(mock_notifier) == "✅ Approved (3h)"
        chat_id, message_id, text = mock_notifier.edit_decision.call_args.args
        assert (chat_id, message_id) == (42, 7)
        assert text.startswith("✅ APPROVED (3h)")

    def test_deny_button(self, client, ledger, mock_notifier):
        token = ledger.create(mac=MAC).token
        client.post("/tg/webhook", json=_callback(f"DENY|{token}"))
        assert ledger.get(token).state is RequestState.DENIED
        assert _answer_text(mock_notifier) == "❌ Denied"

    def test_second_press_reports_current_state(self, client, ledger, mock_notifier):
        token = ledger.create(mac=MAC).token
        client.post("/tg/webhook", json=_callback(f"DENY|{token}"))
        client.post("/tg/webhook", json=_callback(f"APPROVE|{token}|1h"))
        assert ledger.get(token).state is RequestState.DENIED
        assert _answer_text(mock_notifier) == "ℹ️ Already DENIED"

    def test_foreign_chat_refused(self, client, ledger, mock_notifier):
        token = ledger.create(mac=MAC).token
        client.post("/tg/webhook", json=_callback(f"APPROVE|{token}|1h", chat_id=99))
        assert ledger.get(token).state is RequestState.PENDING
        assert mock_notifier.answer.call_args.kwargs == {"alert": True}

    @pytest.mark.parametrize(
        "data,expected",
        [
            ("garbage", "❌ Unknown action"),
            ("APPROVE|" + "0" * 32 + "|1h", "❌ Unknown token"),
        ],
    )
    def test_bad_callbacks(self, client, mock_notifier, data, expected):
        resp = client.post("/tg/webhook", json=_callback(data))
        assert resp.status_code == 200
        assert _answer_text(mock_notifier) == expected

    def test_profile_not_allowed(self, client, ledger, mock_notifier):
        token = ledger.create(mac=MAC).token
        client.post("/tg/webhook", json=_callback(f"APPROVE|{token}|24h"))
        assert _answer_text(mock_notifier) == "❌ Profile not allowed"
        assert ledger.get(token).state is RequestState.PENDING

    def test_non_callback_update_ignored(self, client, mock_notifier):
        resp = client.post("/tg/webhook", json={"update_id": 2, "message": {"text": "hi"}})
        assert resp.status_code == 200
        mock_notifier.answer.assert_not_called()

    def test_notifier_failure_still_returns_200(self, client, ledger, mock_notifier):
        mock_notifier.answer.side_effect = RuntimeError("telegram down")
        token = ledger.create(mac=MAC).token
        resp = client.post("/tg/webhook", json=_callback(f"DENY|{token}"))
        assert resp.status_code == 200
        assert ledger.get(token).state is RequestState.DENIED

    def test_setup_webhook(self, client, mock_notifier):
        resp = client.get("/setup-webhook")
        assert resp.status_code == 200
        mock_notifier.set_webhook.assert_awaited_once_with("https://gate.example.com/tg/webhook")

    def test_demo_request(self, client, ledger):
        resp = client.get("/demo-request")
        assert resp.text.startswith("DEMO sent ✅ Token=")
        assert len(ledger) == 1


# ---------------------------------------------------------------------------
# Direct provisioning
# ---------------------------------------------------------------------------


class TestDirectProvisioning:
    def test_approval_provisions_and_consumes(self, ledger, mock_notifier):
        provisioner = MagicMock(return_value=[["!done"]])
        gateway = ApprovalGateway(ledger, notifier=mock_notifier, provisioner=provisioner)
        token = ledger.create(mac=MAC).token

        with TestClient(WebInterface(gateway, notifier=mock_notifier).app) as client:
            client.post("/tg/webhook", json=_callback(f"APPROVE|{token}|1h"))
            health = client.get("/health").json()

        assert ledger.get(token).state is RequestState.CONSUMED
        assert health["direct_provisioning"] is True
        assert mock_notifier.edit_decision.call_args.args[2].startswith("✅ PROVISIONED (1h)")

    def test_router_failure_reported(self, ledger, mock_notifier):
        provisioner = MagicMock(side_effect=ProvisioningRejected("already have user"))
        gateway = ApprovalGateway(ledger, notifier=mock_notifier, provisioner=provisioner)
        token = ledger.create(mac=MAC).token

        with TestClient(WebInterface(gateway, notifier=mock_notifier).app) as client:
            resp = client.get("/approve", params={"token": token, "profile": "1h"})

        assert resp.status_code == 502
        assert "already have user" in resp.text
        assert ledger.get(token).state is RequestState.ERROR


# ---------------------------------------------------------------------------
# Utility endpoints
# ---------------------------------------------------------------------------


class TestUtilityRoutes:
    def test_root(self, client):
        assert client.get("/").text == "Server OK ✅"

    def test_health(self, client, ledger):
        ledger.create(mac=MAC)
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert body["ledger"]["PENDING"] == 1
        assert body["direct_provisioning"] is False

    def test_metrics(self, client, ledger):
        ledger.create(mac=MAC)
        resp = client.get("/metrics")
        assert resp.status_code == 200
        assert 'hotspot_gate_ledger_records{state="PENDING"} 1.0' in resp.text
