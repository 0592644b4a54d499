"""Tests for the hotspot-gate click CLI"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import yaml
from click.testing import CliRunner

from hotspot_gate.cli import cli
from hotspot_gate.core.exceptions import ConnectTimeout, ProvisioningRejected

BOT_TOKEN = "123456:ABC-DEF1234ghIkl-zyx57W2v1u123ew11"


@pytest.fixture(autouse=True)
def _keep_test_logging():
    with patch("hotspot_gate.cli.configure_logging"):
        yield


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "hotspot-gate.yaml"
    path.write_text(yaml.safe_dump({
        "telegram": {"bot_token": BOT_TOKEN, "admin_chat_id": "42"},
        "public_url": "https://gate.example.com",
        "ledger": {"path": str(tmp_path / "reqs.json")},
        "router": {"enabled": True, "host": "10.0.0.1", "username": "api", "password": "secret"},
    }))
    return str(path)


class TestBasics:
    def test_help(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("serve", "check-config", "set-webhook", "provision"):
            assert command in result.output


class TestCheckConfig:
    def test_valid(self, runner, config_path):
        result = runner.invoke(cli, ["check-config", "--config", config_path])
        assert result.exit_code == 0
        assert "Configuration OK" in result.output
        assert "10.0.0.1:8728" in result.output

    def test_missing_file(self, runner, tmp_path):
        result = runner.invoke(cli, ["check-config", "--config", str(tmp_path / "absent.yaml")])
        assert result.exit_code == 1

    def test_incomplete(self, runner, tmp_path):
        path = tmp_path / "partial.yaml"
        path.write_text(yaml.safe_dump({"telegram": {"bot_token": BOT_TOKEN}}))
        result = runner.invoke(cli, ["check-config", "--config", str(path)])
        assert result.exit_code == 1


class TestSetWebhook:
    def test_registers_public_url(self, runner, config_path):
        notifier = MagicMock()
        notifier.start = AsyncMock()
        notifier.stop = AsyncMock()
        notifier.set_webhook = AsyncMock(return_value=True)

        with patch("hotspot_gate.interfaces.telegram.TelegramNotifier", return_value=notifier):
            result = runner.invoke(cli, ["set-webhook", "--config", config_path])

        assert result.exit_code == 0
        notifier.set_webhook.assert_awaited_once_with("https://gate.example.com/tg/webhook")
        notifier.stop.assert_awaited_once()


class TestProvision:
    def test_success_prints_replies(self, runner, config_path):
        with patch("hotspot_gate.routeros.provision_access", return_value=[["!done", "=ret=*5"]]) as provision:
            result = runner.invoke(
                cli, ["provision", "--config", config_path, "--mac", "AA:BB:CC:DD:EE:FF", "--profile", "1h"]
            )

        assert result.exit_code == 0
        assert "!done =ret=*5" in result.output
        target = provision.call_args.args[0]
        assert (target.host, target.username) == ("10.0.0.1", "api")
        assert provision.call_args.kwargs["profile"] == "1h"

    def test_router_rejection_exits_2(self, runner, config_path):
        with patch("hotspot_gate.routeros.provision_access", side_effect=ProvisioningRejected("already have user")):
            result = runner.invoke(
                cli, ["provision", "--config", config_path, "--mac", "AA:BB:CC:DD:EE:FF", "--profile", "1h"]
            )
        assert result.exit_code == 2
        assert "already have user" in result.output

    def test_timeout_marked_retryable(self, runner, config_path):
        with patch("hotspot_gate.routeros.provision_access", side_effect=ConnectTimeout("10.0.0.1", 8728, 5.0)):
            result = runner.invoke(
                cli, ["provision", "--config", config_path, "--mac", "AA:BB:CC:DD:EE:FF", "--profile", "1h"]
            )
        assert result.exit_code == 2
        assert "retryable" in result.output
