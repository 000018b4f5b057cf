"""Tests for the afk command-line entrypoint."""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

import afk
from chatbridge.client import ChatBridgeError, SendResult
from sse.errors import Cancelled, ListenTimeout, TransportError
from sse.events import Event
from util import config
from util.config import Config


@pytest.fixture
def logged_in(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("AFK_CONFIG_DIR", str(tmp_path))
    config.save(Config(api_key="cb_test_cli", api_url="https://relay.test", sys_name="Claude Code"))


@pytest.fixture
def mock_client():
    with patch("afk.ChatBridgeClient") as client_cls:
        client = client_cls.return_value
        client.send_sms.return_value = SendResult(success=True, message_id="m1", session_id="afk-42")
        client.send_whatsapp.return_value = SendResult(success=True, message_id="m2", session_id="afk-43")
        yield client


@pytest.fixture
def mock_listener():
    with patch("afk.Listener") as listener_cls:
        yield listener_cls.return_value


def _reply(content="yes", sender="web"):
    def listen(cancellation, session_id, options):
        event = Event(kind="message", session_id=session_id, sender=sender, content=content)
        options.on_event(event)
        return event
    return listen


class TestBasics:
    def test_no_args_prints_help(self, capsys):
        assert afk.main([]) == 0
        assert "USAGE:" in capsys.readouterr().out

    def test_help_includes_agent_guidance(self, capsys):
        assert afk.main(["--help"]) == 0

        out = capsys.readouterr().out
        assert "FOR AI AGENTS:" in out
        assert "SHELL QUOTING:" in out
        assert "\\! → !" in out
        assert "Workflow:" in out

    def test_version(self, capsys):
        assert afk.main(["version"]) == 0
        assert capsys.readouterr().out == "afk version 1.0.0\n"

    def test_requires_a_channel(self, capsys):
        assert afk.main(["--msg", "hi"]) == 1
        assert "Must specify --sms or --whatsapp" in capsys.readouterr().err

    def test_rejects_both_channels(self, capsys):
        assert afk.main(["--sms", "--whatsapp", "--msg", "hi"]) == 1
        assert "Cannot use both" in capsys.readouterr().err

    def test_requires_message(self, capsys):
        assert afk.main(["--sms"]) == 1
        assert "--msg is required" in capsys.readouterr().err

    def test_bad_timeout(self, capsys):
        assert afk.main(["--sms", "--msg", "hi", "--timeout", "soon"]) == 1
        assert "400 Bad Request" in capsys.readouterr().err

    def test_not_logged_in(self, tmp_path: Path, monkeypatch, capsys):
        monkeypatch.setenv("AFK_CONFIG_DIR", str(tmp_path))
        assert afk.main(["--sms", "--msg", "hi"]) == 1
        assert "401 Unauthorized: not logged in" in capsys.readouterr().err


class TestCleanMessage:
    def test_unescapes_shell_escapes(self):
        assert afk.clean_message(r"Done\! Ready\? \*really\* \[1\]", False, False) == "Done! Ready? *really* [1]"

    def test_no_wait_appends_hint(self):
        assert afk.clean_message("fyi", True, False) == "fyi\n\n[No reply expected]"

    def test_no_hint_suppresses_hint(self):
        assert afk.clean_message("fyi", True, True) == "fyi"


@pytest.mark.usefixtures("logged_in")
class TestSend:
    def test_sms_and_reply(self, mock_client, mock_listener, capsys):
        mock_listener.listen.side_effect = _reply("Use Redis")

        assert afk.main(["--sms", "--msg", "Which cache?"]) == 0

        mock_client.send_sms.assert_called_once_with("Which cache?")
        out = capsys.readouterr().out
        assert "Session: afk-42" in out
        assert "<response>\nUse Redis\n</response>" in out
        assert "Channel: Web" in out

    def test_whatsapp_uses_sys_name(self, mock_client, mock_listener):
        mock_listener.listen.side_effect = _reply(sender="whatsapp")

        assert afk.main(["--whatsapp", "--msg", "Merge?"]) == 0

        mock_client.send_whatsapp.assert_called_once_with("Merge?", sys_name="Claude Code")
        cancellation, session_id, options = mock_listener.listen.call_args.args
        assert session_id == "afk-43"

    def test_listen_options_from_flags(self, mock_client, mock_listener):
        mock_listener.listen.side_effect = _reply()

        afk.main(["--sms", "--msg", "q", "--timeout", "30m", "--reminder", "5m"])

        options = mock_listener.listen.call_args.args[2]
        assert options.timeout == 1800
        assert options.reminder_interval == 300
        assert options.on_reminder is not None

    def test_reminder_default_from_config(self, mock_client, mock_listener):
        mock_listener.listen.side_effect = _reply()

        afk.main(["--sms", "--msg", "q"])

        assert mock_listener.listen.call_args.args[2].reminder_interval == 900

    def test_reminder_zero_disables(self, mock_client, mock_listener):
        mock_listener.listen.side_effect = _reply()

        afk.main(["--sms", "--msg", "q", "--reminder", "0"])

        assert mock_listener.listen.call_args.args[2].reminder_interval == 0

    def test_bad_reminder(self, mock_client, capsys):
        assert afk.main(["--sms", "--msg", "q", "--reminder", "often"]) == 1
        assert "Invalid reminder interval" in capsys.readouterr().err

    def test_no_wait_skips_listening(self, mock_client, mock_listener):
        assert afk.main(["--sms", "--msg", "Build done", "--no-wait"]) == 0

        mock_client.send_sms.assert_called_once_with("Build done\n\n[No reply expected]")
        mock_listener.listen.assert_not_called()

    def test_send_failure(self, mock_client, mock_listener, capsys):
        mock_client.send_sms.side_effect = ChatBridgeError("quota exceeded")

        assert afk.main(["--sms", "--msg", "q", "--format", "human"]) == 4
        assert "500 Error: quota exceeded" in capsys.readouterr().err
        mock_listener.listen.assert_not_called()

    def test_missing_session_id(self, mock_client, capsys):
        mock_client.send_sms.return_value = SendResult(success=True)

        assert afk.main(["--sms", "--msg", "q"]) == 4
        assert "Server did not return session ID" in capsys.readouterr().err

    def test_timeout(self, mock_client, mock_listener, capsys):
        mock_listener.listen.side_effect = ListenTimeout(60)

        assert afk.main(["--sms", "--msg", "q", "--timeout", "1m"]) == 3
        assert "═══ AFK TIMEOUT ═══" in capsys.readouterr().err

    def test_cancelled_exits_cleanly(self, mock_client, mock_listener, capsys):
        mock_listener.listen.side_effect = Cancelled()

        assert afk.main(["--sms", "--msg", "q", "--format", "json", "--quiet"]) == 0

    def test_transport_error(self, mock_client, mock_listener, capsys):
        mock_listener.listen.side_effect = TransportError("API error: 502 Bad Gateway")

        assert afk.main(["--sms", "--msg", "q", "--format", "json"]) == 2
        out = capsys.readouterr().out
        error = json.loads(out[out.rindex("{\n  \"event\": \"error\""):])
        assert error["status"] == 503
        assert error["session"] == "afk-42"

    def test_quiet_prints_only_reply(self, mock_client, mock_listener, capsys):
        mock_listener.listen.side_effect = _reply("42")

        afk.main(["--sms", "--msg", "q", "--quiet"])

        assert capsys.readouterr().out == "Session: afk-42\n42\n"


class TestLoginLogoutStatus:
    def test_login_saves_config(self, tmp_path: Path, monkeypatch, mock_client, capsys):
        monkeypatch.setenv("AFK_CONFIG_DIR", str(tmp_path))
        answers = iter(["cb_test_newkey", "", "Claude Code"])
        monkeypatch.setattr("builtins.input", lambda prompt="": next(answers))

        assert afk.main(["login"]) == 0

        cfg = config.load()
        assert cfg.api_key == "cb_test_newkey"
        assert cfg.api_url == "https://chatbridge.net"
        assert cfg.sys_name == "Claude Code"
        assert "Credentials saved to" in capsys.readouterr().out

    def test_login_rejects_bad_key_format(self, tmp_path: Path, monkeypatch, capsys):
        monkeypatch.setenv("AFK_CONFIG_DIR", str(tmp_path))
        monkeypatch.setattr("builtins.input", lambda prompt="": "sk-wrong")

        assert afk.main(["login"]) == 1
        assert "Invalid API key format" in capsys.readouterr().err
        assert not config.exists()

    def test_login_invalid_key(self, tmp_path: Path, monkeypatch, mock_client):
        monkeypatch.setenv("AFK_CONFIG_DIR", str(tmp_path))
        monkeypatch.setattr("builtins.input", lambda prompt="": "cb_live_x")
        mock_client.validate_key.side_effect = ChatBridgeError("invalid API key")

        assert afk.main(["login"]) == 2
        assert not config.exists()

    @pytest.mark.usefixtures("logged_in")
    def test_logout(self, capsys):
        assert afk.main(["logout"]) == 0
        assert not config.exists()
        assert afk.main(["logout"]) == 0
        assert "Already logged out" in capsys.readouterr().out

    @pytest.mark.usefixtures("logged_in")
    def test_status_ready(self, mock_client, capsys):
        assert afk.main(["status"]) == 0
        out = capsys.readouterr().out
        assert "✓ Online" in out
        assert "Ready to send messages." in out

    @pytest.mark.usefixtures("logged_in")
    def test_status_offline(self, mock_client, capsys):
        mock_client.health.side_effect = ChatBridgeError("API unreachable: refused")

        assert afk.main(["status"]) == 2
        assert "✗ Offline" in capsys.readouterr().out

    def test_status_not_configured(self, tmp_path: Path, monkeypatch, capsys):
        monkeypatch.setenv("AFK_CONFIG_DIR", str(tmp_path))

        assert afk.main(["status"]) == 1
        assert "Not configured" in capsys.readouterr().out
