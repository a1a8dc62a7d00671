"""
Tests for the reflect CLI.

Each test points the CLI at its own reflect.yaml and data directory.
No network: either demo mode or no provider keys.
"""

from __future__ import annotations

import logging

import pytest
from typer.testing import CliRunner

import main
from reflect.observability.logging_config import JSONFormatter, reflect_handlers
from reflect.security.credentials import MASTER_KEY_ENV

runner = CliRunner()


@pytest.fixture
def config_path(tmp_path, monkeypatch):
    monkeypatch.delenv(MASTER_KEY_ENV, raising=False)
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    monkeypatch.delenv("SUPABASE_SERVICE_KEY", raising=False)
    monkeypatch.delenv("REFLECT_DEMO_MODE", raising=False)
    monkeypatch.delenv("REFLECT_DATA_DIR", raising=False)
    monkeypatch.setattr(main, "configure_logging", lambda **kwargs: None)

    path = tmp_path / "reflect.yaml"
    path.write_text(f"data_dir: {tmp_path / 'data'}\ndemo_delay_seconds: 0\n")
    return str(path)


def _invoke(config_path, *args):
    return runner.invoke(main.app, ["--config", config_path, *args])


class TestInfo:

    def test_shows_tiers(self, config_path):
        result = _invoke(config_path, "info")
        assert result.exit_code == 0, result.output
        assert "groq/llama-3.3-70b-versatile" in result.output
        assert "JsonDocumentStore" in result.output

    def test_bad_config(self, tmp_path, config_path):
        bad = tmp_path / "bad.yaml"
        bad.write_text("llm:\n  retry:\n    max_retries: -3\n")
        result = runner.invoke(main.app, ["--config", str(bad), "info"])
        assert result.exit_code == 1
        assert "Configuration Error" in result.output


class TestSettingsCommand:

    def test_save_and_mask(self, config_path):
        result = _invoke(
            config_path, "settings", "--age", "33", "--fast-key", "gsk-abcdefghijklmnop"
        )
        assert result.exit_code == 0, result.output
        assert "Settings saved" in result.output
        assert "gsk-abcdefghijklmnop" not in result.output
        assert "gsk-...mnop" in result.output

        again = _invoke(config_path, "settings")
        assert "33" in again.output
        assert "gsk-...mnop" in again.output

    def test_invalid_age(self, config_path):
        result = _invoke(config_path, "settings", "--age", "500")
        assert result.exit_code == 1


class TestMoodCommands:

    def test_log_and_insights(self, config_path):
        for label in ("Calm", "Anxious", "Joyful", "Neutral"):
            result = _invoke(config_path, "mood", label, f"feeling {label.lower()}")
            assert result.exit_code == 0, result.output

        result = _invoke(config_path, "insights")
        assert result.exit_code == 0, result.output
        assert "feeling neutral" in result.output
        assert "stabilizing" in result.output

    def test_unknown_mood(self, config_path):
        result = _invoke(config_path, "mood", "Hangry", "lunch")
        assert result.exit_code == 1
        assert "Choose one of" in result.output

    def test_insights_empty(self, config_path):
        result = _invoke(config_path, "insights")
        assert result.exit_code == 0
        assert "No mood logs yet" in result.output


class TestSendCommand:

    def test_demo_reply(self, config_path):
        result = _invoke(config_path, "send", "I feel stuck", "--demo")
        assert result.exit_code == 0, result.output
        assert "Demo Mode" in result.output

    def test_no_keys_fails_cleanly(self, config_path):
        result = _invoke(config_path, "send", "hello")
        assert result.exit_code == 1
        assert "No API key" in result.output

    def test_new_session_after_failed_send(self, config_path):
        _invoke(config_path, "send", "hello")
        result = _invoke(config_path, "new-session")
        assert result.exit_code == 0
        assert "Session archived" in result.output

        result = _invoke(config_path, "new-session")
        assert "Nothing to archive" in result.output


class TestQuoteAndCheckin:

    def test_quote(self, config_path):
        result = _invoke(config_path, "quote")
        assert result.exit_code == 0, result.output
        assert "Daily Quote" in result.output

    def test_checkin_and_dismiss(self, config_path):
        result = _invoke(config_path, "checkin")
        assert "How are you feeling today?" in result.output

        _invoke(config_path, "checkin", "--dismiss")
        result = _invoke(config_path, "checkin")
        assert "dismissed for today" in result.output

    def test_checkin_after_logging(self, config_path):
        _invoke(config_path, "mood", "Calm", "tea")
        result = _invoke(config_path, "checkin")
        assert "already checked in" in result.output


class TestLoggingFromConfig:

    @pytest.fixture
    def real_logging(self, tmp_path, monkeypatch):
        for name in ("REFLECT_ENV", "REFLECT_LOG_LEVEL", MASTER_KEY_ENV,
                     "SUPABASE_URL", "SUPABASE_SERVICE_KEY", "REFLECT_DEMO_MODE"):
            monkeypatch.delenv(name, raising=False)
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield tmp_path
        root.handlers[:] = handlers
        root.setLevel(level)

    def _config(self, tmp_path, body: str) -> str:
        path = tmp_path / "reflect.yaml"
        path.write_text(f"data_dir: {tmp_path / 'data'}\n{body}")
        return str(path)

    def test_env_from_yaml_selects_json(self, real_logging):
        config = self._config(real_logging, "env: production\n")
        result = runner.invoke(main.app, ["--config", config, "info"])
        assert result.exit_code == 0, result.output

        handlers = reflect_handlers()
        assert len(handlers) == 1
        assert isinstance(handlers[0].formatter, JSONFormatter)

    def test_log_level_from_yaml(self, real_logging):
        config = self._config(real_logging, "log_level: error\n")
        runner.invoke(main.app, ["--config", config, "info"])
        assert logging.getLogger().level == logging.ERROR

    def test_verbose_flag_wins(self, real_logging):
        config = self._config(real_logging, "log_level: error\n")
        runner.invoke(main.app, ["--config", config, "-v", "info"])
        assert logging.getLogger().level == logging.INFO


class TestLockCommand:

    def test_without_pin(self, config_path):
        result = _invoke(config_path, "lock")
        assert result.exit_code == 1
        assert "No PIN set" in result.output


class TestChatCommand:

    def test_demo_conversation(self, config_path):
        result = runner.invoke(
            main.app,
            ["--config", config_path, "chat", "--demo"],
            input="I feel stuck\n/quit\n",
        )
        assert result.exit_code == 0, result.output
        assert "Demo Mode" in result.output

    def test_lock_without_pin_keeps_chatting(self, config_path):
        result = runner.invoke(
            main.app,
            ["--config", config_path, "chat", "--demo"],
            input="/lock\n/quit\n",
        )
        assert result.exit_code == 0, result.output
        assert "No PIN set" in result.output
