"""Tests for the mindcare CLI."""

import json
import logging
import os
import time

import pytest
from click.testing import CliRunner

from mindcare.cli.main import cli, configure_logging
from mindcare.config.settings import Settings
from mindcare.providers.ai.canned import canned_reply
from mindcare.config.locales import Language


@pytest.fixture
def runner(tmp_path):
    return CliRunner(
        env={
            "MINDCARE_RESPONSE_LATENCY": "0",
            "MINDCARE_METRICS_DIR": str(tmp_path / "metrics"),
            "MINDCARE_STORAGE_DIR": str(tmp_path / "storage"),
        }
    )


class TestCLI:

    def test_help(self, runner):
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        for command in ("chat", "sessions", "classify", "providers", "metrics", "login"):
            assert command in result.output

    def test_classify(self, runner):
        result = runner.invoke(cli, ["classify", "Hola, ¿cómo estás?"])

        assert result.exit_code == 0
        assert result.output.strip() == "es-ES"

    def test_providers(self, runner):
        result = runner.invoke(cli, ["providers"])

        assert result.exit_code == 0
        assert "canned" in result.output
        assert "whisperkit" in result.output
        assert "scripted" in result.output

    def test_sessions_empty(self, runner):
        result = runner.invoke(cli, ["sessions"])

        assert result.exit_code == 0
        assert "No conversations yet." in result.output

    def test_metrics_without_data(self, runner):
        result = runner.invoke(cli, ["metrics", "--format", "json"])

        assert result.exit_code == 0
        assert json.loads(result.output)["total_runs"] == 0

    def test_chat_persists_conversation(self, runner, tmp_path):
        result = runner.invoke(
            cli,
            ["chat", "--mock", "--no-metrics"],
            input="Hello there\n/title Greetings\n/list\n/quit\n",
        )

        assert result.exit_code == 0, result.output
        assert canned_reply("Hello there", Language.EN) in result.output
        assert "Greetings" in result.output

        listed = runner.invoke(cli, ["sessions"])
        assert "Greetings" in listed.output
        assert "[en-US]" in listed.output

    def test_chat_ephemeral_keeps_nothing(self, runner):
        result = runner.invoke(
            cli, ["chat", "--mock", "--ephemeral", "--no-metrics"], input="/new\n/quit\n"
        )
        assert result.exit_code == 0, result.output

        listed = runner.invoke(cli, ["sessions"])
        assert "No conversations yet." in listed.output

    def test_chat_language_option(self, runner):
        result = runner.invoke(
            cli,
            ["chat", "--mock", "--ephemeral", "--no-metrics", "--language", "de-DE"],
            input="/list\n",
        )

        assert result.exit_code == 0, result.output
        assert "Neues Gespräch" in result.output

    def test_login_and_logout(self, runner, tmp_path):
        storage = str(tmp_path / "auth")
        result = runner.invoke(
            cli, ["login", "--email", "sam@example.com", "--password", "pw", "--storage", storage]
        )
        assert result.exit_code == 0, result.output
        assert "Signed in as sam" in result.output

        result = runner.invoke(cli, ["logout", "--storage", storage])
        assert result.exit_code == 0
        assert "Signed out" in result.output

    def test_login_rejects_blank_email(self, runner, tmp_path):
        result = runner.invoke(
            cli, ["login", "--email", " ", "--password", "pw", "--storage", str(tmp_path)]
        )

        assert result.exit_code != 0
        assert "required" in result.output


class TestLoggingSetup:

    def test_file_logging_prunes_old_logs(self, tmp_path):
        old = tmp_path / "mindcare_old.log"
        old.write_text("x")
        stale = time.time() - 10 * 24 * 3600
        os.utime(old, (stale, stale))

        settings = Settings(load_env=False)
        settings.logging.file_enabled = True
        settings.logging.directory = str(tmp_path)
        settings.logging.retention_days = 7
        try:
            configure_logging(settings, debug=False)

            assert not old.exists()
            assert len(list(tmp_path.glob("mindcare_*.log"))) == 1
        finally:
            for handler in logging.getLogger().handlers[:]:
                handler.close()
                logging.getLogger().removeHandler(handler)
