"""
Tests for CLI hooks commands.

Tests install/check/uninstall against a temporary settings file and ping
against a real listener.
"""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from todosync.cli import app
from todosync.core.hooks import HookListener

runner = CliRunner()

URL = "http://127.0.0.1:53817"


def _invoke(config_file: Path, *args: str):
    return runner.invoke(app, ["--config", str(config_file), *args])


class TestInstallCommand:
    """Tests for `hooks install`."""

    def test_install(self, config_file: Path, config) -> None:
        """Hooks are written to the configured settings file."""
        result = _invoke(config_file, "hooks", "install", "--url", URL)

        assert result.exit_code == 0
        assert "UserPromptSubmit, PostToolUse" in result.output
        settings = json.loads(config.settings_path.read_text())
        assert set(settings["hooks"]) == {"UserPromptSubmit", "PostToolUse"}

    def test_install_reports_backup(self, config_file: Path, config) -> None:
        """A corrupt settings file is backed up and reported."""
        config.settings_path.parent.mkdir(parents=True, exist_ok=True)
        config.settings_path.write_text("{broken")

        result = _invoke(config_file, "hooks", "install", "--url", URL)

        assert result.exit_code == 0
        assert "Backup of corrupt settings" in result.output

    def test_url_is_required(self, config_file: Path) -> None:
        """--url has no default."""
        result = _invoke(config_file, "hooks", "install")

        assert result.exit_code != 0


class TestCheckCommand:
    """Tests for `hooks check`."""

    def test_check_after_install(self, config_file: Path) -> None:
        """A complete installation validates."""
        _invoke(config_file, "hooks", "install", "--url", URL)

        result = _invoke(config_file, "hooks", "check")

        assert result.exit_code == 0
        assert "All hooks validated successfully" in result.output

    def test_check_without_settings(self, config_file: Path) -> None:
        """A missing settings file is an error."""
        result = _invoke(config_file, "hooks", "check")

        assert result.exit_code == 1
        assert "Found 1 error(s)" in result.output


class TestUninstallCommand:
    """Tests for `hooks uninstall`."""

    def test_uninstall(self, config_file: Path, config) -> None:
        """Installed hooks are removed."""
        _invoke(config_file, "hooks", "install", "--url", URL)

        result = _invoke(config_file, "hooks", "uninstall")

        assert result.exit_code == 0
        assert "Hooks removed" in result.output
        assert json.loads(config.settings_path.read_text())["hooks"] == {}

    def test_uninstall_nothing(self, config_file: Path) -> None:
        """Nothing installed is reported, not an error."""
        result = _invoke(config_file, "hooks", "uninstall")

        assert result.exit_code == 0
        assert "No todosync hooks found" in result.output


class TestPingCommand:
    """Tests for `hooks ping`."""

    @pytest.fixture
    def running_listener(self):
        listener = HookListener()
        received: list = []
        listener.subscribe(received.append)
        url = listener.start()
        yield url, received
        listener.stop()

    def test_ping_running_listener(self, running_listener) -> None:
        """A running listener answers and publishes a generic event."""
        url, received = running_listener

        result = runner.invoke(app, ["hooks", "ping", "--url", url])

        assert result.exit_code == 0
        assert "is up" in result.output
        assert received[0].payload.hook_event_name == "Ping"

    def test_ping_unreachable(self) -> None:
        """No listener means exit 1."""
        result = runner.invoke(app, ["hooks", "ping", "--url", "http://127.0.0.1:1"])

        assert result.exit_code == 1
        assert "not reachable" in result.output
