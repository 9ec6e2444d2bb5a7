"""
Tests for the Claude Code settings hook installer.

Tests cover:
- Installation: fresh install, idempotent re-install, port change
- Preservation of user and third-party hooks
- Corrupt settings: backup and recreate
- Validation and is_installed()
- Uninstallation: clean removal, empty categories dropped
"""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from todosync.core.hooks import HookInstaller, build_command, is_own_command

URL = "http://127.0.0.1:53817"
OTHER_URL = "http://127.0.0.1:40001"


@pytest.fixture
def settings_path(temp_dir: Path) -> Path:
    return temp_dir / ".claude" / "settings.json"


@pytest.fixture
def installer(settings_path: Path) -> HookInstaller:
    return HookInstaller(settings_path, task_tool_name="TodoWrite")


def _read(path: Path) -> dict:
    return json.loads(path.read_text())


def _write(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2))


USER_HOOK = {"type": "command", "command": "echo 'user hook'"}


class TestCommands:
    """Tests for command building and recognition."""

    def test_build_command(self) -> None:
        """The command pipes the hook input to the listener."""
        command = build_command(URL + "/", "/hook/session")

        assert command == (
            'curl -s -X POST http://127.0.0.1:53817/hook/session '
            '-H "Content-Type: application/json" -d @-'
        )

    @pytest.mark.parametrize(
        "command,expected",
        [
            (build_command(URL, "/hook/todo"), True),
            (build_command("http://localhost:1", "/hook/session"), True),
            ("curl http://example.com/hook/todo", False),
            ("curl -s http://localhost:8080/hook/notify -d @-", False),
            ("curl -s http://127.0.0.1:9000/hook/sessions -d @-", False),
            ("curl -s http://127.0.0.1:9000/hook/todo-list -d @-", False),
            ("echo hi", False),
            (None, False),
        ],
    )
    def test_is_own_command(self, command, expected: bool) -> None:
        """Own commands are recognised by the loopback address, whatever the port."""
        assert is_own_command(command) is expected


class TestInstall:
    """Tests for HookInstaller.install()."""

    def test_fresh_install(self, installer: HookInstaller, settings_path: Path) -> None:
        """A missing settings file is created with both hooks."""
        result = installer.install(URL)

        assert result.success
        assert result.hooks_installed == ["UserPromptSubmit", "PostToolUse"]
        assert result.settings_file == str(settings_path)

        settings = _read(settings_path)
        session_entry = settings["hooks"]["UserPromptSubmit"][0]
        assert "matcher" not in session_entry
        assert session_entry["hooks"][0]["command"] == build_command(URL, "/hook/session")
        todo_entry = settings["hooks"]["PostToolUse"][0]
        assert todo_entry["matcher"] == "TodoWrite"
        assert todo_entry["hooks"][0] == {
            "type": "command",
            "command": build_command(URL, "/hook/todo"),
        }
        assert settings_path.read_text().endswith("}\n")

    def test_install_is_idempotent(self, installer: HookInstaller, settings_path: Path) -> None:
        """Installing twice leaves byte-identical hook arrays."""
        installer.install(URL)
        first = settings_path.read_text()

        installer.install(URL)

        assert settings_path.read_text() == first
        assert len(_read(settings_path)["hooks"]["PostToolUse"]) == 1

    def test_reinstall_with_new_port_replaces_entries(
        self, installer: HookInstaller, settings_path: Path
    ) -> None:
        """Entries from a previous port are replaced, not duplicated."""
        installer.install(OTHER_URL)

        installer.install(URL)

        commands = [
            d["command"]
            for entry in _read(settings_path)["hooks"]["UserPromptSubmit"]
            for d in entry["hooks"]
        ]
        assert commands == [build_command(URL, "/hook/session")]

    def test_preserves_other_settings_and_hooks(
        self, installer: HookInstaller, settings_path: Path
    ) -> None:
        """User keys and foreign hooks are preserved verbatim."""
        _write(
            settings_path,
            {
                "model": "opus",
                "hooks": {
                    "PostToolUse": [{"matcher": "Bash", "hooks": [USER_HOOK]}],
                    "Stop": [{"hooks": [USER_HOOK]}],
                },
            },
        )

        installer.install(URL)

        settings = _read(settings_path)
        assert settings["model"] == "opus"
        assert settings["hooks"]["Stop"] == [{"hooks": [USER_HOOK]}]
        post_tool_use = settings["hooks"]["PostToolUse"]
        assert post_tool_use[0] == {"matcher": "Bash", "hooks": [USER_HOOK]}
        assert post_tool_use[1]["matcher"] == "TodoWrite"

    def test_shared_entry_keeps_foreign_definitions(
        self, installer: HookInstaller, settings_path: Path
    ) -> None:
        """Only own definitions are removed from an entry shared with the user."""
        own = {"type": "command", "command": build_command(OTHER_URL, "/hook/session")}
        _write(settings_path, {"hooks": {"UserPromptSubmit": [{"hooks": [USER_HOOK, own]}]}})

        installer.install(URL)

        entries = _read(settings_path)["hooks"]["UserPromptSubmit"]
        assert entries[0] == {"hooks": [USER_HOOK]}
        assert entries[1]["hooks"][0]["command"] == build_command(URL, "/hook/session")

    def test_foreign_loopback_hooks_are_preserved(
        self, installer: HookInstaller, settings_path: Path
    ) -> None:
        """Other local listeners' hooks are not mistaken for todosync entries."""
        local = {"type": "command", "command": "curl -s http://localhost:8080/hook/notify -d @-"}
        _write(settings_path, {"hooks": {"UserPromptSubmit": [{"hooks": [local]}]}})

        installer.install(URL)

        entries = _read(settings_path)["hooks"]["UserPromptSubmit"]
        assert entries[0] == {"hooks": [local]}
        assert entries[1]["hooks"][0]["command"] == build_command(URL, "/hook/session")

        installer.uninstall()

        assert _read(settings_path)["hooks"] == {"UserPromptSubmit": [{"hooks": [local]}]}

    @pytest.mark.parametrize("content", ["{not json", "[1, 2]", '{"hooks": []}'])
    def test_corrupt_settings_are_backed_up(
        self, installer: HookInstaller, settings_path: Path, content: str
    ) -> None:
        """Unusable settings are copied aside and recreated with a warning."""
        settings_path.parent.mkdir(parents=True)
        settings_path.write_text(content)

        result = installer.install(URL)

        assert result.success
        assert result.backup_file is not None
        backup = Path(result.backup_file)
        assert backup.read_text() == content
        assert backup.name.startswith("settings.json.backup-")
        assert any(issue.severity == "warning" for issue in result.issues)
        assert installer.is_installed()

    def test_corrupt_settings_without_backup_are_untouched(
        self, installer: HookInstaller, settings_path: Path
    ) -> None:
        """If the backup fails, the corrupt file is not overwritten."""
        settings_path.parent.mkdir(parents=True)
        settings_path.write_text("{not json")

        with patch("todosync.core.hooks.installer.shutil.copy2", side_effect=OSError("denied")):
            result = installer.install(URL)

        assert not result.success
        assert settings_path.read_text() == "{not json"

    def test_empty_file_is_treated_as_missing(
        self, installer: HookInstaller, settings_path: Path
    ) -> None:
        """An empty settings file is not corrupt."""
        settings_path.parent.mkdir(parents=True)
        settings_path.write_text("")

        result = installer.install(URL)

        assert result.success
        assert result.backup_file is None

    def test_non_list_category_is_replaced(
        self, installer: HookInstaller, settings_path: Path
    ) -> None:
        """A category holding a non-list value is replaced with a warning."""
        _write(settings_path, {"hooks": {"PostToolUse": "oops"}})

        result = installer.install(URL)

        assert result.success
        assert any(issue.hook_name == "PostToolUse" for issue in result.issues)
        assert isinstance(_read(settings_path)["hooks"]["PostToolUse"], list)


class TestValidate:
    """Tests for is_installed() and validate()."""

    def test_not_installed_without_file(self, installer: HookInstaller) -> None:
        """No settings file means not installed."""
        assert not installer.is_installed()
        issues = installer.validate()
        assert [i.severity for i in issues] == ["error"]

    def test_installed_after_install(self, installer: HookInstaller) -> None:
        """Both hooks present means installed."""
        installer.install(URL)

        assert installer.is_installed()
        assert installer.validate() == []

    def test_one_hook_missing(self, installer: HookInstaller, settings_path: Path) -> None:
        """Both the session and the task hook are required."""
        installer.install(URL)
        settings = _read(settings_path)
        del settings["hooks"]["PostToolUse"]
        _write(settings_path, settings)

        assert not installer.is_installed()
        issues = installer.validate()
        assert [i.hook_name for i in issues] == ["PostToolUse"]

    def test_invalid_json_is_an_error(self, installer: HookInstaller, settings_path: Path) -> None:
        """Corrupt settings are reported, not repaired, by validate()."""
        settings_path.parent.mkdir(parents=True)
        settings_path.write_text("{")

        assert not installer.is_installed()
        assert installer.validate()[0].severity == "error"
        assert settings_path.read_text() == "{"


class TestUninstall:
    """Tests for HookInstaller.uninstall()."""

    def test_uninstall_removes_own_hooks_and_empty_categories(
        self, installer: HookInstaller, settings_path: Path
    ) -> None:
        """Categories left empty are removed entirely."""
        installer.install(URL)

        assert installer.uninstall() is True

        assert _read(settings_path)["hooks"] == {}
        assert not installer.is_installed()

    def test_uninstall_preserves_foreign_hooks(
        self, installer: HookInstaller, settings_path: Path
    ) -> None:
        """User hooks survive uninstall."""
        foreign = {"PostToolUse": [{"matcher": "Bash", "hooks": [USER_HOOK]}]}
        _write(settings_path, {"hooks": foreign})
        installer.install(URL)

        installer.uninstall()

        assert _read(settings_path)["hooks"] == foreign

    def test_uninstall_without_own_hooks(
        self, installer: HookInstaller, settings_path: Path
    ) -> None:
        """Nothing to remove means nothing is written."""
        _write(settings_path, {"hooks": {"Stop": [{"hooks": [USER_HOOK]}]}})
        before = settings_path.read_text()

        assert installer.uninstall() is False
        assert settings_path.read_text() == before

    def test_uninstall_without_file(self, installer: HookInstaller) -> None:
        """A missing settings file is left missing."""
        assert installer.uninstall() is False
        assert not installer.settings_path.exists()
