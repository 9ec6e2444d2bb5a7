"""
Hook configuration installer for Claude Code.

Manages todosync's entries in Claude Code's shared settings document
(~/.claude/settings.json). The installer performs non-destructive updates:
entries that belong to the user or to other tools are preserved verbatim.

Implementation:
    - Reads the existing settings (a missing file is created)
    - Backs up an unparsable file before recreating it
    - Removes todosync's previous entries, recognised by the loopback
      listener address in the command (whatever port it used)
    - Appends fresh entries pointing at the current listener
    - Writes the document back (2-space indent, trailing newline)

Installed layout:
    {
      "hooks": {
        "UserPromptSubmit": [
          {"hooks": [{"type": "command", "command": "curl ... /hook/session ..."}]}
        ],
        "PostToolUse": [
          {"matcher": "TodoWrite",
           "hooks": [{"type": "command", "command": "curl ... /hook/todo ..."}]}
        ]
      }
    }
"""

from __future__ import annotations

import json
import logging
import re
import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from todosync.core.hooks.listener import SESSION_PATH, TODO_PATH
from todosync.core.hooks.models import HookInstallResult, HookIssue

logger = logging.getLogger(__name__)

# A todosync listener endpoint on any loopback port
MARKER_PATTERN = re.compile(
    r"https?://(?:127\.0\.0\.1|localhost|\[::1\]):\d+/hook/(?:session|todo|general)(?![\w/-])"
)


@dataclass(frozen=True)
class HookCategory:
    """One hook category todosync installs into."""

    event: str
    endpoint: str
    matcher: str | None = None


def build_command(listener_url: str, endpoint: str) -> str:
    """Shell command that forwards the hook's stdin JSON to the listener."""
    return (
        f"curl -s -X POST {listener_url.rstrip('/')}{endpoint} "
        f'-H "Content-Type: application/json" -d @-'
    )


def is_own_command(command: Any) -> bool:
    """Whether a hook command was installed by todosync."""
    return isinstance(command, str) and MARKER_PATTERN.search(command) is not None


class SettingsCorruptError(ValueError):
    """The settings document exists but cannot be used."""


class HookInstaller:
    """
    Installs, checks and removes todosync hooks in Claude Code settings.

    Example:
        >>> installer = HookInstaller(Path("~/.claude/settings.json").expanduser())
        >>> result = installer.install("http://127.0.0.1:53817")
        >>> installer.is_installed()
        True
    """

    def __init__(self, settings_path: Path, task_tool_name: str = "TodoWrite") -> None:
        """
        Initialize the installer.

        Args:
            settings_path: Claude Code settings document
            task_tool_name: Tool matcher for the PostToolUse entry
        """
        self._settings_path = Path(settings_path)
        self.categories = (
            HookCategory(event="UserPromptSubmit", endpoint=SESSION_PATH),
            HookCategory(event="PostToolUse", endpoint=TODO_PATH, matcher=task_tool_name),
        )

    @property
    def settings_path(self) -> Path:
        """Settings document this installer edits."""
        return self._settings_path

    # ------------------------------------------------------------------
    # Reading and writing
    # ------------------------------------------------------------------

    def _load(self) -> dict[str, Any]:
        """
        Read the settings document.

        Raises:
            SettingsCorruptError: If the file is not a JSON object with an
                object-valued 'hooks' key
            OSError: If the file exists but cannot be read
        """
        if not self._settings_path.exists():
            return {}
        content = self._settings_path.read_text(encoding="utf-8")
        if not content.strip():
            return {}
        try:
            settings = json.loads(content)
        except json.JSONDecodeError as e:
            raise SettingsCorruptError(f"Invalid JSON in {self._settings_path.name}: {e}") from e
        if not isinstance(settings, dict):
            raise SettingsCorruptError("Settings document is not a JSON object")
        if "hooks" in settings and not isinstance(settings["hooks"], dict):
            raise SettingsCorruptError("'hooks' in settings is not a JSON object")
        return settings

    def _write(self, settings: dict[str, Any]) -> None:
        self._settings_path.parent.mkdir(parents=True, exist_ok=True)
        with self._settings_path.open("w", encoding="utf-8") as f:
            json.dump(settings, f, indent=2)
            f.write("\n")

    def _backup(self) -> Path:
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
        backup = self._settings_path.with_name(f"{self._settings_path.name}.backup-{stamp}")
        shutil.copy2(self._settings_path, backup)
        return backup

    # ------------------------------------------------------------------
    # Merging
    # ------------------------------------------------------------------

    @staticmethod
    def _strip_own(entries: list[Any]) -> list[Any]:
        """
        Remove todosync hook definitions from a category's entries.

        Foreign definitions inside a shared entry are kept; entries left with
        no definitions are dropped. Anything that is not a well-formed entry
        is kept untouched.
        """
        kept: list[Any] = []
        for entry in entries:
            if not isinstance(entry, dict) or not isinstance(entry.get("hooks"), list):
                kept.append(entry)
                continue
            definitions = entry["hooks"]
            foreign = [
                d
                for d in definitions
                if not (isinstance(d, dict) and is_own_command(d.get("command")))
            ]
            if len(foreign) == len(definitions):
                kept.append(entry)
            elif foreign:
                kept.append({**entry, "hooks": foreign})
        return kept

    def _build_entry(self, category: HookCategory, listener_url: str) -> dict[str, Any]:
        entry: dict[str, Any] = {}
        if category.matcher:
            entry["matcher"] = category.matcher
        entry["hooks"] = [
            {"type": "command", "command": build_command(listener_url, category.endpoint)}
        ]
        return entry

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def install(self, listener_url: str) -> HookInstallResult:
        """
        Merge todosync's hooks into the settings document.

        Idempotent: a second install with the same URL leaves every hook
        array byte-identical.

        Args:
            listener_url: Base URL of the running HookListener

        Returns:
            HookInstallResult with installation details and any issues
        """
        issues: list[HookIssue] = []
        backup_file: str | None = None

        try:
            settings = self._load()
        except SettingsCorruptError as e:
            try:
                backup = self._backup()
            except OSError as backup_error:
                issues.append(
                    HookIssue(
                        severity="error",
                        message=f"Settings are corrupt and could not be backed up: {backup_error}",
                        file_path=str(self._settings_path),
                    )
                )
                return HookInstallResult(
                    success=False,
                    issues=issues,
                    settings_file=str(self._settings_path),
                    message="Refusing to overwrite corrupt settings without a backup",
                )
            backup_file = str(backup)
            logger.warning(f"Corrupt Claude settings ({e}); backed up to {backup}")
            issues.append(
                HookIssue(
                    severity="warning",
                    message=f"Settings were corrupt ({e}); backed up to {backup}",
                    file_path=str(self._settings_path),
                )
            )
            settings = {}
        except OSError as e:
            issues.append(
                HookIssue(
                    severity="error",
                    message=f"Could not read settings: {e}",
                    file_path=str(self._settings_path),
                )
            )
            return HookInstallResult(
                success=False,
                issues=issues,
                settings_file=str(self._settings_path),
                message="Failed to read settings file",
            )

        hooks_config: dict[str, Any] = settings.get("hooks", {})
        hooks_installed: list[str] = []

        for category in self.categories:
            existing = hooks_config.get(category.event, [])
            if not isinstance(existing, list):
                issues.append(
                    HookIssue(
                        severity="warning",
                        message=f"Replaced non-list value of hooks.{category.event}",
                        hook_name=category.event,
                    )
                )
                existing = []
            merged = self._strip_own(existing)
            merged.append(self._build_entry(category, listener_url))
            hooks_config[category.event] = merged
            hooks_installed.append(category.event)

        settings["hooks"] = hooks_config

        try:
            self._write(settings)
            logger.info(f"Installed hooks for {listener_url} in {self._settings_path}")
        except OSError as e:
            issues.append(
                HookIssue(
                    severity="error",
                    message=f"Failed to write settings: {e}",
                    file_path=str(self._settings_path),
                )
            )
            return HookInstallResult(
                success=False,
                issues=issues,
                settings_file=str(self._settings_path),
                backup_file=backup_file,
                message="Failed to write settings file",
            )

        return HookInstallResult(
            success=True,
            hooks_installed=hooks_installed,
            issues=issues,
            settings_file=str(self._settings_path),
            backup_file=backup_file,
            message=f"Installed {len(hooks_installed)} hooks",
        )

    def _has_own_entry(self, hooks_config: dict[str, Any], category: HookCategory) -> bool:
        entries = hooks_config.get(category.event)
        if not isinstance(entries, list):
            return False
        for entry in entries:
            if not isinstance(entry, dict) or not isinstance(entry.get("hooks"), list):
                continue
            for definition in entry["hooks"]:
                if not isinstance(definition, dict):
                    continue
                command = definition.get("command")
                if is_own_command(command) and category.endpoint in command:
                    return True
        return False

    def is_installed(self) -> bool:
        """True only if both the session and the task hooks are present."""
        try:
            settings = self._load()
        except (SettingsCorruptError, OSError):
            return False
        hooks_config = settings.get("hooks", {})
        return all(self._has_own_entry(hooks_config, c) for c in self.categories)

    def validate(self) -> list[HookIssue]:
        """
        Check the hook configuration.

        Returns:
            List of validation issues (empty if all checks pass)
        """
        issues: list[HookIssue] = []
        if not self._settings_path.exists():
            issues.append(
                HookIssue(
                    severity="error",
                    message="Claude settings not found (hooks not installed)",
                    file_path=str(self._settings_path),
                )
            )
            return issues

        try:
            settings = self._load()
        except (SettingsCorruptError, OSError) as e:
            issues.append(
                HookIssue(severity="error", message=str(e), file_path=str(self._settings_path))
            )
            return issues

        hooks_config = settings.get("hooks", {})
        for category in self.categories:
            if not self._has_own_entry(hooks_config, category):
                issues.append(
                    HookIssue(
                        severity="warning",
                        message=f"Hook {category.event} does not post to {category.endpoint}",
                        hook_name=category.event,
                    )
                )
        return issues

    def uninstall(self) -> bool:
        """
        Remove todosync's hooks, preserving everything else.

        Categories left empty are removed from the document entirely.

        Returns:
            True if the document was changed
        """
        if not self._settings_path.exists():
            logger.info("No settings file found, nothing to uninstall")
            return False

        try:
            settings = self._load()
        except (SettingsCorruptError, OSError) as e:
            logger.warning(f"Could not read settings, leaving them untouched: {e}")
            return False

        hooks_config = settings.get("hooks")
        if not hooks_config:
            return False

        modified = False
        for event, entries in list(hooks_config.items()):
            if not isinstance(entries, list):
                continue
            filtered = self._strip_own(entries)
            if filtered == entries:
                continue
            modified = True
            if filtered:
                hooks_config[event] = filtered
            else:
                del hooks_config[event]

        if not modified:
            logger.info("No todosync hooks found in settings")
            return False

        try:
            self._write(settings)
            logger.info(f"Removed todosync hooks from {self._settings_path}")
        except OSError as e:
            logger.error(f"Failed to write settings: {e}")
            return False
        return True
