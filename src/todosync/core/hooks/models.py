"""
Data models for Claude Code hook integration.

Covers both directions: the payloads Claude Code pushes to the hook listener
and the result/issue models reported by the settings installer.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class HookKind(str, Enum):
    """Which listener endpoint a payload arrived on."""

    PROMPT_SUBMITTED = "prompt-submitted"
    TOOL_USED = "tool-used"
    GENERIC = "generic"


class HookEventKind(str, Enum):
    """Event kinds delivered to listener subscribers."""

    SESSION_UPDATE = "sessionUpdate"
    TODO_UPDATE = "todoUpdate"
    HOOK = "hook"


class HookPayload(BaseModel):
    """
    A push notification from a Claude Code hook.

    body is the JSON object Claude Code wrote to the hook command's stdin,
    kept verbatim. Payloads are never persisted.
    """

    kind: HookKind
    session_id: str | None = Field(default=None, description="Claude Code session id")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    body: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_body(cls, kind: HookKind, body: dict[str, Any]) -> HookPayload:
        """Build a payload from a decoded request body."""
        session_id = body.get("session_id")
        return cls(
            kind=kind,
            session_id=str(session_id) if session_id else None,
            body=body,
        )

    @property
    def tool_name(self) -> str | None:
        """Tool that triggered a PostToolUse hook."""
        value = self.body.get("tool_name")
        return str(value) if value else None

    @property
    def hook_event_name(self) -> str | None:
        """Claude Code hook event name (e.g. 'UserPromptSubmit')."""
        value = self.body.get("hook_event_name") or self.body.get("hook_type")
        return str(value) if value else None

    @property
    def cwd(self) -> str | None:
        """Working directory of the Claude Code session."""
        value = self.body.get("cwd")
        return str(value) if value else None

    @property
    def prompt(self) -> str | None:
        """Submitted prompt text (UserPromptSubmit only)."""
        value = self.body.get("prompt")
        return str(value) if value else None

    @property
    def transcript_path(self) -> str | None:
        """Path to the session transcript."""
        value = self.body.get("transcript_path")
        return str(value) if value else None

    @property
    def todos(self) -> list[Any]:
        """
        Task list carried by a TodoWrite tool call, if any.

        Informational only: the cache is always filled from the task files.
        """
        tool_input = self.body.get("tool_input")
        if isinstance(tool_input, dict) and isinstance(tool_input.get("todos"), list):
            return list(tool_input["todos"])
        return []


@dataclass(frozen=True)
class HookEvent:
    """A classified payload delivered to listener subscribers."""

    kind: HookEventKind
    payload: HookPayload


class HookIssue(BaseModel):
    """Represents a validation issue with hook configuration."""

    severity: str = Field(description="Issue severity: error, warning, info")
    message: str = Field(description="Human-readable issue description")
    hook_name: str | None = Field(default=None, description="Hook category if applicable")
    file_path: str | None = Field(default=None, description="Related file path if applicable")


class HookInstallResult(BaseModel):
    """Result of hook installation operation."""

    success: bool = Field(description="Whether installation succeeded")
    hooks_installed: list[str] = Field(
        default_factory=list, description="Hook categories written"
    )
    issues: list[HookIssue] = Field(default_factory=list, description="Issues encountered")
    settings_file: str | None = Field(
        default=None, description="Path to settings file that was modified"
    )
    backup_file: str | None = Field(
        default=None, description="Where a corrupt settings file was copied before recreating"
    )
    message: str | None = Field(default=None, description="Summary message")
