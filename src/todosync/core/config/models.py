"""
Configuration data models for todosync.

These models define the structure of ~/.config/todosync/config.json, with
validation and type safety via Pydantic.
"""

import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

LOOPBACK_HOSTS = ("127.0.0.1", "localhost", "::1")


def default_claude_dir() -> Path:
    """Directory where Claude Code keeps its per-user state."""
    return Path.home() / ".claude"


def default_state_dir() -> Path:
    """XDG data directory for todosync's own state (session history)."""
    xdg_data_home = os.environ.get("XDG_DATA_HOME")
    if not xdg_data_home:
        xdg_data_home = os.path.expanduser("~/.local/share")
    return Path(xdg_data_home) / "todosync"


class ListenerConfig(BaseModel):
    """
    Settings for the loopback hook listener.

    The listener only ever binds a loopback address on an OS-assigned port,
    so there is no port setting.
    """

    host: str = Field(default="127.0.0.1", description="Loopback address to bind")
    body_timeout: float = Field(
        default=5.0, gt=0, description="Seconds allowed to read a request body"
    )
    max_body_bytes: int = Field(
        default=1024 * 1024, ge=1, description="Largest accepted request body in bytes"
    )
    start_timeout: float = Field(
        default=5.0, gt=0, description="Seconds to wait for the server to come up"
    )

    @field_validator("host")
    @classmethod
    def validate_loopback(cls, v: str) -> str:
        """Refuse anything that is not a loopback address."""
        if v not in LOOPBACK_HOSTS:
            raise ValueError(f"listener host must be a loopback address, got '{v}'")
        return v


class SyncConfig(BaseModel):
    """
    Main todosync configuration model.

    Example:
        >>> config = SyncConfig(debounce_ms=100)
        >>> config.debounce_seconds
        0.1
    """

    todos_dir: Path = Field(
        default_factory=lambda: default_claude_dir() / "todos",
        description="Directory where Claude Code writes per-session task files",
    )
    settings_path: Path = Field(
        default_factory=lambda: default_claude_dir() / "settings.json",
        description="Claude Code settings document that hooks are merged into",
    )
    state_dir: Path = Field(
        default_factory=default_state_dir,
        description="Directory for todosync's session history",
    )
    debounce_ms: int = Field(
        default=300, ge=0, description="Quiet window before a changed file is parsed"
    )
    history_limit: int = Field(
        default=50, ge=1, description="Maximum number of sessions kept in history"
    )
    prune_days: int = Field(
        default=30, ge=1, description="Default age threshold for session pruning"
    )
    max_file_bytes: int = Field(
        default=10 * 1024 * 1024, ge=1, description="Largest task file considered plausible"
    )
    task_tool_name: str = Field(
        default="TodoWrite", min_length=1, description="Tool that writes the task list"
    )
    listener: ListenerConfig = Field(default_factory=ListenerConfig)

    model_config = ConfigDict(extra="ignore")

    @field_validator("todos_dir", "settings_path", "state_dir", mode="before")
    @classmethod
    def expand_user(cls, v: object) -> object:
        """Expand ~ in configured paths."""
        if isinstance(v, str):
            return Path(v).expanduser()
        if isinstance(v, Path):
            return v.expanduser()
        return v

    @property
    def debounce_seconds(self) -> float:
        """Quiet window in seconds."""
        return self.debounce_ms / 1000.0

    @property
    def sessions_file(self) -> Path:
        """Path to the persisted session history."""
        return self.state_dir / "sessions.json"
