"""
Session data models for todosync.

A session is one continuous Claude Code conversation, identified by the id
that is passed to `claude --session-id` and embedded in task file names.
"""

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


def generate_session_id() -> str:
    """
    Generate a fresh session id.

    Returns:
        Random UUID4 string (the format Claude Code expects)
    """
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionEntry(BaseModel):
    """
    One session in the persisted history.

    Example:
        >>> entry = SessionEntry(id="abc123", workspace_path="/work/project")
        >>> entry.started_at <= entry.last_active_at
        True
    """

    id: str = Field(..., min_length=1, description="Session identifier")
    started_at: datetime = Field(default_factory=_utcnow, description="First seen (UTC)")
    last_active_at: datetime = Field(default_factory=_utcnow, description="Last seen (UTC)")
    workspace_path: str | None = Field(default=None, description="Workspace the session ran in")

    def age_days(self, now: datetime | None = None) -> float:
        """Days since the session was last active."""
        now = now or _utcnow()
        return (now - self.last_active_at).total_seconds() / 86400.0


class SessionState(BaseModel):
    """On-disk shape of the session store."""

    last_session_id: str | None = None
    history: list[SessionEntry] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")
