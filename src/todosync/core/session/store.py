"""
Session history store for todosync.

Persists session ids, a bounded most-recent-first history and a "last
session" pointer to a JSON document. Every mutation is written to disk before
returning and every query re-reads the file, so several processes (or a
restarted one) always see the same history.

File layout:
    ~/.local/share/todosync/sessions.json
    {
      "last_session_id": "9f0c...",
      "history": [{"id": "9f0c...", "started_at": ..., ...}, ...]
    }
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

from pydantic import ValidationError

from todosync.core.exceptions import SessionStoreError
from todosync.core.session.models import SessionEntry, SessionState, generate_session_id

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50


class SessionStore:
    """
    Manages session ids and their history.

    Example:
        >>> store = SessionStore(Path("/tmp/todosync/sessions.json"))
        >>> session_id = store.generate_id()
        >>> store.save(session_id, "/work/project")
        >>> store.last_id() == session_id
        True
    """

    def __init__(self, path: Path, history_limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        """
        Initialize SessionStore.

        Args:
            path: JSON file holding the history
            history_limit: Maximum number of entries kept (oldest dropped)
        """
        if history_limit < 1:
            raise ValueError("history_limit must be >= 1")
        self.path = Path(path)
        self.history_limit = history_limit

    def _read(self) -> SessionState:
        if not self.path.exists():
            return SessionState()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return SessionState.model_validate(data)
        except (json.JSONDecodeError, ValidationError, OSError) as e:
            logger.warning(f"Session store at {self.path} is unreadable, starting empty: {e}")
            return SessionState()

    def _write(self, state: SessionState) -> None:
        """Write atomically: temp file in the same directory, then replace."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            content = json.dumps(state.model_dump(mode="json"), indent=2, ensure_ascii=False)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(content)
                    f.write("\n")
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise SessionStoreError(f"Failed to write session store {self.path}: {e}") from e

    @staticmethod
    def generate_id() -> str:
        """Produce a fresh, practically collision-free session id."""
        return generate_session_id()

    def save(self, session_id: str, workspace_path: Path | str | None = None) -> SessionEntry:
        """
        Record a session as the most recent one.

        A known id keeps its started_at and moves to the front; a new id is
        inserted at the front. History beyond history_limit is dropped from
        the old end. The last pointer always ends up on session_id.

        Raises:
            SessionStoreError: If the store cannot be written
        """
        state = self._read()
        now = datetime.now(timezone.utc)
        workspace = str(workspace_path) if workspace_path is not None else None

        existing = next((e for e in state.history if e.id == session_id), None)
        if existing is not None:
            state.history.remove(existing)
            entry = existing.model_copy(
                update={
                    "last_active_at": now,
                    "workspace_path": workspace or existing.workspace_path,
                }
            )
        else:
            entry = SessionEntry(
                id=session_id, started_at=now, last_active_at=now, workspace_path=workspace
            )

        state.history.insert(0, entry)
        del state.history[self.history_limit :]
        state.last_session_id = session_id
        self._write(state)
        logger.debug(f"Saved session {session_id} ({len(state.history)} in history)")
        return entry

    def touch(self, session_id: str) -> SessionEntry | None:
        """Bump last_active_at of a known session without reordering history."""
        state = self._read()
        for index, entry in enumerate(state.history):
            if entry.id == session_id:
                updated = entry.model_copy(update={"last_active_at": datetime.now(timezone.utc)})
                state.history[index] = updated
                self._write(state)
                return updated
        return None

    def last_id(self) -> str | None:
        """Id of the most recently saved session, if any."""
        return self._read().last_session_id

    def find(self, session_id: str) -> SessionEntry | None:
        """Look up a session by id."""
        return next((e for e in self._read().history if e.id == session_id), None)

    def history(self, workspace_path: Path | str | None = None) -> list[SessionEntry]:
        """
        All sessions, most recent first.

        Args:
            workspace_path: Only return sessions recorded for this workspace
        """
        entries = self._read().history
        if workspace_path is None:
            return entries
        return [e for e in entries if e.workspace_path == str(workspace_path)]

    def remove(self, session_id: str) -> bool:
        """Drop one session; returns whether it was present."""
        state = self._read()
        remaining = [e for e in state.history if e.id != session_id]
        if len(remaining) == len(state.history):
            return False
        state.history = remaining
        if state.last_session_id == session_id:
            state.last_session_id = remaining[0].id if remaining else None
        self._write(state)
        return True

    def clear(self) -> None:
        """Forget every session and the last pointer."""
        self._write(SessionState())

    def prune(self, max_age_days: int) -> int:
        """
        Drop sessions not active within max_age_days.

        If the last pointer referenced a dropped session it moves to the most
        recent survivor, or is cleared when nothing survives.

        Returns:
            Number of sessions removed
        """
        if max_age_days < 0:
            raise ValueError("max_age_days must be >= 0")

        state = self._read()
        cutoff = datetime.now(timezone.utc) - timedelta(days=max_age_days)
        survivors = [e for e in state.history if e.last_active_at > cutoff]
        removed = len(state.history) - len(survivors)
        state.history = survivors

        if state.last_session_id and not any(e.id == state.last_session_id for e in survivors):
            state.last_session_id = survivors[0].id if survivors else None

        self._write(state)
        if removed:
            logger.info(f"Pruned {removed} session(s) older than {max_age_days} days")
        return removed
