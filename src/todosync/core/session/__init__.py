"""
Session tracking for todosync.

Generates session ids and keeps a bounded, persisted history of the sessions
whose task lists have been mirrored.
"""

from todosync.core.session.models import SessionEntry, SessionState, generate_session_id
from todosync.core.session.store import DEFAULT_HISTORY_LIMIT, SessionStore

__all__ = [
    "DEFAULT_HISTORY_LIMIT",
    "SessionEntry",
    "SessionState",
    "SessionStore",
    "generate_session_id",
]
