"""Filesystem watching of the Claude Code todos directory."""

from todosync.core.watcher.models import FileWatch, WatchEvent, WatchEventKind
from todosync.core.watcher.watcher import DirectoryWatcher, matches_session

__all__ = ["DirectoryWatcher", "FileWatch", "WatchEvent", "WatchEventKind", "matches_session"]
