"""
Claude Code hook integration.

Two halves:
    HookListener: loopback HTTP server that receives hook push notifications
    HookInstaller: merges the matching hook commands into Claude Code's
        settings document without disturbing anyone else's hooks

Usage:
    from todosync.core.hooks import HookInstaller, HookListener

    listener = HookListener()
    url = listener.start()
    result = HookInstaller(settings_path).install(url)
    if not result.success:
        for issue in result.issues:
            print(f"{issue.severity}: {issue.message}")
"""

from todosync.core.hooks.installer import HookInstaller, build_command, is_own_command
from todosync.core.hooks.listener import (
    GENERAL_PATH,
    SESSION_PATH,
    SUCCESS_BODY,
    TODO_PATH,
    HookListener,
)
from todosync.core.hooks.models import (
    HookEvent,
    HookEventKind,
    HookInstallResult,
    HookIssue,
    HookKind,
    HookPayload,
)

__all__ = [
    "GENERAL_PATH",
    "SESSION_PATH",
    "SUCCESS_BODY",
    "TODO_PATH",
    "HookEvent",
    "HookEventKind",
    "HookInstallResult",
    "HookInstaller",
    "HookIssue",
    "HookKind",
    "HookListener",
    "HookPayload",
    "build_command",
    "is_own_command",
]
