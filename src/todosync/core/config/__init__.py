"""Configuration models and layered loading for todosync."""

from todosync.core.config.loader import deep_merge, get_user_config_path, load_config
from todosync.core.config.models import ListenerConfig, SyncConfig

__all__ = [
    "ListenerConfig",
    "SyncConfig",
    "deep_merge",
    "get_user_config_path",
    "load_config",
]
