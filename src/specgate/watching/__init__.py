"""Configuration watching and hot reload."""
from specgate.watching.reload import ReloadCoordinator, StartupLoader, StartupReport
from specgate.watching.types import ChangeEvent, ChangeKind, ConfigCategory, ConfigChangeEvent
from specgate.watching.watcher import ChangeWatcher, WatchdogPrimitive

__all__ = [
    "ChangeEvent",
    "ChangeKind",
    "ChangeWatcher",
    "ConfigCategory",
    "ConfigChangeEvent",
    "ReloadCoordinator",
    "StartupLoader",
    "StartupReport",
    "WatchdogPrimitive",
]
