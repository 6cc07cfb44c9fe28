"""Plugin extension points."""
from specgate.plugins.registry import (
    Command,
    CustomHookTrigger,
    CustomSteeringMode,
    Plugin,
    PluginContext,
    PluginRegistrationResult,
    PluginRegistry,
)

__all__ = [
    "Command",
    "CustomHookTrigger",
    "CustomSteeringMode",
    "Plugin",
    "PluginContext",
    "PluginRegistrationResult",
    "PluginRegistry",
]
