"""Plugin registry with explicit ownership of extension points.

Plugins contribute custom hook triggers, steering modes and commands.
Every extension key a plugin registers is recorded in an ownership
index (plugin id -> owned keys) so unregistering a plugin removes
exactly what it added.
"""

import inspect
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol

import structlog
from pydantic import BaseModel

from specgate.exceptions import DuplicateError, NotFoundError, ValidationError
from specgate.protocols import Subscription

logger = structlog.get_logger()


@dataclass(frozen=True)
class CustomHookTrigger:
    """A trigger type supplied by a plugin.

    Attributes:
        type: Unique trigger type name.
        description: Human-readable summary.
        subscribe: Called with a callback to fire; returns a handle that
            stops the trigger source.
    """

    type: str
    description: str
    subscribe: Callable[[Callable[[], None]], Subscription]


@dataclass(frozen=True)
class CustomSteeringMode:
    """A steering inclusion mode supplied by a plugin.

    Attributes:
        name: Unique mode name.
        description: Human-readable summary.
        should_include: Decides inclusion from the active file paths.
    """

    name: str
    description: str
    should_include: Callable[[list[str]], bool]


@dataclass(frozen=True)
class Command:
    """A named command supplied by a plugin."""

    id: str
    name: str
    handler: Callable[[], Awaitable[None]]


class PluginContext:
    """Handed to Plugin.activate() to register extensions."""

    def __init__(self, registry: "PluginRegistry", plugin_id: str) -> None:
        self._registry = registry
        self.plugin_id = plugin_id

    @property
    def workspace_path(self) -> str:
        """Workspace the registry serves."""
        return self._registry.workspace_path

    def register_hook_trigger(self, trigger: CustomHookTrigger) -> None:
        self._registry._add_extension(self.plugin_id, "hook_trigger", trigger.type, trigger)

    def register_steering_mode(self, mode: CustomSteeringMode) -> None:
        self._registry._add_extension(self.plugin_id, "steering_mode", mode.name, mode)

    def register_command(self, command: Command) -> None:
        self._registry._add_extension(self.plugin_id, "command", command.id, command)


class Plugin(Protocol):
    """Extension package loaded into a workspace."""

    id: str
    name: str
    version: str

    async def activate(self, context: PluginContext) -> None: ...

    async def deactivate(self) -> None: ...


class PluginRegistrationResult(BaseModel):
    """Outcome of registering one plugin in a batch."""

    plugin_id: str
    success: bool
    error: str | None = None


@dataclass
class _Extensions:
    hook_trigger: dict[str, CustomHookTrigger] = field(default_factory=dict)
    steering_mode: dict[str, CustomSteeringMode] = field(default_factory=dict)
    command: dict[str, Command] = field(default_factory=dict)


def _validate_plugin(plugin: Any) -> None:
    for attribute in ("id", "name", "version"):
        value = getattr(plugin, attribute, None)
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"Plugin {attribute} is required and must be a non-empty string")
    for method in ("activate", "deactivate"):
        if not callable(getattr(plugin, method, None)):
            raise ValidationError(f"Plugin must have a {method} method")


async def _maybe_await(value: Any) -> None:
    if inspect.isawaitable(value):
        await value


class PluginRegistry:
    """Registers plugins and tracks the extensions each one owns.

    Attributes:
        workspace_path: Workspace passed to plugins on activation.
    """

    def __init__(self, workspace_path: str) -> None:
        self.workspace_path = workspace_path
        self._plugins: dict[str, Plugin] = {}
        self._active: set[str] = set()
        self._extensions = _Extensions()
        self._owned: dict[str, list[tuple[str, str]]] = {}

    def _add_extension(self, plugin_id: str, kind: str, key: str, extension: Any) -> None:
        registry: dict[str, Any] = getattr(self._extensions, kind)
        if key in registry:
            logger.warning("plugin_extension_skipped", plugin_id=plugin_id, kind=kind, key=key)
            return
        registry[key] = extension
        self._owned.setdefault(plugin_id, []).append((kind, key))

    def _remove_extensions(self, plugin_id: str) -> None:
        for kind, key in self._owned.pop(plugin_id, []):
            registry: dict[str, Any] = getattr(self._extensions, kind)
            registry.pop(key, None)

    async def register(self, plugin: Plugin) -> None:
        """Validate and activate a plugin.

        Extensions declared as hook_triggers, steering_modes or commands
        attributes on the plugin are registered after activate().

        Raises:
            ValidationError: If the plugin is malformed.
            DuplicateError: If a plugin with the same id is registered.
        """
        _validate_plugin(plugin)
        if plugin.id in self._plugins:
            raise DuplicateError("Plugin", plugin.id)

        self._plugins[plugin.id] = plugin
        context = PluginContext(self, plugin.id)
        try:
            await _maybe_await(plugin.activate(context))
        except Exception as e:
            self._remove_extensions(plugin.id)
            del self._plugins[plugin.id]
            logger.error("plugin_activation_failed", plugin_id=plugin.id, error=str(e))
            raise

        self._active.add(plugin.id)
        for trigger in getattr(plugin, "hook_triggers", None) or []:
            context.register_hook_trigger(trigger)
        for mode in getattr(plugin, "steering_modes", None) or []:
            context.register_steering_mode(mode)
        for command in getattr(plugin, "commands", None) or []:
            context.register_command(command)

        logger.info(
            "plugin_activated",
            plugin_id=plugin.id,
            name=plugin.name,
            version=plugin.version,
        )

    async def register_all(self, plugins: Iterable[Plugin]) -> list[PluginRegistrationResult]:
        """Register plugins one by one, isolating failures.

        Returns:
            One result per plugin, in input order.
        """
        results: list[PluginRegistrationResult] = []
        for plugin in plugins:
            plugin_id = str(getattr(plugin, "id", ""))
            try:
                await self.register(plugin)
            except Exception as e:
                logger.error("plugin_register_failed", plugin_id=plugin_id, error=str(e))
                results.append(
                    PluginRegistrationResult(plugin_id=plugin_id, success=False, error=str(e))
                )
                continue
            results.append(PluginRegistrationResult(plugin_id=plugin_id, success=True))
        return results

    async def unregister(self, plugin_id: str) -> None:
        """Deactivate a plugin and remove every extension it owns.

        A failing deactivate() is logged; cleanup still happens.

        Raises:
            NotFoundError: If the plugin is not registered.
        """
        plugin = self._plugins.get(plugin_id)
        if plugin is None:
            raise NotFoundError("Plugin", plugin_id)

        if plugin_id in self._active:
            try:
                await _maybe_await(plugin.deactivate())
            except Exception as e:
                logger.error("plugin_deactivation_failed", plugin_id=plugin_id, error=str(e))
            self._active.discard(plugin_id)

        self._remove_extensions(plugin_id)
        del self._plugins[plugin_id]
        logger.info("plugin_unregistered", plugin_id=plugin_id)

    async def close(self) -> None:
        """Unregister every plugin, newest first."""
        for plugin_id in reversed(list(self._plugins)):
            await self.unregister(plugin_id)

    def plugins(self) -> list[Plugin]:
        return list(self._plugins.values())

    def get(self, plugin_id: str) -> Plugin | None:
        return self._plugins.get(plugin_id)

    def is_active(self, plugin_id: str) -> bool:
        return plugin_id in self._active

    def owned_by(self, plugin_id: str) -> list[tuple[str, str]]:
        """Return (kind, key) pairs of the extensions a plugin owns."""
        return list(self._owned.get(plugin_id, []))

    def hook_triggers(self) -> list[CustomHookTrigger]:
        return list(self._extensions.hook_trigger.values())

    def hook_trigger(self, trigger_type: str) -> CustomHookTrigger | None:
        return self._extensions.hook_trigger.get(trigger_type)

    def steering_modes(self) -> list[CustomSteeringMode]:
        return list(self._extensions.steering_mode.values())

    def steering_mode(self, name: str) -> CustomSteeringMode | None:
        return self._extensions.steering_mode.get(name)

    def commands(self) -> list[Command]:
        return list(self._extensions.command.values())

    def command(self, command_id: str) -> Command | None:
        return self._extensions.command.get(command_id)
