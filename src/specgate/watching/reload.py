"""Hot reload of configuration stores driven by the change watcher."""

import asyncio

import structlog
from pydantic import BaseModel, Field

from specgate.exceptions import ReloadFailure
from specgate.hooks.engine import HookEngine
from specgate.hooks.types import AutomationRule
from specgate.protocols import DocumentStore, Refreshable, Subscription
from specgate.watching.types import ConfigCategory, ConfigChangeEvent
from specgate.watching.watcher import ChangeWatcher

logger = structlog.get_logger()


class ReloadCoordinator:
    """Refreshes the store behind each configuration category on change.

    Each category is refreshed independently: a failure reloading one
    category is logged and never blocks the others or reaches the
    watcher.
    """

    def __init__(
        self,
        specs: Refreshable | None = None,
        hooks: Refreshable | None = None,
        steering: Refreshable | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            specs: Store holding specification documents.
            hooks: Store (or hook engine) holding automation rules.
            steering: Store holding steering documents.
        """
        self._targets: dict[ConfigCategory, Refreshable | None] = {
            ConfigCategory.SPECS: specs,
            ConfigCategory.HOOKS: hooks,
            ConfigCategory.STEERING: steering,
        }
        self._subscription: Subscription | None = None

    @property
    def is_attached(self) -> bool:
        """Whether the coordinator is listening to a watcher."""
        return self._subscription is not None

    def attach(self, watcher: ChangeWatcher) -> None:
        """Register as a change handler on watcher. No-op if attached."""
        if self._subscription is not None:
            return
        self._subscription = watcher.on_change(self.handle_change)
        logger.info("hot_reload_attached")

    def detach(self) -> None:
        """Stop listening for change events."""
        if self._subscription is None:
            return
        self._subscription.dispose()
        self._subscription = None
        logger.info("hot_reload_detached")

    async def handle_change(self, change: ConfigChangeEvent) -> None:
        """Reload the category a change belongs to.

        Args:
            change: Coalesced change notification from the watcher.
        """
        try:
            await self.reload(change.category)
        except ReloadFailure as e:
            logger.warning(
                "reload_failed",
                category=e.category,
                path=change.event.path,
                error=str(e),
            )

    async def reload(self, category: ConfigCategory) -> None:
        """Refresh one category.

        Args:
            category: Category to refresh. Missing stores are skipped.

        Raises:
            ReloadFailure: If the store's refresh raised.
        """
        target = self._targets[category]
        if target is None:
            return
        try:
            await target.refresh()
        except Exception as e:
            raise ReloadFailure(category.value, str(e)) from e
        logger.info("config_reloaded", category=category.value)

    async def reload_specs(self) -> None:
        """Refresh the specs store."""
        await self.reload(ConfigCategory.SPECS)

    async def reload_hooks(self) -> None:
        """Refresh the hooks store."""
        await self.reload(ConfigCategory.HOOKS)

    async def reload_steering(self) -> None:
        """Refresh the steering store."""
        await self.reload(ConfigCategory.STEERING)

    async def reload_all(self) -> list[ReloadFailure]:
        """Refresh every category concurrently.

        Waits for all three regardless of individual failures.

        Returns:
            One ReloadFailure per category that failed; empty on success.
        """
        results = await asyncio.gather(
            self.reload_specs(),
            self.reload_hooks(),
            self.reload_steering(),
            return_exceptions=True,
        )
        failures: list[ReloadFailure] = []
        for result in results:
            if isinstance(result, ReloadFailure):
                logger.warning("reload_failed", category=result.category, error=str(result))
                failures.append(result)
            elif isinstance(result, BaseException):
                raise result
        return failures


class StartupError(BaseModel):
    """One category that failed to load at startup."""

    category: ConfigCategory
    message: str


class StartupReport(BaseModel):
    """Everything loaded at startup.

    Attributes:
        specs: Names of specification documents.
        rules: Automation rules loaded into the hook engine.
        steering: Names of steering documents.
        errors: Categories that failed, while the others still loaded.
    """

    specs: list[str] = Field(default_factory=list)
    rules: list[AutomationRule] = Field(default_factory=list)
    steering: list[str] = Field(default_factory=list)
    errors: list[StartupError] = Field(default_factory=list)


class StartupLoader:
    """Loads specs, hooks and steering documents concurrently at startup."""

    def __init__(
        self,
        specs: DocumentStore | None = None,
        hooks: HookEngine | None = None,
        steering: DocumentStore | None = None,
    ) -> None:
        self._specs = specs
        self._hooks = hooks
        self._steering = steering

    async def load_specs(self) -> list[str]:
        if self._specs is None:
            return []
        await self._specs.refresh()
        return await self._specs.list()

    async def load_rules(self) -> list[AutomationRule]:
        if self._hooks is None:
            return []
        await self._hooks.refresh()
        return self._hooks.list_rules()

    async def load_steering(self) -> list[str]:
        if self._steering is None:
            return []
        await self._steering.refresh()
        return await self._steering.list()

    async def load_all(self) -> StartupReport:
        """Load every category, collecting per-category errors.

        Returns:
            Report of what loaded and which categories failed.
        """
        logger.info("startup_load_started")
        specs, rules, steering = await asyncio.gather(
            self.load_specs(),
            self.load_rules(),
            self.load_steering(),
            return_exceptions=True,
        )

        report = StartupReport()
        outcomes = (
            (ConfigCategory.SPECS, specs, "specs"),
            (ConfigCategory.HOOKS, rules, "rules"),
            (ConfigCategory.STEERING, steering, "steering"),
        )
        for category, outcome, field_name in outcomes:
            if isinstance(outcome, Exception):
                logger.error(
                    "startup_load_failed", category=category.value, error=str(outcome)
                )
                report.errors.append(
                    StartupError(category=category, message=str(outcome) or type(outcome).__name__)
                )
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                setattr(report, field_name, outcome)

        logger.info(
            "startup_load_complete",
            specs=len(report.specs),
            rules=len(report.rules),
            steering=len(report.steering),
            errors=len(report.errors),
        )
        return report
