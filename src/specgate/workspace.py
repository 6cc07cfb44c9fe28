"""Workspace session: wires hooks, watching, reload and workflow together."""

import asyncio
from collections.abc import Iterable, Mapping
from typing import Any

import structlog

from specgate.config import Settings
from specgate.exceptions import NotFoundError, ReloadFailure
from specgate.hooks.engine import HookEngine
from specgate.hooks.executor import ActionExecutor
from specgate.hooks.types import AutomationRule, DispatchResult, HookContext, HookEventType
from specgate.plugins.registry import PluginRegistry
from specgate.protocols import (
    DocumentStore,
    FileSink,
    MessageSink,
    ProcessRunner,
    Subscription,
)
from specgate.stores.files import FileDocumentStore, LocalFileSink
from specgate.watching.reload import ReloadCoordinator, StartupLoader, StartupReport
from specgate.watching.types import ConfigCategory, WatchPrimitive
from specgate.watching.watcher import ChangeHandler, ChangeWatcher, WatchdogPrimitive
from specgate.workflow.approvals import ApplyResult, FileEdit, PendingChange
from specgate.workflow.controller import Responder, WorkflowController
from specgate.workflow.phases import WorkflowPhase, WorkflowState

logger = structlog.get_logger()


class Workspace:
    """One workspace's reactive automation core.

    Each instance owns its own rules, workflow states and pending
    changes, so several workspaces can coexist in one process.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        specs_store: DocumentStore | None = None,
        hooks_store: DocumentStore | None = None,
        steering_store: DocumentStore | None = None,
        watch_primitive: WatchPrimitive | None = None,
        message_sink: MessageSink | None = None,
        runner: ProcessRunner | None = None,
        responder: Responder | None = None,
        file_sink: FileSink | None = None,
    ) -> None:
        """Initialize the workspace.

        Collaborators not supplied default to file-backed implementations
        rooted at the settings' configuration directory.

        Args:
            settings: Workspace configuration.
            specs_store: Store of specification documents.
            hooks_store: Store of rule definitions.
            steering_store: Store of steering documents.
            watch_primitive: Low-level change notification source.
            message_sink: Receiver for send_message actions.
            runner: Process runner for execute_command actions.
            responder: Produces replies to user messages.
            file_sink: Default destination for approved edits.
        """
        self.settings = settings or Settings()
        roots = self.settings.watch_roots

        self.specs_store = specs_store or FileDocumentStore(roots[ConfigCategory.SPECS], ".md")
        self.hooks_store = hooks_store or FileDocumentStore(roots[ConfigCategory.HOOKS], ".json")
        self.steering_store = steering_store or FileDocumentStore(
            roots[ConfigCategory.STEERING], ".md"
        )
        self.file_sink = file_sink or LocalFileSink(self.settings.workspace)

        executor = ActionExecutor(
            message_sink=message_sink,
            runner=runner,
            command_timeout=self.settings.command_timeout,
        )
        self.hooks = HookEngine(self.hooks_store, executor)
        self.workflow = WorkflowController(self.hooks, responder)
        self.plugins = PluginRegistry(str(self.settings.workspace))

        self.watcher = ChangeWatcher(
            roots,
            watch_primitive or WatchdogPrimitive(),
            debounce_ms=self.settings.debounce_ms,
        )
        self.reloader = ReloadCoordinator(
            specs=self.specs_store,
            hooks=self.hooks,
            steering=self.steering_store,
        )
        self._loader = StartupLoader(
            specs=self.specs_store,
            hooks=self.hooks,
            steering=self.steering_store,
        )
        self._trigger_tasks: set[asyncio.Task[DispatchResult]] = set()

    def set_message_sink(self, sink: MessageSink | None) -> None:
        """Replace the receiver of send_message actions."""
        self.hooks.executor.message_sink = sink

    async def load_all(self) -> StartupReport:
        """Load specs, rules and steering documents from their stores."""
        return await self._loader.load_all()

    async def register_rule(self, rule: AutomationRule | Mapping[str, Any]) -> AutomationRule:
        return await self.hooks.register(rule)

    async def remove_rule(self, rule_id: str) -> None:
        await self.hooks.remove(rule_id)

    def list_rules(self) -> list[AutomationRule]:
        return self.hooks.list_rules()

    async def set_rule_enabled(self, rule_id: str, enabled: bool) -> AutomationRule:
        return await self.hooks.set_enabled(rule_id, enabled)

    async def dispatch(
        self,
        event_type: HookEventType | str,
        context: HookContext | Mapping[str, Any] | None = None,
    ) -> list[DispatchResult]:
        """Dispatch an event to matching rules.

        Args:
            event_type: Event type or its name.
            context: Event payload as a model or mapping.

        Returns:
            One result per matching enabled rule.
        """
        if context is not None and not isinstance(context, HookContext):
            context = HookContext.model_validate(dict(context))
        return await self.hooks.dispatch(HookEventType(event_type), context)

    async def trigger(
        self,
        rule_id: str,
        context: HookContext | Mapping[str, Any] | None = None,
    ) -> DispatchResult:
        if context is not None and not isinstance(context, HookContext):
            context = HookContext.model_validate(dict(context))
        return await self.hooks.trigger(rule_id, context)

    def bind_custom_trigger(self, trigger_type: str, rule_id: str) -> Subscription:
        """Fire a rule whenever a plugin-supplied trigger fires.

        Args:
            trigger_type: Type of a custom trigger registered by a plugin.
            rule_id: Rule to run on each firing.

        Returns:
            Subscription that stops the trigger source.

        Raises:
            NotFoundError: If no plugin registered the trigger type.
        """
        custom = self.plugins.hook_trigger(trigger_type)
        if custom is None:
            raise NotFoundError("Hook trigger", trigger_type)

        def _fire() -> None:
            task = asyncio.get_running_loop().create_task(
                self.hooks.trigger(rule_id, HookContext(event=trigger_type))
            )
            self._trigger_tasks.add(task)
            task.add_done_callback(self._trigger_tasks.discard)

        return custom.subscribe(_fire)

    def start_watching(self) -> None:
        """Start hot reload of configuration directories."""
        self.reloader.attach(self.watcher)
        self.watcher.start()

    def stop_watching(self) -> None:
        """Stop hot reload. Pending debounced changes are discarded."""
        self.watcher.stop()
        self.reloader.detach()

    def on_change(self, handler: ChangeHandler) -> Subscription:
        return self.watcher.on_change(handler)

    async def reload_specs(self) -> None:
        await self.reloader.reload_specs()

    async def reload_hooks(self) -> None:
        await self.reloader.reload_hooks()

    async def reload_steering(self) -> None:
        await self.reloader.reload_steering()

    async def reload_all(self) -> list[ReloadFailure]:
        return await self.reloader.reload_all()

    def get_workflow_phase(self, spec_name: str) -> WorkflowPhase:
        return self.workflow.get_workflow_phase(spec_name)

    def get_workflow_state(self, spec_name: str) -> WorkflowState:
        return self.workflow.get_workflow_state(spec_name)

    def can_transition(self, spec_name: str, phase: WorkflowPhase | str) -> bool:
        return self.workflow.can_transition(spec_name, phase)

    def approve_current_phase(self, spec_name: str) -> bool:
        return self.workflow.approve_current_phase(spec_name)

    def reset_phase_approval(self, spec_name: str, phase: WorkflowPhase | str) -> WorkflowState:
        return self.workflow.reset_phase_approval(spec_name, phase)

    def queue_changes(self, edits: Iterable[FileEdit | Mapping[str, Any]]) -> str:
        return self.workflow.queue_changes(edits)

    def approve_change(self, change_id: str) -> bool:
        return self.workflow.approve_change(change_id)

    def reject_change(self, change_id: str) -> bool:
        return self.workflow.reject_change(change_id)

    def list_pending(self) -> list[PendingChange]:
        return self.workflow.list_pending()

    async def apply_approved_changes(self, sink: FileSink | None = None) -> ApplyResult:
        """Apply approved edits, by default to the workspace directory."""
        return await self.workflow.apply_approved_changes(sink or self.file_sink)

    async def close(self) -> None:
        """Stop watching, unregister plugins and wait for triggered rules."""
        self.stop_watching()
        await self.plugins.close()
        if self._trigger_tasks:
            await asyncio.gather(*list(self._trigger_tasks), return_exceptions=True)
        logger.info("workspace_closed", workspace=str(self.settings.workspace))
