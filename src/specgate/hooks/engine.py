"""Hook engine: rule registry and event dispatch with per-rule isolation."""

import inspect
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from specgate.exceptions import DuplicateError, NotFoundError, ValidationError
from specgate.hooks.executor import ActionExecutor
from specgate.hooks.matcher import trigger_matches
from specgate.hooks.types import AutomationRule, DispatchResult, HookContext, HookEventType
from specgate.protocols import DocumentStore, Subscription

logger = structlog.get_logger()

HookListener = Callable[[HookContext], Awaitable[None] | None]


def parse_rule(data: AutomationRule | Mapping[str, Any] | str) -> AutomationRule:
    """Validate rule input into an AutomationRule.

    Args:
        data: A rule, a mapping of rule fields, or a JSON document.

    Returns:
        Validated rule.

    Raises:
        ValidationError: If required fields are missing or malformed.
    """
    try:
        if isinstance(data, AutomationRule):
            return AutomationRule.model_validate(data.model_dump())
        if isinstance(data, str):
            return AutomationRule.model_validate_json(data)
        return AutomationRule.model_validate(dict(data))
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid rule: {e}") from e


class HookEngine:
    """Holds automation rules and dispatches workspace events to them.

    Rules are kept in registration order and persisted as JSON documents
    in the hooks store, one document per rule id. A failing rule is
    logged and reported in its DispatchResult; it never stops the rest
    of a dispatch and never raises to the caller.
    """

    def __init__(self, store: DocumentStore, executor: ActionExecutor | None = None) -> None:
        """Initialize the engine.

        Args:
            store: Document store persisting rule definitions.
            executor: Action executor. Defaults to one with no message sink.
        """
        self._store = store
        self.executor = executor or ActionExecutor()
        self._rules: dict[str, AutomationRule] = {}
        self._listeners: dict[HookEventType, list[HookListener]] = {}

    @property
    def store(self) -> DocumentStore:
        """Store holding the rule documents."""
        return self._store

    def list_rules(self) -> list[AutomationRule]:
        """Return every rule in registration order."""
        return list(self._rules.values())

    def get(self, rule_id: str) -> AutomationRule | None:
        """Look up a rule by id."""
        return self._rules.get(rule_id)

    async def register(self, rule: AutomationRule | Mapping[str, Any]) -> AutomationRule:
        """Validate, persist and store a new rule.

        Args:
            rule: Rule or mapping of rule fields.

        Returns:
            The stored rule.

        Raises:
            ValidationError: If the rule is malformed.
            DuplicateError: If a rule with the same id exists.
        """
        validated = parse_rule(rule)
        if validated.id in self._rules:
            raise DuplicateError("Rule", validated.id)

        await self._store.save(validated.id, validated.model_dump_json(indent=2))
        self._rules[validated.id] = validated
        logger.info("rule_registered", rule_id=validated.id, trigger=validated.trigger.type)
        return validated

    async def remove(self, rule_id: str) -> None:
        """Remove a rule from memory and the store.

        Raises:
            NotFoundError: If the id is unknown.
        """
        if rule_id not in self._rules:
            raise NotFoundError("Rule", rule_id)
        await self._store.delete(rule_id)
        del self._rules[rule_id]
        logger.info("rule_removed", rule_id=rule_id)

    async def set_enabled(self, rule_id: str, enabled: bool) -> AutomationRule:
        """Enable or disable a rule and persist the flag.

        Raises:
            NotFoundError: If the id is unknown.
        """
        rule = self._rules.get(rule_id)
        if rule is None:
            raise NotFoundError("Rule", rule_id)

        updated = rule.model_copy(update={"enabled": enabled})
        await self._store.save(rule_id, updated.model_dump_json(indent=2))
        self._rules[rule_id] = updated
        logger.info("rule_toggled", rule_id=rule_id, enabled=enabled)
        return updated

    async def load(self) -> list[AutomationRule]:
        """Replace in-memory rules with the documents in the store.

        Malformed documents are logged and skipped.

        Returns:
            The loaded rules.
        """
        loaded: dict[str, AutomationRule] = {}
        for name in await self._store.list():
            try:
                rule = parse_rule(await self._store.load(name))
            except (ValidationError, NotFoundError) as e:
                logger.error("rule_load_failed", document=name, error=str(e))
                continue
            if rule.id in loaded:
                logger.warning("rule_duplicate_id", document=name, rule_id=rule.id)
                continue
            loaded[rule.id] = rule

        self._rules = loaded
        logger.info("rules_loaded", count=len(loaded))
        return self.list_rules()

    async def refresh(self) -> None:
        """Re-read the store from disk and reload every rule."""
        await self._store.refresh()
        await self.load()

    def on(self, event_type: HookEventType, listener: HookListener) -> Subscription:
        """Subscribe to an event type.

        Listeners run after the matching rules of each dispatch.

        Args:
            event_type: Event to listen for.
            listener: Sync or async callable receiving the event context.

        Returns:
            Subscription that removes the listener.
        """
        listeners = self._listeners.setdefault(event_type, [])
        listeners.append(listener)

        def _remove() -> None:
            if listener in listeners:
                listeners.remove(listener)

        return Subscription(_remove)

    async def dispatch(
        self,
        event_type: HookEventType,
        context: HookContext | None = None,
    ) -> list[DispatchResult]:
        """Run every enabled rule whose trigger matches the event.

        Rules run sequentially in registration order, then listeners are
        notified. Never raises for rule or listener failures.

        Args:
            event_type: Event being dispatched.
            context: Event payload.

        Returns:
            One result per matching enabled rule.
        """
        context = context.model_copy() if context is not None else HookContext()
        if context.event is None:
            context.event = event_type.value

        results: list[DispatchResult] = []
        for rule in list(self._rules.values()):
            if not rule.enabled or not trigger_matches(rule, event_type, context):
                continue
            result = await self._run(rule, context)
            results.append(result)

        await self._notify_listeners(event_type, context)
        logger.debug(
            "event_dispatched",
            event_type=event_type.value,
            matched=len(results),
            failed=sum(1 for result in results if not result.success),
        )
        return results

    async def trigger(self, rule_id: str, context: HookContext | None = None) -> DispatchResult:
        """Run one rule on demand regardless of its trigger type.

        Args:
            rule_id: Rule to run.
            context: Event payload.

        Returns:
            Result of the run, or a failed result if the rule is unknown
            or disabled.
        """
        rule = self._rules.get(rule_id)
        if rule is None:
            return DispatchResult(rule_id=rule_id, success=False, error=f"Rule '{rule_id}' not found")
        if not rule.enabled:
            return DispatchResult(rule_id=rule_id, success=False, error=f"Rule '{rule_id}' is disabled")

        context = context.model_copy() if context is not None else HookContext()
        if context.event is None:
            context.event = HookEventType.MANUAL.value
        return await self._run(rule, context)

    async def _run(self, rule: AutomationRule, context: HookContext) -> DispatchResult:
        try:
            result = await self.executor.execute(rule, context)
        except Exception as e:
            result = DispatchResult(rule_id=rule.id, success=False, error=str(e) or type(e).__name__)

        if not result.success:
            logger.warning(
                "rule_dispatch_failed",
                rule_id=rule.id,
                event_type=context.event,
                error=result.error,
            )
        return result

    async def _notify_listeners(self, event_type: HookEventType, context: HookContext) -> None:
        for listener in list(self._listeners.get(event_type, [])):
            try:
                outcome = listener(context)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.error("hook_listener_failed", event_type=event_type.value, error=str(e))
