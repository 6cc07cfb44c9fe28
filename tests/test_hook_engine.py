"""Hook engine tests."""

import json

import pytest
from conftest import FakeProcessRunner, MemoryDocumentStore, RecordingMessageSink, make_rule

from specgate.exceptions import DuplicateError, NotFoundError, ValidationError
from specgate.hooks.engine import HookEngine, parse_rule
from specgate.hooks.executor import ActionExecutor
from specgate.hooks.types import HookContext, HookEventType
from specgate.protocols import ProcessResult


@pytest.mark.asyncio
async def test_register_persists_rule(engine: HookEngine, hooks_store: MemoryDocumentStore) -> None:
    """Registered rules are stored as JSON under their id."""
    await engine.register(make_rule("greet"))

    assert [rule.id for rule in engine.list_rules()] == ["greet"]
    document = json.loads(hooks_store.documents["greet"])
    assert document["trigger"] == {"type": "message_sent"}
    assert document["enabled"] is True


@pytest.mark.asyncio
async def test_registered_rule_survives_reload(hooks_store: MemoryDocumentStore) -> None:
    """A fresh engine over the same store loads the rule unchanged."""
    first = HookEngine(hooks_store)
    registered = await first.register(
        make_rule("lint", trigger={"type": "file_save", "pattern": "**/*.py"})
    )

    second = HookEngine(hooks_store)
    loaded = await second.load()

    assert loaded == [registered]


@pytest.mark.asyncio
async def test_register_duplicate_id_raises(engine: HookEngine) -> None:
    """Registering an existing id fails and keeps the original."""
    await engine.register(make_rule("greet"))

    with pytest.raises(DuplicateError):
        await engine.register(make_rule("greet", name="Other"))

    assert engine.get("greet").name == "Greet"


@pytest.mark.asyncio
async def test_register_invalid_rule_raises_without_persisting(
    engine: HookEngine, hooks_store: MemoryDocumentStore
) -> None:
    """Malformed rules are rejected before anything is stored."""
    with pytest.raises(ValidationError):
        await engine.register({"id": "broken", "name": "Broken", "trigger": {"type": "nope"}})
    with pytest.raises(ValidationError):
        await engine.register(make_rule("empty", action={"type": "send_message", "message": " "}))

    assert engine.list_rules() == []
    assert hooks_store.documents == {}


def test_parse_rule_accepts_json() -> None:
    """Rule documents parse from JSON text and ignore unknown fields."""
    rule = parse_rule(json.dumps(make_rule("doc", extra_field="ignored")))
    assert rule.id == "doc"


@pytest.mark.asyncio
async def test_remove_unknown_rule_raises(engine: HookEngine) -> None:
    """Removing an unknown id raises NotFoundError."""
    with pytest.raises(NotFoundError):
        await engine.remove("missing")


@pytest.mark.asyncio
async def test_remove_deletes_document(engine: HookEngine, hooks_store: MemoryDocumentStore) -> None:
    """Removed rules disappear from memory and the store."""
    await engine.register(make_rule("greet"))
    await engine.remove("greet")

    assert engine.list_rules() == []
    assert "greet" not in hooks_store.documents


@pytest.mark.asyncio
async def test_dispatch_runs_each_matching_rule_once(
    engine: HookEngine, message_sink: RecordingMessageSink
) -> None:
    """Each matching enabled rule produces exactly one result."""
    await engine.register(make_rule("first"))
    await engine.register(make_rule("second"))
    await engine.register(make_rule("other", trigger={"type": "session_created"}))

    results = await engine.dispatch(HookEventType.MESSAGE_SENT, HookContext(message="hi"))

    assert [result.rule_id for result in results] == ["first", "second"]
    assert all(result.success for result in results)
    assert message_sink.messages == ["first fired", "second fired"]


@pytest.mark.asyncio
async def test_dispatch_skips_disabled_rules(engine: HookEngine) -> None:
    """Disabled rules never fire."""
    await engine.register(make_rule("quiet", enabled=False))

    results = await engine.dispatch(HookEventType.MESSAGE_SENT)

    assert results == []


@pytest.mark.asyncio
async def test_dispatch_honours_file_pattern(engine: HookEngine) -> None:
    """file_save rules with a pattern only fire for matching paths."""
    await engine.register(make_rule("py", trigger={"type": "file_save", "pattern": "**/*.py"}))
    await engine.register(make_rule("any", trigger={"type": "file_save"}))

    py_results = await engine.dispatch(HookEventType.FILE_SAVE, HookContext(file_path="src/app.py"))
    md_results = await engine.dispatch(HookEventType.FILE_SAVE, HookContext(file_path="README.md"))
    no_path = await engine.dispatch(HookEventType.FILE_SAVE)

    assert [result.rule_id for result in py_results] == ["py", "any"]
    assert [result.rule_id for result in md_results] == ["any"]
    assert [result.rule_id for result in no_path] == ["any"]


@pytest.mark.asyncio
async def test_dispatch_isolates_failing_rule(
    hooks_store: MemoryDocumentStore, message_sink: RecordingMessageSink
) -> None:
    """A failing rule does not stop later rules from running."""
    runner = FakeProcessRunner({"false": ProcessResult(stderr="boom", exit_code=1)})
    engine = HookEngine(hooks_store, ActionExecutor(message_sink=message_sink, runner=runner))
    await engine.register(
        make_rule("fails", action={"type": "execute_command", "command": "false"})
    )
    await engine.register(make_rule("works"))

    results = await engine.dispatch(HookEventType.MESSAGE_SENT)

    assert [result.success for result in results] == [False, True]
    assert "exited with code 1" in results[0].error
    assert message_sink.messages == ["works fired"]


@pytest.mark.asyncio
async def test_dispatch_interpolates_context(
    engine: HookEngine, message_sink: RecordingMessageSink
) -> None:
    """Message placeholders are filled from the event context."""
    await engine.register(
        make_rule(
            "review",
            trigger={"type": "file_save"},
            action={"type": "send_message", "message": "Review {filePath} after {event}"},
        )
    )

    await engine.dispatch(HookEventType.FILE_SAVE, HookContext(file_path="src/app.py"))

    assert message_sink.messages == ["Review src/app.py after file_save"]


@pytest.mark.asyncio
async def test_set_enabled_persists_flag(engine: HookEngine, hooks_store: MemoryDocumentStore) -> None:
    """Toggling a rule updates memory and the stored document."""
    await engine.register(make_rule("greet"))

    updated = await engine.set_enabled("greet", False)

    assert updated.enabled is False
    assert engine.get("greet").enabled is False
    assert json.loads(hooks_store.documents["greet"])["enabled"] is False
    with pytest.raises(NotFoundError):
        await engine.set_enabled("missing", True)


@pytest.mark.asyncio
async def test_trigger_runs_rule_regardless_of_trigger_type(
    engine: HookEngine, message_sink: RecordingMessageSink
) -> None:
    """Manual triggers run a rule even if its trigger would not match."""
    await engine.register(make_rule("greet", action={"type": "send_message", "message": "{event}"}))

    result = await engine.trigger("greet")

    assert result.success
    assert message_sink.messages == ["manual"]


@pytest.mark.asyncio
async def test_trigger_unknown_or_disabled_rule_fails(engine: HookEngine) -> None:
    """Unknown and disabled rules produce failed results instead of raising."""
    await engine.register(make_rule("quiet", enabled=False))

    missing = await engine.trigger("missing")
    disabled = await engine.trigger("quiet")

    assert not missing.success and "not found" in missing.error
    assert not disabled.success and "disabled" in disabled.error


@pytest.mark.asyncio
async def test_load_skips_malformed_documents(hooks_store: MemoryDocumentStore) -> None:
    """Malformed rule documents are skipped and the rest load."""
    hooks_store.documents["bad"] = "{not json"
    hooks_store.documents["good"] = json.dumps(make_rule("good"))
    engine = HookEngine(hooks_store)

    rules = await engine.load()

    assert [rule.id for rule in rules] == ["good"]


@pytest.mark.asyncio
async def test_listeners_run_after_rules_and_failures_are_isolated(engine: HookEngine) -> None:
    """Listener errors are logged and later listeners still run."""
    seen: list[str | None] = []

    def broken(context: HookContext) -> None:
        raise RuntimeError("listener failed")

    async def record(context: HookContext) -> None:
        seen.append(context.message)

    engine.on(HookEventType.MESSAGE_SENT, broken)
    subscription = engine.on(HookEventType.MESSAGE_SENT, record)

    await engine.dispatch(HookEventType.MESSAGE_SENT, HookContext(message="one"))
    subscription.dispose()
    await engine.dispatch(HookEventType.MESSAGE_SENT, HookContext(message="two"))

    assert seen == ["one"]
