"""Pytest configuration and fixtures."""

import sys
from collections.abc import Callable
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest

from specgate.exceptions import NotFoundError
from specgate.hooks.engine import HookEngine
from specgate.hooks.executor import ActionExecutor
from specgate.protocols import ProcessResult, Subscription
from specgate.watching.types import ChangeEvent, ChangeKind, WatchCallback


class MemoryDocumentStore:
    """Document store held in a dict."""

    def __init__(self, documents: dict[str, str] | None = None) -> None:
        self.documents: dict[str, str] = dict(documents or {})
        self.refresh_count = 0
        self.fail_refresh: Exception | None = None

    async def load(self, name: str) -> str:
        if name not in self.documents:
            raise NotFoundError("Document", name)
        return self.documents[name]

    async def save(self, name: str, content: str) -> None:
        self.documents[name] = content

    async def delete(self, name: str) -> None:
        self.documents.pop(name, None)

    async def refresh(self) -> None:
        self.refresh_count += 1
        if self.fail_refresh is not None:
            raise self.fail_refresh

    async def list(self) -> list[str]:
        return sorted(self.documents)


class MemoryFileSink:
    """File sink recording writes and deletes."""

    def __init__(self, fail_paths: set[str] | None = None) -> None:
        self.files: dict[str, str] = {}
        self.deleted: list[str] = []
        self.fail_paths = fail_paths or set()

    async def write_file(self, path: str, content: str) -> None:
        if path in self.fail_paths:
            raise OSError(f"disk full: {path}")
        self.files[path] = content

    async def delete(self, path: str) -> None:
        if path in self.fail_paths:
            raise FileNotFoundError(path)
        self.files.pop(path, None)
        self.deleted.append(path)


class RecordingMessageSink:
    """Message sink that remembers every message."""

    def __init__(self) -> None:
        self.messages: list[str] = []

    async def send(self, message: str) -> None:
        self.messages.append(message)


class FakeProcessRunner:
    """Process runner returning canned results per command."""

    def __init__(self, results: dict[str, ProcessResult] | None = None) -> None:
        self.results = results or {}
        self.calls: list[tuple[str, str | None, float | None]] = []

    async def run(
        self,
        command: str,
        cwd: str | None = None,
        timeout: float | None = None,
    ) -> ProcessResult:
        self.calls.append((command, cwd, timeout))
        return self.results.get(command, ProcessResult(stdout=f"ran {command}", exit_code=0))


class FakeWatchPrimitive:
    """Watch primitive driven by the test through emit()."""

    def __init__(self) -> None:
        self.callbacks: dict[str, WatchCallback] = {}
        self.disposed: list[str] = []

    def watch(self, root: str, callback: WatchCallback) -> Subscription:
        self.callbacks[root] = callback

        def _dispose() -> None:
            self.callbacks.pop(root, None)
            self.disposed.append(root)

        return Subscription(_dispose)

    def emit(self, root: str | Path, kind: ChangeKind, path: str) -> None:
        callback = self.callbacks.get(str(root))
        if callback is not None:
            callback(ChangeEvent(kind=kind, path=path))


def make_rule(
    rule_id: str,
    trigger: dict[str, object] | None = None,
    action: dict[str, object] | None = None,
    **fields: object,
) -> dict[str, object]:
    """Build rule input with a message_sent trigger and send_message action by default."""
    return {
        "id": rule_id,
        "name": fields.pop("name", rule_id.replace("-", " ").title()),
        "trigger": trigger or {"type": "message_sent"},
        "action": action or {"type": "send_message", "message": f"{rule_id} fired"},
        **fields,
    }


@pytest.fixture
def rule_factory() -> Callable[..., dict[str, object]]:
    """Factory for rule input mappings."""
    return make_rule


@pytest.fixture
def hooks_store() -> MemoryDocumentStore:
    return MemoryDocumentStore()


@pytest.fixture
def message_sink() -> RecordingMessageSink:
    return RecordingMessageSink()


@pytest.fixture
def runner() -> FakeProcessRunner:
    return FakeProcessRunner()


@pytest.fixture
def engine(
    hooks_store: MemoryDocumentStore,
    message_sink: RecordingMessageSink,
    runner: FakeProcessRunner,
) -> HookEngine:
    """Hook engine with in-memory collaborators."""
    return HookEngine(hooks_store, ActionExecutor(message_sink=message_sink, runner=runner))


@pytest.fixture
def watch_primitive() -> FakeWatchPrimitive:
    return FakeWatchPrimitive()
