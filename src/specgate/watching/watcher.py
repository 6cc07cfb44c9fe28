"""Async-friendly configuration watcher with per-key debouncing."""

import asyncio
import functools
import inspect
import os
from collections.abc import Awaitable, Callable, Mapping
from pathlib import Path

import structlog
from watchdog.events import (
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from specgate.protocols import Subscription
from specgate.watching.types import (
    TEMP_FILE_PATTERNS,
    ChangeEvent,
    ChangeKind,
    ConfigCategory,
    ConfigChangeEvent,
    WatchCallback,
    WatchPrimitive,
)

logger = structlog.get_logger()

ChangeHandler = Callable[[ConfigChangeEvent], Awaitable[None] | None]

CHANGE_PRIORITY: dict[ChangeKind, int] = {
    ChangeKind.CREATED: 3,
    ChangeKind.DELETED: 2,
    ChangeKind.MODIFIED: 1,
}

_WATCHDOG_KINDS: dict[type[FileSystemEvent], ChangeKind] = {
    FileCreatedEvent: ChangeKind.CREATED,
    FileModifiedEvent: ChangeKind.MODIFIED,
    FileDeletedEvent: ChangeKind.DELETED,
}

DEFAULT_DEBOUNCE_MS = 100


def is_temp_file(path: str) -> bool:
    """Check if path is an editor temporary or VCS file that should be ignored.

    Args:
        path: File path to check.

    Returns:
        True if the file is a temporary file.
    """
    parts = Path(path).parts
    if ".git" in parts:
        return True
    name = parts[-1] if parts else path
    # vim tests writability with a file named 4913
    return name.endswith(TEMP_FILE_PATTERNS) or name.startswith(".#") or name == "4913"


def _decode_path(src_path: str | bytes) -> str:
    if isinstance(src_path, str):
        return src_path
    return bytes(src_path).decode("utf-8", errors="replace")


class _ForwardingHandler(FileSystemEventHandler):
    """Translates watchdog events into ChangeEvents on the event loop."""

    def __init__(
        self,
        root: Path,
        loop: asyncio.AbstractEventLoop,
        callback: WatchCallback,
    ) -> None:
        super().__init__()
        self._root = root
        self._loop = loop
        self._callback = callback

    def _relative(self, path: str) -> str:
        try:
            relative = Path(path).resolve().relative_to(self._root)
        except ValueError:
            relative = Path(os.path.relpath(path, self._root))
        return relative.as_posix()

    def _deliver(self, kind: ChangeKind, path: str) -> None:
        event = ChangeEvent(kind=kind, path=self._relative(path))
        try:
            self._loop.call_soon_threadsafe(self._callback, event)
        except RuntimeError:
            # loop already closed during shutdown
            logger.debug("watch_event_dropped", path=event.path)

    def on_any_event(self, event: FileSystemEvent) -> None:
        """Forward a raw watchdog event.

        Args:
            event: Raw watchdog filesystem event.
        """
        if event.is_directory:
            return

        if isinstance(event, FileMovedEvent):
            self._deliver(ChangeKind.DELETED, _decode_path(event.src_path))
            self._deliver(ChangeKind.CREATED, _decode_path(event.dest_path))
            return

        kind = _WATCHDOG_KINDS.get(type(event))
        if kind is None:
            return
        self._deliver(kind, _decode_path(event.src_path))


class WatchdogPrimitive:
    """Watch primitive backed by a shared watchdog Observer.

    Observer callbacks run on watchdog's thread and are marshalled onto
    the asyncio loop, so subscribers only ever run on the loop thread.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Initialize the primitive.

        Args:
            loop: Loop to deliver callbacks on. Defaults to the loop running
                when watch() is first called.
        """
        self._loop = loop
        self._observer: BaseObserver | None = None
        self._active = 0

    def _ensure_observer(self) -> BaseObserver:
        if self._observer is None:
            observer = Observer()
            observer.start()
            self._observer = observer
        return self._observer

    def _release(self, observer: BaseObserver, watch: object) -> None:
        observer.unschedule(watch)
        self._active -= 1
        if self._active == 0 and self._observer is observer:
            observer.stop()
            observer.join(timeout=5.0)
            self._observer = None

    def watch(self, root: str, callback: WatchCallback) -> Subscription:
        """Watch a directory recursively, creating it if missing.

        Args:
            root: Directory to watch.
            callback: Receives each change on the event loop thread.

        Returns:
            Subscription that unschedules the watch.

        Raises:
            ValueError: If root exists and is not a directory.
        """
        path = Path(root)
        if path.exists() and not path.is_dir():
            raise ValueError(f"Watch path is not a directory: {root}")
        path.mkdir(parents=True, exist_ok=True)

        loop = self._loop or asyncio.get_running_loop()
        handler = _ForwardingHandler(path.resolve(), loop, callback)
        observer = self._ensure_observer()
        try:
            watch = observer.schedule(handler, str(path), recursive=True)
        except OSError:
            if self._active == 0:
                observer.stop()
                observer.join(timeout=5.0)
                self._observer = None
            raise
        self._active += 1
        logger.info("watcher_scheduled", path=str(path))

        return Subscription(functools.partial(self._release, observer, watch))


class ChangeWatcher:
    """Watches configuration roots and emits debounced change events.

    Each (category, path) key holds at most one pending timer. A new raw
    event for the key cancels the timer and starts a fresh one, keeping
    the highest-priority change kind seen so created/deleted events are
    not lost to subsequent modifications.

    Attributes:
        debounce_ms: Debounce window in milliseconds.
    """

    def __init__(
        self,
        roots: Mapping[ConfigCategory, str | Path],
        primitive: WatchPrimitive,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
    ) -> None:
        """Initialize the change watcher.

        Args:
            roots: Directory to watch for each category.
            primitive: Low-level notification source.
            debounce_ms: Debounce window in milliseconds.
        """
        self._roots = dict(roots)
        self._primitive = primitive
        self.debounce_ms = debounce_ms
        self._handlers: list[ChangeHandler] = []
        self._subscriptions: list[Subscription] = []
        self._pending: dict[
            tuple[ConfigCategory, str], tuple[asyncio.TimerHandle, ChangeEvent]
        ] = {}
        self._tasks: set[asyncio.Task[None]] = set()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._watching = False
        self._coalesced_count = 0

    @property
    def is_watching(self) -> bool:
        """Whether root subscriptions are active."""
        return self._watching

    @property
    def roots(self) -> dict[ConfigCategory, Path]:
        """Watched directory per category."""
        return {category: Path(root) for category, root in self._roots.items()}

    @property
    def coalesced_events(self) -> int:
        """Number of raw events absorbed into an already pending key."""
        return self._coalesced_count

    @property
    def pending_count(self) -> int:
        """Number of keys with a running debounce timer."""
        return len(self._pending)

    def start(self) -> None:
        """Subscribe to every configured root.

        No-op while already watching. Must be called with a running loop.
        If any root cannot be watched, the roots already subscribed are
        released before the error propagates.
        """
        if self._watching:
            return

        self._loop = asyncio.get_running_loop()
        try:
            for category, root in self._roots.items():
                subscription = self._primitive.watch(
                    str(root), functools.partial(self._handle_change, category)
                )
                self._subscriptions.append(subscription)
        except Exception as e:
            logger.error("change_watcher_start_failed", root=str(root), error=str(e))
            self._dispose_subscriptions()
            raise
        self._watching = True
        logger.info(
            "change_watcher_started",
            roots={category.value: str(root) for category, root in self._roots.items()},
        )

    def stop(self) -> None:
        """Dispose subscriptions and cancel outstanding debounce timers.

        Idempotent. No notification fires for a timer pending at stop time.
        """
        for timer, _ in self._pending.values():
            timer.cancel()
        self._pending.clear()
        self._dispose_subscriptions()

        if not self._watching:
            return
        self._watching = False
        logger.info("change_watcher_stopped")

    def _dispose_subscriptions(self) -> None:
        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            try:
                subscription.dispose()
            except Exception as e:
                logger.error("watch_dispose_failed", error=str(e))

    def on_change(self, handler: ChangeHandler) -> Subscription:
        """Register a handler for coalesced change events.

        Args:
            handler: Sync or async callable receiving each ConfigChangeEvent.

        Returns:
            Subscription that removes the handler.
        """
        self._handlers.append(handler)

        def _remove() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return Subscription(_remove)

    async def flush(self) -> None:
        """Wait for notifications already emitted to finish running handlers."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _handle_change(self, category: ConfigCategory, event: ChangeEvent) -> None:
        if not self._watching or self._loop is None:
            return
        if is_temp_file(event.path):
            return

        key = (category, event.path)
        existing = self._pending.get(key)
        use_event = event
        if existing is not None:
            timer, stored_event = existing
            timer.cancel()
            if CHANGE_PRIORITY[stored_event.kind] > CHANGE_PRIORITY[event.kind]:
                use_event = stored_event
            self._coalesced_count += 1

        timer = self._loop.call_later(self.debounce_ms / 1000.0, self._emit, key)
        self._pending[key] = (timer, use_event)

    def _emit(self, key: tuple[ConfigCategory, str]) -> None:
        entry = self._pending.pop(key, None)
        if entry is None or self._loop is None:
            return
        _, event = entry
        change = ConfigChangeEvent(category=key[0], event=event)

        logger.debug(
            "watcher_emit",
            category=change.category.value,
            path=event.path,
            kind=event.kind.value,
        )
        task = self._loop.create_task(self._notify(change))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _notify(self, change: ConfigChangeEvent) -> None:
        for handler in list(self._handlers):
            try:
                result = handler(change)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(
                    "watcher_handler_error",
                    error=str(e),
                    category=change.category.value,
                    path=change.event.path,
                )
