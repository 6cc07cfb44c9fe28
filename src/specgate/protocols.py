"""Collaborator protocols consumed by the specgate core.

Document stores, file sinks, message sinks and process runners are
supplied from outside the core. Default implementations live in
specgate.stores and specgate.hooks.executor.
"""

from collections.abc import Callable
from typing import Protocol, runtime_checkable

from pydantic import BaseModel


class Subscription:
    """Handle returned by listener registrations.

    Calling dispose() more than once has no additional effect.
    """

    def __init__(self, on_dispose: Callable[[], None]) -> None:
        self._on_dispose: Callable[[], None] | None = on_dispose

    @property
    def disposed(self) -> bool:
        """Whether dispose() has already run."""
        return self._on_dispose is None

    def dispose(self) -> None:
        """Detach the listener this handle was created for."""
        if self._on_dispose is None:
            return
        callback, self._on_dispose = self._on_dispose, None
        callback()


class ProcessResult(BaseModel):
    """Outcome of a finished subprocess."""

    stdout: str = ""
    stderr: str = ""
    exit_code: int


@runtime_checkable
class Refreshable(Protocol):
    """Anything holding an in-memory cache that can be re-read from disk."""

    async def refresh(self) -> None:
        """Drop cached state and re-read it from the backing store."""
        ...


@runtime_checkable
class DocumentStore(Refreshable, Protocol):
    """Named text documents (specs, hooks or steering files)."""

    async def list(self) -> list[str]:
        """Return every document name, sorted."""
        ...

    async def load(self, name: str) -> str:
        """Return a document's content.

        Raises:
            NotFoundError: If no document has this name.
        """
        ...

    async def save(self, name: str, content: str) -> None:
        """Create or overwrite a document."""
        ...

    async def delete(self, name: str) -> None:
        """Remove a document if it exists."""
        ...


@runtime_checkable
class FileSink(Protocol):
    """Destination for approved file edits."""

    async def write_file(self, path: str, content: str) -> None:
        """Write content to path, creating parent directories."""
        ...

    async def delete(self, path: str) -> None:
        """Remove the file or directory at path."""
        ...


@runtime_checkable
class MessageSink(Protocol):
    """Receiver for messages produced by send_message actions."""

    async def send(self, message: str) -> None:
        """Deliver a message to the agent."""
        ...


@runtime_checkable
class ProcessRunner(Protocol):
    """Runs shell commands for execute_command actions."""

    async def run(
        self,
        command: str,
        cwd: str | None = None,
        timeout: float | None = None,
    ) -> ProcessResult:
        """Run a command to completion.

        Raises:
            ExecutionFailure: If the command cannot be spawned or times out.
        """
        ...
