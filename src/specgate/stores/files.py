"""File-backed document store and filesystem sink."""
import asyncio
import shutil
from pathlib import Path

import structlog

from specgate.exceptions import NotFoundError, ValidationError

logger = structlog.get_logger()


def resolve_within(root: Path, relative: str) -> Path:
    """Resolve a relative path to an absolute path inside root.

    Args:
        root: Directory the path must stay within.
        relative: Relative path or filename.

    Returns:
        Absolute path under root.

    Raises:
        ValidationError: If the path contains null bytes or resolves
            outside root.
    """
    if "\0" in relative:
        raise ValidationError(f"Path contains null byte: {relative!r}")

    root_path = root.resolve()
    resolved = (root_path / relative.replace("\\", "/")).resolve()
    if resolved != root_path and root_path not in resolved.parents:
        raise ValidationError(f"Path resolves outside {root_path}: {relative}")
    return resolved


class FileDocumentStore:
    """Named documents stored as files under one directory.

    A document name is its path relative to the root without the
    suffix, so nested names such as "checkout/design" are allowed.
    Reads are served from an in-memory cache filled lazily and dropped
    by refresh(). Writes go straight to disk; last write wins.
    """

    def __init__(self, root: Path, suffix: str = ".md") -> None:
        """Initialize the store.

        Args:
            root: Directory holding the documents.
            suffix: File suffix of every document, e.g. ".json".
        """
        self.root = root
        self.suffix = suffix
        self._cache: dict[str, str] = {}

    def _path(self, name: str) -> Path:
        if not name.strip():
            raise ValidationError("Document name cannot be empty")
        return resolve_within(self.root, f"{name}{self.suffix}")

    def _scan(self) -> list[str]:
        if not self.root.is_dir():
            return []
        names = [
            path.relative_to(self.root).as_posix()[: -len(self.suffix)]
            for path in self.root.rglob(f"*{self.suffix}")
            if path.is_file()
        ]
        return sorted(names)

    async def load(self, name: str) -> str:
        """Return a document's content.

        Raises:
            NotFoundError: If no document has this name.
        """
        cached = self._cache.get(name)
        if cached is not None:
            return cached

        path = self._path(name)
        try:
            content = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError as e:
            raise NotFoundError("Document", name) from e
        self._cache[name] = content
        return content

    async def save(self, name: str, content: str) -> None:
        """Create or overwrite a document."""
        path = self._path(name)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")

        await asyncio.to_thread(_write)
        self._cache[name] = content

    async def delete(self, name: str) -> None:
        """Remove a document if it exists."""
        path = self._path(name)
        await asyncio.to_thread(path.unlink, missing_ok=True)
        self._cache.pop(name, None)

    async def refresh(self) -> None:
        """Drop the cache and re-read every document from disk."""
        names = await asyncio.to_thread(self._scan)
        cache: dict[str, str] = {}
        for name in names:
            try:
                cache[name] = await asyncio.to_thread(
                    self._path(name).read_text, encoding="utf-8"
                )
            except FileNotFoundError:
                # removed between scan and read
                continue
        self._cache = cache
        logger.debug("document_store_refreshed", root=str(self.root), documents=len(cache))

    async def list(self) -> list[str]:
        """Return every document name on disk, sorted."""
        return await asyncio.to_thread(self._scan)


class LocalFileSink:
    """Applies approved edits to files under a workspace root."""

    def __init__(self, root: Path) -> None:
        self.root = root

    async def write_file(self, path: str, content: str) -> None:
        """Write content to path, creating parent directories."""
        target = resolve_within(self.root, path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")

        await asyncio.to_thread(_write)
        logger.debug("file_written", path=path)

    async def delete(self, path: str) -> None:
        """Remove the file or directory at path.

        Raises:
            FileNotFoundError: If nothing exists at path.
        """
        target = resolve_within(self.root, path)
        if target.is_dir():
            await asyncio.to_thread(shutil.rmtree, target)
        else:
            await asyncio.to_thread(target.unlink)
        logger.debug("file_deleted", path=path)
