"""Change event types for configuration directory monitoring."""
from collections.abc import Callable
from enum import Enum
from typing import Protocol

from pydantic import BaseModel, Field

from specgate.protocols import Subscription


class ConfigCategory(str, Enum):
    """Configuration categories, one per watched root."""

    SPECS = "specs"
    HOOKS = "hooks"
    STEERING = "steering"


class ChangeKind(str, Enum):
    """Raw change kinds delivered by the watch primitive."""

    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"


TEMP_FILE_PATTERNS: tuple[str, ...] = (
    ".swp",
    ".swo",
    ".swn",
    ".tmp",
    ".temp",
    "~",
    ".DS_Store",
)


WATCHED_DIRECTORIES: dict[ConfigCategory, str] = {
    ConfigCategory.SPECS: "specs",
    ConfigCategory.HOOKS: "hooks",
    ConfigCategory.STEERING: "steering",
}


class ChangeEvent(BaseModel):
    """Raw filesystem change within a watched root.

    Attributes:
        kind: Whether the file was created, modified or deleted.
        path: File path relative to the watched root, using "/" separators.
    """

    kind: ChangeKind = Field(description="Raw change kind")
    path: str = Field(description="Path relative to the watched root")


class ConfigChangeEvent(BaseModel):
    """Coalesced change notification for one (category, path) key.

    Attributes:
        category: Configuration category of the watched root.
        event: The change that survived debouncing.
    """

    category: ConfigCategory = Field(description="Configuration category")
    event: ChangeEvent = Field(description="Coalesced change")


WatchCallback = Callable[[ChangeEvent], None]


class WatchPrimitive(Protocol):
    """Low-level filesystem notification source."""

    def watch(self, root: str, callback: WatchCallback) -> Subscription:
        """Start delivering changes under root to callback.

        Args:
            root: Directory to watch recursively.
            callback: Called on the event loop thread for each change.

        Returns:
            Handle whose dispose() stops the subscription.
        """
        ...
