"""Specgate exception hierarchy.

All specgate-specific exceptions inherit from SpecgateError. Validation,
lookup and duplicate errors are raised to the caller of a mutating
operation. ExecutionFailure and ReloadFailure are captured into result
values by the dispatch and reload paths and never escape them.
"""


class SpecgateError(Exception):
    """Base exception for all specgate errors."""


class ValidationError(SpecgateError, ValueError):
    """Raised when a rule, edit or plugin is malformed.

    Raised before any state is mutated. Not to be confused with
    pydantic.ValidationError, which is wrapped by this type.
    """


class NotFoundError(SpecgateError, LookupError):
    """Raised when an id or name that must exist is unknown."""

    def __init__(self, kind: str, key: str) -> None:
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}")


class DuplicateError(SpecgateError):
    """Raised when registering an id that already exists."""

    def __init__(self, kind: str, key: str) -> None:
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} already registered: {key}")


class ExecutionFailure(SpecgateError):
    """An action ran but failed.

    Always carries diagnostic text rather than a raw exception.
    """

    def __init__(self, message: str, output: str | None = None) -> None:
        self.output = output
        super().__init__(message)


class ReloadFailure(SpecgateError):
    """A single configuration category failed to refresh."""

    def __init__(self, category: str, message: str) -> None:
        self.category = category
        super().__init__(f"Failed to reload {category}: {message}")
