"""Reactive automation core for spec-driven workspaces."""
from specgate.config import Settings
from specgate.exceptions import (
    DuplicateError,
    ExecutionFailure,
    NotFoundError,
    ReloadFailure,
    SpecgateError,
    ValidationError,
)
from specgate.hooks import AutomationRule, DispatchResult, HookContext, HookEventType
from specgate.watching import ChangeKind, ConfigCategory, ConfigChangeEvent
from specgate.workflow import FileEdit, WorkflowPhase, WorkflowState
from specgate.workspace import Workspace

__version__ = "0.1.0"

__all__ = [
    "AutomationRule",
    "ChangeKind",
    "ConfigCategory",
    "ConfigChangeEvent",
    "DispatchResult",
    "DuplicateError",
    "ExecutionFailure",
    "FileEdit",
    "HookContext",
    "HookEventType",
    "NotFoundError",
    "ReloadFailure",
    "Settings",
    "SpecgateError",
    "ValidationError",
    "WorkflowPhase",
    "WorkflowState",
    "Workspace",
]
