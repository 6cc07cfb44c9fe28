"""Automation rules: trigger matching, action execution and dispatch."""
from specgate.hooks.engine import HookEngine, parse_rule
from specgate.hooks.executor import ActionExecutor, SubprocessRunner
from specgate.hooks.matcher import matches_pattern, trigger_matches
from specgate.hooks.types import (
    AutomationRule,
    DispatchResult,
    ExecuteCommandAction,
    HookContext,
    HookEventType,
    SendMessageAction,
)

__all__ = [
    "ActionExecutor",
    "AutomationRule",
    "DispatchResult",
    "ExecuteCommandAction",
    "HookContext",
    "HookEngine",
    "HookEventType",
    "SendMessageAction",
    "SubprocessRunner",
    "matches_pattern",
    "parse_rule",
    "trigger_matches",
]
