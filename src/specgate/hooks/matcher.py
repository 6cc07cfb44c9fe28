"""Trigger matching for automation rules."""

import functools
import re

from specgate.hooks.types import AutomationRule, FileSaveTrigger, HookContext, HookEventType


@functools.lru_cache(maxsize=256)
def compile_glob(pattern: str) -> re.Pattern[str]:
    """Translate a glob pattern into an anchored regex.

    ``**`` matches across directory separators and ``**/`` also matches
    zero directories. ``*`` and ``?`` never match ``/``.

    Args:
        pattern: Glob pattern using "/" or "\\" separators.

    Returns:
        Compiled regex matching whole paths.
    """
    pattern = pattern.replace("\\", "/")
    parts: list[str] = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            parts.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif pattern[i] == "*":
            parts.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            parts.append("[^/]")
            i += 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1
    return re.compile("^" + "".join(parts) + "$")


def matches_pattern(file_path: str, pattern: str) -> bool:
    """Check whether a file path matches a glob pattern.

    Args:
        file_path: Path to test.
        pattern: Glob pattern.

    Returns:
        True if the whole path matches.
    """
    normalized = file_path.replace("\\", "/")
    return compile_glob(pattern).match(normalized) is not None


def trigger_matches(
    rule: AutomationRule,
    event_type: HookEventType,
    context: HookContext | None = None,
) -> bool:
    """Decide whether a rule's trigger fires for an event.

    A file_save trigger with a pattern also requires the context's file
    path to match it; a missing path does not match.

    Args:
        rule: Rule to test. The enabled flag is not considered here.
        event_type: Event being dispatched.
        context: Event payload.

    Returns:
        True if the trigger fires.
    """
    trigger = rule.trigger
    if trigger.type != event_type.value:
        return False
    if isinstance(trigger, FileSaveTrigger) and trigger.pattern:
        file_path = context.file_path if context is not None else None
        if not file_path:
            return False
        return matches_pattern(file_path, trigger.pattern)
    return True
