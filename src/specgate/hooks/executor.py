"""Action execution for automation rules."""

import asyncio
import contextlib
import os
import signal

import structlog

from specgate.exceptions import ExecutionFailure
from specgate.hooks.types import (
    AutomationRule,
    DispatchResult,
    ExecuteCommandAction,
    HookContext,
    SendMessageAction,
)
from specgate.protocols import MessageSink, ProcessResult, ProcessRunner

logger = structlog.get_logger()

DEFAULT_COMMAND_TIMEOUT = 60.0
KILL_REAP_TIMEOUT = 5.0

PLACEHOLDERS: tuple[tuple[str, str], ...] = (
    ("{filePath}", "file_path"),
    ("{message}", "message"),
    ("{event}", "event"),
)


def interpolate_message(message: str, context: HookContext | None) -> str:
    """Substitute context values into a message template.

    Placeholders whose context value is unset are left untouched.

    Args:
        message: Template containing {filePath}, {message} or {event}.
        context: Event payload.

    Returns:
        Interpolated message text.
    """
    if context is None:
        return message
    result = message
    for placeholder, attribute in PLACEHOLDERS:
        value = getattr(context, attribute)
        if value:
            result = result.replace(placeholder, value)
    return result


class SubprocessRunner:
    """Runs shell commands with asyncio subprocesses.

    Each command runs in its own session so a timeout kills the shell
    together with every process it spawned.
    """

    async def run(
        self,
        command: str,
        cwd: str | None = None,
        timeout: float | None = None,
    ) -> ProcessResult:
        """Run a shell command and capture its output.

        Args:
            command: Shell command line.
            cwd: Working directory, or the current one if None.
            timeout: Seconds before the process group is killed.

        Returns:
            Captured stdout, stderr and exit code.

        Raises:
            ExecutionFailure: If the process cannot be spawned or times out.
        """
        try:
            process = await asyncio.create_subprocess_shell(
                command,
                cwd=cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as e:
            raise ExecutionFailure(f"Failed to start command '{command}': {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError as e:
            await _kill_process_group(process)
            raise ExecutionFailure(
                f"Command '{command}' timed out after {timeout:g}s"
            ) from e

        return ProcessResult(
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            exit_code=process.returncode if process.returncode is not None else -1,
        )


async def _kill_process_group(process: asyncio.subprocess.Process) -> None:
    # the shell leads its own session, so its pid is the group id
    with contextlib.suppress(ProcessLookupError, PermissionError):
        os.killpg(process.pid, signal.SIGKILL)
    try:
        await asyncio.wait_for(process.wait(), timeout=KILL_REAP_TIMEOUT)
    except asyncio.TimeoutError:
        logger.warning("command_reap_timeout", pid=process.pid)


class ActionExecutor:
    """Runs a single rule action and reports a uniform result.

    Holds no state beyond its collaborators. Every failure becomes a
    DispatchResult with success=False; nothing is raised.
    """

    def __init__(
        self,
        message_sink: MessageSink | None = None,
        runner: ProcessRunner | None = None,
        command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
    ) -> None:
        """Initialize the executor.

        Args:
            message_sink: Receiver for send_message actions.
            runner: Process runner for execute_command actions.
            command_timeout: Seconds before a command is killed.
        """
        self.message_sink = message_sink
        self.runner: ProcessRunner = runner or SubprocessRunner()
        self.command_timeout = command_timeout

    async def execute(
        self,
        rule: AutomationRule,
        context: HookContext | None = None,
    ) -> DispatchResult:
        """Run a rule's action.

        Args:
            rule: Rule whose action to run.
            context: Event payload for placeholder substitution.

        Returns:
            Result carrying output on success or diagnostic text on failure.
        """
        action = rule.action
        try:
            if isinstance(action, SendMessageAction):
                output = await self._send_message(action, context)
            elif isinstance(action, ExecuteCommandAction):
                output = await self._execute_command(action)
            else:
                raise ExecutionFailure(f"Unknown action type: {action.type}")
        except ExecutionFailure as e:
            return DispatchResult(rule_id=rule.id, success=False, error=str(e), output=e.output)
        except Exception as e:
            return DispatchResult(rule_id=rule.id, success=False, error=str(e) or type(e).__name__)
        return DispatchResult(rule_id=rule.id, success=True, output=output)

    async def _send_message(
        self, action: SendMessageAction, context: HookContext | None
    ) -> str:
        if self.message_sink is None:
            raise ExecutionFailure("No message sink configured")
        message = interpolate_message(action.message, context)
        await self.message_sink.send(message)
        return message

    async def _execute_command(self, action: ExecuteCommandAction) -> str:
        result = await self.runner.run(
            action.command, cwd=action.cwd, timeout=self.command_timeout
        )
        output = result.stdout or result.stderr
        if result.exit_code != 0:
            detail = (result.stderr or result.stdout).strip()
            raise ExecutionFailure(
                f"Command '{action.command}' exited with code {result.exit_code}"
                + (f": {detail}" if detail else ""),
                output=output,
            )
        return output
