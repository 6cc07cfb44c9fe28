"""Action executor tests."""

import asyncio
import sys

import pytest
from conftest import FakeProcessRunner, RecordingMessageSink, make_rule

from specgate.exceptions import ExecutionFailure
from specgate.hooks.executor import ActionExecutor, SubprocessRunner, interpolate_message
from specgate.hooks.types import AutomationRule, HookContext
from specgate.protocols import ProcessResult


def test_interpolate_message_fills_known_values() -> None:
    """Set context values replace their placeholders."""
    context = HookContext(event="file_save", file_path="docs/a.md")
    assert interpolate_message("{event}: {filePath}", context) == "file_save: docs/a.md"


def test_interpolate_message_leaves_unset_placeholders() -> None:
    """Placeholders without a context value stay in the text."""
    context = HookContext(event="message_sent")
    assert interpolate_message("{message} via {event}", context) == "{message} via message_sent"
    assert interpolate_message("{filePath}", None) == "{filePath}"


@pytest.mark.asyncio
async def test_send_message_without_sink_fails() -> None:
    """send_message actions need a message sink."""
    rule = AutomationRule.model_validate(make_rule("greet"))

    result = await ActionExecutor().execute(rule)

    assert not result.success
    assert result.error == "No message sink configured"


@pytest.mark.asyncio
async def test_execute_command_passes_cwd_and_timeout() -> None:
    """Commands run with the action's cwd and the configured timeout."""
    runner = FakeProcessRunner({"make test": ProcessResult(stdout="ok\n", exit_code=0)})
    executor = ActionExecutor(runner=runner, command_timeout=5.0)
    rule = AutomationRule.model_validate(
        make_rule("test", action={"type": "execute_command", "command": "make test", "cwd": "app"})
    )

    result = await executor.execute(rule)

    assert result.success
    assert result.output == "ok\n"
    assert runner.calls == [("make test", "app", 5.0)]


@pytest.mark.asyncio
async def test_execute_command_nonzero_exit_fails_with_output() -> None:
    """A non-zero exit code becomes a failed result carrying stderr."""
    runner = FakeProcessRunner({"lint": ProcessResult(stderr="E501 line too long", exit_code=2)})
    rule = AutomationRule.model_validate(
        make_rule("lint", action={"type": "execute_command", "command": "lint"})
    )

    result = await ActionExecutor(runner=runner).execute(rule)

    assert not result.success
    assert result.error == "Command 'lint' exited with code 2: E501 line too long"
    assert result.output == "E501 line too long"


@pytest.mark.asyncio
async def test_message_sink_exception_becomes_failed_result() -> None:
    """Sink errors are captured rather than raised."""

    class BrokenSink(RecordingMessageSink):
        async def send(self, message: str) -> None:
            raise ConnectionError("agent offline")

    rule = AutomationRule.model_validate(make_rule("greet"))

    result = await ActionExecutor(message_sink=BrokenSink()).execute(rule)

    assert not result.success
    assert result.error == "agent offline"


@pytest.mark.asyncio
async def test_subprocess_runner_captures_output() -> None:
    """The subprocess runner returns stdout and the exit code."""
    command = f'"{sys.executable}" -c "print(42)"'

    result = await SubprocessRunner().run(command, timeout=30.0)

    assert result.exit_code == 0
    assert result.stdout.strip() == "42"


@pytest.mark.asyncio
async def test_subprocess_runner_kills_on_timeout() -> None:
    """Commands exceeding the timeout are killed and reported."""
    command = f'"{sys.executable}" -c "import time; time.sleep(10)"'

    with pytest.raises(ExecutionFailure, match="timed out"):
        await SubprocessRunner().run(command, timeout=0.2)


@pytest.mark.skipif(sys.platform == "win32", reason="process groups are POSIX only")
@pytest.mark.asyncio
async def test_subprocess_runner_timeout_kills_compound_command() -> None:
    """A timeout bounds compound commands whose children hold the pipes open."""
    loop = asyncio.get_running_loop()
    started = loop.time()

    with pytest.raises(ExecutionFailure, match="timed out after 0.5s"):
        await SubprocessRunner().run("sleep 5; echo done", timeout=0.5)

    assert loop.time() - started < 3.0
