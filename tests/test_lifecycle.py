"""Shutdown signal tests."""

import asyncio

import pytest

from specgate.lifecycle import ShutdownSignal


@pytest.mark.asyncio
async def test_trigger_releases_waiters_once() -> None:
    """Waiters wake on the first trigger; later triggers keep its reason."""
    shutdown = ShutdownSignal()
    waiter = asyncio.create_task(shutdown.wait())

    shutdown.trigger("SIGTERM")
    shutdown.trigger("SIGINT")
    await asyncio.wait_for(waiter, timeout=1.0)

    assert shutdown.is_triggered
    assert shutdown.reason == "SIGTERM"


def test_new_signal_is_not_triggered() -> None:
    shutdown = ShutdownSignal()

    assert not shutdown.is_triggered
    assert shutdown.reason is None
