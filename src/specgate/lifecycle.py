"""Shutdown signalling for the workspace host loop."""
import asyncio
import signal

import structlog

logger = structlog.get_logger()


class ShutdownSignal:
    """One-shot shutdown flag shared by the host loop and signal handlers.

    Attributes:
        is_triggered: Whether shutdown has been requested.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def is_triggered(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        """Name of the signal or caller that requested shutdown."""
        return self._reason

    def trigger(self, reason: str = "requested") -> None:
        """Request shutdown. Later calls are ignored."""
        if self._event.is_set():
            return
        self._reason = reason
        logger.info("shutdown_triggered", reason=reason)
        self._event.set()

    def install(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Trigger on SIGTERM and SIGINT.

        Args:
            loop: Loop to attach handlers to, defaults to the running loop.
        """
        loop = loop or asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self.trigger, sig.name)

    async def wait(self) -> None:
        """Block until trigger() is called."""
        await self._event.wait()
