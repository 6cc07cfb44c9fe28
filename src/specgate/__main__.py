"""Entry point for the workspace automation host."""

import asyncio
import contextlib
import sys

import structlog

from specgate.config import Settings
from specgate.lifecycle import ShutdownSignal
from specgate.logging import configure_logging
from specgate.workspace import Workspace

logger = structlog.get_logger()


async def serve(settings: Settings) -> None:
    """Load the workspace and hot reload it until a shutdown signal.

    Startup failures of individual categories are logged and do not
    stop the host.

    Args:
        settings: Workspace configuration.
    """
    workspace = Workspace(settings)
    shutdown = ShutdownSignal()
    shutdown.install()

    report = await workspace.load_all()
    for error in report.errors:
        logger.warning("startup_load_failed", category=error.category, error=error.message)
    logger.info(
        "workspace_loaded",
        workspace=str(settings.workspace),
        specs=len(report.specs),
        rules=len(report.rules),
        steering=len(report.steering),
    )

    workspace.start_watching()
    try:
        await shutdown.wait()
    finally:
        await workspace.close()


def main() -> None:
    """Entry point for python -m specgate."""
    settings = Settings()
    configure_logging(debug=settings.debug, json_output=settings.json_logs)

    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(serve(settings))

    sys.exit(0)


if __name__ == "__main__":
    main()
