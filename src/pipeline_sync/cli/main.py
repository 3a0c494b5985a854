# src/pipeline_sync/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, adopts an existing server session if there is one,
then runs the console REPL (or, with the console disabled, just keeps the task sync alive
until Ctrl+C).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..errors import PipelineSyncError, friendly_error_message
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def _wait_for_signal() -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        # Not supported on every platform (e.g. Windows event loops).
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(signum, stop.set)
    await stop.wait()


async def _run(settings) -> None:
    state = create_initial_state(settings=settings)
    orch = state.orchestrator

    try:
        identity = await orch.bootstrap()
        if identity is not None:
            logger.info("Resumed server session as %s", identity.display_name)
    except PipelineSyncError as e:
        logger.warning("Could not check the server session: %s", friendly_error_message(e))

    try:
        if settings.console_enabled:
            await run_console_loop(state)
        else:
            logger.info("Console disabled. Syncing in the background only. Press Ctrl+C to stop.")
            await _wait_for_signal()
    finally:
        await orch.close()


def main() -> None:
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s against %s...", settings.app_name, settings.api_base_url)

    try:
        asyncio.run(_run(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    finally:
        logger.info("Bye.")


if __name__ == "__main__":
    main()
