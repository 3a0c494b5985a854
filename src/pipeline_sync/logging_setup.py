# src/pipeline_sync/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FILE_NAME = "pipeline_sync.log"

# Loggers that fire on every QR poll tick (3 s) or task refresh (30 s).
_BACKGROUND_LOGGERS = (
    "pipeline_sync.sync.poll_loop",
    "pipeline_sync.tasks.registry",
)

# httpx writes one INFO line per request, so each poll and list page would show up.
_HTTP_LOGGERS = ("httpx", "httpcore")


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the REPL readable while a login is polling and the task list is refreshing.

    The prompt shares stderr/stdout with the logs, so only lines a user can act on get
    through: the background loops speak up at WARNING (a failed refresh, a crashed tick),
    everything outside pipeline_sync (HTTP client, captured warnings) only at ERROR.
    The file handler has no filter.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        if name.startswith("pipeline_sync."):
            if name.startswith(_BACKGROUND_LOGGERS):
                return record.levelno >= logging.WARNING
            return True

        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/pipeline_sync",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Console handler (filtered) plus `<log_dir>/pipeline_sync.log` with every record.

    Replaces whatever handlers the root logger already has, so calling it twice does not
    duplicate output. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)

    # Request lines stay out of the file too; transport failures surface as TransportError.
    for name in _HTTP_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return log_file
