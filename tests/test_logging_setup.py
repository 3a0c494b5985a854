# tests/test_logging_setup.py

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from pipeline_sync.logging_setup import _ConsoleNoiseFilter, setup_logging


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


def test_console_filter_keeps_app_logs() -> None:
    f = _ConsoleNoiseFilter()
    assert f.filter(_record("pipeline_sync.auth.session", logging.INFO))
    assert f.filter(_record("pipeline_sync.cli.main", logging.DEBUG))


def test_console_filter_quiets_background_loops() -> None:
    f = _ConsoleNoiseFilter()
    assert not f.filter(_record("pipeline_sync.tasks.registry", logging.INFO))
    assert not f.filter(_record("pipeline_sync.sync.poll_loop", logging.DEBUG))
    assert f.filter(_record("pipeline_sync.tasks.registry", logging.WARNING))


def test_console_filter_drops_third_party_noise() -> None:
    f = _ConsoleNoiseFilter()
    assert not f.filter(_record("httpx", logging.INFO))
    assert not f.filter(_record("py.warnings", logging.WARNING))
    assert f.filter(_record("httpcore", logging.ERROR))


@pytest.fixture()
def restore_root_logger() -> Iterator[None]:
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    yield
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()
    for h in saved_handlers:
        root.addHandler(h)
    root.setLevel(saved_level)
    logging.captureWarnings(False)
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.NOTSET)


def test_setup_logging_writes_everything_to_file(tmp_path: Path, restore_root_logger: None) -> None:
    log_file = setup_logging(log_dir=tmp_path / "logs")
    setup_logging(log_dir=tmp_path / "logs")

    root = logging.getLogger()
    assert len(root.handlers) == 2
    assert logging.getLogger("httpx").level == logging.WARNING

    logging.getLogger("pipeline_sync.tasks.registry").debug("Task refresh ok: 3 tasks")
    for h in root.handlers:
        h.flush()

    assert log_file == tmp_path / "logs" / "pipeline_sync.log"
    assert "Task refresh ok: 3 tasks" in log_file.read_text(encoding="utf-8")
