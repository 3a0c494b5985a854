# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from pipeline_sync.cli.bootstrap import create_initial_state
from pipeline_sync.core.state import AppState
from pipeline_sync.sync.poll_loop import PollLoop

from .fakes import FakeClock, FakePipelineApi


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the composition root.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the environment.
    """
    return SimpleNamespace(
        app_name="pipeline-sync-test",
        data_dir=tmp_path / "data",
        api_base_url="http://server/api/v1",
        request_timeout_seconds=5.0,
        auth_poll_interval_seconds=3.0,
        auth_max_duration_seconds=300.0,
        refresh_interval_seconds=30.0,
        list_page_limit=100,
        board_page_size=10,
        console_enabled=False,
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def api() -> FakePipelineApi:
    return FakePipelineApi()


@pytest.fixture()
def poll_loop(clock: FakeClock) -> PollLoop:
    return PollLoop(clock)


@pytest.fixture()
def state(settings: SimpleNamespace, api: FakePipelineApi, clock: FakeClock) -> AppState:
    """AppState wired with the fake API and the fake clock."""
    return create_initial_state(settings=settings, api=api, clock=clock)
