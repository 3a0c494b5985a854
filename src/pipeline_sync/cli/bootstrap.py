# src/pipeline_sync/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures the local (gitignored) data directory exists,
- wires the API client, clock and poll loop into AuthSession / TaskRegistry / SyncOrchestrator,
- keeps the TaskBoard in step with every registry refresh.
"""

from __future__ import annotations

import logging

from ..api.client import PipelineApiClient
from ..auth.session import AuthSession
from ..config import get_settings
from ..core.clock import MonotonicClock
from ..core.ports import Clock, PipelineApi
from ..core.state import AppState
from ..sync.orchestrator import SyncOrchestrator
from ..sync.poll_loop import PollLoop
from ..tasks.board import TaskBoard
from ..tasks.registry import TaskRegistry

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)


def create_orchestrator(settings, *, api: PipelineApi | None = None, clock: Clock | None = None) -> SyncOrchestrator:
    """
    Build one orchestrator with its own session, registry and poll loop.

    `api` and `clock` are injectable; tests pass fakes, the CLI gets the real HTTP client.
    """
    if api is None:
        api = PipelineApiClient(settings.api_base_url, timeout_s=settings.request_timeout_seconds)
    poll_loop = PollLoop(clock or MonotonicClock())

    session = AuthSession(
        api,
        poll_loop,
        poll_interval=settings.auth_poll_interval_seconds,
        max_duration=settings.auth_max_duration_seconds,
    )
    registry = TaskRegistry(
        api,
        poll_loop,
        refresh_interval=settings.refresh_interval_seconds,
        page_limit=settings.list_page_limit,
    )
    return SyncOrchestrator(api, session, registry)


def create_initial_state(
        *,
        settings=None,
        api: PipelineApi | None = None,
        clock: Clock | None = None,
) -> AppState:
    """
    Create AppState from the provided settings.

    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    if getattr(settings, "data_dir", None) is not None:
        _ensure_local_dirs(settings)

    orchestrator = create_orchestrator(settings, api=api, clock=clock)
    board = TaskBoard(page_size=settings.board_page_size)

    def _on_identity_changed(identity) -> None:
        # Logout clears the registry without an update; drop the board's copy too.
        if identity is None:
            board.update(())

    orchestrator.registry.updated.connect(board.update)
    orchestrator.identity_changed.connect(_on_identity_changed)

    logger.debug("App state wired (page_size=%d)", board.page_size)
    return AppState(settings=settings, orchestrator=orchestrator, board=board)
