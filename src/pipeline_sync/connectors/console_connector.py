# src/pipeline_sync/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import datetime

from ..cli.commands import format_board
from ..cli.commands import registry as command_registry
from ..core.models import AuthState, Identity
from ..core.state import AppState
from ..errors import PipelineSyncError, friendly_error_message

logger = logging.getLogger(__name__)

PROMPT = ">>> "


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    try:
        if sys.stdout.isatty():
            sys.stdout.write("\033[1A\033[2K\r")
            sys.stdout.write(line + "\n")
            sys.stdout.flush()
        else:
            print(line)
    except OSError:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


def _connect_notifications(state: AppState) -> list:
    """Print background events (login result, expiry, refresh failures) as they happen."""
    orch = state.orchestrator

    def on_auth_state(auth_state: AuthState) -> None:
        if auth_state == AuthState.EXPIRED:
            _print_ts("[LOGIN] The QR code has expired. Use /regen to get a new one.")
        elif auth_state == AuthState.FAILED:
            _print_ts("[LOGIN] Login failed. Use /regen to try again.")

    def on_identity(identity: Identity | None) -> None:
        if identity is not None:
            _print_ts(f"[LOGIN] Logged in as {identity.display_name}. Syncing tasks...")

    first_sync = {"pending": True}

    def on_tasks_updated(tasks) -> None:
        if first_sync["pending"]:
            first_sync["pending"] = False
            _print_ts(f"[SYNC] {len(tasks)} tasks loaded. Use /tasks to browse.")

    def on_refresh_failed(exc: Exception) -> None:
        _print_ts(f"[SYNC] {friendly_error_message(exc)} Showing cached tasks.")

    def on_identity_reset(identity: Identity | None) -> None:
        if identity is None:
            first_sync["pending"] = True

    return [
        orch.session.state_changed.connect(on_auth_state),
        orch.identity_changed.connect(on_identity),
        orch.identity_changed.connect(on_identity_reset),
        orch.registry.updated.connect(on_tasks_updated),
        orch.registry.failed.connect(on_refresh_failed),
    ]


async def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started (server=%s).", getattr(state.settings, "api_base_url", "?"))
    _print_ts("[CONSOLE] Use /help for commands. Use /exit to quit.\n")

    if state.orchestrator.logged_in:
        _print_ts(format_board(state))

    disconnect = _connect_notifications(state)

    def emit(text: str) -> None:
        # Immediate user-visible feedback for slow operations.
        _print_ts(text)

    try:
        while True:
            try:
                user_input = (await asyncio.to_thread(input, PROMPT)).strip()
                _rewrite_prev_line(f"[{_ts_local()}] {PROMPT}{user_input}")
            except EOFError:
                logger.info("Console EOF received, exiting.")
                break
            except KeyboardInterrupt:
                logger.info("Console KeyboardInterrupt, exiting.")
                print()
                break

            if not user_input:
                continue

            if user_input.lower() in ("/exit", "/quit"):
                logger.info("Console exit command received.")
                break

            try:
                async with state.lock:
                    response = await command_registry.handle(state, user_input, emit=emit)
            except PipelineSyncError as e:
                msg = friendly_error_message(e)
                logger.info("Command failed: %s", e)
                response = msg
            except Exception:
                logger.exception("Command handler crashed.")
                response = "Internal error while handling a command."

            if response is None:
                response = "Commands start with '/'. Use /help to list them."
            _print_ts(response)
    finally:
        for unsubscribe in disconnect:
            unsubscribe()

    logger.info("Console connector finished.")
