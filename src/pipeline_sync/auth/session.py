# src/pipeline_sync/auth/session.py

"""
QR login handshake.

State machine:
    idle -> requesting -> awaiting_scan -> succeeded | expired | failed

- start() asks the server for a challenge (QR code) and, on success, polls it every
  `poll_interval` seconds until `max_duration` seconds have passed since start() was
  called (the challenge request is included).
- Transient poll errors are logged and retried on the next tick; only an explicit
  expiry from the server or the overall timeout ends the handshake unsuccessfully.
- A failed challenge request moves straight to `failed`; there is no automatic retry,
  the caller uses regenerate().
- At most one challenge is outstanding: start()/regenerate() cancel the previous poll
  loop before anything else, and a superseded challenge request is discarded.

Observers subscribe to three signals (all notified from their own asyncio task, never from
inside a poll tick):
- state_changed(state)
- refresh_requested()          -> re-derive identity from the auth status endpoint
- login_succeeded(identity)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from functools import partial
from typing import Any

from ..core.events import Signal
from ..core.models import (
    AuthChallenge,
    AuthResult,
    AuthState,
    ChallengePollStatus,
    Expired,
    Failed,
    Identity,
    Pending,
    Succeeded,
)
from ..core.ports import AuthApi
from ..errors import PipelineSyncError
from ..sync.poll_loop import CONTINUE, PollHandle, PollLoop, PollOutcome, PollTermination, StopReason

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 3.0
DEFAULT_MAX_DURATION_SECONDS = 300.0


class AuthSession:
    def __init__(
            self,
            api: AuthApi,
            poll_loop: PollLoop,
            *,
            poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
            max_duration: float = DEFAULT_MAX_DURATION_SECONDS,
    ) -> None:
        self._api = api
        self._poll_loop = poll_loop
        self._poll_interval = float(poll_interval)
        self._max_duration = float(max_duration)

        self._state = AuthState.IDLE
        self._result: AuthResult = Pending()
        self._challenge: AuthChallenge | None = None
        self._identity: Identity | None = None
        self._handle: PollHandle | None = None
        self._generation = 0
        self._notify_tasks: set[asyncio.Task[None]] = set()

        self.state_changed = Signal("auth.state_changed")
        self.refresh_requested = Signal("auth.refresh_requested")
        self.login_succeeded = Signal("auth.login_succeeded")

    # ---- read side ----

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def result(self) -> AuthResult:
        return self._result

    @property
    def challenge(self) -> AuthChallenge | None:
        return self._challenge

    @property
    def identity(self) -> Identity | None:
        return self._identity

    @property
    def polling(self) -> bool:
        return self._handle is not None and not self._handle.done

    # ---- commands ----

    async def start(self) -> AuthState:
        self._cancel_loop()
        self._generation += 1
        generation = self._generation

        self._challenge = None
        self._result = Pending()
        self._set_state(AuthState.REQUESTING)
        started = self._poll_loop.clock.now()

        try:
            challenge = await self._api.issue_challenge()
        except PipelineSyncError as exc:
            if generation != self._generation:
                return self._state
            logger.warning("QR challenge request failed: %s", exc)
            self._result = Failed(str(exc) or exc.__class__.__name__)
            self._set_state(AuthState.FAILED)
            return self._state

        if generation != self._generation:
            logger.debug("Discarding superseded QR challenge %s", challenge.challenge_id)
            return self._state

        self._challenge = challenge
        self._set_state(AuthState.AWAITING_SCAN)
        # The challenge request itself counts against max_duration.
        remaining = max(0.0, self._max_duration - (self._poll_loop.clock.now() - started))
        self._handle = self._poll_loop.start(
            partial(self._poll_once, challenge, generation),
            self._poll_interval,
            remaining,
            on_finish=partial(self._on_loop_finished, generation),
            name="qr-login",
        )
        logger.info("QR challenge issued; polling every %.1fs for up to %.0fs", self._poll_interval, remaining)
        return self._state

    async def regenerate(self) -> AuthState:
        """Drop the current challenge (whatever state we are in) and request a new one."""
        logger.info("Regenerating QR challenge (state=%s)", self._state.value)
        self._cancel_loop()
        self._challenge = None
        return await self.start()

    def cancel(self) -> None:
        """Stop polling. A handshake still in progress goes back to idle."""
        self._cancel_loop()
        self._generation += 1
        if not self._state.terminal:
            self._challenge = None
            self._result = Pending()
            self._set_state(AuthState.IDLE)

    def reset(self) -> None:
        """Forget everything (used on logout)."""
        self.cancel()
        self._challenge = None
        self._identity = None
        self._result = Pending()
        self._set_state(AuthState.IDLE)

    async def flush(self) -> None:
        """Wait until every queued observer notification has been delivered."""
        while self._notify_tasks:
            await asyncio.wait(set(self._notify_tasks))

    # ---- internals ----

    def _cancel_loop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _set_state(self, state: AuthState) -> None:
        if state == self._state:
            return
        logger.debug("Auth state %s -> %s", self._state.value, state.value)
        self._state = state
        self._spawn(self.state_changed.emit(state))

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._notify_tasks.add(task)
        task.add_done_callback(self._notify_tasks.discard)

    async def _announce_login(self, identity: Identity) -> None:
        await self.refresh_requested.emit()
        await self.login_succeeded.emit(identity)

    async def _poll_once(self, challenge: AuthChallenge, generation: int) -> PollOutcome:
        if generation != self._generation:
            return PollOutcome.stop("superseded")

        try:
            poll = await self._api.poll_challenge(challenge.challenge_id)
        except PipelineSyncError as exc:
            logger.warning("QR poll failed, retrying next tick: %s", exc)
            return CONTINUE

        if generation != self._generation or self._state != AuthState.AWAITING_SCAN:
            return PollOutcome.stop("superseded")

        if poll.status == ChallengePollStatus.RESOLVED and poll.identity is not None:
            identity = poll.identity
            self._identity = identity
            self._challenge = None
            self._result = Succeeded(identity)
            self._set_state(AuthState.SUCCEEDED)
            self._spawn(self._announce_login(identity))
            logger.info("QR login succeeded subject_id=%s name=%s", identity.subject_id, identity.display_name)
            return PollOutcome.stop("succeeded")

        if poll.status == ChallengePollStatus.EXPIRED:
            self._expire()
            return PollOutcome.stop("expired")

        return CONTINUE

    def _expire(self) -> None:
        self._challenge = None
        self._result = Expired()
        self._set_state(AuthState.EXPIRED)
        logger.info("QR challenge expired; regenerate to try again")

    def _on_loop_finished(self, generation: int, termination: PollTermination) -> None:
        if generation != self._generation:
            return
        if termination.reason == StopReason.TIMED_OUT and self._state == AuthState.AWAITING_SCAN:
            self._expire()
