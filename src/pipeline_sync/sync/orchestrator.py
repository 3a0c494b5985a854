# src/pipeline_sync/sync/orchestrator.py

"""
Sync orchestrator.

Owns the login/logout lifecycle around one AuthSession and one TaskRegistry:
- when a login resolves (or the server already reports a session on bootstrap),
  the task refresh cadence starts,
- on logout the cadence is cancelled and all in-memory task state is dropped before the
  server logout call is even awaited, so no refresh can leak across a logout/login cycle.

Every logout/close bumps a login epoch. A status check or login notification that was
started under an older epoch is dropped when it completes: it never sets the identity
and never restarts the cadence.

Identity precedence: the auth status endpoint is authoritative. The identity carried by
the poll response is used only when the status check has not produced one.
"""

from __future__ import annotations

import logging

from ..auth.session import AuthSession
from ..core.events import Signal
from ..core.models import AuthState, Identity
from ..core.ports import PipelineApi
from ..errors import PipelineSyncError
from ..tasks.registry import TaskRegistry

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    def __init__(self, api: PipelineApi, session: AuthSession, registry: TaskRegistry) -> None:
        self._api = api
        self._session = session
        self._registry = registry
        self._identity: Identity | None = None
        self._epoch = 0

        self.identity_changed = Signal("sync.identity_changed")

        self._unsubscribe = [
            session.refresh_requested.connect(self._on_refresh_requested),
            session.login_succeeded.connect(self._on_login_succeeded),
        ]

    @property
    def session(self) -> AuthSession:
        return self._session

    @property
    def registry(self) -> TaskRegistry:
        return self._registry

    @property
    def identity(self) -> Identity | None:
        return self._identity

    @property
    def logged_in(self) -> bool:
        return self._identity is not None

    # ---- lifecycle ----

    async def bootstrap(self) -> Identity | None:
        """Adopt an existing server session, if any. Errors propagate to the caller."""
        identity = await self.refresh_auth_state()
        if identity is None:
            logger.info("No active session on the server; login required")
        return identity

    async def login(self) -> AuthState:
        return await self._session.start()

    async def regenerate(self) -> AuthState:
        return await self._session.regenerate()

    async def refresh_auth_state(self) -> Identity | None:
        epoch = self._epoch
        identity = await self._api.auth_status()
        if epoch != self._epoch:
            logger.debug("Dropping auth status answer from before logout")
            return None

        if identity is None:
            if self._identity is not None or self._registry.active:
                logger.info("Server reports no session; stopping task sync")
            self._stop_sync()
            await self._set_identity(None)
            return None

        await self._set_identity(identity)
        self._start_sync(epoch)
        return identity

    async def logout(self) -> None:
        self._epoch += 1
        self._stop_sync()
        self._session.reset()
        await self._set_identity(None)
        logger.info("Logged out locally; notifying server")
        try:
            await self._api.logout()
        except PipelineSyncError as exc:
            logger.warning("Server logout failed (local state already cleared): %s", exc)

    async def close(self) -> None:
        self._epoch += 1
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []
        self._stop_sync()
        self._session.cancel()
        await self._session.flush()
        await self._api.aclose()

    # ---- internals ----

    def _start_sync(self, epoch: int) -> None:
        # identity_changed handlers run before this; one of them may have logged out.
        if epoch != self._epoch:
            return
        self._registry.start()

    def _stop_sync(self) -> None:
        self._registry.stop()
        self._registry.clear()

    async def _set_identity(self, identity: Identity | None) -> None:
        if identity == self._identity:
            return
        self._identity = identity
        await self.identity_changed.emit(identity)

    async def _on_refresh_requested(self) -> None:
        if self._session.state != AuthState.SUCCEEDED:
            return
        try:
            await self.refresh_auth_state()
        except PipelineSyncError as exc:
            logger.warning("Auth status check after login failed: %s", exc)

    async def _on_login_succeeded(self, identity: Identity) -> None:
        # A logout may have reset the session before this notification was delivered.
        if self._session.state != AuthState.SUCCEEDED:
            return
        epoch = self._epoch
        if self._identity is None:
            await self._set_identity(identity)
        self._start_sync(epoch)
