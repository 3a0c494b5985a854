# src/pipeline_sync/errors.py

"""
Error taxonomy shared by the API client and the sync engine.

- TransportError: network failure, timeout or an unreadable body.
  Poll ticks swallow it; one-shot calls surface it.
- RemoteRejection: the server answered, but with a non-success `code`
  (or an HTTP error status). Carries the server message.
- ChallengeExpired / NotLoggedIn: session-level conditions the render layer
  reports to the user.

Unknown status codes are not an error: they classify to "unknown".
"""

from __future__ import annotations

from typing import Any


class PipelineSyncError(RuntimeError):
    def __init__(
        self,
        message: str,
        *,
        code: str = "pipeline_sync_error",
        status_code: int = 0,
        payload: Any = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.status_code = status_code
        self.payload = payload


class TransportError(PipelineSyncError):
    pass


class RemoteRejection(PipelineSyncError):
    pass


class ChallengeExpired(PipelineSyncError):
    pass


class NotLoggedIn(PipelineSyncError):
    pass


def friendly_error_message(err: Exception) -> str:
    """One-line, user-facing text for an error raised by the engine."""
    if isinstance(err, TransportError):
        return "Network error while talking to the server. Try again later."
    if isinstance(err, RemoteRejection):
        msg = str(err).strip()
        return f"Server rejected the request: {msg}" if msg else "Server rejected the request."
    if isinstance(err, ChallengeExpired):
        return "The QR code has expired. Use /regen to get a new one."
    if isinstance(err, NotLoggedIn):
        return "Not logged in. Use /login first."
    return str(err).strip() or err.__class__.__name__
