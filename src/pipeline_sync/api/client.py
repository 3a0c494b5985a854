# src/pipeline_sync/api/client.py

"""
HTTP client for the pipeline server's REST API.

Responsibilities:
- one httpx.AsyncClient per instance (base URL + timeouts),
- unwrap the {"code": ..., "message": ..., "data": ...} envelope,
- map failures onto the error taxonomy in pipeline_sync.errors,
- convert wire payloads into model dataclasses.

Success is code 0 or 200. Anything else is a RemoteRejection.
The poll endpoint is the exception: HTTP 400/500 there means "challenge expired",
which is reported as ChallengePollStatus.EXPIRED instead of raising.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from ..core.models import (
    AuthChallenge,
    ChallengePoll,
    ChallengePollStatus,
    Identity,
    SubmitResult,
    TaskDetail,
    TaskFile,
    TaskInstance,
    TaskPage,
    UploadStage,
)
from ..errors import RemoteRejection, TransportError

logger = logging.getLogger(__name__)

SUCCESS_CODES = frozenset({0, 200})
EXPIRED_HTTP_STATUSES = frozenset({400, 500})
DEFAULT_DISPLAY_NAME = "Bilibili user"


def _make_timeout(total_s: float) -> httpx.Timeout:
    connect_s = min(5.0, total_s)
    return httpx.Timeout(total_s, connect=connect_s)


def _is_success(payload: dict[str, Any]) -> bool:
    try:
        return int(payload.get("code", -1)) in SUCCESS_CODES
    except (TypeError, ValueError):
        return False


def _message(payload: Any, default: str) -> str:
    if isinstance(payload, dict):
        msg = payload.get("message")
        if isinstance(msg, str) and msg.strip():
            return msg.strip()
    return default


def identity_from_login_info(login_info: dict[str, Any]) -> Identity | None:
    token_info = login_info.get("token_info")
    if not isinstance(token_info, dict):
        return None
    mid = token_info.get("mid")
    subject_id = str(mid) if mid not in (None, "", 0) else ""
    if not subject_id:
        return None
    return Identity(
        subject_id=subject_id,
        display_name=str(token_info.get("uname") or DEFAULT_DISPLAY_NAME),
        avatar_url=str(token_info["face"]) if token_info.get("face") else None,
    )


def identity_from_status_user(user: dict[str, Any]) -> Identity | None:
    subject_id = str(user.get("mid") or user.get("id") or "")
    if not subject_id:
        return None
    return Identity(
        subject_id=subject_id,
        display_name=str(user.get("name") or DEFAULT_DISPLAY_NAME),
        avatar_url=str(user.get("avatar")) if user.get("avatar") else None,
    )


class PipelineApiClient:
    """
    Async client for the server endpoints under /api/v1.

    `transport` is passed straight to httpx (tests use httpx.MockTransport).
    """

    def __init__(
            self,
            base_url: str,
            *,
            timeout_s: float = 30.0,
            transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=_make_timeout(timeout_s),
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    # ---- low-level helpers ----

    async def _request(
            self,
            method: str,
            path: str,
            *,
            params: dict[str, Any] | None = None,
            json_body: dict[str, Any] | None = None,
    ) -> tuple[int, dict[str, Any]]:
        try:
            response = await self._http.request(method, path, params=params, json=json_body)
        except httpx.TimeoutException as exc:
            raise TransportError(
                f"request timed out: {method} {path}", code="timeout", payload={"error_type": exc.__class__.__name__}
            ) from exc
        except httpx.RequestError as exc:
            raise TransportError(
                f"request failed: {method} {path}: {exc}",
                code="unreachable",
                payload={"error_type": exc.__class__.__name__},
            ) from exc

        try:
            payload = response.json() if response.content else {}
        except ValueError as exc:
            raise TransportError(
                f"server returned a non-JSON body (HTTP {response.status_code})",
                code="invalid_payload",
                status_code=response.status_code,
                payload={"raw": response.text[:500]},
            ) from exc

        if not isinstance(payload, dict):
            raise TransportError(
                "server JSON payload must be an object",
                code="invalid_payload",
                status_code=response.status_code,
                payload=payload,
            )
        return response.status_code, payload

    async def _call(
            self,
            method: str,
            path: str,
            *,
            params: dict[str, Any] | None = None,
            json_body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """One-shot call: anything other than HTTP 2xx + success code raises."""
        status_code, payload = await self._request(method, path, params=params, json_body=json_body)
        if status_code >= 400 or not _is_success(payload):
            raise RemoteRejection(
                _message(payload, f"server returned HTTP {status_code}"),
                code="remote_rejection",
                status_code=status_code,
                payload=payload,
            )
        return payload

    # ---- auth ----

    async def issue_challenge(self) -> AuthChallenge:
        payload = await self._call("GET", "/auth/qrcode")
        auth_code = str(payload.get("auth_code") or "")
        qr_url = str(payload.get("qr_code_url") or "")
        if not auth_code:
            raise RemoteRejection("challenge response is missing auth_code", code="invalid_challenge", payload=payload)
        if qr_url.startswith("/"):
            # The server hands out its own image route (/api/v1/auth/qrcode/image/<code>).
            qr_url = str(httpx.URL(self.base_url).join(qr_url))
        logger.debug("Issued QR challenge auth_code=%s", auth_code)
        return AuthChallenge(challenge_id=auth_code, presentation_payload=qr_url, issued_at=time.time())

    async def poll_challenge(self, challenge_id: str) -> ChallengePoll:
        status_code, payload = await self._request("POST", "/auth/poll", json_body={"auth_code": challenge_id})

        if status_code in EXPIRED_HTTP_STATUSES:
            logger.info("QR challenge expired (HTTP %s): %s", status_code, _message(payload, ""))
            return ChallengePoll(status=ChallengePollStatus.EXPIRED)

        login_info = payload.get("login_info")
        if _is_success(payload) and isinstance(login_info, dict):
            identity = identity_from_login_info(login_info)
            if identity is not None:
                return ChallengePoll(status=ChallengePollStatus.RESOLVED, identity=identity)
            logger.warning("Poll returned login_info without token_info.mid; treating as pending")

        return ChallengePoll(status=ChallengePollStatus.PENDING)

    async def auth_status(self) -> Identity | None:
        payload = await self._call("GET", "/auth/status")
        user = payload.get("user")
        if not payload.get("is_logged_in") or not isinstance(user, dict):
            return None
        return identity_from_status_user(user)

    async def logout(self) -> None:
        await self._call("POST", "/auth/logout")

    # ---- tasks ----

    async def list_tasks(self, *, page: int, limit: int) -> TaskPage:
        payload = await self._call("GET", "/videos", params={"page": int(page), "limit": int(limit)})
        data = payload.get("data") or {}
        if not isinstance(data, dict):
            raise TransportError("list payload 'data' must be an object", code="invalid_payload", payload=payload)
        videos = data.get("videos") or []
        tasks = tuple(TaskInstance.from_wire(v) for v in videos if isinstance(v, dict))
        try:
            total = int(data.get("total", len(tasks)))
        except (TypeError, ValueError):
            total = len(tasks)
        return TaskPage(tasks=tasks, total=total)

    async def get_task_detail(self, task_id: str) -> TaskDetail:
        payload = await self._call("GET", f"/videos/{task_id}")
        data = payload.get("data")
        if not isinstance(data, dict):
            raise TransportError("detail payload 'data' must be an object", code="invalid_payload", payload=payload)
        return TaskDetail.from_wire(data)

    async def list_task_files(self, task_id: str) -> tuple[TaskFile, ...]:
        payload = await self._call("GET", f"/videos/{task_id}/files")
        data = payload.get("data") or {}
        files = data.get("files") if isinstance(data, dict) else data
        return tuple(TaskFile.from_wire(f) for f in (files or []) if isinstance(f, dict))

    async def retry_step(self, task_id: str, step_name: str) -> str:
        payload = await self._call("POST", f"/videos/{task_id}/steps/{step_name}/retry")
        return _message(payload, "retry accepted")

    async def trigger_stage(self, task_id: str, stage: UploadStage) -> str:
        payload = await self._call("POST", f"/videos/{task_id}/upload/{UploadStage(stage).value}")
        return _message(payload, f"{UploadStage(stage).value} upload started")

    async def submit_task(self, url: str, *, title: str = "") -> SubmitResult:
        # /submit answers {"success": bool, "message": ..., "data": {...}} instead of the code envelope.
        body = {"url": url, "title": title, "subtitles": []}
        status_code, payload = await self._request("POST", "/submit", json_body=body)
        if status_code >= 400 or not (payload.get("success") is True or _is_success(payload)):
            raise RemoteRejection(
                _message(payload, f"server returned HTTP {status_code}"),
                code="remote_rejection",
                status_code=status_code,
                payload=payload,
            )
        data = payload.get("data")
        result = SubmitResult.from_wire(data if isinstance(data, dict) else {}, _message(payload, "submitted"))
        logger.debug("Submitted url=%s task_id=%s existing=%s", url, result.task_id, result.is_existing)
        return result
