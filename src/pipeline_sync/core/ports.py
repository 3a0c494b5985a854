# src/pipeline_sync/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the sync engine.

The engine depends on Protocols instead of concrete implementations.
This keeps the HTTP client and the time source swappable and makes testing easier:
tests drive the engine with a fake API and a fake clock.
"""

from typing import Protocol

from .models import (
    AuthChallenge,
    ChallengePoll,
    Identity,
    SubmitResult,
    TaskDetail,
    TaskFile,
    TaskPage,
    UploadStage,
)


class Clock(Protocol):
    """Time source + sleep primitive. Seconds, monotonic."""

    def now(self) -> float: ...

    async def sleep(self, seconds: float) -> None: ...


class AuthApi(Protocol):
    async def issue_challenge(self) -> AuthChallenge: ...

    async def poll_challenge(self, challenge_id: str) -> ChallengePoll: ...

    async def auth_status(self) -> Identity | None: ...

    async def logout(self) -> None: ...


class TaskApi(Protocol):
    async def list_tasks(self, *, page: int, limit: int) -> TaskPage: ...

    async def get_task_detail(self, task_id: str) -> TaskDetail: ...

    async def list_task_files(self, task_id: str) -> tuple[TaskFile, ...]: ...

    async def retry_step(self, task_id: str, step_name: str) -> str: ...

    async def trigger_stage(self, task_id: str, stage: UploadStage) -> str: ...

    async def submit_task(self, url: str, *, title: str = "") -> SubmitResult: ...


class PipelineApi(AuthApi, TaskApi, Protocol):
    """Everything the server exposes to this client."""

    async def aclose(self) -> None: ...
