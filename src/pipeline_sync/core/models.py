# src/pipeline_sync/core/models.py

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any

# Server timestamps come as "2006-01-02 15:04:05" (list/detail) or ISO-8601.
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


def parse_timestamp(raw: Any) -> datetime | None:
    if not raw or not isinstance(raw, str):
        return None
    s = raw.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    s = _FRACTION_RE.sub(r"\1", s)
    try:
        return datetime.fromisoformat(s)
    except ValueError:
        return None


def _opt_str(raw: Any) -> str | None:
    if raw is None:
        return None
    s = str(raw).strip()
    return s or None


def _int(raw: Any, default: int = 0) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


class AuthState(StrEnum):
    IDLE = "idle"
    REQUESTING = "requesting"
    AWAITING_SCAN = "awaiting_scan"
    SUCCEEDED = "succeeded"
    EXPIRED = "expired"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (AuthState.SUCCEEDED, AuthState.EXPIRED, AuthState.FAILED)


class StepStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"

    @classmethod
    def from_wire(cls, raw: str | None) -> StepStatus:
        if not raw:
            return cls.PENDING
        try:
            return cls(raw)
        except ValueError:
            return cls.PENDING


class PipelineStage(StrEnum):
    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    FAILED = "failed"
    UNKNOWN = "unknown"


class TaskCategory(StrEnum):
    """Filter buckets; ALL is the unfiltered superset."""

    ALL = "all"
    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    FAILED = "failed"


class UploadStage(StrEnum):
    VIDEO = "video"
    SUBTITLE = "subtitle"


@dataclass(slots=True, frozen=True)
class Identity:
    subject_id: str
    display_name: str
    avatar_url: str | None = None


@dataclass(slots=True, frozen=True)
class AuthChallenge:
    challenge_id: str
    presentation_payload: str
    issued_at: float


# ---- AuthResult sum type ----


@dataclass(slots=True, frozen=True)
class Pending:
    pass


@dataclass(slots=True, frozen=True)
class Succeeded:
    identity: Identity


@dataclass(slots=True, frozen=True)
class Expired:
    pass


@dataclass(slots=True, frozen=True)
class Failed:
    reason: str


AuthResult = Pending | Succeeded | Expired | Failed


# ---- Tasks ----


@dataclass(slots=True, frozen=True)
class TaskInstance:
    task_id: str
    external_ref: str
    title: str
    status_code: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
    external_result_ref: str | None = None

    url: str = ""
    generated_title: str | None = None
    generated_tags: tuple[str, ...] = ()

    @property
    def display_title(self) -> str:
        return self.generated_title or self.title or "(untitled)"

    @classmethod
    def from_wire(cls, raw: dict[str, Any]) -> TaskInstance:
        tags_raw = raw.get("generated_tags") or ""
        tags = tuple(t.strip() for t in str(tags_raw).split(",") if t.strip())
        return cls(
            task_id=str(raw.get("id", "")),
            external_ref=str(raw.get("video_id") or ""),
            title=str(raw.get("title") or ""),
            status_code=str(raw.get("status") or ""),
            created_at=parse_timestamp(raw.get("created_at")),
            updated_at=parse_timestamp(raw.get("updated_at")),
            external_result_ref=_opt_str(raw.get("bili_bvid")),
            url=str(raw.get("url") or ""),
            generated_title=_opt_str(raw.get("generated_title")),
            generated_tags=tags,
        )


@dataclass(slots=True, frozen=True)
class TaskStep:
    step_name: str
    order: int
    status: StepStatus
    started_at: datetime | None = None
    ended_at: datetime | None = None
    error_message: str | None = None
    retryable: bool = False
    duration_ms: int | None = None

    @classmethod
    def from_wire(cls, raw: dict[str, Any]) -> TaskStep:
        duration = raw.get("duration")
        return cls(
            step_name=str(raw.get("step_name") or ""),
            order=_int(raw.get("step_order")),
            status=StepStatus.from_wire(raw.get("status")),
            started_at=parse_timestamp(raw.get("start_time")),
            ended_at=parse_timestamp(raw.get("end_time")),
            error_message=_opt_str(raw.get("error_msg")),
            retryable=bool(raw.get("can_retry", False)),
            duration_ms=_int(duration) if duration else None,
        )


@dataclass(slots=True, frozen=True)
class TaskProgress:
    total_steps: int
    completed_steps: int
    failed_steps: int
    percent: int
    current_step: str | None = None

    @property
    def is_running(self) -> bool:
        return self.current_step is not None

    @classmethod
    def from_wire(cls, raw: dict[str, Any]) -> TaskProgress:
        # Server sends progress_percent; older builds used progress_percentage.
        percent = raw.get("progress_percent", raw.get("progress_percentage", 0))
        return cls(
            total_steps=_int(raw.get("total_steps")),
            completed_steps=_int(raw.get("completed_steps")),
            failed_steps=_int(raw.get("failed_steps")),
            percent=_int(percent),
            current_step=_opt_str(raw.get("current_step")),
        )


@dataclass(slots=True, frozen=True)
class TaskFile:
    name: str
    size: int
    kind: str
    modified_at: datetime | None = None

    @classmethod
    def from_wire(cls, raw: dict[str, Any]) -> TaskFile:
        return cls(
            name=str(raw.get("name") or ""),
            size=_int(raw.get("size")),
            kind=str(raw.get("type") or "other"),
            modified_at=parse_timestamp(raw.get("modified") or raw.get("created_at")),
        )


@dataclass(slots=True, frozen=True)
class TaskDetail:
    task: TaskInstance
    steps: tuple[TaskStep, ...]
    progress: TaskProgress | None = None
    files: tuple[TaskFile, ...] = ()
    cover_image: str | None = None

    @classmethod
    def from_wire(cls, raw: dict[str, Any]) -> TaskDetail:
        steps = sorted(
            (TaskStep.from_wire(s) for s in (raw.get("task_steps") or []) if isinstance(s, dict)),
            key=lambda s: s.order,
        )
        progress_raw = raw.get("progress")
        files_raw = raw.get("files") or []
        return cls(
            task=TaskInstance.from_wire(raw),
            steps=tuple(steps),
            progress=TaskProgress.from_wire(progress_raw) if isinstance(progress_raw, dict) else None,
            files=tuple(TaskFile.from_wire(f) for f in files_raw if isinstance(f, dict)),
            cover_image=_opt_str(raw.get("cover_image")),
        )


@dataclass(slots=True, frozen=True)
class TaskPage:
    tasks: tuple[TaskInstance, ...]
    total: int


@dataclass(slots=True, frozen=True)
class SubmitResult:
    """Answer to a new video submission. `is_existing` means the server already had the URL."""

    task_id: str
    title: str
    is_existing: bool = False
    message: str = ""

    @classmethod
    def from_wire(cls, raw: dict[str, Any], message: str = "") -> SubmitResult:
        return cls(
            task_id=str(raw.get("id") or ""),
            title=str(raw.get("title") or ""),
            is_existing=bool(raw.get("isExisting")),
            message=message,
        )


class ChallengePollStatus(StrEnum):
    PENDING = "pending"
    RESOLVED = "resolved"
    EXPIRED = "expired"


@dataclass(slots=True, frozen=True)
class ChallengePoll:
    """One poll-endpoint answer, already mapped from the wire shape."""

    status: ChallengePollStatus
    identity: Identity | None = None
