# src/pipeline_sync/tasks/classifier.py

"""
Status classifier.

Pure mapping from a server status code to its pipeline stage, filter category and
human-readable text. The table below is the single source of truth; codes are looked up
verbatim (they are not ordered by pipeline progress, so no range or ordinal logic).

classify() is total: any input that is not one of the ten known codes maps to the
"unknown" stage and the "all" category.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Final

from ..core.models import PipelineStage, TaskCategory, UploadStage


@dataclass(slots=True, frozen=True)
class StatusInfo:
    code: str
    stage: PipelineStage
    category: TaskCategory
    label: str
    description: str
    animated: bool = False
    known: bool = True


def _entry(code: str, stage: PipelineStage, label: str, description: str, animated: bool = False) -> StatusInfo:
    return StatusInfo(
        code=code,
        stage=stage,
        category=TaskCategory(stage.value),
        label=label,
        description=description,
        animated=animated,
    )


STATUS_TABLE: Final[dict[str, StatusInfo]] = {
    info.code: info
    for info in (
        _entry("001", PipelineStage.PENDING, "Pending", "Submitted, waiting to be processed"),
        _entry(
            "002",
            PipelineStage.PREPARING,
            "Preparing",
            "Running the preparation chain (download -> subtitles -> translate -> metadata)",
            animated=True,
        ),
        _entry("200", PipelineStage.READY, "Ready", "Preparation complete, queued for upload"),
        _entry("201", PipelineStage.UPLOADING, "Uploading video", "Video upload in progress", animated=True),
        _entry("299", PipelineStage.FAILED, "Upload failed", "Video upload failed, needs a retry"),
        _entry(
            "300",
            PipelineStage.UPLOADING,
            "Video uploaded",
            "Video uploaded, waiting for the scheduled subtitle upload",
        ),
        _entry("301", PipelineStage.UPLOADING, "Uploading subtitles", "Subtitle upload in progress", animated=True),
        _entry("399", PipelineStage.FAILED, "Subtitle upload failed", "Subtitle upload failed, needs a retry"),
        _entry("400", PipelineStage.COMPLETED, "Completed", "Pipeline fully complete"),
        _entry("999", PipelineStage.FAILED, "Failed", "Preparation stage failed, check the task steps"),
    )
}

# Manual upload triggers the server accepts per status.
_STAGE_TRIGGERS: Final[dict[str, frozenset[UploadStage]]] = {
    "200": frozenset({UploadStage.VIDEO}),
    "299": frozenset({UploadStage.VIDEO}),
    "300": frozenset({UploadStage.SUBTITLE}),
    "399": frozenset({UploadStage.SUBTITLE}),
}

STEP_LABELS: Final[dict[str, str]] = {
    "download_video": "Download video",
    "generate_subtitles": "Generate subtitles",
    "translate_subtitles": "Translate subtitles",
    "generate_metadata": "Generate metadata",
    "upload_to_bilibili": "Upload to Bilibili",
    "upload_subtitles": "Upload subtitles",
}


def _normalize(code: Any) -> str:
    if code is None:
        return ""
    return str(code).strip()


def classify(code: Any) -> StatusInfo:
    key = _normalize(code)
    info = STATUS_TABLE.get(key)
    if info is not None:
        return info
    return StatusInfo(
        code=key,
        stage=PipelineStage.UNKNOWN,
        category=TaskCategory.ALL,
        label="Unknown",
        description="Unknown status",
        known=False,
    )


def category_codes(category: TaskCategory) -> frozenset[str]:
    if category == TaskCategory.ALL:
        return frozenset(STATUS_TABLE)
    return frozenset(code for code, info in STATUS_TABLE.items() if info.category == category)


def stage_triggers(code: Any) -> frozenset[UploadStage]:
    return _STAGE_TRIGGERS.get(_normalize(code), frozenset())


def step_label(step_name: str) -> str:
    return STEP_LABELS.get(step_name, step_name)
