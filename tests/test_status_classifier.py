# tests/test_status_classifier.py

from __future__ import annotations

import pytest

from pipeline_sync.core.models import PipelineStage, TaskCategory, UploadStage
from pipeline_sync.tasks.classifier import (
    STATUS_TABLE,
    category_codes,
    classify,
    stage_triggers,
    step_label,
)


@pytest.mark.parametrize(
    ("code", "stage", "animated"),
    [
        ("001", PipelineStage.PENDING, False),
        ("002", PipelineStage.PREPARING, True),
        ("200", PipelineStage.READY, False),
        ("201", PipelineStage.UPLOADING, True),
        ("299", PipelineStage.FAILED, False),
        ("300", PipelineStage.UPLOADING, False),
        ("301", PipelineStage.UPLOADING, True),
        ("399", PipelineStage.FAILED, False),
        ("400", PipelineStage.COMPLETED, False),
        ("999", PipelineStage.FAILED, False),
    ],
)
def test_known_codes(code: str, stage: PipelineStage, animated: bool) -> None:
    info = classify(code)
    assert info.known
    assert info.stage == stage
    assert info.category == TaskCategory(stage.value)
    assert info.animated is animated
    assert info.label


@pytest.mark.parametrize("code", ["", "  ", "000", "100", "500", "abc", None])
def test_unknown_codes_are_total(code) -> None:
    info = classify(code)
    assert not info.known
    assert info.stage == PipelineStage.UNKNOWN
    assert info.category == TaskCategory.ALL
    assert info.label == "Unknown"


def test_numeric_input_is_normalized() -> None:
    assert classify(200).stage == PipelineStage.READY
    assert classify(" 400 ").stage == PipelineStage.COMPLETED


def test_table_has_exactly_ten_codes() -> None:
    assert len(STATUS_TABLE) == 10


def test_category_codes() -> None:
    assert category_codes(TaskCategory.FAILED) == {"299", "399", "999"}
    assert category_codes(TaskCategory.UPLOADING) == {"201", "300", "301"}
    assert category_codes(TaskCategory.ALL) == set(STATUS_TABLE)


def test_stage_triggers() -> None:
    assert stage_triggers("200") == {UploadStage.VIDEO}
    assert stage_triggers("299") == {UploadStage.VIDEO}
    assert stage_triggers("300") == {UploadStage.SUBTITLE}
    assert stage_triggers("399") == {UploadStage.SUBTITLE}
    assert stage_triggers("201") == frozenset()
    assert stage_triggers("bogus") == frozenset()


def test_step_labels_fall_back_to_raw_name() -> None:
    assert step_label("download_video") == "Download video"
    assert step_label("custom_step") == "custom_step"
