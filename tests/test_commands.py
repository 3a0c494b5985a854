# tests/test_commands.py

from __future__ import annotations

import pytest

from pipeline_sync.cli.commands import CommandRegistry
from pipeline_sync.cli.commands import registry as commands
from pipeline_sync.core.models import StepStatus, TaskDetail, TaskStep, UploadStage
from pipeline_sync.core.state import AppState
from pipeline_sync.errors import ChallengeExpired, NotLoggedIn

from .fakes import IDENTITY, FakeClock, FakePipelineApi, make_task


async def _logged_in(state: AppState, api: FakePipelineApi, clock: FakeClock) -> None:
    api.status_identity = IDENTITY
    await state.orchestrator.bootstrap()
    await clock.settle()


@pytest.mark.asyncio
async def test_command_registry_routes_with_args(state: AppState) -> None:
    reg = CommandRegistry()
    seen = []

    async def handler(state, args, emit):
        seen.append(args)
        if emit is not None:
            emit("note")
        return "ok"

    reg.register("a", handler, "a", aliases=["alias"])
    notes = []

    assert await reg.handle(state, "/a x y") == "ok"
    assert await reg.handle(state, "/ALIAS z", emit=notes.append) == "ok"
    assert seen == [["x", "y"], ["z"]]
    assert notes == ["note"]
    assert "/a - a" in reg.build_help()


@pytest.mark.asyncio
async def test_command_registry_unknown_and_non_command(state: AppState) -> None:
    reg = CommandRegistry()
    assert await reg.handle(state, "hello") is None
    assert "Unknown command" in (await reg.handle(state, "/nope") or "")
    assert "Empty command" in (await reg.handle(state, "/") or "")


@pytest.mark.asyncio
async def test_help_lists_every_command(state: AppState) -> None:
    text = await commands.handle(state, "/help") or ""
    for name in ("login", "regen", "tasks", "detail", "files", "retry", "upload", "submit", "logout"):
        assert f"/{name}" in text


@pytest.mark.asyncio
async def test_task_commands_require_login(state: AppState) -> None:
    with pytest.raises(NotLoggedIn):
        await commands.handle(state, "/tasks")


@pytest.mark.asyncio
async def test_login_shows_qr_link(state: AppState, clock: FakeClock) -> None:
    text = await commands.handle(state, "/login") or ""
    assert "http://server/api/v1/auth/qrcode/image/code-1" in text

    text = await commands.handle(state, "/regen") or ""
    assert "code-2" in text
    await state.orchestrator.close()


@pytest.mark.asyncio
async def test_tasks_filter_and_paging(state: AppState, api: FakePipelineApi, clock: FakeClock) -> None:
    api.tasks = [make_task(i, "400") for i in range(1, 13)] + [make_task(50, "299", "Broken upload")]
    await _logged_in(state, api, clock)

    text = await commands.handle(state, "/tasks") or ""
    assert "Page 1/2" in text

    text = await commands.handle(state, "/next") or ""
    assert "Page 2/2" in text
    assert await commands.handle(state, "/next") == "Already on the last page."

    text = await commands.handle(state, "/tasks failed") or ""
    assert "Broken upload" in text
    assert "Upload failed" in text

    text = await commands.handle(state, "/tasks completed 5") or ""
    assert "out of range" in text

    text = await commands.handle(state, "/tasks nonsense") or ""
    assert "Unknown category" in text
    await state.orchestrator.close()


@pytest.mark.asyncio
async def test_upload_checks_status_before_calling_server(
    state: AppState, api: FakePipelineApi, clock: FakeClock
) -> None:
    api.tasks = [make_task(1, "001"), make_task(2, "300")]
    await _logged_in(state, api, clock)

    refused = await commands.handle(state, "/upload 1 video") or ""
    assert "Cannot start" in refused
    assert api.trigger_calls == []

    accepted = await commands.handle(state, "/upload 2 subtitle") or ""
    assert "requested" in accepted
    assert api.trigger_calls == [("2", UploadStage.SUBTITLE)]
    await state.orchestrator.close()


@pytest.mark.asyncio
async def test_retry_refetches_detail(state: AppState, api: FakePipelineApi, clock: FakeClock) -> None:
    api.tasks = [make_task(3, "999")]
    api.details["3"] = TaskDetail(
        task=make_task(3, "002"),
        steps=(TaskStep(step_name="generate_subtitles", order=2, status=StepStatus.RUNNING),),
    )
    await _logged_in(state, api, clock)
    notes = []

    text = await commands.handle(state, "/retry 3 generate_subtitles", emit=notes.append) or ""

    assert api.retry_calls == [("3", "generate_subtitles")]
    assert "Generate subtitles" in text
    assert "Preparing" in text
    assert notes and "accepted" in notes[0]
    await state.orchestrator.close()


@pytest.mark.asyncio
async def test_whoami_and_logout(state: AppState, api: FakePipelineApi, clock: FakeClock) -> None:
    assert "Not logged in" in (await commands.handle(state, "/whoami") or "")

    await _logged_in(state, api, clock)
    assert "tester" in (await commands.handle(state, "/whoami") or "")

    assert "Logged out" in (await commands.handle(state, "/logout") or "")
    assert not state.orchestrator.logged_in


@pytest.mark.asyncio
async def test_qr_after_expiry_points_to_regen(state: AppState, api: FakePipelineApi, clock: FakeClock) -> None:
    assert "No QR code" in (await commands.handle(state, "/qr") or "")

    await commands.handle(state, "/login")
    assert "code-1" in (await commands.handle(state, "/qr") or "")

    await clock.advance(300)
    with pytest.raises(ChallengeExpired):
        await commands.handle(state, "/qr")
    await state.orchestrator.close()


@pytest.mark.asyncio
async def test_submit_adds_task_to_board(state: AppState, api: FakePipelineApi, clock: FakeClock) -> None:
    with pytest.raises(NotLoggedIn):
        await commands.handle(state, "/submit https://www.youtube.com/watch?v=abc")

    await _logged_in(state, api, clock)
    assert "Usage" in (await commands.handle(state, "/submit") or "")

    text = await commands.handle(state, "/submit https://www.youtube.com/watch?v=abc Keynote 2024") or ""

    assert "Submitted task 1 (Keynote 2024)" in text
    assert api.submit_calls == [("https://www.youtube.com/watch?v=abc", "Keynote 2024")]
    assert [t.title for t in state.board.tasks] == ["Keynote 2024"]
    await state.orchestrator.close()
