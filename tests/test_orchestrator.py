# tests/test_orchestrator.py

from __future__ import annotations

import asyncio

import pytest

from pipeline_sync.core.models import AuthState, Identity
from pipeline_sync.core.state import AppState
from pipeline_sync.errors import TransportError

from .fakes import IDENTITY, FakeClock, FakePipelineApi, make_task, pending, resolved


@pytest.mark.asyncio
async def test_bootstrap_adopts_existing_session(state: AppState, api: FakePipelineApi, clock: FakeClock) -> None:
    orch = state.orchestrator
    api.status_identity = IDENTITY
    api.tasks = [make_task(1), make_task(2, "400")]

    assert await orch.bootstrap() == IDENTITY
    await clock.settle()

    assert orch.logged_in
    assert orch.registry.active
    assert len(api.list_calls) == 1
    assert len(state.board.tasks) == 2

    await orch.close()
    assert api.closed


@pytest.mark.asyncio
async def test_bootstrap_without_session(state: AppState, api: FakePipelineApi, clock: FakeClock) -> None:
    orch = state.orchestrator

    assert await orch.bootstrap() is None
    await clock.advance(60)

    assert not orch.logged_in
    assert api.list_calls == []


@pytest.mark.asyncio
async def test_bootstrap_errors_propagate(state: AppState, api: FakePipelineApi) -> None:
    api.status_error = TransportError("connection refused")
    with pytest.raises(TransportError):
        await state.orchestrator.bootstrap()


@pytest.mark.asyncio
async def test_qr_login_starts_task_sync(state: AppState, api: FakePipelineApi, clock: FakeClock) -> None:
    orch = state.orchestrator
    api.tasks = [make_task(1, "002")]
    api.poll_script = [pending(), resolved()]
    # The server reports the canonical profile once the login is stored.
    canonical = Identity(subject_id="42", display_name="Tester (server)", avatar_url="http://img/face.jpg")
    api.status_identity = canonical

    assert await orch.login() == AuthState.AWAITING_SCAN
    await clock.advance(6)

    assert orch.session.state == AuthState.SUCCEEDED
    assert orch.identity == canonical
    assert orch.registry.active
    assert len(api.list_calls) == 1
    assert [t.task_id for t in state.board.tasks] == ["1"]

    await clock.advance(30)
    assert len(api.list_calls) == 2
    await orch.close()


@pytest.mark.asyncio
async def test_poll_identity_used_when_status_check_fails(
    state: AppState, api: FakePipelineApi, clock: FakeClock
) -> None:
    orch = state.orchestrator
    api.poll_script = [resolved()]
    api.status_error = TransportError("flaky")

    await orch.login()
    await clock.advance(3)

    assert orch.identity == IDENTITY
    assert orch.registry.active
    await orch.close()


@pytest.mark.asyncio
async def test_logout_stops_refresh_cadence(state: AppState, api: FakePipelineApi, clock: FakeClock) -> None:
    orch = state.orchestrator
    api.status_identity = IDENTITY
    api.tasks = [make_task(1), make_task(2)]

    await orch.bootstrap()
    await clock.advance(30)
    assert len(api.list_calls) == 2

    await orch.logout()
    calls_at_logout = len(api.list_calls)

    assert not orch.logged_in
    assert orch.registry.snapshot == ()
    assert state.board.tasks == ()
    assert orch.session.state == AuthState.IDLE
    assert api.logout_calls == 1

    await clock.advance(60)
    assert len(api.list_calls) == calls_at_logout


@pytest.mark.asyncio
async def test_logout_clears_local_state_even_if_server_fails(
    state: AppState, api: FakePipelineApi, clock: FakeClock
) -> None:
    orch = state.orchestrator
    api.status_identity = IDENTITY
    api.logout_error = TransportError("down")

    await orch.bootstrap()
    await clock.settle()
    await orch.logout()

    assert not orch.logged_in
    assert not orch.registry.active


@pytest.mark.asyncio
async def test_login_after_logout_starts_fresh(state: AppState, api: FakePipelineApi, clock: FakeClock) -> None:
    orch = state.orchestrator
    api.status_identity = IDENTITY
    api.tasks = [make_task(1)]
    await orch.bootstrap()
    await clock.settle()
    await orch.logout()

    api.poll_script = [resolved()]
    api.status_identity = IDENTITY
    await orch.login()
    await clock.advance(3)

    assert orch.logged_in
    assert orch.registry.active
    assert len(orch.registry.snapshot) == 1
    await orch.close()


@pytest.mark.asyncio
async def test_identity_changed_is_emitted(state: AppState, api: FakePipelineApi, clock: FakeClock) -> None:
    orch = state.orchestrator
    seen = []
    orch.identity_changed.connect(seen.append)
    api.status_identity = IDENTITY

    await orch.bootstrap()
    await orch.refresh_auth_state()
    await orch.logout()

    assert seen == [IDENTITY, None]


@pytest.mark.asyncio
async def test_logout_during_status_check_after_login(
    state: AppState, api: FakePipelineApi, clock: FakeClock
) -> None:
    orch = state.orchestrator
    api.tasks = [make_task(1)]
    api.poll_script = [resolved()]
    api.status_gate = asyncio.Event()

    await orch.login()
    await clock.advance(3)
    assert orch.session.state == AuthState.SUCCEEDED
    assert api.status_calls == 1

    await orch.logout()
    # The server answered before it processed the logout.
    api.status_identity = IDENTITY
    api.status_gate.set()
    await clock.advance(60)

    assert not orch.registry.active
    assert not orch.logged_in
    assert api.list_calls == []
    assert orch.registry.snapshot == ()
    assert state.board.tasks == ()


@pytest.mark.asyncio
async def test_logout_during_bootstrap_status_check(
    state: AppState, api: FakePipelineApi, clock: FakeClock
) -> None:
    orch = state.orchestrator
    api.status_gate = asyncio.Event()

    pending_bootstrap = asyncio.create_task(orch.bootstrap())
    await clock.settle()
    await orch.logout()
    api.status_identity = IDENTITY
    api.status_gate.set()

    assert await pending_bootstrap is None
    await clock.advance(60)
    assert not orch.logged_in
    assert not orch.registry.active
    assert api.list_calls == []


@pytest.mark.asyncio
async def test_logout_during_manual_refresh_discards_result(
    state: AppState, api: FakePipelineApi, clock: FakeClock
) -> None:
    orch = state.orchestrator
    api.status_identity = IDENTITY
    api.tasks = [make_task(1), make_task(2)]
    await orch.bootstrap()
    await clock.settle()
    assert len(state.board.tasks) == 2

    updates = []
    orch.registry.updated.connect(updates.append)
    api.list_gate = asyncio.Event()
    api.tasks = [make_task(1), make_task(2), make_task(3)]

    in_flight = asyncio.create_task(orch.registry.refresh())
    await clock.settle()
    await orch.logout()
    api.list_gate.set()
    await in_flight

    assert orch.registry.snapshot == ()
    assert state.board.tasks == ()
    assert updates == []
    assert orch.registry.last_refreshed_at is None
