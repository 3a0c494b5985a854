# src/pipeline_sync/tasks/registry.py

"""
Task registry.

Holds the client's read replica of every task instance on the server and keeps it fresh:
- refresh() fetches the full list (page by page) and replaces the local collection atomically;
  on failure the previous collection stays readable and the error is raised + recorded,
- start()/stop() run refresh() on a fixed cadence through PollLoop,
- fetch_detail()/fetch_files() are on-demand and never merged back into the list,
- retry_step()/trigger_stage() are fire-and-forget commands; callers re-fetch detail to see
  their effect. Nothing here writes to the local collection optimistically.
- submit() hands a new video URL to the server and, while the cadence runs, re-fetches the
  list so the new task shows up without waiting for the next tick.

Consumers read `snapshot` (an immutable tuple) or subscribe to `updated`.
"""

from __future__ import annotations

import logging

from ..core.events import Signal
from ..core.models import SubmitResult, TaskDetail, TaskFile, TaskInstance, UploadStage
from ..core.ports import TaskApi
from ..errors import PipelineSyncError
from ..sync.poll_loop import CONTINUE, PollHandle, PollLoop, PollOutcome

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_INTERVAL_SECONDS = 30.0
# The server clamps `limit` to 100.
DEFAULT_PAGE_LIMIT = 100
# Upper bound on pages per refresh, in case the server keeps reporting a larger total.
MAX_PAGES = 1000


class TaskRegistry:
    def __init__(
            self,
            api: TaskApi,
            poll_loop: PollLoop,
            *,
            refresh_interval: float = DEFAULT_REFRESH_INTERVAL_SECONDS,
            page_limit: int = DEFAULT_PAGE_LIMIT,
    ) -> None:
        self._api = api
        self._poll_loop = poll_loop
        self._refresh_interval = max(0.5, float(refresh_interval))
        self._page_limit = max(1, int(page_limit))

        self._tasks: tuple[TaskInstance, ...] = ()
        self._last_error: Exception | None = None
        self._last_refreshed_at: float | None = None
        self._handle: PollHandle | None = None
        self._refresh_count = 0
        # Bumped by clear(); a refresh started under an older generation is discarded.
        self._generation = 0

        self.updated = Signal("tasks.updated")
        self.failed = Signal("tasks.failed")

    # ---- read side ----

    @property
    def snapshot(self) -> tuple[TaskInstance, ...]:
        return self._tasks

    @property
    def last_error(self) -> Exception | None:
        return self._last_error

    @property
    def last_refreshed_at(self) -> float | None:
        return self._last_refreshed_at

    @property
    def refresh_count(self) -> int:
        return self._refresh_count

    @property
    def active(self) -> bool:
        return self._handle is not None and not self._handle.done

    def get(self, task_id: str) -> TaskInstance | None:
        for task in self._tasks:
            if task.task_id == task_id:
                return task
        return None

    # ---- refresh ----

    async def refresh(self) -> tuple[TaskInstance, ...]:
        """Fetch every page, then swap the collection in one assignment."""
        self._refresh_count += 1
        generation = self._generation
        try:
            collected = await self._fetch_all()
        except PipelineSyncError as exc:
            if generation != self._generation:
                raise
            self._last_error = exc
            logger.warning("Task refresh failed; keeping %d cached tasks: %s", len(self._tasks), exc)
            await self.failed.emit(exc)
            raise

        if generation != self._generation:
            logger.debug("Discarding task refresh started before the collection was cleared")
            return self._tasks

        self._tasks = collected
        self._last_error = None
        self._last_refreshed_at = self._poll_loop.clock.now()
        logger.debug("Task refresh ok: %d tasks", len(collected))
        await self.updated.emit(collected)
        return collected

    async def _fetch_all(self) -> tuple[TaskInstance, ...]:
        collected: list[TaskInstance] = []
        seen: set[str] = set()
        page = 1
        while page <= MAX_PAGES:
            result = await self._api.list_tasks(page=page, limit=self._page_limit)
            for task in result.tasks:
                if task.task_id in seen:
                    continue
                seen.add(task.task_id)
                collected.append(task)

            if len(result.tasks) < self._page_limit or len(collected) >= result.total:
                break
            page += 1
        return tuple(collected)

    # ---- cadence ----

    def start(self) -> None:
        """Refresh now and then every refresh_interval seconds until stop()."""
        if self.active:
            return
        self._handle = self._poll_loop.start(
            self._refresh_tick,
            self._refresh_interval,
            None,
            run_immediately=True,
            name="task-refresh",
        )
        logger.info("Task refresh cadence started (every %.0fs)", self._refresh_interval)

    def stop(self) -> None:
        if self._handle is None:
            return
        self._handle.cancel()
        self._handle = None
        logger.info("Task refresh cadence stopped")

    def clear(self) -> None:
        self._generation += 1
        self._tasks = ()
        self._last_error = None
        self._last_refreshed_at = None

    async def _refresh_tick(self) -> PollOutcome:
        try:
            await self.refresh()
        except PipelineSyncError:
            # Already recorded in last_error; the next tick tries again.
            pass
        return CONTINUE

    # ---- on-demand calls ----

    async def fetch_detail(self, task_id: str) -> TaskDetail:
        return await self._api.get_task_detail(task_id)

    async def fetch_files(self, task_id: str) -> tuple[TaskFile, ...]:
        return await self._api.list_task_files(task_id)

    async def retry_step(self, task_id: str, step_name: str) -> str:
        message = await self._api.retry_step(task_id, step_name)
        logger.info("Retry requested task_id=%s step=%s: %s", task_id, step_name, message)
        return message

    async def trigger_stage(self, task_id: str, stage: UploadStage) -> str:
        message = await self._api.trigger_stage(task_id, UploadStage(stage))
        logger.info("Manual %s upload requested task_id=%s: %s", UploadStage(stage).value, task_id, message)
        return message

    async def submit(self, url: str, title: str = "") -> SubmitResult:
        result = await self._api.submit_task(url, title=title)
        logger.info("Submitted video url=%s task_id=%s existing=%s", url, result.task_id, result.is_existing)
        if self.active:
            try:
                await self.refresh()
            except PipelineSyncError as exc:
                logger.warning("Refresh after submit failed (the next tick retries): %s", exc)
        return result
