# src/pipeline_sync/tasks/board.py

"""
Task board: the consumer-side view over a registry snapshot.

- categorize() buckets tasks into the six pipeline categories (ALL is the superset),
- TaskBoard keeps the active category + a 1-indexed page over the filtered subset.

Changing the category resets to page 1. Requests for a page outside 1..total_pages are
ignored. The board never mutates the snapshot it is given.
"""

from __future__ import annotations

import math
from collections.abc import Iterable

from ..core.models import TaskCategory, TaskInstance
from .classifier import classify

DEFAULT_PAGE_SIZE = 10

BUCKETS: tuple[TaskCategory, ...] = (
    TaskCategory.PENDING,
    TaskCategory.PREPARING,
    TaskCategory.READY,
    TaskCategory.UPLOADING,
    TaskCategory.COMPLETED,
    TaskCategory.FAILED,
)


def categorize(tasks: Iterable[TaskInstance]) -> dict[TaskCategory, tuple[TaskInstance, ...]]:
    buckets: dict[TaskCategory, list[TaskInstance]] = {c: [] for c in BUCKETS}
    for task in tasks:
        category = classify(task.status_code).category
        if category in buckets:
            buckets[category].append(task)
    return {c: tuple(items) for c, items in buckets.items()}


def count_by_category(tasks: Iterable[TaskInstance]) -> dict[TaskCategory, int]:
    items = tuple(tasks)
    counts = {TaskCategory.ALL: len(items)}
    counts.update({c: len(group) for c, group in categorize(items).items()})
    return counts


def filter_tasks(tasks: Iterable[TaskInstance], category: TaskCategory) -> tuple[TaskInstance, ...]:
    if category == TaskCategory.ALL:
        return tuple(tasks)
    return categorize(tasks)[category]


class TaskBoard:
    def __init__(self, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        self.page_size = page_size
        self._tasks: tuple[TaskInstance, ...] = ()
        self._category = TaskCategory.ALL
        self._page = 1

    @property
    def category(self) -> TaskCategory:
        return self._category

    @property
    def page(self) -> int:
        return self._page

    @property
    def tasks(self) -> tuple[TaskInstance, ...]:
        return self._tasks

    @property
    def filtered(self) -> tuple[TaskInstance, ...]:
        return filter_tasks(self._tasks, self._category)

    @property
    def total_pages(self) -> int:
        return math.ceil(len(self.filtered) / self.page_size)

    @property
    def counts(self) -> dict[TaskCategory, int]:
        return count_by_category(self._tasks)

    @property
    def page_items(self) -> tuple[TaskInstance, ...]:
        start = (self._page - 1) * self.page_size
        return self.filtered[start : start + self.page_size]

    def update(self, snapshot: Iterable[TaskInstance]) -> None:
        self._tasks = tuple(snapshot)
        # A refresh may shrink the filtered set under the current page.
        self._page = max(1, min(self._page, self.total_pages))

    def set_category(self, category: TaskCategory | str) -> None:
        self._category = TaskCategory(category)
        self._page = 1

    def go_to_page(self, page: int) -> bool:
        if page < 1 or page > self.total_pages:
            return False
        self._page = page
        return True

    def next_page(self) -> bool:
        return self.go_to_page(self._page + 1)

    def previous_page(self) -> bool:
        return self.go_to_page(self._page - 1)
