# src/pipeline_sync/core/events.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

Handler = Callable[..., Any]


class Signal:
    """
    Minimal observer list.

    Handlers may be plain callables or coroutine functions; awaitable results are awaited
    in registration order. A failing handler is logged; the remaining handlers still run.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._handlers: list[Handler] = []

    def connect(self, handler: Handler) -> Callable[[], None]:
        self._handlers.append(handler)

        def disconnect() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return disconnect

    def __len__(self) -> int:
        return len(self._handlers)

    async def emit(self, *args: Any) -> None:
        for handler in list(self._handlers):
            try:
                result = handler(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Signal handler failed signal=%s handler=%r", self.name, handler)
