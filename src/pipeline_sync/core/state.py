# src/pipeline_sync/core/state.py

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from ..sync.orchestrator import SyncOrchestrator
from ..tasks.board import TaskBoard


@dataclass
class AppState:
    # Settings live on the state so commands and connectors never read global config.
    settings: Any

    orchestrator: SyncOrchestrator
    board: TaskBoard

    # Held while a console command runs; commands execute one at a time.
    # Background notifications (signals) never take it.
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
