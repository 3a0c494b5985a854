# src/pipeline_sync/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Timing knobs are overridable so the sync cadence can be tuned without code changes.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "PSYNC"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    data_dir: Path

    # ---- Server ----
    api_base_url: str
    request_timeout_seconds: float

    # ---- QR login handshake ----
    auth_poll_interval_seconds: float
    auth_max_duration_seconds: float

    # ---- Task sync ----
    refresh_interval_seconds: float
    list_page_limit: int
    board_page_size: int

    # ---- Console ----
    console_enabled: bool

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "pipeline-sync").strip() or "pipeline-sync"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/pipeline_sync"))

        api_base_url = _env(_k("API_BASE_URL"), "http://localhost:8096/api/v1").strip().rstrip("/")
        request_timeout_seconds = max(1.0, _env_float(_k("REQUEST_TIMEOUT_SECONDS"), 30.0))

        auth_poll_interval_seconds = max(0.5, _env_float(_k("AUTH_POLL_INTERVAL_SECONDS"), 3.0))
        auth_max_duration_seconds = max(
            auth_poll_interval_seconds,
            _env_float(_k("AUTH_MAX_DURATION_SECONDS"), 300.0),
        )

        refresh_interval_seconds = max(1.0, _env_float(_k("REFRESH_INTERVAL_SECONDS"), 30.0))
        # The server clamps larger limits back to its default of 10.
        list_page_limit = min(100, max(1, _env_int(_k("LIST_PAGE_LIMIT"), 100)))
        board_page_size = max(1, _env_int(_k("BOARD_PAGE_SIZE"), 10))

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            api_base_url=api_base_url,
            request_timeout_seconds=request_timeout_seconds,
            auth_poll_interval_seconds=auth_poll_interval_seconds,
            auth_max_duration_seconds=auth_max_duration_seconds,
            refresh_interval_seconds=refresh_interval_seconds,
            list_page_limit=list_page_limit,
            board_page_size=board_page_size,
            console_enabled=console_enabled,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
