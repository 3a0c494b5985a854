# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file,
which stays gitignored). This file exists to make the repo self-documenting even without
opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "PSYNC_APP_NAME": "App display name (default: pipeline-sync).",
    "PSYNC_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    "PSYNC_DATA_DIR": "Local data directory for logs (default: .local/pipeline_sync).",
    # Server
    "PSYNC_API_BASE_URL": "Pipeline server API root (default: http://localhost:8096/api/v1).",
    "PSYNC_REQUEST_TIMEOUT_SECONDS": "Per-request HTTP timeout in seconds (default: 30, min 1).",
    # QR login
    "PSYNC_AUTH_POLL_INTERVAL_SECONDS": "Seconds between QR login polls (default: 3, min 0.5).",
    "PSYNC_AUTH_MAX_DURATION_SECONDS": "Give up on a QR code after this many seconds (default: 300).",
    # Task sync
    "PSYNC_REFRESH_INTERVAL_SECONDS": "Seconds between background task list refreshes (default: 30, min 1).",
    "PSYNC_LIST_PAGE_LIMIT": "Page size used when fetching the task list (1..100, default: 100).",
    "PSYNC_BOARD_PAGE_SIZE": "Tasks per page in the console view (default: 10).",
    # Connectors
    "PSYNC_CONSOLE_ENABLED": "Run the interactive console (true/false, default: true).",
}
