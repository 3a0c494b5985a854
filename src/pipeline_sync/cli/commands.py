# src/pipeline_sync/cli/commands.py

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from ..core.models import (
    AuthState,
    Failed,
    TaskCategory,
    TaskDetail,
    TaskFile,
    TaskInstance,
    UploadStage,
)
from ..core.state import AppState
from ..errors import ChallengeExpired, NotLoggedIn
from ..tasks.classifier import classify, stage_triggers, step_label

CommandEmitter = Callable[[str], None]
CommandHandler = Callable[[AppState, list[str], CommandEmitter | None], Awaitable[str]]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /login, /tasks, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        return await handler(state, args, emit)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- rendering ----


def _fmt_ts(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value is not None else "-"


def _fmt_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


def format_task_line(task: TaskInstance) -> str:
    info = classify(task.status_code)
    marker = "*" if info.animated else " "
    return f"{marker} {task.task_id:>6}  [{info.code or '?':>3}] {info.label:<22} {task.display_title}"


def format_board(state: AppState) -> str:
    board = state.board
    counts = board.counts
    header = "  ".join(
        f"{c.value}={counts.get(c, 0)}" + ("*" if c == board.category else "") for c in TaskCategory
    )
    items = board.page_items
    if not items:
        return f"{header}\nNo tasks in '{board.category.value}'."

    lines = [header]
    lines.extend(format_task_line(t) for t in items)
    lines.append(f"Page {board.page}/{board.total_pages} (use /next, /prev or /tasks <category> <page>)")
    return "\n".join(lines)


def format_detail(detail: TaskDetail) -> str:
    task = detail.task
    info = classify(task.status_code)
    lines = [
        f"Task {task.task_id}: {task.display_title}",
        f"  Status: {info.label} ({info.code or '?'}) - {info.description}",
        f"  Source: {task.url or task.external_ref or '-'}",
        f"  Created: {_fmt_ts(task.created_at)}  Updated: {_fmt_ts(task.updated_at)}",
    ]
    if task.external_result_ref:
        lines.append(f"  Published as: {task.external_result_ref}")
    if task.generated_tags:
        lines.append(f"  Tags: {', '.join(task.generated_tags)}")

    progress = detail.progress
    if progress is not None:
        current = f", running: {step_label(progress.current_step)}" if progress.is_running else ""
        lines.append(
            f"  Progress: {progress.percent}% ({progress.completed_steps}/{progress.total_steps} steps, "
            f"{progress.failed_steps} failed{current})"
        )

    if detail.steps:
        lines.append("  Steps:")
        for step in detail.steps:
            retry = " [retryable]" if step.retryable else ""
            lines.append(f"    {step.order}. {step_label(step.step_name):<22} {step.status.value}{retry}")
            if step.error_message:
                lines.append(f"       error: {step.error_message}")

    triggers = stage_triggers(task.status_code)
    if triggers:
        names = " | ".join(sorted(s.value for s in triggers))
        lines.append(f"  Manual upload available: /upload {task.task_id} {names}")
    return "\n".join(lines)


def format_files(task_id: str, files: tuple[TaskFile, ...]) -> str:
    if not files:
        return f"No files for task {task_id}."
    lines = [f"Files for task {task_id}:"]
    for f in files:
        lines.append(f"  {f.name:<40} {f.kind:<9} {_fmt_size(f.size):>10}  {_fmt_ts(f.modified_at)}")
    return "\n".join(lines)


def _require_login(state: AppState) -> None:
    if not state.orchestrator.logged_in:
        raise NotLoggedIn("not logged in", code="not_logged_in")


def _describe_auth(state: AppState, auth_state: AuthState) -> str:
    session = state.orchestrator.session
    if auth_state == AuthState.AWAITING_SCAN and session.challenge is not None:
        return (
            "Scan this QR code link with the Bilibili app:\n"
            f"  {session.challenge.presentation_payload}\n"
            f"Waiting for confirmation (up to {state.settings.auth_max_duration_seconds:.0f}s)..."
        )
    if auth_state == AuthState.FAILED:
        result = session.result
        reason = result.reason if isinstance(result, Failed) else "unknown error"
        return f"Could not get a QR code: {reason}. Use /regen to try again."
    if auth_state == AuthState.SUCCEEDED:
        return "Logged in."
    return f"Login state: {auth_state.value}"


# ---- handlers ----


async def cmd_help(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return registry.build_help()


async def cmd_login(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    orch = state.orchestrator
    if orch.identity is not None:
        return f"Already logged in as {orch.identity.display_name}. Use /logout first."
    if emit:
        emit("Requesting a QR code...")
    return _describe_auth(state, await orch.login())


async def cmd_regen(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    orch = state.orchestrator
    if orch.identity is not None:
        return f"Already logged in as {orch.identity.display_name}."
    return _describe_auth(state, await orch.regenerate())


async def cmd_qr(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    session = state.orchestrator.session
    if session.state == AuthState.EXPIRED:
        raise ChallengeExpired("QR code expired", code="challenge_expired")
    if session.state != AuthState.AWAITING_SCAN:
        return "No QR code in progress. Use /login to start."
    return _describe_auth(state, session.state)


async def cmd_whoami(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    orch = state.orchestrator
    identity = orch.identity
    if identity is None:
        return f"Not logged in (login state: {orch.session.state.value})."
    avatar = f"\n  Avatar: {identity.avatar_url}" if identity.avatar_url else ""
    return f"Logged in as {identity.display_name} (uid {identity.subject_id}){avatar}"


async def cmd_tasks(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /tasks                    -> current category/page
    /tasks <category>         -> switch category (resets to page 1)
    /tasks <category> <page>  -> switch category and jump to page
    """
    _require_login(state)
    board = state.board

    if args:
        raw = args[0].lower()
        try:
            category = TaskCategory(raw)
        except ValueError:
            names = ", ".join(c.value for c in TaskCategory)
            return f"Unknown category: {raw}. Use one of: {names}."
        board.set_category(category)

    if len(args) > 1:
        try:
            page = int(args[1])
        except ValueError:
            return "Usage: /tasks [category] [page]"
        if not board.go_to_page(page):
            return f"Page {page} is out of range (1..{max(1, board.total_pages)}).\n{format_board(state)}"

    return format_board(state)


async def cmd_next(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    _require_login(state)
    if not state.board.next_page():
        return "Already on the last page."
    return format_board(state)


async def cmd_prev(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    _require_login(state)
    if not state.board.previous_page():
        return "Already on the first page."
    return format_board(state)


async def cmd_refresh(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    _require_login(state)
    tasks = await state.orchestrator.registry.refresh()
    return f"Refreshed: {len(tasks)} tasks.\n{format_board(state)}"


async def cmd_detail(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    _require_login(state)
    if not args:
        return "Usage: /detail <task_id>"
    detail = await state.orchestrator.registry.fetch_detail(args[0])
    return format_detail(detail)


async def cmd_files(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    _require_login(state)
    if not args:
        return "Usage: /files <task_id>"
    files = await state.orchestrator.registry.fetch_files(args[0])
    return format_files(args[0], files)


async def cmd_retry(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    _require_login(state)
    if len(args) < 2:
        return "Usage: /retry <task_id> <step_name>"
    task_id, step_name = args[0], args[1]
    reg = state.orchestrator.registry

    message = await reg.retry_step(task_id, step_name)
    if emit:
        emit(f"Retry of '{step_label(step_name)}' accepted: {message}")
    # The list catches up on the next refresh; show the server's current view now.
    return format_detail(await reg.fetch_detail(task_id))


async def cmd_upload(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    _require_login(state)
    if len(args) < 2:
        return "Usage: /upload <task_id> video|subtitle"
    task_id, raw_stage = args[0], args[1].lower()
    try:
        stage = UploadStage(raw_stage)
    except ValueError:
        return "Usage: /upload <task_id> video|subtitle"

    reg = state.orchestrator.registry
    task = reg.get(task_id)
    if task is not None and stage not in stage_triggers(task.status_code):
        label = classify(task.status_code).label
        logger.debug("Manual upload refused task_id=%s stage=%s status=%s", task_id, stage.value, task.status_code)
        return f"Cannot start a {stage.value} upload while the task is '{label}'."

    message = await reg.trigger_stage(task_id, stage)
    return f"{stage.value.capitalize()} upload requested for task {task_id}: {message}"


async def cmd_submit(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    _require_login(state)
    if not args:
        return "Usage: /submit <video_url> [title...]"
    url, title = args[0], " ".join(args[1:])

    result = await state.orchestrator.registry.submit(url, title)
    name = result.title or url
    if result.is_existing:
        return f"Already on the server as task {result.task_id} ({name}): {result.message}"
    return f"Submitted task {result.task_id} ({name}): {result.message}"


async def cmd_logout(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    orch = state.orchestrator
    was = orch.identity
    await orch.logout()
    if was is None:
        return "Local session cleared."
    return f"Logged out ({was.display_name})."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("login", cmd_login, help_text="Start a QR code login.")
registry.register("regen", cmd_regen, help_text="Discard the current QR code and request a new one.")
registry.register("qr", cmd_qr, help_text="Show the QR code link of the login in progress.")
registry.register("whoami", cmd_whoami, help_text="Show the logged-in account.")
registry.register(
    "tasks",
    cmd_tasks,
    help_text="List tasks: /tasks [all|pending|preparing|ready|uploading|completed|failed] [page].",
    aliases=["ls"],
)
registry.register("next", cmd_next, help_text="Next page of the task list.")
registry.register("prev", cmd_prev, help_text="Previous page of the task list.")
registry.register("refresh", cmd_refresh, help_text="Refresh the task list now.")
registry.register("detail", cmd_detail, help_text="Show task steps and progress: /detail <id>.")
registry.register("files", cmd_files, help_text="List produced files: /files <id>.")
registry.register("retry", cmd_retry, help_text="Retry a failed step: /retry <id> <step_name>.")
registry.register("upload", cmd_upload, help_text="Start a manual upload: /upload <id> video|subtitle.")
registry.register("submit", cmd_submit, help_text="Submit a new video: /submit <url> [title].")
registry.register("logout", cmd_logout, help_text="Log out and stop syncing.")
