# src/streaklane/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from typing import cast

from ..core.dates import to_iso
from ..core.errors import NotFoundError, StreaklaneError, ValidationError
from ..core.models import Severity, Task, TaskCreate, TaskPatch
from ..core.state import AppState
from ..lanes.ordering import plan_move

CommandEmitter = Callable[[str], None]
CommandHandler3 = Callable[[AppState, list[str], str], str]
CommandHandler4 = Callable[[AppState, list[str], str, CommandEmitter | None], str]
CommandHandler = CommandHandler3 | CommandHandler4

logger = logging.getLogger(__name__)

SHORT_ID = 8


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /add, ...)."""

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

    def handle(
        self,
        state: AppState,
        line: str,
        user_id: str | None = None,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        Domain errors (not found, validation, store failures) become the reply text.
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

        uid = user_id or state.user_id

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 4

        try:
            if nparams >= 4:
                h4 = cast(CommandHandler4, handler)
                return h4(state, args, uid, emit)
            h3 = cast(CommandHandler3, handler)
            return h3(state, args, uid)
        except StreaklaneError as e:
            logger.info("Command /%s rejected: %s", name, e)
            return f"Error: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----


def _fmt_task(task: Task) -> str:
    mark = "x" if task.is_completed else " "
    due = to_iso(task.due_date)
    due_s = f" (due {due[:10]})" if due else ""
    return f"[{mark}] {task.id[:SHORT_ID]} #{task.position} {task.title}{due_s}"


def _resolve_id(state: AppState, user_id: str, prefix: str) -> str:
    """Expand an abbreviated task id (any unique prefix)."""
    prefix = prefix.strip().lower()
    if not prefix:
        raise ValidationError("task id is required")
    matches = [t.id for t in state.service.list_tasks(user_id) if t.id.startswith(prefix)]
    if not matches:
        raise NotFoundError(f"Task not found: {prefix}")
    if len(matches) > 1:
        raise ValidationError(f"Ambiguous task id {prefix!r} ({len(matches)} matches)")
    return matches[0]


def _split_due(args: list[str]) -> tuple[list[str], str | None]:
    rest: list[str] = []
    due: str | None = None
    for a in args:
        if a.lower().startswith("due:"):
            due = a[4:]
        else:
            rest.append(a)
    return rest, due


# ---- commands ----


def cmd_help(state: AppState, args: list[str], user_id: str) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str], user_id: str) -> str:
    s = state.settings
    return (
        "Status:\n"
        f"  User: {user_id}\n"
        f"  Database: {getattr(s, 'tasks_db_path', '?')}\n"
        f"  Suggestions: {state.suggestions_source}\n"
        f"  Week starts on day: {getattr(s, 'week_start_day', 6)} (0=Mon .. 6=Sun)"
    )


def cmd_add(state: AppState, args: list[str], user_id: str) -> str:
    """
    /add <low|medium|high> <title...> [due:YYYY-MM-DD]
    """
    if len(args) < 2:
        return "Usage: /add <low|medium|high> <title...> [due:YYYY-MM-DD]"
    rest, due = _split_due(args[1:])
    fields = TaskCreate.from_payload(
        {"severity": args[0], "title": " ".join(rest), "dueDate": due}
    )
    task = state.service.create_task(user_id, fields)
    return f"Added to {task.severity.value}: {_fmt_task(task)}"


def cmd_list(state: AppState, args: list[str], user_id: str) -> str:
    """
    /list            -> open tasks, lane by lane
    /list <severity> -> one lane
    /list done       -> completed tasks
    """
    sub = args[0].lower() if args else ""

    if sub == "done":
        done = state.service.list_tasks(user_id, completed=True)
        if not done:
            return "No completed tasks."
        return "\n".join(["Completed:", *(f"  {_fmt_task(t)}" for t in done)])

    severities = [Severity.parse(sub)] if sub else [Severity.HIGH, Severity.MEDIUM, Severity.LOW]
    lines: list[str] = []
    for sev in severities:
        lane = state.service.list_tasks(user_id, completed=False, severity=sev)
        lines.append(f"{sev.value} ({len(lane)}):")
        lines.extend(f"  {_fmt_task(t)}" for t in lane)
    return "\n".join(lines)


def cmd_done(state: AppState, args: list[str], user_id: str, emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /done <id>"
    task_id = _resolve_id(state, user_id, args[0])

    before = state.service.get_user_stats(user_id)
    task = state.service.update_task(user_id, task_id, TaskPatch(is_completed=True))
    after = state.service.get_user_stats(user_id)

    if emit is not None:
        held = {b.name for b in before.badges}
        for badge in after.badges:
            if badge.name not in held:
                emit(f"Badge earned: {badge.name} - {badge.description}")

    return (
        f"Completed: {task.title}. "
        f"Streak {after.streak.current_streak} (best {after.streak.longest_streak})."
    )


def cmd_undo(state: AppState, args: list[str], user_id: str) -> str:
    if not args:
        return "Usage: /undo <id>"
    task_id = _resolve_id(state, user_id, args[0])
    task = state.service.update_task(user_id, task_id, TaskPatch(is_completed=False))
    return f"Reopened: {_fmt_task(task)}"


def cmd_edit(state: AppState, args: list[str], user_id: str) -> str:
    """
    /edit <id> <new title...> [due:YYYY-MM-DD]
    """
    if len(args) < 2:
        return "Usage: /edit <id> <new title...> [due:YYYY-MM-DD]"
    task_id = _resolve_id(state, user_id, args[0])
    rest, due = _split_due(args[1:])
    payload: dict[str, object] = {}
    if rest:
        payload["title"] = " ".join(rest)
    if due is not None:
        payload["dueDate"] = due
    task = state.service.update_task(user_id, task_id, payload)
    return f"Updated: {_fmt_task(task)}"


def cmd_move(state: AppState, args: list[str], user_id: str) -> str:
    """
    /move <id> <low|medium|high> [index]  -> drag a task within or across lanes
    """
    if len(args) < 2:
        return "Usage: /move <id> <low|medium|high> [index]"
    task_id = _resolve_id(state, user_id, args[0])
    severity = Severity.parse(args[1])

    lanes = {
        sev: state.service.list_tasks(user_id, completed=False, severity=sev) for sev in Severity
    }
    index = len(lanes[severity])
    if len(args) >= 3:
        try:
            index = int(args[2])
        except ValueError:
            return "Index must be an integer."

    moves = plan_move(lanes, task_id, severity, index)
    state.service.reorder_tasks(user_id, moves)
    return f"Moved {task_id[:SHORT_ID]} to {severity.value}."


def cmd_rm(state: AppState, args: list[str], user_id: str) -> str:
    if not args:
        return "Usage: /rm <id>"
    task_id = _resolve_id(state, user_id, args[0])
    state.service.delete_task(user_id, task_id)
    return f"Deleted {task_id[:SHORT_ID]}."


def cmd_stats(state: AppState, args: list[str], user_id: str) -> str:
    stats = state.service.get_user_stats(user_id)
    streak = stats.streak
    lines = [
        "Stats:",
        f"  Streak: {streak.current_streak} day(s), best {streak.longest_streak}",
        f"  Last active: {streak.last_active_date.isoformat() if streak.last_active_date else '-'}",
        f"  Tasks: {stats.counts.completed_tasks}/{stats.counts.total_tasks} completed "
        f"({stats.counts.completion_rate:.0f}%)",
        f"  Completed this week: {stats.counts.tasks_this_week}",
    ]
    if stats.badges:
        lines.append("  Badges: " + ", ".join(b.name for b in stats.badges))
    return "\n".join(lines)


def cmd_suggest(state: AppState, args: list[str], user_id: str) -> str:
    suggestions = state.service.suggest_tasks(user_id)
    if not suggestions:
        return "No suggestions right now."
    lines = ["Suggested for today:"]
    for i, s in enumerate(suggestions, start=1):
        lines.append(f"{i}. {_fmt_task(s.task)} - {s.reason}")
    return "\n".join(lines)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show user, database and suggestion source.")
registry.register("add", cmd_add, help_text="Add a task: /add <severity> <title> [due:YYYY-MM-DD].")
registry.register("list", cmd_list, help_text="List lanes: /list | /list <severity> | /list done.", aliases=["ls"])
registry.register("done", cmd_done, help_text="Complete a task: /done <id>.")
registry.register("undo", cmd_undo, help_text="Reopen a completed task: /undo <id>.")
registry.register("edit", cmd_edit, help_text="Retitle a task: /edit <id> <title> [due:YYYY-MM-DD].")
registry.register("move", cmd_move, help_text="Move a task: /move <id> <severity> [index].", aliases=["mv"])
registry.register("rm", cmd_rm, help_text="Delete a task: /rm <id>.", aliases=["del"])
registry.register("stats", cmd_stats, help_text="Show streak, badges and completion stats.")
registry.register("suggest", cmd_suggest, help_text="Suggest which open tasks to do first.")
