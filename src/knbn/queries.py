"""Read-only queries over a board snapshot: lookups, search, sorting, sprint windows."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence, Union

from .constants import SEARCH_ARRAY_KEYS, SEARCH_KEYS, SEARCH_STRING_KEYS
from .errors import InvalidArgumentError
from .model import Board, Column, Label, Sprint, Task
from .utils import parse_iso, parse_task_id, utc_now

_EPOCH_MIN = datetime.min.replace(tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def find_column(board: Board, name: str) -> Optional[Column]:
    return next((c for c in board.columns if c.name == name), None)


def find_label(board: Board, name: str) -> Optional[Label]:
    return next((label for label in board.labels if label.name == name), None)


def find_sprint(board: Board, name: str) -> Optional[Sprint]:
    return next((s for s in board.sprints if s.name == name), None)


def get_task(board: Board, task_id: Union[int, str]) -> Optional[Task]:
    return board.tasks.get(parse_task_id(task_id))


def get_default_column(board: Board) -> Optional[Column]:
    """The first column is where new tasks land."""
    return board.columns[0] if board.columns else None


def get_column_names(board: Board) -> list[str]:
    return [c.name for c in board.columns]


def get_tasks_in_column(board: Board, column: str) -> list[Task]:
    return [t for t in board.tasks.values() if t.column == column]


def get_column_task_count(board: Board, column: str) -> int:
    return len(get_tasks_in_column(board, column))


def get_labels_by_names(board: Board, names: Iterable[str]) -> list[Label]:
    """Resolve label names in the given order, skipping names the board does not define."""
    found = (find_label(board, name) for name in names)
    return [label for label in found if label is not None]


# ---------------------------------------------------------------------------
# Search & sort
# ---------------------------------------------------------------------------

def search_tasks(board: Board, query: str, keys: Optional[Sequence[str]] = None) -> list[Task]:
    """Case-insensitive substring search.

    An empty *query* returns every task.  Otherwise a task matches when any of
    the selected fields contains the query: ``title``, ``description`` and
    ``sprint`` are matched as strings, ``labels`` element by element.
    *keys* narrows the fields searched; unknown keys are rejected.
    """
    if keys is not None:
        unknown = sorted(set(keys) - set(SEARCH_KEYS))
        if unknown:
            raise InvalidArgumentError(f"Unknown search keys {unknown}; expected a subset of {list(SEARCH_KEYS)}")

    tasks = list(board.tasks.values())
    if not query:
        return tasks

    needle = query.lower()
    string_keys = [k for k in SEARCH_STRING_KEYS if keys is None or k in keys]
    array_keys = [k for k in SEARCH_ARRAY_KEYS if keys is None or k in keys]

    def _matches(task: Task) -> bool:
        for key in string_keys:
            value = getattr(task, key)
            if isinstance(value, str) and needle in value.lower():
                return True
        for key in array_keys:
            values = getattr(task, key) or ()
            if any(needle in str(item).lower() for item in values):
                return True
        return False

    return [t for t in tasks if _matches(t)]


def sort_tasks(tasks: Iterable[Task]) -> list[Task]:
    """Order by priority ascending (unprioritised last), then most recently updated first.

    Returns a new list; the input is left as it was.
    """
    by_recency = sorted(tasks, key=lambda t: parse_iso(t.dates.updated) or _EPOCH_MIN, reverse=True)
    return sorted(by_recency, key=lambda t: (t.priority is None, t.priority if t.priority is not None else 0))


# ---------------------------------------------------------------------------
# Sprint windows
# ---------------------------------------------------------------------------

def _moment(at: Optional[datetime]) -> datetime:
    if at is None:
        return utc_now()
    return at if at.tzinfo is not None else at.replace(tzinfo=timezone.utc)


def get_active_sprints(board: Board, at: Optional[datetime] = None) -> list[Sprint]:
    """Sprints that have started and not yet ended (open-ended sprints stay active)."""
    now = _moment(at)
    active: list[Sprint] = []
    for sprint in board.sprints:
        starts = parse_iso(sprint.dates.starts)
        ends = parse_iso(sprint.dates.ends)
        if starts is not None and starts <= now and (ends is None or ends >= now):
            active.append(sprint)
    return active


def get_upcoming_sprints(board: Board, at: Optional[datetime] = None) -> list[Sprint]:
    now = _moment(at)
    upcoming: list[Sprint] = []
    for sprint in board.sprints:
        starts = parse_iso(sprint.dates.starts)
        if starts is not None and starts > now:
            upcoming.append(sprint)
    return upcoming


def get_completed_sprints(board: Board, at: Optional[datetime] = None) -> list[Sprint]:
    now = _moment(at)
    completed: list[Sprint] = []
    for sprint in board.sprints:
        ends = parse_iso(sprint.dates.ends)
        if ends is not None and ends < now:
            completed.append(sprint)
    return completed
