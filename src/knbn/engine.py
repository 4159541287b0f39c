"""Board engine: every mutation of a board document.

Each operation takes a :class:`~knbn.model.Board` snapshot and returns a new
one (plus the created or updated entity where that is useful).  The input is
never modified, and validation happens before anything is built, so a failing
call leaves the caller holding exactly the board it passed in.

Every successful mutation stamps ``board.dates.updated`` with the engine's
clock.  Renaming a column, label or sprint does not rewrite the tasks that
refer to it; such references are left dangling.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Iterable, Mapping, Optional, Sequence, TypeVar, Union

from .errors import AlreadyExistsError, NotFoundError
from .model import (
    Board,
    Column,
    ColumnPatch,
    Label,
    LabelPatch,
    Number,
    Sprint,
    SprintPatch,
    Task,
    TaskDates,
    TaskPatch,
    new_column,
    new_label,
    new_sprint,
    new_task,
)
from .utils import Clock, now_iso, parse_task_id, utc_now

_Named = TypeVar("_Named", Column, Label, Sprint)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _clamp(position: int, upper: int) -> int:
    return max(0, min(int(position), upper))


def _index_of(items: Sequence[_Named], name: str, kind: str) -> int:
    for idx, item in enumerate(items):
        if item.name == name:
            return idx
    raise NotFoundError(f'{kind} with name "{name}" not found')


def _ensure_unique(items: Iterable[_Named], name: str, kind: str) -> None:
    if any(item.name == name for item in items):
        raise AlreadyExistsError(f'{kind} with name "{name}" already exists')


def _ensure_rename_free(items: Sequence[_Named], old: str, new: str, kind: str) -> None:
    if new != old:
        _ensure_unique(items, new, kind)


def _as_patch(patch: Any, patch_cls: type) -> Any:
    return patch if isinstance(patch, patch_cls) else patch_cls.from_dict(patch)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class BoardEngine:
    """Apply mutations to board snapshots.

    Parameters
    ----------
    clock:
        Time source for every timestamp the engine writes.  Defaults to the
        UTC wall clock; tests pass a frozen clock.
    """

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self.clock: Clock = clock or utc_now

    def now(self) -> str:
        return now_iso(self.clock)

    @staticmethod
    def _touch(board: Board, now: str, **changes: Any) -> Board:
        return replace(board, dates=replace(board.dates, updated=now), **changes)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def create_task(
        self,
        board: Board,
        *,
        title: str = "",
        description: str = "",
        column: Optional[str] = None,
        sprint: Optional[str] = None,
        labels: Optional[Iterable[str]] = None,
        story_points: Optional[Number] = None,
        priority: Optional[Number] = None,
    ) -> tuple[Board, Task]:
        """Add a task with the next free ID.

        Without an explicit *column* the task lands in the board's first
        column, or in ``""`` when the board has no columns at all.
        """
        now = self.now()
        task_id = board.metadata.next_id
        default_column = board.columns[0].name if board.columns else ""
        task = new_task(
            task_id,
            title=title,
            description=description,
            column=column or default_column,
            sprint=sprint,
            labels=labels,
            story_points=story_points,
            priority=priority,
            dates={"created": now, "updated": now},
        )
        tasks = dict(board.tasks)
        tasks[task_id] = task
        updated = self._touch(
            board,
            now,
            tasks=tasks,
            metadata=replace(board.metadata, next_id=task_id + 1),
        )
        return updated, task

    def update_task(
        self,
        board: Board,
        task_id: Union[int, str],
        patch: Union[TaskPatch, Mapping[str, Any]],
    ) -> tuple[Board, Task]:
        """Apply a partial update to one task.

        The task ID never changes.  ``dates.updated`` is always refreshed;
        ``dates.moved`` only when the column actually changes.
        """
        tid = parse_task_id(task_id)
        patch = _as_patch(patch, TaskPatch)
        task = board.tasks.get(tid)
        if task is None:
            raise NotFoundError(f"Task with ID {tid} not found")

        now = self.now()
        changes = patch.changes()
        column_changed = "column" in changes and changes["column"] != task.column
        updated_task = replace(
            task,
            **changes,
            dates=TaskDates(
                created=task.dates.created,
                updated=now,
                moved=now if column_changed else task.dates.moved,
            ),
        )
        tasks = dict(board.tasks)
        tasks[tid] = updated_task
        return self._touch(board, now, tasks=tasks), updated_task

    # ------------------------------------------------------------------
    # Columns
    # ------------------------------------------------------------------

    def add_column(self, board: Board, name: str, position: Optional[int] = None) -> tuple[Board, Column]:
        """Append a column, or insert it at *position* (clamped to the valid range)."""
        column = new_column(name)
        _ensure_unique(board.columns, column.name, "Column")
        columns = list(board.columns)
        if position is None:
            columns.append(column)
        else:
            columns.insert(_clamp(position, len(columns)), column)
        return self._touch(board, self.now(), columns=tuple(columns)), column

    def update_column(
        self,
        board: Board,
        name: str,
        patch: Union[ColumnPatch, Mapping[str, Any]],
        position: Optional[int] = None,
    ) -> tuple[Board, Column]:
        """Rename a column and/or move it to *position*."""
        patch = _as_patch(patch, ColumnPatch)
        idx = _index_of(board.columns, name, "Column")
        updated_column = replace(board.columns[idx], **patch.changes())
        _ensure_rename_free(board.columns, name, updated_column.name, "Column")

        columns = list(board.columns)
        columns[idx] = updated_column
        if position is not None:
            moved = columns.pop(idx)
            columns.insert(_clamp(position, len(columns)), moved)
        return self._touch(board, self.now(), columns=tuple(columns)), updated_column

    def move_column(self, board: Board, name: str, position: int) -> Board:
        """Reinsert a column at *position*; out-of-range positions clamp to the ends."""
        idx = _index_of(board.columns, name, "Column")
        columns = list(board.columns)
        column = columns.pop(idx)
        columns.insert(_clamp(position, len(columns)), column)
        return self._touch(board, self.now(), columns=tuple(columns))

    def remove_column(self, board: Board, name: str) -> Board:
        """Drop a column.  Tasks still pointing at it keep the stale name."""
        _index_of(board.columns, name, "Column")
        columns = tuple(c for c in board.columns if c.name != name)
        return self._touch(board, self.now(), columns=columns)

    # ------------------------------------------------------------------
    # Labels
    # ------------------------------------------------------------------

    def add_label(self, board: Board, name: str, color: Optional[str] = None) -> tuple[Board, Label]:
        label = new_label(name, color)
        _ensure_unique(board.labels, label.name, "Label")
        return self._touch(board, self.now(), labels=board.labels + (label,)), label

    def update_label(
        self,
        board: Board,
        name: str,
        patch: Union[LabelPatch, Mapping[str, Any]],
    ) -> tuple[Board, Label]:
        patch = _as_patch(patch, LabelPatch)
        idx = _index_of(board.labels, name, "Label")
        updated_label = replace(board.labels[idx], **patch.changes())
        _ensure_rename_free(board.labels, name, updated_label.name, "Label")
        labels = list(board.labels)
        labels[idx] = updated_label
        return self._touch(board, self.now(), labels=tuple(labels)), updated_label

    def remove_label(self, board: Board, name: str) -> Board:
        _index_of(board.labels, name, "Label")
        labels = tuple(label for label in board.labels if label.name != name)
        return self._touch(board, self.now(), labels=labels)

    # ------------------------------------------------------------------
    # Sprints
    # ------------------------------------------------------------------

    def add_sprint(
        self,
        board: Board,
        name: str,
        *,
        description: Optional[str] = None,
        capacity: Optional[Number] = None,
        starts: Optional[str] = None,
        ends: Optional[str] = None,
    ) -> tuple[Board, Sprint]:
        """Add a sprint; it starts now unless *starts* is given."""
        now = self.now()
        sprint = new_sprint(
            name,
            description=description,
            capacity=capacity,
            starts=starts or now,
            ends=ends,
            created=now,
        )
        _ensure_unique(board.sprints, sprint.name, "Sprint")
        return self._touch(board, now, sprints=board.sprints + (sprint,)), sprint

    def update_sprint(
        self,
        board: Board,
        name: str,
        patch: Union[SprintPatch, Mapping[str, Any]],
    ) -> tuple[Board, Sprint]:
        """Apply a partial update; ``starts``/``ends`` merge into the existing dates."""
        patch = _as_patch(patch, SprintPatch)
        idx = _index_of(board.sprints, name, "Sprint")
        existing = board.sprints[idx]
        changes = patch.changes()
        date_changes = {k: changes.pop(k) for k in ("starts", "ends") if k in changes}
        updated_sprint = replace(existing, **changes, dates=replace(existing.dates, **date_changes))
        _ensure_rename_free(board.sprints, name, updated_sprint.name, "Sprint")
        sprints = list(board.sprints)
        sprints[idx] = updated_sprint
        return self._touch(board, self.now(), sprints=tuple(sprints)), updated_sprint

    def remove_sprint(self, board: Board, name: str) -> Board:
        _index_of(board.sprints, name, "Sprint")
        sprints = tuple(s for s in board.sprints if s.name != name)
        return self._touch(board, self.now(), sprints=sprints)
