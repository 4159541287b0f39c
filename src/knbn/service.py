"""Board service: file-level actions shared by the CLI, tool server and HTTP server.

Each action loads the board file, runs one engine or query operation and, for
mutations, writes the result back through :meth:`BoardStore.transaction`.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from loguru import logger

from . import queries
from .engine import BoardEngine
from .errors import InvalidArgumentError, NotFoundError
from .model import Board, Column, Label, Number, Sprint, Task, TaskPatch
from .store import BoardStore, PathLike, create_board_file
from .utils import Clock, parse_task_id


def create_board(
    path: PathLike,
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
    columns: Optional[Iterable[str]] = None,
    clock: Optional[Clock] = None,
) -> Board:
    """Create a new board file; raises :class:`AlreadyExistsError` if it exists."""
    board = create_board_file(path, name=name, description=description, columns=columns, clock=clock)
    logger.info("Created board {!r} at {}", board.name, path)
    return board


class BoardService:
    """Operate on one ``.knbn`` file.

    Parameters
    ----------
    path:
        The board file.
    clock:
        Time source shared by the engine and the store.
    """

    def __init__(self, path: PathLike, clock: Optional[Clock] = None) -> None:
        self.path = Path(path)
        self.engine = BoardEngine(clock)
        self.store = BoardStore(self.path, clock=self.engine.clock)

    def load(self) -> Board:
        return self.store.load()

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def create_task(
        self,
        title: str,
        *,
        description: str = "",
        column: Optional[str] = None,
        sprint: Optional[str] = None,
        labels: Optional[Iterable[str]] = None,
        story_points: Optional[Number] = None,
        priority: Optional[Number] = None,
    ) -> Task:
        """Create and persist a new task, returning it."""
        with self.store.transaction() as tx:
            tx.board, task = self.engine.create_task(
                tx.board,
                title=title,
                description=description,
                column=column,
                sprint=sprint,
                labels=labels,
                story_points=story_points,
                priority=priority,
            )
        logger.info("Created task #{} {!r} in {}", task.id, task.title, task.column)
        return task

    def update_task(self, task_id: Union[int, str], updates: Union[TaskPatch, Mapping[str, Any]]) -> Task:
        """Apply partial updates to a task.  An empty update is rejected."""
        tid = parse_task_id(task_id)
        patch = updates if isinstance(updates, TaskPatch) else TaskPatch.from_dict(updates)
        if patch.is_empty():
            raise InvalidArgumentError("No updates specified")
        with self.store.transaction() as tx:
            if tid not in tx.board.tasks:
                raise NotFoundError(f"Task with ID {tid} not found on the board")
            tx.board, task = self.engine.update_task(tx.board, tid, patch)
        logger.info("Updated task #{}: {}", task.id, ", ".join(sorted(patch.changes())))
        return task

    def get_task(self, task_id: Union[int, str]) -> Task:
        tid = parse_task_id(task_id)
        task = self.load().tasks.get(tid)
        if task is None:
            raise NotFoundError(f"Task with ID {tid} not found on the board")
        return task

    def find_tasks(
        self,
        query: str = "",
        keys: Optional[Sequence[str]] = None,
        column: Optional[str] = None,
    ) -> list[Task]:
        """Search, optionally narrow to one column, and sort for display."""
        tasks = queries.search_tasks(self.load(), query, keys)
        if column is not None:
            tasks = [t for t in tasks if t.column == column]
        return queries.sort_tasks(tasks)

    # ------------------------------------------------------------------
    # Columns
    # ------------------------------------------------------------------

    def list_columns(self) -> list[Column]:
        return list(self.load().columns)

    def get_column(self, name: str) -> Column:
        column = queries.find_column(self.load(), name)
        if column is None:
            raise NotFoundError(f'Column with name "{name}" not found')
        return column

    def add_column(self, name: str, position: Optional[int] = None) -> Column:
        with self.store.transaction() as tx:
            tx.board, column = self.engine.add_column(tx.board, name, position)
        logger.info("Added column {!r}", column.name)
        return column

    def update_column(
        self,
        name: str,
        updates: Mapping[str, Any],
        position: Optional[int] = None,
    ) -> Column:
        with self.store.transaction() as tx:
            tx.board, column = self.engine.update_column(tx.board, name, updates, position)
        logger.info("Updated column {!r} (now {!r})", name, column.name)
        return column

    def move_column(self, name: str, position: int) -> list[Column]:
        with self.store.transaction() as tx:
            tx.board = self.engine.move_column(tx.board, name, position)
        logger.info("Moved column {!r} to position {}", name, position)
        return list(tx.board.columns)

    def remove_column(self, name: str) -> None:
        with self.store.transaction() as tx:
            tx.board = self.engine.remove_column(tx.board, name)
        logger.info("Removed column {!r}", name)

    def get_tasks_in_column(self, name: str) -> list[Task]:
        return queries.sort_tasks(queries.get_tasks_in_column(self.load(), name))

    def get_column_task_count(self, name: str) -> int:
        return queries.get_column_task_count(self.load(), name)

    # ------------------------------------------------------------------
    # Labels
    # ------------------------------------------------------------------

    def list_labels(self) -> list[Label]:
        return list(self.load().labels)

    def add_label(self, name: str, color: Optional[str] = None) -> Label:
        with self.store.transaction() as tx:
            tx.board, label = self.engine.add_label(tx.board, name, color)
        logger.info("Added label {!r}", label.name)
        return label

    def update_label(self, name: str, updates: Mapping[str, Any]) -> Label:
        with self.store.transaction() as tx:
            tx.board, label = self.engine.update_label(tx.board, name, updates)
        logger.info("Updated label {!r}", name)
        return label

    def remove_label(self, name: str) -> None:
        with self.store.transaction() as tx:
            tx.board = self.engine.remove_label(tx.board, name)
        logger.info("Removed label {!r}", name)

    # ------------------------------------------------------------------
    # Sprints
    # ------------------------------------------------------------------

    def list_sprints(self) -> list[Sprint]:
        return list(self.load().sprints)

    def get_sprint(self, name: str) -> Sprint:
        sprint = queries.find_sprint(self.load(), name)
        if sprint is None:
            raise NotFoundError(f'Sprint with name "{name}" not found')
        return sprint

    def add_sprint(
        self,
        name: str,
        *,
        description: Optional[str] = None,
        capacity: Optional[Number] = None,
        starts: Optional[str] = None,
        ends: Optional[str] = None,
    ) -> Sprint:
        with self.store.transaction() as tx:
            tx.board, sprint = self.engine.add_sprint(
                tx.board, name, description=description, capacity=capacity, starts=starts, ends=ends
            )
        logger.info("Added sprint {!r} starting {}", sprint.name, sprint.dates.starts)
        return sprint

    def update_sprint(self, name: str, updates: Mapping[str, Any]) -> Sprint:
        with self.store.transaction() as tx:
            tx.board, sprint = self.engine.update_sprint(tx.board, name, updates)
        logger.info("Updated sprint {!r}", name)
        return sprint

    def remove_sprint(self, name: str) -> None:
        with self.store.transaction() as tx:
            tx.board = self.engine.remove_sprint(tx.board, name)
        logger.info("Removed sprint {!r}", name)

    def get_active_sprints(self, at: Optional[datetime] = None) -> list[Sprint]:
        return queries.get_active_sprints(self.load(), at or self.engine.clock())

    def get_upcoming_sprints(self, at: Optional[datetime] = None) -> list[Sprint]:
        return queries.get_upcoming_sprints(self.load(), at or self.engine.clock())

    def get_completed_sprints(self, at: Optional[datetime] = None) -> list[Sprint]:
        return queries.get_completed_sprints(self.load(), at or self.engine.clock())
