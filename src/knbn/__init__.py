"""Provide the public `knbn` package exports."""

from __future__ import annotations

from .engine import BoardEngine
from .errors import AlreadyExistsError, InvalidArgumentError, KnbnError, NotFoundError, PersistenceError
from .model import Board, Column, Label, Sprint, Task
from .service import BoardService, create_board
from .store import BoardStore, load_board, save_board

__version__ = "0.2.3"

__all__ = [
    "AlreadyExistsError",
    "Board",
    "BoardEngine",
    "BoardService",
    "BoardStore",
    "Column",
    "InvalidArgumentError",
    "KnbnError",
    "Label",
    "NotFoundError",
    "PersistenceError",
    "Sprint",
    "Task",
    "__version__",
    "create_board",
    "load_board",
    "save_board",
]
