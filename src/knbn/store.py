"""File-based board store.

A board lives in a single ``*.knbn`` YAML file.  :func:`load_board` and
:func:`save_board` are the only functions that touch the document on disk;
:meth:`BoardStore.transaction` wraps them into a load, mutate, save cycle.

There is no file lock: knbn assumes one writer at a time, and when two
processes do save the same file the last write wins.
"""

from __future__ import annotations

import os
import re
from contextlib import contextmanager
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional, Union

import yaml
from loguru import logger

from .constants import (
    BOARD_FILE_SUFFIX,
    DEFAULT_BOARD_FILE,
    DEFAULT_BOARD_NAME,
    STARTER_TASK_COLUMN,
    STARTER_TASK_DESCRIPTION,
    STARTER_TASK_TITLE,
)
from .engine import BoardEngine
from .errors import AlreadyExistsError, PersistenceError
from .model import Board, new_board
from .queries import find_column
from .utils import Clock, now_iso

PathLike = Union[str, os.PathLike]


# ---------------------------------------------------------------------------
# Low-level I/O
# ---------------------------------------------------------------------------

def _load_raw(path: Path) -> Any:
    """Read and parse *path*, raising :class:`PersistenceError` with a readable reason."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise PersistenceError(f"Failed to load board file: {path}: {exc.__class__.__name__}: {exc}") from exc
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise PersistenceError(f"Failed to load board file: {path}: YAMLError: {exc}") from exc


def _atomic_write_yaml(path: Path, data: dict[str, Any]) -> None:
    """Write *data* next to *path* and rename it into place."""
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        with open(tmp_path, "w", encoding="utf-8") as handle:
            yaml.safe_dump(
                data,
                handle,
                sort_keys=False,
                default_flow_style=False,
                allow_unicode=True,
            )
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    except (OSError, yaml.YAMLError) as exc:
        tmp_path.unlink(missing_ok=True)
        raise PersistenceError(f"Failed to save board file: {path}: {exc.__class__.__name__}: {exc}") from exc


# ---------------------------------------------------------------------------
# Document load/save
# ---------------------------------------------------------------------------

def load_board(path: PathLike) -> Board:
    """Load the board stored at *path*."""
    path = Path(path)
    raw = _load_raw(path)
    try:
        board = Board.from_dict(raw)
    except PersistenceError as exc:
        raise PersistenceError(f"Failed to load board file: {path}: {exc}") from exc
    logger.debug("Loaded board {!r} from {} ({} tasks)", board.name, path, len(board.tasks))
    return board


def save_board(path: PathLike, board: Board, clock: Optional[Clock] = None) -> Board:
    """Stamp ``dates.saved`` and write *board* to *path*.

    Returns the stamped board, which is what now sits on disk.
    """
    path = Path(path)
    stamped = replace(board, dates=replace(board.dates, saved=now_iso(clock)))
    _atomic_write_yaml(path, stamped.to_dict())
    logger.debug("Saved board {!r} to {}", stamped.name, path)
    return stamped


def load_board_fields(path: PathLike, keys: Iterable[str]) -> dict[str, Any]:
    """Return only the listed top-level keys of the raw document.

    Cheap enough for listings, where only ``name`` is wanted and the rest of a
    possibly hand-mangled file should not get in the way.
    """
    path = Path(path)
    raw = _load_raw(path)
    if not isinstance(raw, dict):
        raise PersistenceError(f"Failed to load board file: {path}: expected a mapping at the top level")
    wanted = set(keys)
    return {k: v for k, v in raw.items() if k in wanted}


# ---------------------------------------------------------------------------
# Board files
# ---------------------------------------------------------------------------

def find_board_files(directory: PathLike) -> list[Path]:
    """List ``*.knbn`` files in *directory*; a bare ``.knbn`` always comes first."""
    directory = Path(directory)
    try:
        entries = [p for p in directory.iterdir() if p.is_file() and p.name.endswith(BOARD_FILE_SUFFIX)]
    except OSError as exc:
        raise PersistenceError(f"Failed to list board files in {directory}: {exc}") from exc
    return sorted(entries, key=lambda p: (p.name != DEFAULT_BOARD_FILE, p.name))


def board_name_from_path(path: PathLike) -> str:
    name = Path(path).name
    return name[: -len(BOARD_FILE_SUFFIX)] if name.endswith(BOARD_FILE_SUFFIX) else name


def is_board_filename(filename: str) -> bool:
    """True for a bare ``*.knbn`` file name with no directory part."""
    return Path(filename).name == filename and filename.endswith(BOARD_FILE_SUFFIX)


def board_filename_for(name: str) -> str:
    """``"My Board"`` -> ``"my-board.knbn"``."""
    return re.sub(r"\s+", "-", name.strip().lower()) + BOARD_FILE_SUFFIX


def create_board_file(
    path: PathLike,
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
    columns: Optional[Iterable[str]] = None,
    clock: Optional[Clock] = None,
) -> Board:
    """Create a new board file with a starter task; refuses to overwrite."""
    path = Path(path)
    if path.exists():
        raise AlreadyExistsError(f"Board file {path} already exists")

    board = new_board(
        name=name or board_name_from_path(path) or DEFAULT_BOARD_NAME,
        description=description,
        columns=columns,
        clock=clock,
    )
    engine = BoardEngine(clock)
    board, _ = engine.create_task(
        board,
        title=STARTER_TASK_TITLE,
        description=STARTER_TASK_DESCRIPTION,
        column=STARTER_TASK_COLUMN if find_column(board, STARTER_TASK_COLUMN) else None,
    )
    return save_board(path, board, clock)


# ---------------------------------------------------------------------------
# BoardStore
# ---------------------------------------------------------------------------

class BoardTx:
    """One load, mutate, save cycle.

    Callers replace :attr:`board` with the engine's result; the store saves
    on exit only if the board object was replaced.
    """

    def __init__(self, board: Board) -> None:
        self._loaded = board
        self.board = board

    @property
    def dirty(self) -> bool:
        return self.board is not self._loaded


class BoardStore:
    """File-backed access to one board document.

    Parameters
    ----------
    path:
        The ``.knbn`` file.
    clock:
        Time source for ``dates.saved``.
    """

    def __init__(self, path: PathLike, clock: Optional[Clock] = None) -> None:
        self.path = Path(path)
        self._clock = clock

    def load(self) -> Board:
        return load_board(self.path)

    def save(self, board: Board) -> Board:
        return save_board(self.path, board, self._clock)

    @contextmanager
    def transaction(self) -> Iterator[BoardTx]:
        """Load the board, yield a transaction, and save on exit if it changed.

        Usage::

            with store.transaction() as tx:
                tx.board, task = engine.create_task(tx.board, title="Write docs")

        Nothing is written when the block raises.
        """
        tx = BoardTx(self.load())
        yield tx
        if tx.dirty:
            tx.board = self.save(tx.board)


@dataclass(frozen=True)
class BoardSummary:
    path: Path
    name: Optional[str]

    @property
    def filename(self) -> str:
        return self.path.name

    def to_dict(self) -> dict[str, Any]:
        return {"filename": self.filename, "path": str(self.path), "name": self.name}


def list_boards(directory: PathLike) -> list[BoardSummary]:
    """Summaries of every board file in *directory*; unreadable files get ``name=None``."""
    summaries: list[BoardSummary] = []
    for path in find_board_files(directory):
        try:
            name = load_board_fields(path, ["name"]).get("name")
        except PersistenceError as exc:
            logger.warning("Skipping unreadable board file {}: {}", path, exc)
            name = None
        summaries.append(BoardSummary(path=path, name=None if name is None else str(name)))
    return summaries
