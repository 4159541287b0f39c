"""Board document model.

A board is a single YAML document holding ordered columns, a mapping of
integer task IDs to tasks, labels, sprints, and some bookkeeping
(``metadata.nextId`` and the created/updated/saved dates).

Every value here is a frozen dataclass and every collection is a tuple (or a
dict that the engine always copies before changing), so a board snapshot
handed to a caller never changes underneath it.  ``to_dict()`` /
``from_dict()`` convert to and from the persisted shape, which uses the
camelCase keys ``storyPoints`` and ``nextId``.

Partial updates are expressed with the ``*Patch`` dataclasses below: a field
left at :data:`UNSET` is preserved, any other value (including ``None`` for an
optional field) overwrites.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Callable, ClassVar, Iterable, Mapping, Optional, Union

from loguru import logger

from .constants import BOARD_VERSION, DEFAULT_BOARD_DESCRIPTION, DEFAULT_BOARD_NAME, DEFAULT_COLUMNS
from .errors import InvalidArgumentError, PersistenceError
from .utils import Clock, now_iso, parse_task_id

Number = Union[int, float]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class _Unset:
    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


def _require_name(name: Any, kind: str) -> str:
    if not isinstance(name, str) or not name:
        raise InvalidArgumentError(f"{kind} name must be a non-empty string")
    return name


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _load_number(value: Any, where: str) -> Optional[Number]:
    """Read a numeric field from a document, accepting numeric strings."""
    if value is None or _is_number(value):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            try:
                return float(value)
            except ValueError:
                pass
    raise PersistenceError(f"{where} must be a number, got {value!r}")


def _load_labels(value: Any, where: str) -> Optional[tuple[str, ...]]:
    if value is None:
        return None
    if not isinstance(value, (list, tuple)):
        raise PersistenceError(f"{where} must be a list of strings")
    return tuple(str(item) for item in value)


def _opt_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _stamp(value: Any) -> Optional[str]:
    """Normalise a loaded timestamp; YAML turns unquoted ones into datetimes."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    return str(value)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TaskDates:
    created: str = ""
    updated: str = ""
    moved: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"created": self.created, "updated": self.updated}
        if self.moved is not None:
            data["moved"] = self.moved
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "TaskDates":
        d = data if isinstance(data, Mapping) else {}
        return cls(
            created=_stamp(d.get("created")) or "",
            updated=_stamp(d.get("updated")) or "",
            moved=_stamp(d.get("moved")),
        )


@dataclass(frozen=True)
class Task:
    """A card on the board.

    ``column`` is the task's workflow position.  It normally names one of the
    board's columns, but a dangling name (say, after a column rename) is
    tolerated and kept as-is.
    """

    id: int
    title: str = ""
    description: str = ""
    column: str = ""
    sprint: Optional[str] = None
    labels: Optional[tuple[str, ...]] = None
    story_points: Optional[Number] = None
    priority: Optional[Number] = None
    dates: TaskDates = field(default_factory=TaskDates)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "column": self.column,
        }
        if self.sprint is not None:
            data["sprint"] = self.sprint
        if self.labels is not None:
            data["labels"] = list(self.labels)
        if self.story_points is not None:
            data["storyPoints"] = self.story_points
        if self.priority is not None:
            data["priority"] = self.priority
        data["dates"] = self.dates.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], task_id: int) -> "Task":
        where = f"Task {task_id}"
        return cls(
            id=task_id,
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            column=str(data.get("column") or ""),
            sprint=_opt_str(data.get("sprint")),
            labels=_load_labels(data.get("labels"), f"{where} labels"),
            story_points=_load_number(data.get("storyPoints"), f"{where} storyPoints"),
            priority=_load_number(data.get("priority"), f"{where} priority"),
            dates=TaskDates.from_dict(data.get("dates")),
        )


@dataclass(frozen=True)
class Column:
    name: str

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name}

    @classmethod
    def from_dict(cls, data: Any) -> "Column":
        # Hand-edited files sometimes list bare column names.
        if isinstance(data, str):
            return cls(name=data)
        if not isinstance(data, Mapping) or not data.get("name"):
            raise PersistenceError(f"Invalid column entry: {data!r}")
        return cls(name=str(data["name"]))


@dataclass(frozen=True)
class Label:
    name: str
    color: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name}
        if self.color is not None:
            data["color"] = self.color
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "Label":
        if not isinstance(data, Mapping) or not data.get("name"):
            raise PersistenceError(f"Invalid label entry: {data!r}")
        return cls(name=str(data["name"]), color=_opt_str(data.get("color")))


@dataclass(frozen=True)
class SprintDates:
    created: str = ""
    starts: str = ""
    ends: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"created": self.created, "starts": self.starts}
        if self.ends is not None:
            data["ends"] = self.ends
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "SprintDates":
        d = data if isinstance(data, Mapping) else {}
        return cls(
            created=_stamp(d.get("created")) or "",
            starts=_stamp(d.get("starts")) or "",
            ends=_stamp(d.get("ends")),
        )


@dataclass(frozen=True)
class Sprint:
    name: str
    description: Optional[str] = None
    capacity: Optional[Number] = None
    dates: SprintDates = field(default_factory=SprintDates)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name}
        if self.description is not None:
            data["description"] = self.description
        if self.capacity is not None:
            data["capacity"] = self.capacity
        data["dates"] = self.dates.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "Sprint":
        if not isinstance(data, Mapping) or not data.get("name"):
            raise PersistenceError(f"Invalid sprint entry: {data!r}")
        name = str(data["name"])
        return cls(
            name=name,
            description=_opt_str(data.get("description")),
            capacity=_load_number(data.get("capacity"), f"Sprint {name!r} capacity"),
            dates=SprintDates.from_dict(data.get("dates")),
        )


@dataclass(frozen=True)
class BoardMetadata:
    next_id: int = 1
    version: str = BOARD_VERSION

    def to_dict(self) -> dict[str, Any]:
        return {"nextId": self.next_id, "version": self.version}


@dataclass(frozen=True)
class BoardDates:
    created: str = ""
    updated: str = ""
    saved: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"created": self.created, "updated": self.updated, "saved": self.saved}

    @classmethod
    def from_dict(cls, data: Any) -> "BoardDates":
        d = data if isinstance(data, Mapping) else {}
        return cls(
            created=_stamp(d.get("created")) or "",
            updated=_stamp(d.get("updated")) or "",
            saved=_stamp(d.get("saved")) or "",
        )


@dataclass(frozen=True)
class Board:
    """The aggregate root: one ``.knbn`` document.

    Invariant: ``metadata.next_id`` is strictly greater than every key of
    ``tasks``, and every key equals its task's ``id``.
    """

    name: str
    description: Optional[str] = None
    columns: tuple[Column, ...] = ()
    labels: tuple[Label, ...] = ()
    sprints: tuple[Sprint, ...] = ()
    tasks: Mapping[int, Task] = field(default_factory=dict)
    metadata: BoardMetadata = field(default_factory=BoardMetadata)
    dates: BoardDates = field(default_factory=BoardDates)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the persisted document shape."""
        data: dict[str, Any] = {"name": self.name}
        if self.description is not None:
            data["description"] = self.description
        data["columns"] = [c.to_dict() for c in self.columns]
        if self.labels:
            data["labels"] = [label.to_dict() for label in self.labels]
        if self.sprints:
            data["sprints"] = [s.to_dict() for s in self.sprints]
        data["tasks"] = {tid: task.to_dict() for tid, task in self.tasks.items()}
        data["metadata"] = self.metadata.to_dict()
        data["dates"] = self.dates.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "Board":
        """Deserialize a loaded document, raising :class:`PersistenceError` on bad structure."""
        if not isinstance(data, Mapping):
            raise PersistenceError("Invalid board file format: expected a mapping at the top level")

        raw_tasks = data.get("tasks") or {}
        if not isinstance(raw_tasks, Mapping):
            raise PersistenceError("Invalid board file format: 'tasks' must map task IDs to tasks")
        tasks: dict[int, Task] = {}
        for key, raw in raw_tasks.items():
            try:
                task_id = parse_task_id(key)
            except InvalidArgumentError as exc:
                raise PersistenceError(f"Invalid task key {key!r}: {exc}") from exc
            if not isinstance(raw, Mapping):
                raise PersistenceError(f"Task {task_id} must be a mapping")
            tasks[task_id] = Task.from_dict(raw, task_id)

        def _entries(key: str) -> list[Any]:
            raw = data.get(key) or []
            if not isinstance(raw, list):
                raise PersistenceError(f"Invalid board file format: '{key}' must be a list")
            return raw

        meta = data.get("metadata") if isinstance(data.get("metadata"), Mapping) else {}
        floor = max(tasks) + 1 if tasks else 1
        raw_next = meta.get("nextId")
        if raw_next is None:
            next_id = floor
        else:
            try:
                next_id = parse_task_id(raw_next)
            except InvalidArgumentError as exc:
                raise PersistenceError(f"Invalid metadata.nextId: {exc}") from exc
            if next_id < floor:
                logger.warning("metadata.nextId {} is not above existing task IDs; using {}", next_id, floor)
                next_id = floor

        description = data.get("description")
        return cls(
            name=str(data.get("name") or ""),
            description=None if description is None else str(description),
            columns=tuple(Column.from_dict(c) for c in _entries("columns")),
            labels=tuple(Label.from_dict(item) for item in _entries("labels")),
            sprints=tuple(Sprint.from_dict(s) for s in _entries("sprints")),
            tasks=tasks,
            metadata=BoardMetadata(next_id=next_id, version=str(meta.get("version") or BOARD_VERSION)),
            dates=BoardDates.from_dict(data.get("dates")),
        )


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

def new_task(
    task_id: int,
    *,
    title: str = "",
    description: str = "",
    column: str = "",
    sprint: Optional[str] = None,
    labels: Optional[Iterable[str]] = None,
    story_points: Optional[Number] = None,
    priority: Optional[Number] = None,
    dates: Optional[Mapping[str, Optional[str]]] = None,
    clock: Optional[Clock] = None,
) -> Task:
    """Build a task; missing timestamps all share one clock reading."""
    now = now_iso(clock)
    d = dates or {}
    return Task(
        id=task_id,
        title=title or "",
        description=description or "",
        column=column or "",
        sprint=sprint,
        labels=tuple(labels) if labels is not None else None,
        story_points=story_points,
        priority=priority,
        dates=TaskDates(created=d.get("created") or now, updated=d.get("updated") or now, moved=d.get("moved")),
    )


def new_column(name: str) -> Column:
    return Column(name=_require_name(name, "Column"))


def new_label(name: str, color: Optional[str] = None) -> Label:
    return Label(name=_require_name(name, "Label"), color=color)


def new_sprint(
    name: str,
    *,
    description: Optional[str] = None,
    capacity: Optional[Number] = None,
    starts: Optional[str] = None,
    ends: Optional[str] = None,
    created: Optional[str] = None,
    clock: Optional[Clock] = None,
) -> Sprint:
    """Build a sprint; it starts now unless told otherwise."""
    now = now_iso(clock)
    return Sprint(
        name=_require_name(name, "Sprint"),
        description=description,
        capacity=capacity,
        dates=SprintDates(created=created or now, starts=starts or now, ends=ends),
    )


def new_board(
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
    columns: Optional[Iterable[str]] = None,
    labels: Optional[Iterable[Label]] = None,
    sprints: Optional[Iterable[Sprint]] = None,
    tasks: Optional[Mapping[int, Task]] = None,
    clock: Optional[Clock] = None,
) -> Board:
    """Build a fresh board document with the stock column layout."""
    now = now_iso(clock)
    task_map = dict(tasks or {})
    column_names = list(columns) if columns is not None else list(DEFAULT_COLUMNS)
    return Board(
        name=name if name is not None else DEFAULT_BOARD_NAME,
        description=description if description is not None else DEFAULT_BOARD_DESCRIPTION,
        columns=tuple(new_column(c) for c in column_names),
        labels=tuple(labels or ()),
        sprints=tuple(sprints or ()),
        tasks=task_map,
        metadata=BoardMetadata(next_id=max(task_map) + 1 if task_map else 1, version=BOARD_VERSION),
        dates=BoardDates(created=now, updated=now, saved=now),
    )


# ---------------------------------------------------------------------------
# Partial-update patches
# ---------------------------------------------------------------------------

def _check_text(key: str, value: Any) -> str:
    if not isinstance(value, str):
        raise InvalidArgumentError(f"'{key}' must be a string")
    return value


def _check_name(key: str, value: Any) -> str:
    if not isinstance(value, str) or not value:
        raise InvalidArgumentError(f"'{key}' must be a non-empty string")
    return value


def _check_opt_text(key: str, value: Any) -> Optional[str]:
    return None if value is None else _check_text(key, value)


def _check_opt_number(key: str, value: Any) -> Optional[Number]:
    if value is None or _is_number(value):
        return value
    raise InvalidArgumentError(f"'{key}' must be a number")


def _check_opt_labels(key: str, value: Any) -> Optional[tuple[str, ...]]:
    if value is None:
        return None
    if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
        raise InvalidArgumentError(f"'{key}' must be a list of strings")
    return tuple(value)


class _Patch:
    """Shared behaviour for the patch dataclasses.

    ``_wire`` maps document keys to ``(attribute, checker)``; keys listed in
    ``_ignored`` are dropped silently, any other unknown key is rejected.
    """

    _wire: ClassVar[dict[str, tuple[str, Callable[[str, Any], Any]]]] = {}
    _ignored: ClassVar[frozenset[str]] = frozenset()

    def __post_init__(self) -> None:
        # Direct construction and from_dict share these checks.
        for key, (attr, check) in self._wire.items():
            value = getattr(self, attr)
            if value is not UNSET:
                object.__setattr__(self, attr, check(key, value))

    def changes(self) -> dict[str, Any]:
        """Return only the fields that were set, keyed by attribute name."""
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not UNSET}

    def is_empty(self) -> bool:
        return not self.changes()

    @classmethod
    def _kwargs_from(cls, data: Any) -> dict[str, Any]:
        if not isinstance(data, Mapping):
            raise InvalidArgumentError("Updates must be an object")
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            if key in cls._ignored:
                continue
            entry = cls._wire.get(key)
            if entry is None:
                raise InvalidArgumentError(f"Unknown field '{key}'; expected one of {sorted(cls._wire)}")
            kwargs[entry[0]] = value
        return kwargs

    @classmethod
    def from_dict(cls, data: Any) -> Any:
        return cls(**cls._kwargs_from(data))


@dataclass(frozen=True)
class TaskPatch(_Patch):
    """Field-level update for a task.  ``id`` and ``dates`` are engine-managed."""

    title: Any = UNSET
    description: Any = UNSET
    column: Any = UNSET
    sprint: Any = UNSET
    labels: Any = UNSET
    story_points: Any = UNSET
    priority: Any = UNSET

    _wire: ClassVar[dict[str, tuple[str, Callable[[str, Any], Any]]]] = {
        "title": ("title", _check_text),
        "description": ("description", _check_text),
        "column": ("column", _check_text),
        "sprint": ("sprint", _check_opt_text),
        "labels": ("labels", _check_opt_labels),
        "storyPoints": ("story_points", _check_opt_number),
        "priority": ("priority", _check_opt_number),
    }
    _ignored: ClassVar[frozenset[str]] = frozenset({"id", "dates"})


@dataclass(frozen=True)
class ColumnPatch(_Patch):
    name: Any = UNSET

    _wire: ClassVar[dict[str, tuple[str, Callable[[str, Any], Any]]]] = {
        "name": ("name", _check_name),
    }


@dataclass(frozen=True)
class LabelPatch(_Patch):
    name: Any = UNSET
    color: Any = UNSET

    _wire: ClassVar[dict[str, tuple[str, Callable[[str, Any], Any]]]] = {
        "name": ("name", _check_name),
        "color": ("color", _check_opt_text),
    }


@dataclass(frozen=True)
class SprintPatch(_Patch):
    """Field-level update for a sprint; ``starts``/``ends`` merge into its dates."""

    name: Any = UNSET
    description: Any = UNSET
    capacity: Any = UNSET
    starts: Any = UNSET
    ends: Any = UNSET

    _wire: ClassVar[dict[str, tuple[str, Callable[[str, Any], Any]]]] = {
        "name": ("name", _check_name),
        "description": ("description", _check_opt_text),
        "capacity": ("capacity", _check_opt_number),
        "starts": ("starts", _check_name),
        "ends": ("ends", _check_opt_text),
    }

    @classmethod
    def from_dict(cls, data: Any) -> "SprintPatch":
        if not isinstance(data, Mapping):
            raise InvalidArgumentError("Updates must be an object")
        flat = {k: v for k, v in data.items() if k != "dates"}
        dates = data.get("dates")
        if dates is not None:
            if not isinstance(dates, Mapping):
                raise InvalidArgumentError("'dates' must be an object")
            for key in ("starts", "ends"):
                if key in dates:
                    flat[key] = dates[key]
        return cls(**cls._kwargs_from(flat))
