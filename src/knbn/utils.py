"""Provide clock, timestamp and identifier helpers."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Optional

from .errors import InvalidArgumentError

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def now_iso(clock: Optional[Clock] = None) -> str:
    """Return one reading of *clock* (default: wall clock) as an ISO-8601 string."""
    moment = (clock or utc_now)()
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.isoformat()


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        if not isinstance(value, str):
            value = str(value)
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        dt = datetime.fromisoformat(value)
        # If a naive timestamp slips in, assume UTC to avoid crashes.
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt
    except ValueError:
        return None


def parse_task_id(value: Any) -> int:
    """Coerce *value* to a task ID or raise :class:`InvalidArgumentError`.

    Accepts ints and base-10 numeric strings. Booleans and non-integral floats
    are rejected even though Python would happily convert them.
    """
    if isinstance(value, bool):
        raise InvalidArgumentError(f"Task ID must be a number, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if text.lstrip("-").isdigit():
            return int(text)
    raise InvalidArgumentError(f"Task ID must be a number, got {value!r}")
