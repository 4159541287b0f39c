"""Error taxonomy shared by the board engine, the store and every entry point."""

from __future__ import annotations


class KnbnError(Exception):
    """Base class for every failure raised by knbn itself."""

    code = "KNBN_ERROR"


class NotFoundError(KnbnError, LookupError):
    """A task ID or column/label/sprint name does not resolve."""

    code = "NOT_FOUND"


class AlreadyExistsError(KnbnError, ValueError):
    """A name (or board file) that must be unique is already taken."""

    code = "ALREADY_EXISTS"


class InvalidArgumentError(KnbnError, ValueError):
    """Input is malformed before any lookup happens (e.g. a non-numeric task ID)."""

    code = "INVALID_ARGUMENT"


class PersistenceError(KnbnError, OSError):
    """The board file could not be read, parsed or written."""

    code = "PERSISTENCE_FAILURE"
