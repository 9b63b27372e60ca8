"""Error kinds and exceptions for table operations."""

from enum import Enum


class ErrorKind(str, Enum):
    """Failure categories carried by a failed Result."""

    INVALID_ARGUMENT = "invalid_argument"
    DATABASE = "db_error"


class TableError(Exception):
    """Base class for table access errors."""

    kind: ErrorKind

    def __init__(self, message: str = "Table error"):
        self.message = message
        super().__init__(self.message)


class InvalidArgument(TableError):
    """Malformed caller input (unknown column, bad identifier, bad action)."""

    kind = ErrorKind.INVALID_ARGUMENT

    def __init__(self, message: str = "Invalid argument"):
        super().__init__(message)


class DatabaseError(TableError):
    """The executor reported a failure or a write had no effect."""

    kind = ErrorKind.DATABASE

    def __init__(self, message: str = "Database error"):
        super().__init__(message)


EXCEPTIONS: dict[ErrorKind, type[TableError]] = {
    ErrorKind.INVALID_ARGUMENT: InvalidArgument,
    ErrorKind.DATABASE: DatabaseError,
}
