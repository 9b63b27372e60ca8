"""Tagged results returned by table operations."""

from dataclasses import dataclass
from typing import Any

from atomic_tables.errors import EXCEPTIONS, ErrorKind
from atomic_tables.models.base import BaseEntity


class _NotFound:
    """Marker for a lookup that matched no row."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOT_FOUND"

    def __reduce__(self):
        return (_NotFound, ())


NOT_FOUND = _NotFound()


@dataclass(frozen=True)
class Failure(BaseEntity):
    """Error arm of a Result."""

    kind: ErrorKind
    message: str


@dataclass(frozen=True)
class Result(BaseEntity):
    """Success value or a Failure; exactly one of the two is meaningful."""

    value: Any = None
    error: Failure | None = None

    @classmethod
    def success(cls, value: Any) -> "Result":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> "Result":
        return cls(error=Failure(kind=kind, message=message))

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def found(self) -> bool:
        return self.ok and self.value is not NOT_FOUND

    @property
    def kind(self) -> ErrorKind | None:
        return self.error.kind if self.error else None

    @property
    def message(self) -> str:
        return self.error.message if self.error else ""

    def unwrap(self) -> Any:
        """Return the value or raise the exception matching the error kind."""
        if self.error is not None:
            raise EXCEPTIONS[self.error.kind](self.error.message)
        return self.value

    def value_or(self, default: Any) -> Any:
        """Value when found, otherwise ``default``."""
        return self.value if self.found else default
