import enum
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(enum.Enum):
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    VALIDATION = "validation"
    UNAUTHENTICATED = "unauthenticated"
    UNAUTHORIZED = "unauthorized"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    message: str


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a service call: either a value or an expected failure.

    Only expected business outcomes travel as a ``Failure``; anything
    unexpected is raised as a ``LoantrackError`` (or whatever the driver
    raised) and handled at the application boundary.
    """
    value: Optional[T] = None
    error: Optional[Failure] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value=None) -> "Result":
        return cls(value=value)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str) -> "Result":
        return cls(error=Failure(kind, message))

    @classmethod
    def not_found(cls, message: str) -> "Result":
        return cls.fail(ErrorKind.NOT_FOUND, message)

    @classmethod
    def conflict(cls, message: str) -> "Result":
        return cls.fail(ErrorKind.CONFLICT, message)

    @classmethod
    def invalid(cls, message: str) -> "Result":
        return cls.fail(ErrorKind.VALIDATION, message)

    @classmethod
    def unauthenticated(cls, message: str) -> "Result":
        return cls.fail(ErrorKind.UNAUTHENTICATED, message)

    @classmethod
    def unauthorized(cls, message: str) -> "Result":
        return cls.fail(ErrorKind.UNAUTHORIZED, message)


class LoantrackError(Exception): pass

class DatabaseError(LoantrackError): pass

class ReportGenerationError(LoantrackError): pass
