from dataclasses import dataclass
from enum import Enum
from typing import Self


class ErrorKind(Enum):
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    STORE = "store"

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self]


_HTTP_STATUS = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.VALIDATION: 422,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.CONFLICT: 409,
    ErrorKind.STORE: 502,
}


@dataclass(frozen=True, slots=True)
class Result[T]:
    """holds either a value or errors from service operations."""

    value: T | None
    errors: list[str]
    error_kind: ErrorKind | None = None

    @property
    def ok(self) -> bool:
        return self.value is not None and not self.errors

    @property
    def error(self) -> str | None:
        return self.errors[0] if self.errors else None

    @classmethod
    def success(cls, value: T) -> Self:
        return cls(value=value, errors=[], error_kind=None)

    @classmethod
    def failure(cls, *errors: str) -> Self:
        return cls(value=None, errors=list(errors), error_kind=ErrorKind.VALIDATION)

    @classmethod
    def not_found(cls, message: str = "Not found") -> Self:
        return cls(value=None, errors=[message], error_kind=ErrorKind.NOT_FOUND)

    @classmethod
    def forbidden(cls, message: str) -> Self:
        return cls(value=None, errors=[message], error_kind=ErrorKind.FORBIDDEN)

    @classmethod
    def conflict(cls, message: str) -> Self:
        return cls(value=None, errors=[message], error_kind=ErrorKind.CONFLICT)

    @classmethod
    def store_error(cls, message: str) -> Self:
        """store failures are surfaced verbatim, never retried."""
        return cls(value=None, errors=[message], error_kind=ErrorKind.STORE)
