from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class AuthErrorKind(str, Enum):
    """Normalized failure categories surfaced to the launcher UI."""

    PROVIDER_REJECTED = "provider_rejected"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    NOT_ENTITLED = "not_entitled"
    NOT_FOUND = "not_found"
    NO_SELECTION = "no_selection"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class AuthError:
    """User-displayable failure. Built once per failure and never persisted."""

    kind: AuthErrorKind
    title: str
    description: str
    code: Optional[str] = None


class ServiceError(Exception):
    """Base class for account-layer exceptions.

    Each subclass carries a stable ``error_code`` so callers that catch
    exceptions can branch without string matching.
    """

    error_code: str = "service_error"

    def __init__(
        self,
        message: str,
        *,
        detail: Optional[dict] = None,
        error_code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code is not None:
            self.error_code = error_code
        self.detail = detail or {}


class AuthFailure(ServiceError):
    """Raised by ``AuthResult.unwrap`` when the result holds an ``AuthError``."""

    def __init__(self, error: AuthError) -> None:
        super().__init__(
            error.title,
            detail={"description": error.description, "code": error.code},
            error_code=error.kind.value,
        )
        self.error = error


class UnmappedErrorCode(RuntimeError):
    """A provider error code has no entry in the error table.

    This is a programming error (the code enumeration and the table drifted
    apart) and is never converted into an ``AuthError``.
    """


@dataclass(frozen=True)
class AuthResult(Generic[T]):
    """Explicit outcome of an account operation: a value or an ``AuthError``."""

    value: Optional[T] = None
    error: Optional[AuthError] = None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "AuthResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: AuthError) -> "AuthResult[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Optional[T]:
        if self.error is not None:
            raise AuthFailure(self.error)
        return self.value


__all__ = [
    "AuthError",
    "AuthErrorKind",
    "AuthFailure",
    "AuthResult",
    "ServiceError",
    "UnmappedErrorCode",
]
