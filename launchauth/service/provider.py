from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, Protocol, TypeVar

T = TypeVar("T")


class ProviderStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class ProviderErrorCode(str, Enum):
    """Closed set of error codes the identity provider can report."""

    METHOD_NOT_ALLOWED = "method_not_allowed"
    NOT_FOUND = "not_found"
    USER_MIGRATED = "user_migrated"
    INVALID_CREDENTIALS = "invalid_credentials"
    RATELIMIT = "ratelimit"
    INVALID_TOKEN = "invalid_token"
    ACCESS_TOKEN_HAS_PROFILE = "access_token_has_profile"
    CREDENTIALS_MISSING = "credentials_missing"
    INVALID_SALT_VERSION = "invalid_salt_version"
    UNSUPPORTED_MEDIA_TYPE = "unsupported_media_type"
    GONE = "gone"
    UNREACHABLE = "unreachable"
    NOT_PAID = "not_paid"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class GameProfile:
    id: str
    name: str


@dataclass(frozen=True)
class AuthSession:
    """Session returned by ``authenticate`` and ``refresh``."""

    access_token: str
    client_token: str
    selected_profile: Optional[GameProfile] = None


@dataclass(frozen=True)
class ProviderResponse(Generic[T]):
    status: ProviderStatus
    data: Optional[T] = None
    error_code: Optional[ProviderErrorCode] = None

    @classmethod
    def success(cls, data: Optional[T] = None) -> "ProviderResponse[T]":
        return cls(status=ProviderStatus.SUCCESS, data=data)

    @classmethod
    def error(cls, code: ProviderErrorCode) -> "ProviderResponse[T]":
        return cls(status=ProviderStatus.ERROR, error_code=code)

    @property
    def ok(self) -> bool:
        return self.status is ProviderStatus.SUCCESS


class ProviderTransportError(Exception):
    """The provider could not be reached or its reply could not be read."""


class IdentityProvider(Protocol):
    async def authenticate(
        self, username: str, password: str, client_token: Optional[str]
    ) -> ProviderResponse[AuthSession]: ...

    async def invalidate(
        self, access_token: str, client_token: Optional[str]
    ) -> ProviderResponse[None]: ...

    async def check_valid(
        self, access_token: str, client_token: Optional[str]
    ) -> ProviderResponse[bool]: ...

    async def refresh(
        self, access_token: str, client_token: Optional[str]
    ) -> ProviderResponse[AuthSession]: ...


__all__ = [
    "AuthSession",
    "GameProfile",
    "IdentityProvider",
    "ProviderErrorCode",
    "ProviderResponse",
    "ProviderStatus",
    "ProviderTransportError",
]
