from __future__ import annotations

from typing import Dict, Tuple

from launchauth.service.errors import AuthError, AuthErrorKind, UnmappedErrorCode
from launchauth.service.messages import MessageCatalog
from launchauth.service.provider import ProviderErrorCode

# code -> (kind, catalog key stem); title/description keys append Title/Desc
ERROR_TABLE: Dict[ProviderErrorCode, Tuple[AuthErrorKind, str]] = {
    ProviderErrorCode.METHOD_NOT_ALLOWED: (
        AuthErrorKind.PROVIDER_REJECTED,
        "auth.mojang.error.methodNotAllowed",
    ),
    ProviderErrorCode.NOT_FOUND: (
        AuthErrorKind.PROVIDER_REJECTED,
        "auth.mojang.error.notFound",
    ),
    ProviderErrorCode.USER_MIGRATED: (
        AuthErrorKind.PROVIDER_REJECTED,
        "auth.mojang.error.accountMigrated",
    ),
    ProviderErrorCode.INVALID_CREDENTIALS: (
        AuthErrorKind.PROVIDER_REJECTED,
        "auth.mojang.error.invalidCredentials",
    ),
    ProviderErrorCode.RATELIMIT: (
        AuthErrorKind.PROVIDER_REJECTED,
        "auth.mojang.error.tooManyAttempts",
    ),
    ProviderErrorCode.INVALID_TOKEN: (
        AuthErrorKind.PROVIDER_REJECTED,
        "auth.mojang.error.invalidToken",
    ),
    ProviderErrorCode.ACCESS_TOKEN_HAS_PROFILE: (
        AuthErrorKind.PROVIDER_REJECTED,
        "auth.mojang.error.tokenHasProfile",
    ),
    ProviderErrorCode.CREDENTIALS_MISSING: (
        AuthErrorKind.PROVIDER_REJECTED,
        "auth.mojang.error.credentialsMissing",
    ),
    ProviderErrorCode.INVALID_SALT_VERSION: (
        AuthErrorKind.PROVIDER_REJECTED,
        "auth.mojang.error.invalidSaltVersion",
    ),
    ProviderErrorCode.UNSUPPORTED_MEDIA_TYPE: (
        AuthErrorKind.PROVIDER_REJECTED,
        "auth.mojang.error.unsupportedMediaType",
    ),
    ProviderErrorCode.GONE: (
        AuthErrorKind.PROVIDER_REJECTED,
        "auth.mojang.error.accountGone",
    ),
    ProviderErrorCode.UNREACHABLE: (
        AuthErrorKind.PROVIDER_UNAVAILABLE,
        "auth.mojang.error.unreachable",
    ),
    ProviderErrorCode.NOT_PAID: (
        AuthErrorKind.NOT_ENTITLED,
        "auth.mojang.error.gameNotPurchased",
    ),
    ProviderErrorCode.UNKNOWN: (
        AuthErrorKind.UNKNOWN,
        "auth.mojang.error.unknownError",
    ),
}

_missing = set(ProviderErrorCode) - set(ERROR_TABLE)
if _missing:
    raise UnmappedErrorCode(
        "error table is missing codes: " + ", ".join(sorted(c.name for c in _missing))
    )

ACCOUNT_NOT_FOUND_KEY = "auth.error.accountNotFound"
NO_SELECTION_KEY = "auth.error.noSelection"


class ErrorMapper:
    """Translate provider error codes into displayable ``AuthError`` values."""

    def __init__(self, catalog: MessageCatalog) -> None:
        self.catalog = catalog

    def _build(self, kind: AuthErrorKind, stem: str, code: str | None = None) -> AuthError:
        return AuthError(
            kind=kind,
            title=self.catalog.lookup(stem + "Title"),
            description=self.catalog.lookup(stem + "Desc"),
            code=code,
        )

    def map(self, code: ProviderErrorCode) -> AuthError:
        entry = ERROR_TABLE.get(code) if isinstance(code, ProviderErrorCode) else None
        if entry is None:
            raise UnmappedErrorCode(f"Unknown error code: {code!r}")
        kind, stem = entry
        return self._build(kind, stem, code.value)

    def unknown(self) -> AuthError:
        return self.map(ProviderErrorCode.UNKNOWN)

    def unavailable(self) -> AuthError:
        return self.map(ProviderErrorCode.UNREACHABLE)

    def not_entitled(self) -> AuthError:
        return self.map(ProviderErrorCode.NOT_PAID)

    def not_found(self) -> AuthError:
        return self._build(AuthErrorKind.NOT_FOUND, ACCOUNT_NOT_FOUND_KEY)

    def no_selection(self) -> AuthError:
        return self._build(AuthErrorKind.NO_SELECTION, NO_SELECTION_KEY)


__all__ = ["ERROR_TABLE", "ErrorMapper"]
