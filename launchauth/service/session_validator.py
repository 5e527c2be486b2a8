from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from launchauth.logging import get_logger
from launchauth.service.error_mapper import ErrorMapper
from launchauth.service.errors import AuthResult
from launchauth.service.provider import (
    IdentityProvider,
    ProviderErrorCode,
    ProviderTransportError,
)
from launchauth.storage.models import Account

logger = get_logger(__name__)


class ValidationStatus(str, Enum):
    VALID = "valid"
    REFRESHED = "refreshed"
    INVALID = "invalid"


@dataclass(frozen=True)
class ValidationOutcome:
    status: ValidationStatus
    access_token: Optional[str] = None

    @classmethod
    def valid(cls) -> "ValidationOutcome":
        return cls(ValidationStatus.VALID)

    @classmethod
    def refreshed(cls, access_token: str) -> "ValidationOutcome":
        return cls(ValidationStatus.REFRESHED, access_token)

    @classmethod
    def invalid(cls) -> "ValidationOutcome":
        return cls(ValidationStatus.INVALID)


class SessionValidator:
    """Check an account's access token and renew it once when stale.

    Never touches the account store: a ``REFRESHED`` outcome carries the new
    token and the caller decides how to persist it. Transport failures and
    structured provider errors on the validity check become failures; any
    failure of the single refresh attempt becomes ``INVALID``.
    """

    def __init__(self, provider: IdentityProvider, errors: ErrorMapper) -> None:
        self.provider = provider
        self.errors = errors

    async def validate(
        self, account: Account, client_token: Optional[str]
    ) -> AuthResult[ValidationOutcome]:
        try:
            response = await self.provider.check_valid(account.access_token, client_token)
        except ProviderTransportError as exc:
            logger.warning(
                "session_check_unreachable", account_id=account.id, error=str(exc)
            )
            return AuthResult.failure(self.errors.unavailable())

        if not response.ok:
            error = self.errors.map(response.error_code or ProviderErrorCode.UNKNOWN)
            logger.warning(
                "session_check_rejected", account_id=account.id, error_code=error.code
            )
            return AuthResult.failure(error)

        if response.data:
            logger.info("session_valid", account_id=account.id)
            return AuthResult.success(ValidationOutcome.valid())

        return AuthResult.success(await self._refresh(account, client_token))

    async def _refresh(
        self, account: Account, client_token: Optional[str]
    ) -> ValidationOutcome:
        try:
            refreshed = await self.provider.refresh(account.access_token, client_token)
        except ProviderTransportError as exc:
            logger.error("session_refresh_unreachable", account_id=account.id, error=str(exc))
            logger.info("session_invalid", account_id=account.id)
            return ValidationOutcome.invalid()

        if not refreshed.ok or refreshed.data is None:
            logger.error(
                "session_refresh_failed",
                account_id=account.id,
                error_code=getattr(refreshed.error_code, "value", refreshed.error_code),
            )
            logger.info("session_invalid", account_id=account.id)
            return ValidationOutcome.invalid()

        logger.info("session_refreshed", account_id=account.id)
        return ValidationOutcome.refreshed(refreshed.data.access_token)


__all__ = ["SessionValidator", "ValidationOutcome", "ValidationStatus"]
