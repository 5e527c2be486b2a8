from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Callable, Dict, List, Optional, Protocol

from launchauth.logging import get_logger, set_operation_id
from launchauth.service.error_mapper import ErrorMapper
from launchauth.service.errors import AuthError, AuthResult, UnmappedErrorCode
from launchauth.service.messages import MessageCatalog
from launchauth.service.provider import (
    IdentityProvider,
    ProviderErrorCode,
    ProviderTransportError,
)
from launchauth.service.session_validator import SessionValidator, ValidationStatus
from launchauth.storage.models import Account

logger = get_logger(__name__)


class AccountStore(Protocol):
    def get(self, account_id: str) -> Optional[Account]: ...

    def put(self, account: Account) -> Account: ...

    def remove(self, account_id: str) -> bool: ...

    def list_accounts(self) -> List[Account]: ...

    def get_selected(self) -> Optional[Account]: ...

    def set_selected(self, account_id: Optional[str]) -> None: ...

    def get_client_token(self) -> Optional[str]: ...

    def set_client_token(self, token: str) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


class AccountLifecycleManager:
    """Add, remove, select and validate launcher accounts.

    Every operation returns an ``AuthResult``; provider errors are mapped to
    ``AuthError`` values at this boundary and unexpected faults are logged and
    reported as ``UNKNOWN``. Operations on the same account id are serialized
    with a per-account lock, and all store mutations go through a single
    writer lock so each commit carries exactly one operation's changes.
    """

    def __init__(
        self,
        provider: IdentityProvider,
        store: AccountStore,
        catalog: MessageCatalog,
        *,
        validator: Optional[SessionValidator] = None,
    ) -> None:
        self.provider = provider
        self.store = store
        self.errors = ErrorMapper(catalog)
        self.validator = validator or SessionValidator(provider, self.errors)
        self._account_locks: Dict[str, asyncio.Lock] = {}
        self._account_lock_users: Dict[str, int] = {}
        self._account_locks_access = asyncio.Lock()
        # Held across sign-in while the store has no client token yet
        self._client_token_lock = asyncio.Lock()
        self._store_writer = asyncio.Lock()

    @asynccontextmanager
    async def _account_lock(self, account_id: str) -> AsyncIterator[None]:
        """Serialize work on one account id.

        The lock entry is dropped as soon as no task holds or awaits it, so ids
        of deleted or never-stored accounts do not accumulate.
        """
        async with self._account_locks_access:
            lock = self._account_locks.get(account_id)
            if lock is None:
                lock = self._account_locks[account_id] = asyncio.Lock()
            self._account_lock_users[account_id] = self._account_lock_users.get(account_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            async with self._account_locks_access:
                users = self._account_lock_users[account_id] - 1
                if users:
                    self._account_lock_users[account_id] = users
                else:
                    del self._account_lock_users[account_id]
                    del self._account_locks[account_id]

    async def _write(
        self, operation: str, mutate: Callable[[], None], **fields
    ) -> Optional[AuthError]:
        """Apply ``mutate`` and commit under the writer lock; roll back on failure."""
        async with self._store_writer:
            try:
                mutate()
                self.store.commit()
            except Exception as exc:
                self.store.rollback()
                logger.error(
                    "account_store_write_failed",
                    operation=operation,
                    error_type=type(exc).__name__,
                    error=str(exc),
                    exc_info=True,
                    **fields,
                )
                return self.errors.unknown()
        return None

    def _client_token_for(self, account: Account) -> Optional[str]:
        return self.store.get_client_token() or account.client_token or None

    # Read helpers

    def list_accounts(self) -> List[Account]:
        return self.store.list_accounts()

    def get_selected(self) -> Optional[Account]:
        return self.store.get_selected()

    # Operations

    async def add_account(
        self, username: str, password: str, *, select: Optional[bool] = None
    ) -> AuthResult[Account]:
        """Authenticate credentials and store the resulting account.

        ``select=None`` selects the new account only when nothing is selected
        yet; ``True``/``False`` force the choice. While the store has no
        client token, sign-ins run one at a time so the token issued to the
        first one is reused by the rest.
        """
        set_operation_id()
        if self.store.get_client_token() is None:
            async with self._client_token_lock:
                return await self._add_account(username, password, select)
        return await self._add_account(username, password, select)

    async def _add_account(
        self, username: str, password: str, select: Optional[bool]
    ) -> AuthResult[Account]:
        try:
            response = await self.provider.authenticate(
                username, password, self.store.get_client_token()
            )
        except Exception as exc:
            logger.error(
                "account_add_failed",
                username=username,
                error_type=type(exc).__name__,
                error=str(exc),
                exc_info=True,
            )
            return AuthResult.failure(self.errors.unknown())

        if not response.ok:
            error = self.errors.map(response.error_code or ProviderErrorCode.UNKNOWN)
            logger.warning("account_add_rejected", username=username, error_code=error.code)
            return AuthResult.failure(error)

        session = response.data
        if session is None or session.selected_profile is None:
            logger.warning("account_add_not_entitled", username=username)
            return AuthResult.failure(self.errors.not_entitled())

        profile = session.selected_profile
        async with self._account_lock(profile.id):
            existing = self.store.get(profile.id)
            account = Account(
                id=profile.id,
                display_name=profile.name,
                username=username,
                access_token=session.access_token,
                client_token=session.client_token,
                added_at=existing.added_at if existing else datetime.now(timezone.utc),
            )

            def mutate() -> None:
                self.store.put(account)
                if self.store.get_client_token() is None:
                    self.store.set_client_token(session.client_token)
                if select or (select is None and self.store.get_selected() is None):
                    self.store.set_selected(account.id)

            error = await self._write("add_account", mutate, account_id=account.id)
            if error is not None:
                return AuthResult.failure(error)

        logger.info(
            "account_added",
            account_id=account.id,
            display_name=account.display_name,
            replaced=existing is not None,
        )
        return AuthResult.success(account)

    async def remove_account(self, account_id: str) -> AuthResult[None]:
        """Invalidate the account's session remotely, then delete it locally.

        The local record is kept whenever the provider does not confirm the
        invalidation, or when the local commit fails.
        """
        set_operation_id()
        async with self._account_lock(account_id):
            account = self.store.get(account_id)
            if account is None:
                return AuthResult.failure(self.errors.not_found())

            try:
                response = await self.provider.invalidate(
                    account.access_token, self._client_token_for(account)
                )
            except ProviderTransportError as exc:
                logger.error("account_remove_unreachable", account_id=account_id, error=str(exc))
                return AuthResult.failure(self.errors.unavailable())
            except Exception as exc:
                logger.error(
                    "account_remove_failed",
                    account_id=account_id,
                    error_type=type(exc).__name__,
                    error=str(exc),
                    exc_info=True,
                )
                return AuthResult.failure(self.errors.unknown())

            if not response.ok:
                error = self.errors.map(response.error_code or ProviderErrorCode.UNKNOWN)
                logger.error(
                    "account_remove_rejected", account_id=account_id, error_code=error.code
                )
                return AuthResult.failure(error)

            error = await self._write(
                "remove_account",
                lambda: self.store.remove(account_id),
                account_id=account_id,
            )
            if error is not None:
                return AuthResult.failure(error)

        logger.info("account_removed", account_id=account_id)
        return AuthResult.success(None)

    async def force_remove_account(self, account_id: str) -> AuthResult[None]:
        """Delete the local record without asking the provider to invalidate it."""
        set_operation_id()
        async with self._account_lock(account_id):
            if self.store.get(account_id) is None:
                return AuthResult.failure(self.errors.not_found())
            error = await self._write(
                "force_remove_account",
                lambda: self.store.remove(account_id),
                account_id=account_id,
            )
            if error is not None:
                return AuthResult.failure(error)

        logger.warning("account_force_removed", account_id=account_id)
        return AuthResult.success(None)

    async def select_account(self, account_id: str) -> AuthResult[Account]:
        set_operation_id()
        async with self._account_lock(account_id):
            account = self.store.get(account_id)
            if account is None:
                return AuthResult.failure(self.errors.not_found())
            error = await self._write(
                "select_account",
                lambda: self.store.set_selected(account_id),
                account_id=account_id,
            )
            if error is not None:
                return AuthResult.failure(error)

        logger.info("account_selected", account_id=account_id)
        return AuthResult.success(account)

    async def validate_selected(self) -> AuthResult[bool]:
        """Validate the selected account, refreshing its token when stale.

        ``False`` means the account needs a fresh login; the record is kept.
        """
        set_operation_id()
        while True:
            selected = self.store.get_selected()
            if selected is None:
                return AuthResult.failure(self.errors.no_selection())
            async with self._account_lock(selected.id):
                current = self.store.get_selected()
                if current is None or current.id != selected.id:
                    # Selection changed while waiting for the lock
                    continue
                return await self._validate_locked(current)

    async def _validate_locked(self, account: Account) -> AuthResult[bool]:
        try:
            result = await self.validator.validate(account, self._client_token_for(account))
        except UnmappedErrorCode:
            raise
        except Exception as exc:
            logger.error(
                "account_validate_failed",
                account_id=account.id,
                error_type=type(exc).__name__,
                error=str(exc),
                exc_info=True,
            )
            return AuthResult.failure(self.errors.unknown())

        if not result.ok:
            return AuthResult.failure(result.error)

        outcome = result.value
        if outcome.status is ValidationStatus.VALID:
            return AuthResult.success(True)
        if outcome.status is ValidationStatus.INVALID:
            return AuthResult.success(False)

        renewed = account.with_access_token(outcome.access_token)
        error = await self._write(
            "validate_selected",
            lambda: self.store.put(renewed),
            account_id=account.id,
        )
        if error is not None:
            return AuthResult.failure(error)
        return AuthResult.success(True)


__all__ = ["AccountLifecycleManager", "AccountStore"]
