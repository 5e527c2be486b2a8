from __future__ import annotations

import threading
from typing import Optional

from launchauth.config import Settings, get_settings, reset_settings_cache
from launchauth.logging import get_logger
from launchauth.service.accounts import AccountLifecycleManager
from launchauth.service.messages import LangCatalog
from launchauth.service.yggdrasil import YggdrasilClient
from launchauth.storage.memory import MemoryAccountStore

logger = get_logger(__name__)


class Runtime:
    """Holds singleton service instances for the launcher process."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        logger.info(
            "runtime_init_started",
            auth_server_url=self.settings.auth_server_url,
            persist_accounts=self.settings.persist_accounts,
        )

        try:
            self.store = MemoryAccountStore(
                fs_root=self.settings.data_root if self.settings.persist_accounts else None
            )
        except Exception as exc:
            logger.error(
                "runtime_store_init_failed",
                data_root=self.settings.data_root,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise

        self.catalog = LangCatalog(self.settings.language)
        self.provider = YggdrasilClient(
            self.settings.auth_server_url,
            timeout=self.settings.request_timeout_seconds,
            connect_timeout=self.settings.connect_timeout_seconds,
            user_agent=self.settings.user_agent,
        )
        self.accounts = AccountLifecycleManager(self.provider, self.store, self.catalog)
        logger.info(
            "runtime_init_completed",
            stored_accounts=len(self.store.list_accounts()),
            language=self.settings.language,
        )

    async def aclose(self) -> None:
        await self.provider.aclose()


_runtime: Runtime | None = None
_runtime_lock = threading.Lock()


def get_runtime() -> Runtime:
    global _runtime
    if _runtime is None:
        with _runtime_lock:
            if _runtime is None:
                _runtime = Runtime()
    return _runtime


def reset_runtime_for_tests() -> None:
    """Drop the cached runtime and settings so tests start from the environment."""

    global _runtime
    with _runtime_lock:
        _runtime = None
    reset_settings_cache()
