import asyncio
import inspect
import os
import sys
import tempfile
from pathlib import Path

# Point the runtime at a throwaway data root before anything reads settings
_test_tmp_dir = tempfile.mkdtemp(prefix="launchauth_test_")
os.environ.setdefault("LAUNCHAUTH_DATA_ROOT", _test_tmp_dir)
os.environ.setdefault("AUTH_SERVER_URL", "https://auth.test.invalid")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


from launchauth.service.accounts import AccountLifecycleManager  # noqa: E402
from launchauth.service.messages import LangCatalog  # noqa: E402
from launchauth.service.provider import (  # noqa: E402
    AuthSession,
    GameProfile,
    ProviderErrorCode,
    ProviderResponse,
)
from launchauth.service.runtime import reset_runtime_for_tests  # noqa: E402
from launchauth.storage.memory import MemoryAccountStore  # noqa: E402

PROFILE_ID = "069a79f444e94726a5befca90e38aaf5"
PROFILE_NAME = "Notch"


class FakeIdentityProvider:
    """Scriptable identity provider recording every call it receives.

    Each ``*_result`` attribute is either a ``ProviderResponse`` or an
    exception instance to raise. Setting ``gate`` makes every call wait on
    the event before answering.
    """

    def __init__(self):
        self.calls = []
        self.gate: asyncio.Event | None = None
        self.authenticate_result = ProviderResponse.success(
            AuthSession(
                access_token="access-1",
                client_token="client-1",
                selected_profile=GameProfile(id=PROFILE_ID, name=PROFILE_NAME),
            )
        )
        self.invalidate_result = ProviderResponse.success(None)
        self.check_valid_result = ProviderResponse.success(True)
        self.refresh_result = ProviderResponse.success(
            AuthSession(access_token="access-2", client_token="client-1")
        )

    async def _answer(self, name, result, *args):
        self.calls.append((name, *args))
        if self.gate is not None:
            await self.gate.wait()
        if isinstance(result, BaseException):
            raise result
        return result

    async def authenticate(self, username, password, client_token):
        return await self._answer("authenticate", self.authenticate_result, username, client_token)

    async def invalidate(self, access_token, client_token):
        return await self._answer("invalidate", self.invalidate_result, access_token, client_token)

    async def check_valid(self, access_token, client_token):
        return await self._answer("check_valid", self.check_valid_result, access_token, client_token)

    async def refresh(self, access_token, client_token):
        return await self._answer("refresh", self.refresh_result, access_token, client_token)

    def call_names(self):
        return [call[0] for call in self.calls]


@pytest.fixture
def provider():
    return FakeIdentityProvider()


@pytest.fixture
def catalog():
    return LangCatalog("en_US")


@pytest.fixture
def store(tmp_path):
    return MemoryAccountStore(fs_root=str(tmp_path))


@pytest.fixture
def manager(provider, store, catalog):
    return AccountLifecycleManager(provider, store, catalog)


@pytest.fixture
def rejected():
    """Factory for structured provider error responses."""

    def _make(code=ProviderErrorCode.INVALID_TOKEN):
        return ProviderResponse.error(code)

    return _make


@pytest.fixture(autouse=True)
def reset_runtime_state():
    reset_runtime_for_tests()
    yield
    reset_runtime_for_tests()


def pytest_pyfunc_call(pyfuncitem):
    if inspect.iscoroutinefunction(pyfuncitem.obj):
        call_kwargs = {
            name: pyfuncitem.funcargs[name]
            for name in pyfuncitem._fixtureinfo.argnames
            if name in pyfuncitem.funcargs
        }
        asyncio.run(pyfuncitem.obj(**call_kwargs))
        return True
    return None


def pytest_configure(config):
    config.addinivalue_line("markers", "asyncio: mark test as async")
