from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from launchauth.logging import get_logger
from launchauth.service.provider import (
    AuthSession,
    GameProfile,
    ProviderErrorCode,
    ProviderResponse,
    ProviderTransportError,
)

logger = get_logger(__name__)

MINECRAFT_AGENT = {"name": "Minecraft", "version": 1}

# errorMessage values the auth server sends with ForbiddenOperationException
_FORBIDDEN_MESSAGES = {
    "Invalid credentials. Invalid username or password.": ProviderErrorCode.INVALID_CREDENTIALS,
    "Invalid credentials.": ProviderErrorCode.RATELIMIT,
    "Invalid token.": ProviderErrorCode.INVALID_TOKEN,
    "Forbidden": ProviderErrorCode.CREDENTIALS_MISSING,
}

_ILLEGAL_ARGUMENT_MESSAGES = {
    "Access token already has a profile assigned.": ProviderErrorCode.ACCESS_TOKEN_HAS_PROFILE,
    "Invalid salt version": ProviderErrorCode.INVALID_SALT_VERSION,
}


def decipher_error_code(body: Any) -> ProviderErrorCode:
    """Map an auth server error body onto a ``ProviderErrorCode``."""
    if not isinstance(body, dict):
        return ProviderErrorCode.UNKNOWN
    error = body.get("error")
    message = body.get("errorMessage")
    if error == "Method Not Allowed":
        return ProviderErrorCode.METHOD_NOT_ALLOWED
    if error == "Not Found":
        return ProviderErrorCode.NOT_FOUND
    if error == "Unsupported Media Type":
        return ProviderErrorCode.UNSUPPORTED_MEDIA_TYPE
    if error == "ForbiddenOperationException":
        if body.get("cause") == "UserMigratedException":
            return ProviderErrorCode.USER_MIGRATED
        return _FORBIDDEN_MESSAGES.get(message, ProviderErrorCode.UNKNOWN)
    if error == "IllegalArgumentException":
        return _ILLEGAL_ARGUMENT_MESSAGES.get(message, ProviderErrorCode.UNKNOWN)
    if error in {"ResourceException", "GoneException"}:
        return ProviderErrorCode.GONE
    return ProviderErrorCode.UNKNOWN


class YggdrasilClient:
    """Identity provider client for a Yggdrasil-compatible auth server.

    Timeouts and connection failures are reported as ``UNREACHABLE`` error
    responses; replies that cannot be understood raise
    ``ProviderTransportError``.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 15.0,
        connect_timeout: float = 5.0,
        user_agent: str = "launchauth",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self.user_agent = user_agent
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create an HTTP client for API calls."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout, connect=self.connect_timeout),
                headers={"User-Agent": self.user_agent},
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _post(self, endpoint: str, payload: Dict[str, Any]) -> Optional[httpx.Response]:
        """POST ``payload``; ``None`` means the server could not be reached."""
        client = await self._get_client()
        try:
            return await client.post(endpoint, json=payload)
        except httpx.TimeoutException as exc:
            logger.warning("yggdrasil_timeout", endpoint=endpoint, error=str(exc))
            return None
        except httpx.TransportError as exc:
            logger.warning(
                "yggdrasil_unreachable",
                endpoint=endpoint,
                base_url=self.base_url,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return None

    def _error_response(self, endpoint: str, response: httpx.Response) -> ProviderResponse:
        try:
            body = response.json()
        except ValueError:
            body = None
        code = decipher_error_code(body)
        logger.warning(
            "yggdrasil_error_response",
            endpoint=endpoint,
            status_code=response.status_code,
            error_code=code.value,
        )
        return ProviderResponse.error(code)

    @staticmethod
    def _parse_session(endpoint: str, response: httpx.Response) -> AuthSession:
        try:
            data = response.json()
            profile_data = data.get("selectedProfile")
            profile = None
            if profile_data:
                profile = GameProfile(id=profile_data["id"], name=profile_data["name"])
            return AuthSession(
                access_token=data["accessToken"],
                client_token=data["clientToken"],
                selected_profile=profile,
            )
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            raise ProviderTransportError(
                f"Malformed {endpoint} response from auth server"
            ) from exc

    @staticmethod
    def _token_payload(access_token: str, client_token: Optional[str]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"accessToken": access_token}
        if client_token:
            payload["clientToken"] = client_token
        return payload

    async def authenticate(
        self, username: str, password: str, client_token: Optional[str]
    ) -> ProviderResponse[AuthSession]:
        payload: Dict[str, Any] = {
            "agent": MINECRAFT_AGENT,
            "username": username,
            "password": password,
            "requestUser": True,
        }
        if client_token:
            payload["clientToken"] = client_token
        response = await self._post("/authenticate", payload)
        if response is None:
            return ProviderResponse.error(ProviderErrorCode.UNREACHABLE)
        if response.status_code != 200:
            return self._error_response("authenticate", response)
        return ProviderResponse.success(self._parse_session("authenticate", response))

    async def check_valid(
        self, access_token: str, client_token: Optional[str]
    ) -> ProviderResponse[bool]:
        response = await self._post("/validate", self._token_payload(access_token, client_token))
        if response is None:
            return ProviderResponse.error(ProviderErrorCode.UNREACHABLE)
        if response.status_code == 204:
            return ProviderResponse.success(True)
        if response.status_code == 403:
            # A stale or revoked token is a normal answer, not an error
            return ProviderResponse.success(False)
        return self._error_response("validate", response)

    async def refresh(
        self, access_token: str, client_token: Optional[str]
    ) -> ProviderResponse[AuthSession]:
        payload = self._token_payload(access_token, client_token)
        payload["requestUser"] = True
        response = await self._post("/refresh", payload)
        if response is None:
            return ProviderResponse.error(ProviderErrorCode.UNREACHABLE)
        if response.status_code != 200:
            return self._error_response("refresh", response)
        return ProviderResponse.success(self._parse_session("refresh", response))

    async def invalidate(
        self, access_token: str, client_token: Optional[str]
    ) -> ProviderResponse[None]:
        response = await self._post("/invalidate", self._token_payload(access_token, client_token))
        if response is None:
            return ProviderResponse.error(ProviderErrorCode.UNREACHABLE)
        if response.status_code in (200, 204):
            return ProviderResponse.success(None)
        return self._error_response("invalidate", response)


__all__ = ["YggdrasilClient", "decipher_error_code"]
