from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, field_validator

from launchauth.logging import get_logger

logger = get_logger(__name__)

DEFAULT_AUTH_SERVER_URL = "https://authserver.mojang.com"


def env_field(default: Any, env: str, **kwargs):
    extra = kwargs.pop("json_schema_extra", {}) or {}
    extra = {**extra, "env": env}
    return Field(default, json_schema_extra=extra, **kwargs)


class Settings(BaseModel):
    """Runtime settings for the launcher account layer."""

    auth_server_url: str = env_field(DEFAULT_AUTH_SERVER_URL, "AUTH_SERVER_URL")
    request_timeout_seconds: float = env_field(
        15.0,
        "AUTH_REQUEST_TIMEOUT",
        description="Total timeout for one identity provider request",
    )
    connect_timeout_seconds: float = env_field(
        5.0,
        "AUTH_CONNECT_TIMEOUT",
        description="Connect timeout for identity provider requests",
    )
    user_agent: str = env_field("launchauth", "AUTH_USER_AGENT")
    data_root: str = env_field(
        str(Path.home() / ".launchauth"),
        "LAUNCHAUTH_DATA_ROOT",
        description="Directory holding the persisted account database",
    )
    persist_accounts: bool = env_field(
        True,
        "LAUNCHAUTH_PERSIST_ACCOUNTS",
        description="Write committed accounts to disk; false keeps them in memory only",
    )
    language: str = env_field("en_US", "LAUNCHAUTH_LANGUAGE")

    model_config = ConfigDict(extra="ignore")

    @classmethod
    def from_env(cls) -> "Settings":
        env_file_values = dotenv_values(".env")
        merged: dict[str, str] = {}
        for name, field in cls.model_fields.items():
            extra = field.json_schema_extra or {}
            env_key = extra.get("env") if isinstance(extra, dict) else None
            env_name = env_key or name.upper()
            if env_name in os.environ:
                merged[name] = os.environ[env_name]
            elif env_name in env_file_values:
                merged[name] = env_file_values[env_name]
        return cls(**merged)

    @field_validator("auth_server_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith(("https://", "http://")):
            raise ValueError("auth_server_url must be an http(s) URL")
        return value.rstrip("/")

    @field_validator("request_timeout_seconds", "connect_timeout_seconds")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeouts must be positive")
        return value

    @field_validator("data_root")
    @classmethod
    def _expand_data_root(cls, value: str) -> str:
        return str(Path(value).expanduser())


def get_settings() -> Settings:
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = Settings.from_env()
        logger.debug(
            "settings_loaded",
            auth_server_url=_settings_cache.auth_server_url,
            persist_accounts=_settings_cache.persist_accounts,
            language=_settings_cache.language,
        )
    return _settings_cache


_settings_cache: Settings | None = None


def reset_settings_cache() -> None:
    """Clear cached settings so future calls re-read the environment."""

    global _settings_cache
    _settings_cache = None
