import json

import pytest
from pydantic import ValidationError

from launchauth.config import Settings, get_settings, reset_settings_cache
from launchauth.service.messages import LangCatalog
from launchauth.service.runtime import get_runtime, reset_runtime_for_tests
from launchauth.service.yggdrasil import YggdrasilClient


class TestSettings:
    def test_trailing_slash_is_stripped(self):
        settings = Settings(auth_server_url="https://auth.example.com/")

        assert settings.auth_server_url == "https://auth.example.com"

    def test_non_http_url_rejected(self):
        with pytest.raises(ValidationError):
            Settings(auth_server_url="ftp://auth.example.com")

    def test_non_positive_timeout_rejected(self):
        with pytest.raises(ValidationError):
            Settings(request_timeout_seconds=0)

    def test_data_root_expands_home(self):
        settings = Settings(data_root="~/launcher")

        assert not settings.data_root.startswith("~")

    def test_from_env_reads_declared_names(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("AUTH_REQUEST_TIMEOUT", "3.5")
        monkeypatch.setenv("LAUNCHAUTH_PERSIST_ACCOUNTS", "false")
        monkeypatch.setenv("LAUNCHAUTH_LANGUAGE", "de_DE")

        settings = Settings.from_env()

        assert settings.request_timeout_seconds == 3.5
        assert settings.persist_accounts is False
        assert settings.language == "de_DE"

    def test_from_env_reads_dotenv_file(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("AUTH_USER_AGENT", raising=False)
        (tmp_path / ".env").write_text("AUTH_USER_AGENT=launcher/2.0\n")

        assert Settings.from_env().user_agent == "launcher/2.0"

    def test_environment_wins_over_dotenv(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".env").write_text("AUTH_USER_AGENT=from-file\n")
        monkeypatch.setenv("AUTH_USER_AGENT", "from-env")

        assert Settings.from_env().user_agent == "from-env"

    def test_settings_are_cached_until_reset(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("AUTH_USER_AGENT", "changed")

        assert get_settings() is first
        reset_settings_cache()
        assert get_settings().user_agent == "changed"


class TestLangCatalog:
    def test_english_lookup(self):
        catalog = LangCatalog()

        assert catalog.lookup("auth.error.noSelectionTitle") == "No Account Selected"

    def test_translation_is_preferred(self):
        catalog = LangCatalog("de_DE")

        assert catalog.lookup("auth.error.noSelectionTitle") == "Kein Konto ausgewählt"

    def test_missing_translation_falls_back_to_english(self):
        english = LangCatalog()
        german = LangCatalog("de_DE")

        key = "auth.error.accountNotFoundTitle"
        assert german.lookup(key) == english.lookup(key) == "Account Not Found"

    def test_unknown_language_uses_english(self):
        catalog = LangCatalog("xx_XX")

        assert catalog.lookup("auth.error.accountNotFoundTitle") == "Account Not Found"

    def test_unknown_key_returns_key(self):
        assert LangCatalog().lookup("auth.nope") == "auth.nope"

    def test_custom_lang_dir(self, tmp_path):
        (tmp_path / "en_US.json").write_text(json.dumps({"a": {"b": "nested"}}))

        assert LangCatalog(lang_dir=tmp_path).lookup("a.b") == "nested"


class TestRuntime:
    def test_runtime_wires_services_from_settings(self, monkeypatch, tmp_path):
        monkeypatch.setenv("LAUNCHAUTH_DATA_ROOT", str(tmp_path))
        reset_runtime_for_tests()

        runtime = get_runtime()

        assert runtime is get_runtime()
        assert isinstance(runtime.provider, YggdrasilClient)
        assert runtime.provider.base_url == "https://auth.test.invalid"
        assert runtime.store.fs_root == tmp_path
        assert runtime.accounts.list_accounts() == []

    def test_persistence_can_be_disabled(self, monkeypatch):
        monkeypatch.setenv("LAUNCHAUTH_PERSIST_ACCOUNTS", "false")
        reset_runtime_for_tests()

        assert get_runtime().store.fs_root is None

    def test_reset_builds_a_new_runtime(self):
        first = get_runtime()
        reset_runtime_for_tests()

        assert get_runtime() is not first
