"""Tests for provider error code mapping."""

import pytest

from launchauth.service.error_mapper import ERROR_TABLE, ErrorMapper
from launchauth.service.errors import (
    AuthErrorKind,
    AuthFailure,
    AuthResult,
    UnmappedErrorCode,
)
from launchauth.service.messages import DictCatalog, LangCatalog
from launchauth.service.provider import ProviderErrorCode


@pytest.fixture
def mapper():
    return ErrorMapper(LangCatalog("en_US"))


class TestErrorTable:
    def test_table_covers_every_code(self):
        assert set(ERROR_TABLE) == set(ProviderErrorCode)

    @pytest.mark.parametrize("code", list(ProviderErrorCode))
    def test_every_code_maps_to_displayable_error(self, mapper, code):
        error = mapper.map(code)

        assert error is not None
        assert error.title
        assert error.description
        # Real strings, not the lookup key echoed back
        assert not error.title.startswith("auth.")
        assert not error.description.startswith("auth.")
        assert error.code == code.value

    def test_kinds_for_special_codes(self, mapper):
        assert mapper.map(ProviderErrorCode.UNREACHABLE).kind is AuthErrorKind.PROVIDER_UNAVAILABLE
        assert mapper.map(ProviderErrorCode.NOT_PAID).kind is AuthErrorKind.NOT_ENTITLED
        assert mapper.map(ProviderErrorCode.UNKNOWN).kind is AuthErrorKind.UNKNOWN
        assert (
            mapper.map(ProviderErrorCode.INVALID_CREDENTIALS).kind
            is AuthErrorKind.PROVIDER_REJECTED
        )


class TestUnmappedCodes:
    def test_unrecognized_string_fails_fatally(self, mapper):
        with pytest.raises(UnmappedErrorCode):
            mapper.map("ERROR_SOMETHING_NEW")

    def test_raw_value_of_known_code_is_rejected(self, mapper):
        """Only enum members are accepted, not their string values."""
        with pytest.raises(UnmappedErrorCode):
            mapper.map("invalid_credentials")

    def test_none_fails_fatally(self, mapper):
        with pytest.raises(UnmappedErrorCode):
            mapper.map(None)


class TestLocalKinds:
    def test_not_found_and_no_selection(self, mapper):
        not_found = mapper.not_found()
        no_selection = mapper.no_selection()

        assert not_found.kind is AuthErrorKind.NOT_FOUND
        assert not_found.title == "Account Not Found"
        assert no_selection.kind is AuthErrorKind.NO_SELECTION
        assert no_selection.description

    def test_strings_come_from_catalog(self):
        catalog = DictCatalog(
            {
                "auth.mojang.error.invalidCredentialsTitle": "Bad login",
                "auth.mojang.error.invalidCredentialsDesc": "Try again",
            }
        )
        error = ErrorMapper(catalog).map(ProviderErrorCode.INVALID_CREDENTIALS)

        assert error.title == "Bad login"
        assert error.description == "Try again"


class TestAuthResult:
    def test_unwrap_raises_auth_failure(self, mapper):
        error = mapper.map(ProviderErrorCode.RATELIMIT)
        result = AuthResult.failure(error)

        assert not result.ok
        with pytest.raises(AuthFailure) as exc_info:
            result.unwrap()
        assert exc_info.value.error is error
        assert exc_info.value.error_code == "provider_rejected"

    def test_unwrap_success_returns_value(self):
        assert AuthResult.success(42).unwrap() == 42

    def test_auth_error_is_immutable(self, mapper):
        error = mapper.unknown()
        with pytest.raises(Exception):
            error.title = "changed"
