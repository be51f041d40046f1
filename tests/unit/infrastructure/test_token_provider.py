"""Tests for GPlayTokenProvider."""

from urllib.parse import parse_qs

import httpx
import pytest
from pytest_httpx import HTTPXMock

from gplaybot.domain.exceptions import TokenRefreshException
from gplaybot.infrastructure.integrations import GPlayTokenProvider

AUTH_URL = "https://auth.test/auth"


@pytest.fixture
def provider() -> GPlayTokenProvider:
    return GPlayTokenProvider(auth_url=AUTH_URL, clock=lambda: 500.0)


class TestProvideToken:
    """Test wrapping stored tokens."""

    def test_wraps_stored_token(self, provider: GPlayTokenProvider):
        """Test a stored token is wrapped without network access."""
        token = provider.provide_token(" abc ")

        assert token is not None
        assert token.token == "abc"
        assert provider.last_fetched_at == 0.0

    def test_blank_token_is_none(self, provider: GPlayTokenProvider):
        """Test that blank tokens are treated as missing."""
        assert provider.provide_token("") is None
        assert provider.provide_token("   ") is None


class TestProvideTokenFor:
    """Test the credential exchange."""

    async def test_successful_exchange(self, provider: GPlayTokenProvider, httpx_mock: HTTPXMock):
        """Test the Auth line is returned as the new token."""
        httpx_mock.add_response(
            url=AUTH_URL, method="POST", text="SID=x\nLSID=y\nAuth=fresh-token\n"
        )

        token = await provider.provide_token_for("user@example.com", "pw", "dev1")

        assert token.token == "fresh-token"
        assert token.fetched_at == 500.0
        assert provider.last_fetched_at == 500.0
        form = parse_qs(httpx_mock.get_request().content.decode())
        assert form["Email"] == ["user@example.com"]
        assert form["androidId"] == ["dev1"]
        assert form["service"] == ["sj"]

    async def test_bad_authentication(self, provider: GPlayTokenProvider, httpx_mock: HTTPXMock):
        """Test a rejected login carries the backend's error code."""
        httpx_mock.add_response(
            url=AUTH_URL, method="POST", status_code=403, text="Error=BadAuthentication\n"
        )

        with pytest.raises(TokenRefreshException) as exc_info:
            await provider.provide_token_for("user@example.com", "wrong", "dev1")

        assert exc_info.value.error_code == "BadAuthentication"
        assert exc_info.value.http_status == 403
        assert exc_info.value.requires_reauth is True

    async def test_failed_attempt_still_stamps_fetch_time(
        self, provider: GPlayTokenProvider, httpx_mock: HTTPXMock
    ):
        """Test transport failures count towards the refresh cooldown."""
        httpx_mock.add_exception(httpx.ConnectError("Connection refused"))

        with pytest.raises(TokenRefreshException):
            await provider.provide_token_for("user@example.com", "pw", "dev1")

        assert provider.last_fetched_at == 500.0

    async def test_missing_auth_line(self, provider: GPlayTokenProvider, httpx_mock: HTTPXMock):
        """Test a 200 without Auth= is still a failure."""
        httpx_mock.add_response(url=AUTH_URL, method="POST", text="SID=x\n")

        with pytest.raises(TokenRefreshException):
            await provider.provide_token_for("user@example.com", "pw", "dev1")
