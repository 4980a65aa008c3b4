"""Tests for access token providers."""

import pytest
import respx
from httpx import Response

from apisentry.config import AuthSettings
from apisentry.errors import TokenError
from apisentry.modules.auth import ClientCredentialsTokenProvider, StaticTokenProvider

AUTH_URL = "https://auth.example.com/oauth/token"
SETTINGS = AuthSettings(auth_url=AUTH_URL, client_id="scanner", client_secret="s3cret")


class TestStaticTokenProvider:
    async def test_returns_token(self):
        assert await StaticTokenProvider("abc").get_access_token() == "abc"

    async def test_empty_token(self):
        with pytest.raises(TokenError):
            await StaticTokenProvider("").get_access_token()


class TestClientCredentialsTokenProvider:
    """Test token fetching and caching."""

    @respx.mock
    async def test_fetches_with_client_credentials(self):
        route = respx.post(url__startswith=AUTH_URL).mock(
            return_value=Response(200, json={"access_token": "tok-1", "expires_in": 3600})
        )

        token = await ClientCredentialsTokenProvider(SETTINGS).get_access_token()

        assert token == "tok-1"
        params = route.calls.last.request.url.params
        assert params["client_id"] == "scanner"
        assert params["client_secret"] == "s3cret"

    @respx.mock
    async def test_token_is_cached_until_margin(self):
        now = [1000.0]
        route = respx.post(url__startswith=AUTH_URL).mock(
            side_effect=[
                Response(200, json={"access_token": "tok-1", "expires_in": 600}),
                Response(200, json={"access_token": "tok-2", "expires_in": 600}),
            ]
        )
        provider = ClientCredentialsTokenProvider(SETTINGS, clock=lambda: now[0])

        assert await provider.get_access_token() == "tok-1"
        now[0] += 299
        assert await provider.get_access_token() == "tok-1"
        now[0] += 2
        assert await provider.get_access_token() == "tok-2"
        assert route.call_count == 2

    @respx.mock
    async def test_invalidate_forces_refresh(self):
        route = respx.post(url__startswith=AUTH_URL).mock(
            return_value=Response(200, json={"access_token": "tok"})
        )
        provider = ClientCredentialsTokenProvider(SETTINGS)

        await provider.get_access_token()
        provider.invalidate()
        await provider.get_access_token()

        assert route.call_count == 2

    @respx.mock
    async def test_http_error(self):
        respx.post(url__startswith=AUTH_URL).mock(return_value=Response(401))

        with pytest.raises(TokenError, match="Failed to obtain access token"):
            await ClientCredentialsTokenProvider(SETTINGS).get_access_token()

    @respx.mock
    async def test_missing_access_token(self):
        respx.post(url__startswith=AUTH_URL).mock(return_value=Response(200, json={"ok": True}))

        with pytest.raises(TokenError, match="access_token"):
            await ClientCredentialsTokenProvider(SETTINGS).get_access_token()

    async def test_unconfigured(self):
        with pytest.raises(TokenError, match="not configured"):
            await ClientCredentialsTokenProvider(AuthSettings()).get_access_token()
