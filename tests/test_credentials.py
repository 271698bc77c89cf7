"""Tests for the credential endpoint client."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from coachwire.core.config import CredentialConfig
from coachwire.core.errors import CredentialError
from coachwire.credentials import CredentialAcquirer


def _response(status_code, payload=None, bad_json=False):
    resp = MagicMock()
    resp.status_code = status_code
    if bad_json:
        resp.json.side_effect = ValueError("not json")
    else:
        resp.json.return_value = payload
    return resp


def _client(post=None, get=None):
    client = MagicMock()
    client.post = AsyncMock(**post) if post else AsyncMock()
    client.get = AsyncMock(**get) if get else AsyncMock()
    factory = MagicMock()
    factory.return_value.__aenter__ = AsyncMock(return_value=client)
    factory.return_value.__aexit__ = AsyncMock(return_value=False)
    return factory, client


@pytest.fixture
def acquirer():
    return CredentialAcquirer(
        endpoint="http://example.test/api/generate-token",
        health_endpoint="http://example.test/api/health",
        timeout=5.0,
    )


@pytest.mark.asyncio
async def test_acquire_returns_token(acquirer):
    factory, client = _client(post={"return_value": _response(200, {"token": "ek_1", "expiresAt": 1700000000})})
    with patch("coachwire.credentials.httpx.AsyncClient", factory):
        credential = await acquirer.acquire()

    assert credential.token == "ek_1"
    assert credential.expires_at == 1700000000
    factory.assert_called_once_with(timeout=5.0)
    assert client.post.call_args.args == ("http://example.test/api/generate-token",)
    assert client.post.call_args.kwargs["json"] is None


@pytest.mark.asyncio
async def test_acquire_sends_api_key_when_configured():
    acquirer = CredentialAcquirer(endpoint="http://example.test/token", api_key="secret")
    factory, client = _client(post={"return_value": _response(200, {"token": "ek_2"})})
    with patch("coachwire.credentials.httpx.AsyncClient", factory):
        credential = await acquirer.acquire()

    assert client.post.call_args.kwargs["json"] == {"apiKey": "secret"}
    assert credential.expires_at is None


@pytest.mark.asyncio
async def test_http_error_status_carries_endpoint_text(acquirer):
    factory, _ = _client(
        post={"return_value": _response(500, {"error": "OPENAI_API_KEY not set", "details": "check env"})}
    )
    with patch("coachwire.credentials.httpx.AsyncClient", factory):
        with pytest.raises(CredentialError) as exc:
            await acquirer.acquire()

    assert str(exc.value) == "Token generation failed (HTTP 500): OPENAI_API_KEY not set"
    assert exc.value.status_code == 500
    assert exc.value.details == "check env"


@pytest.mark.asyncio
async def test_error_without_json_body(acquirer):
    factory, _ = _client(post={"return_value": _response(502, bad_json=True)})
    with patch("coachwire.credentials.httpx.AsyncClient", factory):
        with pytest.raises(CredentialError, match=r"HTTP 502\): Unknown error"):
            await acquirer.acquire()


@pytest.mark.asyncio
async def test_network_failure(acquirer):
    factory, _ = _client(post={"side_effect": httpx.ConnectError("connection refused")})
    with patch("coachwire.credentials.httpx.AsyncClient", factory):
        with pytest.raises(CredentialError, match="Failed to generate ephemeral token: connection refused"):
            await acquirer.acquire()


@pytest.mark.asyncio
async def test_missing_token_is_an_error(acquirer):
    factory, _ = _client(post={"return_value": _response(200, {"expiresAt": 1})})
    with patch("coachwire.credentials.httpx.AsyncClient", factory):
        with pytest.raises(CredentialError, match="no token"):
            await acquirer.acquire()


@pytest.mark.asyncio
async def test_health_check(acquirer):
    factory, client = _client(get={"return_value": _response(200, {"status": "ok", "hasApiKey": True})})
    with patch("coachwire.credentials.httpx.AsyncClient", factory):
        health = await acquirer.health_check()

    assert health.status == "ok"
    assert health.has_api_key is True
    client.get.assert_awaited_once_with("http://example.test/api/health")


@pytest.mark.asyncio
async def test_health_check_without_endpoint():
    with pytest.raises(CredentialError):
        await CredentialAcquirer(endpoint="http://example.test/token").health_check()


def test_from_config():
    acquirer = CredentialAcquirer.from_config(CredentialConfig(endpoint="http://a/token", timeout=2.0))
    assert acquirer._endpoint == "http://a/token"
    assert acquirer._timeout == 2.0
