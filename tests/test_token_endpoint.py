import datetime

import httpx
import pytest
import time_machine
from inline_snapshot import snapshot
from respx import MockRouter

from request_auth._token_endpoint import (
    AuthorizationCodeGrant,
    ClientCredentialsGrant,
    PasswordGrant,
    TokenEndpointClient,
)
from request_auth.exceptions import TokenExchangeFailed

from conftest import TOKEN_URL, form_of

pytestmark = pytest.mark.asyncio


FROZEN_AT = datetime.datetime(2012, 10, 1, 1, 0, tzinfo=datetime.timezone.utc)


@time_machine.travel(FROZEN_AT, tick=False)
async def test_exchanges_client_credentials(
    token_client: TokenEndpointClient, respx_mock: MockRouter
):
    route = respx_mock.post(TOKEN_URL).mock(
        return_value=httpx.Response(
            status_code=200,
            json={
                "access_token": "test_access_token",
                "token_type": "Bearer",
                "expires_in": 3600,
                "scope": "read",
            },
        )
    )

    token = await token_client.exchange(
        TOKEN_URL,
        ClientCredentialsGrant(client_id="abc", client_secret="secret", scope="read"),
    )

    request = route.calls.last.request

    assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
    assert request.headers["Accept"] == "application/json"
    assert form_of(request) == snapshot(
        {
            "grant_type": "client_credentials",
            "client_id": "abc",
            "client_secret": "secret",
            "scope": "read",
        }
    )
    assert token.access_token == "test_access_token"
    assert token.expires_at == int(FROZEN_AT.timestamp() * 1000) + 3_600_000
    assert token.scope == "read"


async def test_sends_code_verifier_with_authorization_code(
    token_client: TokenEndpointClient, respx_mock: MockRouter
):
    route = respx_mock.post(TOKEN_URL).mock(
        return_value=httpx.Response(200, json={"access_token": "abc"})
    )

    await token_client.exchange(
        TOKEN_URL,
        AuthorizationCodeGrant(
            code="test_code",
            redirect_uri="http://localhost/callback",
            client_id="abc",
            code_verifier="verifier",
        ),
    )

    assert form_of(route.calls.last.request) == snapshot(
        {
            "grant_type": "authorization_code",
            "code": "test_code",
            "redirect_uri": "http://localhost/callback",
            "client_id": "abc",
            "code_verifier": "verifier",
        }
    )


async def test_http_error_carries_status_and_body(
    token_client: TokenEndpointClient, respx_mock: MockRouter
):
    respx_mock.post(TOKEN_URL).mock(
        return_value=httpx.Response(401, text="invalid_client")
    )

    with pytest.raises(TokenExchangeFailed) as exc_info:
        await token_client.exchange(
            TOKEN_URL,
            PasswordGrant(client_id="abc", username="alice", password="wrong"),
        )

    assert exc_info.value.status == 401
    assert str(exc_info.value) == snapshot("Token request failed: 401 - invalid_client")


async def test_oauth_error_body_is_a_failure(
    token_client: TokenEndpointClient, respx_mock: MockRouter
):
    respx_mock.post(TOKEN_URL).mock(
        return_value=httpx.Response(
            200,
            json={
                "error": "incorrect_client_credentials",
                "error_description": "The client_id and/or client_secret passed are incorrect.",
            },
        )
    )

    with pytest.raises(TokenExchangeFailed) as exc_info:
        await token_client.exchange(
            TOKEN_URL, ClientCredentialsGrant(client_id="abc", client_secret="x")
        )

    assert exc_info.value.status == 200
    assert "incorrect_client_credentials" in exc_info.value.body


async def test_non_token_body_is_a_failure(
    token_client: TokenEndpointClient, respx_mock: MockRouter
):
    respx_mock.post(TOKEN_URL).mock(return_value=httpx.Response(200, text="<html>"))

    with pytest.raises(TokenExchangeFailed):
        await token_client.exchange(
            TOKEN_URL, ClientCredentialsGrant(client_id="abc", client_secret="x")
        )


async def test_network_error_is_a_failure(
    token_client: TokenEndpointClient, respx_mock: MockRouter
):
    respx_mock.post(TOKEN_URL).mock(side_effect=httpx.ConnectError("refused"))

    with pytest.raises(TokenExchangeFailed) as exc_info:
        await token_client.exchange(
            TOKEN_URL, ClientCredentialsGrant(client_id="abc", client_secret="x")
        )

    assert exc_info.value.status is None
    assert str(exc_info.value) == snapshot("Token request failed: refused")


async def test_uses_given_http_client(respx_mock: MockRouter):
    route = respx_mock.post(TOKEN_URL).mock(
        return_value=httpx.Response(200, json={"access_token": "abc"})
    )

    headers = {"User-Agent": "request-auth-tests"}

    async with httpx.AsyncClient(headers=headers) as client:
        token = await TokenEndpointClient(http_client=client).exchange(
            TOKEN_URL, ClientCredentialsGrant(client_id="abc", client_secret="x")
        )

    assert token.access_token == "abc"
    assert route.calls.last.request.headers["User-Agent"] == "request-auth-tests"
