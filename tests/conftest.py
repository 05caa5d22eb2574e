import asyncio
from collections.abc import Callable
from typing import Any
from urllib.parse import parse_qs, urlparse

import pytest

from request_auth._flow import AuthFlow, FlowOrchestrator
from request_auth._service import AuthService
from request_auth._storage import MemoryAuthConfigStore
from request_auth._surface import CallbackSurface
from request_auth._token_cache import TokenCache
from request_auth._token_endpoint import TokenEndpointClient
from request_auth.models.auth_config import (
    OAuth2AuthorizationCodeAuth,
    OAuth2AuthorizationCodeConfig,
    OAuth2ClientCredentialsAuth,
    OAuth2ClientCredentialsConfig,
    OAuth2ImplicitAuth,
    OAuth2ImplicitConfig,
    OAuth2PasswordAuth,
    OAuth2PasswordConfig,
)

TOKEN_URL = "https://auth.example.com/token"
AUTHORIZATION_URL = "https://auth.example.com/authorize"
REDIRECT_URI = "http://localhost:5173/oauth/callback"


def query_of(url: str) -> dict[str, str]:
    return {key: values[0] for key, values in parse_qs(urlparse(url).query).items()}


def state_of(url: str) -> str:
    return query_of(url)["state"]


def form_of(request: Any) -> dict[str, str]:
    """Decode the form body sent to the token endpoint."""
    return {
        key: values[0] for key, values in parse_qs(request.content.decode()).items()
    }


class ScriptedSurface(CallbackSurface):
    """Authorization surface that answers the opened URL with a scripted redirect.

    ``respond`` receives the authorization URL and returns the redirect URL
    (or a postMessage payload) to deliver, or None to stay silent.
    """

    redirect_timeout = 1.0

    def __init__(
        self,
        respond: Callable[[str], str | dict[str, Any] | None] | None = None,
        redirect_timeout: float | None = None,
    ) -> None:
        super().__init__(redirect_timeout)
        self.respond = respond
        self.opened: list[str] = []
        self.close_count = 0

    async def open(self, url: str) -> None:
        self.opened.append(url)

        if self.respond is None:
            return

        reply = self.respond(url)
        loop = asyncio.get_running_loop()

        if isinstance(reply, str):
            loop.call_soon(self.deliver_url, reply)
        elif reply is not None:
            loop.call_soon(self.deliver_payload, reply)

    async def close(self) -> None:
        self.close_count += 1


def code_redirect(code: str = "test_code") -> Callable[[str], str]:
    return lambda url: f"{REDIRECT_URI}?code={code}&state={state_of(url)}"


@pytest.fixture
def token_cache() -> TokenCache:
    return TokenCache()


@pytest.fixture
def token_client() -> TokenEndpointClient:
    return TokenEndpointClient()


@pytest.fixture
def transitions() -> list[tuple[str, str]]:
    return []


@pytest.fixture
def orchestrator(
    token_cache: TokenCache,
    token_client: TokenEndpointClient,
    transitions: list[tuple[str, str]],
) -> FlowOrchestrator:
    def _record(flow: AuthFlow) -> None:
        transitions.append((flow.flow_id, flow.status.value))

    return FlowOrchestrator(token_cache, token_client, on_transition=_record)


@pytest.fixture
def config_store() -> MemoryAuthConfigStore:
    return MemoryAuthConfigStore()


@pytest.fixture
def service(
    config_store: MemoryAuthConfigStore,
    token_cache: TokenCache,
    token_client: TokenEndpointClient,
) -> AuthService:
    return AuthService(
        config_store,
        token_cache=token_cache,
        token_client=token_client,
        resolve_variables=lambda value: value.replace(
            "{{client_id}}", "resolved_client_id"
        ),
    )


@pytest.fixture
def client_credentials() -> OAuth2ClientCredentialsConfig:
    return OAuth2ClientCredentialsConfig(
        token_url=TOKEN_URL,
        client_id="test_client_id",
        client_secret="test_client_secret",
    )


@pytest.fixture
def client_credentials_auth(
    client_credentials: OAuth2ClientCredentialsConfig,
) -> OAuth2ClientCredentialsAuth:
    return OAuth2ClientCredentialsAuth(oauth2_client_credentials=client_credentials)


@pytest.fixture
def password_auth() -> OAuth2PasswordAuth:
    return OAuth2PasswordAuth(
        oauth2_password=OAuth2PasswordConfig(
            token_url=TOKEN_URL,
            client_id="test_client_id",
            username="alice",
            password="wonderland",
            scope="read",
        )
    )


@pytest.fixture
def authorization_code() -> OAuth2AuthorizationCodeConfig:
    return OAuth2AuthorizationCodeConfig(
        authorization_url=AUTHORIZATION_URL,
        token_url=TOKEN_URL,
        client_id="test_client_id",
        redirect_uri=REDIRECT_URI,
        scope="openid email",
        use_pkce=True,
    )


@pytest.fixture
def authorization_code_auth(
    authorization_code: OAuth2AuthorizationCodeConfig,
) -> OAuth2AuthorizationCodeAuth:
    return OAuth2AuthorizationCodeAuth(oauth2_authorization_code=authorization_code)


@pytest.fixture
def implicit() -> OAuth2ImplicitConfig:
    return OAuth2ImplicitConfig(
        authorization_url=AUTHORIZATION_URL,
        client_id="test_client_id",
        redirect_uri=REDIRECT_URI,
        scope="profile",
    )


@pytest.fixture
def implicit_auth(implicit: OAuth2ImplicitConfig) -> OAuth2ImplicitAuth:
    return OAuth2ImplicitAuth(oauth2_implicit=implicit)
