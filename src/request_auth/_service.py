import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from ._config import DEFAULT_REFRESH_BUFFER, DEFAULT_TOKEN_REQUEST_TIMEOUT, Config
from ._decorator import decorate
from ._flow import AuthFlow, FlowOrchestrator
from ._storage import AuthConfigStore, folder_token_key
from ._surface import AuthorizationSurface
from ._token_cache import TokenCache
from ._token_endpoint import TokenEndpointClient
from .exceptions import AuthError, TokenExchangeFailed
from .models.auth_config import (
    ApiKeyAuth,
    AuthConfig,
    BasicAuth,
    BearerAuth,
    ManualHeadersAuth,
    NoAuth,
    OAuth2AuthorizationCodeAuth,
    OAuth2ClientCredentialsAuth,
    OAuth2ImplicitAuth,
    OAuth2PasswordAuth,
    ensure_complete,
)
from .models.request import DecoratedRequest, RequestDescriptor
from .models.token import CachedToken

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConfigTestResult:
    success: bool
    message: str


def _interpolate(value: Any, resolve: Callable[[str], str]) -> Any:
    if isinstance(value, str):
        return resolve(value)

    if isinstance(value, dict):
        return {key: _interpolate(item, resolve) for key, item in value.items()}

    if isinstance(value, list):
        return [_interpolate(item, resolve) for item in value]

    return value


class AuthService:
    """Entry point used by the request executor and the auth UI.

    Construct one per process and share it; all state is in memory.
    """

    def __init__(
        self,
        config_store: AuthConfigStore,
        *,
        token_cache: TokenCache | None = None,
        token_client: TokenEndpointClient | None = None,
        resolve_variables: Callable[[str], str] | None = None,
        config: Config | None = None,
        on_transition: Callable[[AuthFlow], None] | None = None,
    ) -> None:
        self.config: Config = config or {}
        self.config_store = config_store
        self.token_cache = token_cache or TokenCache()
        self.token_client = token_client or TokenEndpointClient(
            timeout=self.config.get(
                "token_request_timeout", DEFAULT_TOKEN_REQUEST_TIMEOUT
            )
        )
        self.resolve_variables = resolve_variables
        self.orchestrator = FlowOrchestrator(
            self.token_cache,
            self.token_client,
            redirect_timeout=self.config.get("redirect_timeout"),
            on_transition=on_transition,
        )

    @property
    def refresh_buffer(self) -> float:
        return self.config.get("refresh_buffer", DEFAULT_REFRESH_BUFFER)

    def interpolate(self, config: AuthConfig) -> AuthConfig:
        """Return a copy of ``config`` with variables resolved in every value."""
        if self.resolve_variables is None:
            return config

        data = _interpolate(config.model_dump(), self.resolve_variables)

        return type(config).model_validate(data)

    async def resolve_and_decorate(
        self,
        request_id: str,
        request: RequestDescriptor,
        folder_ids: Sequence[str] = (),
    ) -> DecoratedRequest:
        """Apply the auth that governs ``request_id`` to ``request``.

        Client credentials and password grants fetch a token when none is
        cached; interactive grants need a prior ``initiate_*`` call.

        Raises:
            AuthError: If the config is incomplete, a token cannot be obtained
                or an interactive grant has no valid token
        """
        resolved = self.config_store.resolve(request_id, folder_ids)

        if resolved is None or isinstance(resolved.config, NoAuth):
            return decorate(request, None)

        config = self.interpolate(resolved.config)
        ensure_complete(config)

        token: CachedToken | None = None

        if isinstance(
            config,
            OAuth2ClientCredentialsAuth
            | OAuth2PasswordAuth
            | OAuth2AuthorizationCodeAuth
            | OAuth2ImplicitAuth,
        ):
            token = await self.obtain_token(resolved.token_key, config)

        return decorate(request, config, token)

    async def obtain_token(
        self,
        token_key: str,
        config: OAuth2ClientCredentialsAuth
        | OAuth2PasswordAuth
        | OAuth2AuthorizationCodeAuth
        | OAuth2ImplicitAuth,
    ) -> CachedToken | None:
        token = self.token_cache.get(token_key)

        if token is not None and not self.token_cache.needs_refresh(
            token_key, self.refresh_buffer
        ):
            return token

        if token is not None and token.refresh_token:
            refreshed = await self._refresh(token_key, config, token.refresh_token)

            if refreshed is not None:
                return refreshed

        match config:
            case OAuth2ClientCredentialsAuth(oauth2_client_credentials=cc):
                return await self.orchestrator.run_client_credentials(token_key, cc)
            case OAuth2PasswordAuth(oauth2_password=pw):
                return await self.orchestrator.run_password(token_key, pw)
            case _:
                # Interactive grants are only started by the user
                return token

    async def _refresh(
        self,
        token_key: str,
        config: OAuth2ClientCredentialsAuth
        | OAuth2PasswordAuth
        | OAuth2AuthorizationCodeAuth
        | OAuth2ImplicitAuth,
        refresh_token: str,
    ) -> CachedToken | None:
        match config:
            case OAuth2ClientCredentialsAuth(oauth2_client_credentials=settings):
                client_secret: str | None = settings.client_secret
            case OAuth2PasswordAuth(oauth2_password=settings):
                client_secret = settings.client_secret
            case OAuth2AuthorizationCodeAuth(oauth2_authorization_code=settings):
                client_secret = settings.client_secret
            case _:
                return None

        try:
            return await self.orchestrator.run_refresh(
                token_key,
                token_url=settings.token_url,
                client_id=settings.client_id,
                refresh_token=refresh_token,
                client_secret=client_secret,
            )
        except TokenExchangeFailed as e:
            logger.warning("Token refresh for %s failed: %s", token_key, e)
            return None

    async def initiate_authorization_code_flow(
        self,
        request_id: str,
        config: OAuth2AuthorizationCodeAuth,
        surface: AuthorizationSurface,
        folder_ids: Sequence[str] = (),
    ) -> CachedToken:
        """Run the authorization code grant for ``request_id``.

        The token is cached under the key of the entity owning that config, so
        a folder-level authorization serves every request inheriting it.
        """
        config = self.interpolate(config)
        ensure_complete(config)

        return await self.orchestrator.run_authorization_code(
            self.token_key_for(request_id, folder_ids),
            config.oauth2_authorization_code,
            surface,
        )

    async def initiate_implicit_flow(
        self,
        request_id: str,
        config: OAuth2ImplicitAuth,
        surface: AuthorizationSurface,
        folder_ids: Sequence[str] = (),
    ) -> CachedToken:
        config = self.interpolate(config)
        ensure_complete(config)

        return await self.orchestrator.run_implicit(
            self.token_key_for(request_id, folder_ids),
            config.oauth2_implicit,
            surface,
        )

    async def test_config(
        self,
        request_id: str,
        config: AuthConfig,
        surface: AuthorizationSurface | None = None,
        folder_ids: Sequence[str] = (),
    ) -> ConfigTestResult:
        """Check a config and, for OAuth2, try to obtain a token.

        Interactive grants only open ``surface`` when one is given. Tokens are
        cached like those of ``initiate_*``.
        """
        token_key = self.token_key_for(request_id, folder_ids)

        try:
            config = self.interpolate(config)
            ensure_complete(config)

            match config:
                case NoAuth():
                    return ConfigTestResult(True, "No authentication configured")
                case BasicAuth():
                    return ConfigTestResult(True, "Basic auth configured")
                case BearerAuth():
                    return ConfigTestResult(True, "Bearer token configured")
                case ApiKeyAuth():
                    return ConfigTestResult(True, "API key configured")
                case ManualHeadersAuth(manual_headers=manual_headers):
                    return ConfigTestResult(
                        True, f"{len(manual_headers.headers)} header(s) configured"
                    )
                case OAuth2ClientCredentialsAuth(oauth2_client_credentials=cc):
                    token = await self.orchestrator.run_client_credentials(
                        token_key, cc
                    )
                case OAuth2PasswordAuth(oauth2_password=pw):
                    token = await self.orchestrator.run_password(token_key, pw)
                case OAuth2AuthorizationCodeAuth(oauth2_authorization_code=ac):
                    if surface is None:
                        return ConfigTestResult(
                            True,
                            'Configuration valid. Click "Authorize" to get token.',
                        )
                    token = await self.orchestrator.run_authorization_code(
                        token_key, ac, surface
                    )
                case OAuth2ImplicitAuth(oauth2_implicit=implicit):
                    if surface is None:
                        return ConfigTestResult(
                            True,
                            'Configuration valid. Click "Authorize" to get token. '
                            "Note: Implicit flow is deprecated.",
                        )
                    token = await self.orchestrator.run_implicit(
                        token_key, implicit, surface
                    )
                case _:
                    return ConfigTestResult(False, "Unknown auth type")
        except AuthError as e:
            return ConfigTestResult(False, str(e))

        expires_in = token.expires_in()

        if expires_in is None:
            return ConfigTestResult(True, "Token obtained successfully")

        return ConfigTestResult(
            True, f"Token obtained successfully (expires in {round(expires_in)}s)"
        )

    def token_key_for(self, request_id: str, folder_ids: Sequence[str] = ()) -> str:
        """Token cache key of the entity whose config governs ``request_id``."""
        resolved = self.config_store.resolve(request_id, folder_ids)

        return resolved.token_key if resolved is not None else request_id

    def get_cached_token(
        self, request_id: str, folder_ids: Sequence[str] = ()
    ) -> CachedToken | None:
        return self.token_cache.get(self.token_key_for(request_id, folder_ids))

    def is_expired(self, request_id: str, folder_ids: Sequence[str] = ()) -> bool:
        return self.token_cache.is_expired(self.token_key_for(request_id, folder_ids))

    def clear_tokens(self, request_id: str, folder_ids: Sequence[str] = ()) -> None:
        self.token_cache.delete(self.token_key_for(request_id, folder_ids))

    def remove_request_config(self, request_id: str) -> None:
        """Drop a request's own config together with the token it owns."""
        self.config_store.remove_request_config(request_id)
        self.token_cache.delete(request_id)

    def remove_folder_config(self, folder_id: str) -> None:
        self.config_store.remove_folder_config(folder_id)
        self.token_cache.delete(folder_token_key(folder_id))

    def clear_all_tokens(self) -> None:
        self.token_cache.clear()

    def abort_pending_auth(self, state: str) -> None:
        self.orchestrator.abort(state)

    @property
    def pending_states(self) -> list[str]:
        return self.orchestrator.channel.pending_states
