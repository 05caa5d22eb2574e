"""OAuth2 flow orchestration.

Every run moves through ``FlowState`` and ends in exactly one of ``complete``,
``failed`` or ``cancelled``. Redirect-based grants suspend while waiting for
the redirect and while exchanging the code; both waits can be aborted through
the flow's state token. Failed runs are never retried here.
"""

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

from ._redirect import RedirectCaptureChannel
from ._surface import AuthorizationSurface
from ._token_cache import TokenCache
from ._token_endpoint import (
    AuthorizationCodeGrant,
    ClientCredentialsGrant,
    PasswordGrant,
    RefreshTokenGrant,
    TokenEndpointClient,
    TokenGrant,
)
from .exceptions import AuthError, ProviderError, UserCancelled
from .models.auth_config import (
    OAuth2AuthorizationCodeConfig,
    OAuth2ClientCredentialsConfig,
    OAuth2ImplicitConfig,
    OAuth2PasswordConfig,
)
from .models.redirect import RedirectMessage
from .models.token import CachedToken
from .utils._pkce import PKCEPair, generate_pkce_pair
from .utils._state import generate_state
from .utils._url import append_query_params

logger = logging.getLogger(__name__)


class FlowState(str, Enum):
    IDLE = "idle"
    BUILDING_REQUEST = "building-request"
    AWAITING_REDIRECT = "awaiting-redirect"
    EXCHANGING_TOKEN = "exchanging-token"
    COMPLETE = "complete"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (FlowState.COMPLETE, FlowState.FAILED, FlowState.CANCELLED)


GrantKind = Literal[
    "client_credentials", "password", "authorization_code", "implicit", "refresh_token"
]


@dataclass
class AuthFlow:
    grant: GrantKind
    token_key: str
    flow_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: FlowState = FlowState.IDLE
    state: str | None = None
    authorization_url: str | None = None
    error: BaseException | None = None
    history: list[FlowState] = field(default_factory=lambda: [FlowState.IDLE])
    abort_requested: bool = False
    _exchange_task: "asyncio.Task[CachedToken] | None" = field(
        default=None, repr=False
    )


def build_authorization_url(
    authorization_url: str,
    client_id: str,
    redirect_uri: str,
    state: str,
    response_type: Literal["code", "token"],
    scope: str | None = None,
    pkce: PKCEPair | None = None,
) -> str:
    params = {
        "response_type": response_type,
        "client_id": client_id,
        "redirect_uri": redirect_uri,
    }

    if scope:
        params["scope"] = scope

    params["state"] = state

    if pkce:
        params["code_challenge"] = pkce.code_challenge
        params["code_challenge_method"] = pkce.method

    return append_query_params(authorization_url, params)


class FlowOrchestrator:
    def __init__(
        self,
        token_cache: TokenCache,
        token_client: TokenEndpointClient,
        channel: RedirectCaptureChannel | None = None,
        redirect_timeout: float | None = None,
        on_transition: Callable[[AuthFlow], None] | None = None,
    ) -> None:
        self.token_cache = token_cache
        self.token_client = token_client
        self.channel = channel or RedirectCaptureChannel()
        self.redirect_timeout = redirect_timeout
        self.on_transition = on_transition
        self._active: dict[str, AuthFlow] = {}

    @property
    def active_flows(self) -> list[AuthFlow]:
        return list(self._active.values())

    async def run_client_credentials(
        self, token_key: str, config: OAuth2ClientCredentialsConfig
    ) -> CachedToken:
        flow = AuthFlow(grant="client_credentials", token_key=token_key)

        def _build() -> TokenGrant:
            return ClientCredentialsGrant(
                client_id=config.client_id,
                client_secret=config.client_secret,
                scope=config.scope,
                audience=config.audience,
            )

        return await self._run(flow, self._direct_grant(flow, config.token_url, _build))

    async def run_password(
        self, token_key: str, config: OAuth2PasswordConfig
    ) -> CachedToken:
        flow = AuthFlow(grant="password", token_key=token_key)

        def _build() -> TokenGrant:
            return PasswordGrant(
                client_id=config.client_id,
                client_secret=config.client_secret,
                username=config.username,
                password=config.password,
                scope=config.scope,
            )

        return await self._run(flow, self._direct_grant(flow, config.token_url, _build))

    async def run_refresh(
        self,
        token_key: str,
        token_url: str,
        client_id: str,
        refresh_token: str,
        client_secret: str | None = None,
    ) -> CachedToken:
        """Renew a token with its refresh token.

        The previous refresh token is kept if the provider does not rotate it.
        """
        flow = AuthFlow(grant="refresh_token", token_key=token_key)

        def _build() -> TokenGrant:
            return RefreshTokenGrant(
                refresh_token=refresh_token,
                client_id=client_id,
                client_secret=client_secret,
            )

        async def _refresh() -> CachedToken:
            token = await self._direct_grant(flow, token_url, _build, store=False)

            if token.refresh_token is None:
                token = token.model_copy(update={"refresh_token": refresh_token})

            self.token_cache.set(flow.token_key, token)

            return token

        return await self._run(flow, _refresh())

    async def run_authorization_code(
        self,
        token_key: str,
        config: OAuth2AuthorizationCodeConfig,
        surface: AuthorizationSurface,
    ) -> CachedToken:
        flow = AuthFlow(grant="authorization_code", token_key=token_key)

        async def _authorize() -> CachedToken:
            self._transition(flow, FlowState.BUILDING_REQUEST)

            state = generate_state()
            pkce = generate_pkce_pair() if config.use_pkce else None

            url = build_authorization_url(
                config.authorization_url,
                client_id=config.client_id,
                redirect_uri=config.redirect_uri,
                state=state,
                response_type="code",
                scope=config.scope,
                pkce=pkce,
            )

            message = await self._await_redirect(flow, state, url, surface)

            if not message.code:
                raise ProviderError(
                    "invalid_callback",
                    "No authorization code received in callback",
                )

            grant = AuthorizationCodeGrant(
                code=message.code,
                redirect_uri=config.redirect_uri,
                client_id=config.client_id,
                client_secret=config.client_secret,
                code_verifier=pkce.code_verifier if pkce else None,
            )

            return await self._exchange(flow, config.token_url, grant)

        return await self._run(flow, _authorize())

    async def run_implicit(
        self,
        token_key: str,
        config: OAuth2ImplicitConfig,
        surface: AuthorizationSurface,
    ) -> CachedToken:
        flow = AuthFlow(grant="implicit", token_key=token_key)

        async def _authorize() -> CachedToken:
            self._transition(flow, FlowState.BUILDING_REQUEST)

            state = generate_state()

            url = build_authorization_url(
                config.authorization_url,
                client_id=config.client_id,
                redirect_uri=config.redirect_uri,
                state=state,
                response_type="token",
                scope=config.scope,
            )

            message = await self._await_redirect(flow, state, url, surface)

            if not message.access_token:
                raise ProviderError(
                    "invalid_callback",
                    "No access token received in callback fragment",
                )

            token = CachedToken.issued(
                access_token=message.access_token,
                token_type=message.token_type,
                expires_in=message.expires_in,
                scope=message.scope,
            )
            self.token_cache.set(flow.token_key, token)

            return token

        return await self._run(flow, _authorize())

    def abort(self, state: str) -> bool:
        """Cancel the redirect flow identified by ``state``.

        Works while waiting for the redirect and while exchanging the code.
        Aborting a finished or unknown flow is a no-op.
        """
        flow = self._active.get(state)

        if flow is None or flow.status.is_terminal:
            return False

        if self.channel.abort(state):
            flow.abort_requested = True
            return True

        if flow._exchange_task is not None and not flow._exchange_task.done():
            flow.abort_requested = True
            flow._exchange_task.cancel()
            return True

        return False

    async def _direct_grant(
        self,
        flow: AuthFlow,
        token_url: str,
        build: Callable[[], TokenGrant],
        store: bool = True,
    ) -> CachedToken:
        self._transition(flow, FlowState.BUILDING_REQUEST)

        grant = build()

        return await self._exchange(flow, token_url, grant, store=store)

    async def _await_redirect(
        self,
        flow: AuthFlow,
        state: str,
        url: str,
        surface: AuthorizationSurface,
    ) -> RedirectMessage:
        flow.state = state
        flow.authorization_url = url

        self.channel.arm(state)
        self._active[state] = flow

        self._transition(flow, FlowState.AWAITING_REDIRECT)

        unsubscribe = surface.on_callback(self.channel.deliver)
        timeout = (
            self.redirect_timeout
            if self.redirect_timeout is not None
            else surface.redirect_timeout
        )

        try:
            await surface.open(url)
            message = await self.channel.wait(state, timeout)
        finally:
            unsubscribe()
            self.channel.discard(state)
            await surface.close()

        if message.error:
            raise ProviderError(
                message.error, message.error_description, message.error_uri
            )

        return message

    async def _exchange(
        self,
        flow: AuthFlow,
        token_url: str,
        grant: TokenGrant,
        store: bool = True,
    ) -> CachedToken:
        self._transition(flow, FlowState.EXCHANGING_TOKEN)

        task = asyncio.ensure_future(self.token_client.exchange(token_url, grant))
        flow._exchange_task = task

        try:
            token = await task
        except asyncio.CancelledError:
            if flow.abort_requested:
                raise UserCancelled("Token exchange was cancelled") from None
            raise
        finally:
            flow._exchange_task = None

        if store:
            self.token_cache.set(flow.token_key, token)

        return token

    async def _run(self, flow: AuthFlow, body: Awaitable[CachedToken]) -> CachedToken:
        try:
            token = await body
        except UserCancelled as e:
            self._finish(flow, FlowState.CANCELLED, e)
            raise
        except asyncio.CancelledError as e:
            self._finish(flow, FlowState.CANCELLED, e)
            raise
        except AuthError as e:
            self._finish(flow, FlowState.FAILED, e)
            raise
        except Exception as e:
            logger.exception("Unexpected error in %s flow", flow.grant)
            self._finish(flow, FlowState.FAILED, e)
            raise

        self._finish(flow, FlowState.COMPLETE)
        logger.info("Auth flow %s (%s) completed", flow.flow_id, flow.grant)

        return token

    def _finish(
        self, flow: AuthFlow, status: FlowState, error: BaseException | None = None
    ) -> None:
        flow.error = error

        if flow.state is not None and self._active.get(flow.state) is flow:
            del self._active[flow.state]

        if error is not None and not isinstance(error, asyncio.CancelledError):
            logger.info(
                "Auth flow %s (%s) %s: %s",
                flow.flow_id,
                flow.grant,
                status.value,
                error,
            )

        self._transition(flow, status)

    def _transition(self, flow: AuthFlow, status: FlowState) -> None:
        if flow.status.is_terminal:
            raise RuntimeError(
                f"Flow {flow.flow_id} already ended as {flow.status.value}"
            )

        logger.debug(
            "Auth flow %s: %s -> %s", flow.flow_id, flow.status.value, status.value
        )

        flow.status = status
        flow.history.append(status)

        if self.on_transition is not None:
            self.on_transition(flow)
