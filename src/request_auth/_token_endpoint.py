import logging
from typing import Annotated, Any, Literal

import httpx
from pydantic import BaseModel, Discriminator, Field, ValidationError

from .exceptions import TokenExchangeFailed
from .models.oauth_token_response import OAuth2TokenEndpointResponse, TokenResponse
from .models.token import CachedToken, now_ms

logger = logging.getLogger(__name__)


class ClientCredentialsGrant(BaseModel):
    grant_type: Literal["client_credentials"] = "client_credentials"
    client_id: str = Field(description="The client identifier")
    client_secret: str = Field(description="The client secret")
    scope: str | None = Field(None, description="Space-delimited list of scopes")
    audience: str | None = Field(None, description="Target API identifier")


class PasswordGrant(BaseModel):
    grant_type: Literal["password"] = "password"
    client_id: str = Field(description="The client identifier")
    client_secret: str | None = Field(
        None, description="The client secret (for confidential clients)"
    )
    username: str = Field(description="The resource owner username")
    password: str = Field(description="The resource owner password")
    scope: str | None = Field(None, description="Space-delimited list of scopes")


class AuthorizationCodeGrant(BaseModel):
    grant_type: Literal["authorization_code"] = "authorization_code"
    code: str = Field(
        description="The authorization code received from the authorization server"
    )
    redirect_uri: str = Field(
        description="The redirect URI used in the authorization request"
    )
    client_id: str = Field(description="The client identifier")
    client_secret: str | None = Field(
        None, description="The client secret (for confidential clients)"
    )
    code_verifier: str | None = Field(None, description="The PKCE code verifier")


class RefreshTokenGrant(BaseModel):
    grant_type: Literal["refresh_token"] = "refresh_token"
    refresh_token: str = Field(description="The refresh token previously issued")
    client_id: str = Field(description="The client identifier")
    client_secret: str | None = Field(
        None, description="The client secret (for confidential clients)"
    )


TokenGrant = Annotated[
    ClientCredentialsGrant | PasswordGrant | AuthorizationCodeGrant | RefreshTokenGrant,
    Discriminator("grant_type"),
]


def _form_value(value: str | None) -> str | None:
    # Optional fields left blank in a form are omitted rather than sent empty
    return value or None


def build_token_request_data(grant: TokenGrant) -> dict[str, str]:
    return {
        key: value
        for key, value in grant.model_dump(exclude_none=True).items()
        if _form_value(value) is not None
    }


class TokenEndpointClient:
    """Performs the direct grant exchanges against an OAuth2 token URL."""

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.http_client = http_client
        self.timeout = timeout

    async def send_token_request(
        self, token_url: str, data: dict[str, Any]
    ) -> httpx.Response:
        """Send token exchange request.

        Override this method to customize how the request is sent
        """
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/x-www-form-urlencoded",
        }

        if self.http_client is not None:
            return await self.http_client.post(token_url, headers=headers, data=data)

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(token_url, headers=headers, data=data)

    def parse_token_response(self, response: httpx.Response) -> TokenResponse:
        """Parse token exchange response.

        Raises:
            TokenExchangeFailed: If the body is not a token or is an OAuth2 error
        """
        try:
            token_response = OAuth2TokenEndpointResponse.model_validate_json(
                response.text
            )
        except ValidationError as e:
            logger.error(f"Failed to parse token response: {str(e)}")
            raise TokenExchangeFailed(response.status_code, response.text) from e

        if token_response.is_error():
            logger.error(f"Token exchange failed: {token_response.root.error}")
            raise TokenExchangeFailed(response.status_code, response.text)

        assert isinstance(token_response.root, TokenResponse)
        return token_response.root

    async def exchange(self, token_url: str, grant: TokenGrant) -> CachedToken:
        """Exchange a grant for an access token.

        The expiry is counted from when the response arrived.

        Raises:
            TokenExchangeFailed: If the request fails or the response is not a token
        """
        data = build_token_request_data(grant)

        try:
            response = await self.send_token_request(token_url, data)
        except httpx.RequestError as e:
            logger.error(f"Failed to reach token endpoint {token_url}: {str(e)}")
            raise TokenExchangeFailed(None, str(e)) from e

        received_at = now_ms()

        if not response.is_success:
            logger.warning(
                f"HTTP error during token exchange: {response.status_code} - {response.text}"
            )
            raise TokenExchangeFailed(response.status_code, response.text)

        token = self.parse_token_response(response).to_cached_token(received_at)

        logger.debug(f"Obtained {grant.grant_type} token from {token_url}")

        return token
