from pydantic import BaseModel, Field, RootModel

from .token import CachedToken


class TokenResponse(BaseModel):
    token_type: str = Field(
        "Bearer", description="The type of token, usually 'Bearer'"
    )

    access_token: str = Field(description="The issued access token")
    expires_in: int | None = Field(
        None, description="Lifetime of the access token in seconds"
    )
    refresh_token: str | None = Field(
        None, description="Token used to obtain new access tokens"
    )
    scope: str | None = Field(
        None,
        description="Space-delimited list of scopes associated with the access token",
    )
    id_token: str | None = Field(
        None,
        description="OpenID Connect ID token returned alongside access token",
    )

    def to_cached_token(self, received_at: int | None = None) -> CachedToken:
        return CachedToken.issued(
            access_token=self.access_token,
            token_type=self.token_type,
            expires_in=self.expires_in,
            refresh_token=self.refresh_token,
            scope=self.scope,
            received_at=received_at,
        )


class TokenErrorResponse(BaseModel):
    error: str = Field(description="Error code as per RFC 6749")
    error_description: str | None = Field(
        None, description="Human-readable explanation of the error"
    )
    error_uri: str | None = Field(
        None, description="URI to a web page with more information about the error"
    )


class OAuth2TokenEndpointResponse(RootModel):
    root: TokenErrorResponse | TokenResponse

    def is_error(self) -> bool:
        return isinstance(self.root, TokenErrorResponse)
