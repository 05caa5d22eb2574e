from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from request_auth.exceptions import ConfigInvalid


class _ConfigModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="forbid",
    )


class HeaderEntry(_ConfigModel):
    key: str
    value: str
    enabled: bool = True


class BasicCredentials(_ConfigModel):
    username: str
    password: str


class BearerCredentials(_ConfigModel):
    token: str


class ApiKeyCredentials(_ConfigModel):
    key: str
    value: str
    location: Literal["header", "query"] = Field("header", alias="in")


class OAuth2ClientCredentialsConfig(_ConfigModel):
    token_url: str
    client_id: str
    client_secret: str
    scope: str | None = None
    audience: str | None = None


class OAuth2PasswordConfig(_ConfigModel):
    token_url: str
    client_id: str
    client_secret: str | None = None
    username: str
    password: str
    scope: str | None = None


class OAuth2AuthorizationCodeConfig(_ConfigModel):
    authorization_url: str
    token_url: str
    client_id: str
    client_secret: str | None = None
    redirect_uri: str
    scope: str | None = None
    use_pkce: bool = True


class OAuth2ImplicitConfig(_ConfigModel):
    authorization_url: str
    client_id: str
    redirect_uri: str
    scope: str | None = None


class ManualHeadersConfig(_ConfigModel):
    headers: list[HeaderEntry] = Field(default_factory=list)


class NoAuth(_ConfigModel):
    type: Literal["none"] = "none"


class BasicAuth(_ConfigModel):
    type: Literal["basic"] = "basic"
    basic: BasicCredentials


class BearerAuth(_ConfigModel):
    type: Literal["bearer"] = "bearer"
    bearer: BearerCredentials


class ApiKeyAuth(_ConfigModel):
    type: Literal["api-key"] = "api-key"
    api_key: ApiKeyCredentials


class OAuth2ClientCredentialsAuth(_ConfigModel):
    type: Literal["oauth2-client-credentials"] = "oauth2-client-credentials"
    oauth2_client_credentials: OAuth2ClientCredentialsConfig


class OAuth2PasswordAuth(_ConfigModel):
    type: Literal["oauth2-password"] = "oauth2-password"
    oauth2_password: OAuth2PasswordConfig


class OAuth2AuthorizationCodeAuth(_ConfigModel):
    type: Literal["oauth2-authorization-code"] = "oauth2-authorization-code"
    oauth2_authorization_code: OAuth2AuthorizationCodeConfig


class OAuth2ImplicitAuth(_ConfigModel):
    type: Literal["oauth2-implicit"] = "oauth2-implicit"
    oauth2_implicit: OAuth2ImplicitConfig


class ManualHeadersAuth(_ConfigModel):
    type: Literal["manual-headers"] = "manual-headers"
    manual_headers: ManualHeadersConfig


OAuth2Auth = Union[
    OAuth2ClientCredentialsAuth,
    OAuth2PasswordAuth,
    OAuth2AuthorizationCodeAuth,
    OAuth2ImplicitAuth,
]

# Discriminated union for all auth config types
AuthConfig = Annotated[
    Union[
        NoAuth,
        BasicAuth,
        BearerAuth,
        ApiKeyAuth,
        OAuth2ClientCredentialsAuth,
        OAuth2PasswordAuth,
        OAuth2AuthorizationCodeAuth,
        OAuth2ImplicitAuth,
        ManualHeadersAuth,
    ],
    Field(discriminator="type"),
]
AuthConfigAdapter: TypeAdapter[AuthConfig] = TypeAdapter(AuthConfig)

AuthType = Literal[
    "none",
    "basic",
    "bearer",
    "api-key",
    "oauth2-client-credentials",
    "oauth2-password",
    "oauth2-authorization-code",
    "oauth2-implicit",
    "manual-headers",
]

AUTH_TYPE_LABELS: dict[str, str] = {
    "none": "No Auth",
    "basic": "Basic Auth",
    "bearer": "Bearer Token",
    "api-key": "API Key",
    "oauth2-client-credentials": "OAuth2 (Client Credentials)",
    "oauth2-password": "OAuth2 (Password)",
    "oauth2-authorization-code": "OAuth2 (Authorization Code)",
    "oauth2-implicit": "OAuth2 (Implicit - Legacy)",
    "manual-headers": "Manual Headers",
}

OAUTH2_TYPES = frozenset(
    {
        "oauth2-client-credentials",
        "oauth2-password",
        "oauth2-authorization-code",
        "oauth2-implicit",
    }
)


def _format_validation_error(e: ValidationError) -> str:
    errors = e.errors()

    if not errors:
        return "Invalid auth config"

    first_error = errors[0]
    location = ".".join(str(part) for part in first_error["loc"])

    match {"type": first_error["type"], "location": location}:
        case {"type": "union_tag_not_found"}:
            return "type is required"
        case {"type": "union_tag_invalid"}:
            return f"Auth type '{first_error['input'].get('type')}' is not supported"
        case {"type": "missing", "location": location}:
            return f"{location} is required"
        case {"type": "extra_forbidden", "location": location}:
            return f"{location} is not allowed for this auth type"
        case _:
            return f"Invalid auth config: {first_error['msg']}"


def parse_auth_config(data: Any) -> AuthConfig:
    """Parse a stored auth config (camelCase or snake_case keys).

    Raises:
        ConfigInvalid: If the payload does not match exactly one auth type
    """
    try:
        return AuthConfigAdapter.validate_python(data)
    except ValidationError as e:
        raise ConfigInvalid(_format_validation_error(e)) from e


def is_oauth2(config: AuthConfig | None) -> bool:
    return config is not None and config.type in OAUTH2_TYPES


def default_auth_config(auth_type: str, redirect_uri: str = "") -> AuthConfig:
    """Build an empty config for ``auth_type``, as a form would start with."""
    match auth_type:
        case "none":
            return NoAuth()
        case "basic":
            return BasicAuth(basic=BasicCredentials(username="", password=""))
        case "bearer":
            return BearerAuth(bearer=BearerCredentials(token=""))
        case "api-key":
            return ApiKeyAuth(api_key=ApiKeyCredentials(key="", value=""))
        case "oauth2-client-credentials":
            return OAuth2ClientCredentialsAuth(
                oauth2_client_credentials=OAuth2ClientCredentialsConfig(
                    token_url="", client_id="", client_secret="", scope=""
                )
            )
        case "oauth2-password":
            return OAuth2PasswordAuth(
                oauth2_password=OAuth2PasswordConfig(
                    token_url="", client_id="", username="", password="", scope=""
                )
            )
        case "oauth2-authorization-code":
            return OAuth2AuthorizationCodeAuth(
                oauth2_authorization_code=OAuth2AuthorizationCodeConfig(
                    authorization_url="",
                    token_url="",
                    client_id="",
                    redirect_uri=redirect_uri,
                    scope="",
                    use_pkce=True,
                )
            )
        case "oauth2-implicit":
            return OAuth2ImplicitAuth(
                oauth2_implicit=OAuth2ImplicitConfig(
                    authorization_url="",
                    client_id="",
                    redirect_uri=redirect_uri,
                    scope="",
                )
            )
        case "manual-headers":
            return ManualHeadersAuth(manual_headers=ManualHeadersConfig())
        case _:
            raise ConfigInvalid(f"Auth type '{auth_type}' is not supported")


def _require(values: dict[str, str | None], message: str) -> None:
    missing = [name for name, value in values.items() if not value]

    if missing:
        raise ConfigInvalid(f"{message} (missing: {', '.join(missing)})")


def ensure_complete(config: AuthConfig) -> None:
    """Check that ``config`` has every value needed to authenticate a request.

    Raises:
        ConfigInvalid: If a required value is empty
    """
    match config:
        case NoAuth() | ManualHeadersAuth():
            return
        case BasicAuth(basic=basic):
            _require({"username": basic.username}, "Username is required")
        case BearerAuth(bearer=bearer):
            _require({"token": bearer.token}, "Token is required")
        case ApiKeyAuth(api_key=api_key):
            _require(
                {"key": api_key.key, "value": api_key.value},
                "API key and value are required",
            )
        case OAuth2ClientCredentialsAuth(oauth2_client_credentials=cc):
            _require(
                {
                    "token_url": cc.token_url,
                    "client_id": cc.client_id,
                    "client_secret": cc.client_secret,
                },
                "Token URL, Client ID, and Client Secret are required",
            )
        case OAuth2PasswordAuth(oauth2_password=pw):
            _require(
                {
                    "token_url": pw.token_url,
                    "client_id": pw.client_id,
                    "username": pw.username,
                    "password": pw.password,
                },
                "Token URL, Client ID, Username, and Password are required",
            )
        case OAuth2AuthorizationCodeAuth(oauth2_authorization_code=ac):
            _require(
                {
                    "authorization_url": ac.authorization_url,
                    "token_url": ac.token_url,
                    "client_id": ac.client_id,
                    "redirect_uri": ac.redirect_uri,
                },
                "Authorization URL, Token URL, Client ID, and Redirect URI are required",
            )
        case OAuth2ImplicitAuth(oauth2_implicit=implicit):
            _require(
                {
                    "authorization_url": implicit.authorization_url,
                    "client_id": implicit.client_id,
                    "redirect_uri": implicit.redirect_uri,
                },
                "Authorization URL, Client ID, and Redirect URI are required",
            )
