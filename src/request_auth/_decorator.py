import base64

from .exceptions import TokenRequired
from .models.auth_config import (
    ApiKeyAuth,
    AuthConfig,
    BasicAuth,
    BearerAuth,
    HeaderEntry,
    ManualHeadersAuth,
    NoAuth,
    OAuth2AuthorizationCodeAuth,
    OAuth2ClientCredentialsAuth,
    OAuth2ImplicitAuth,
    OAuth2PasswordAuth,
)
from .models.request import DecoratedRequest, RequestDescriptor
from .models.token import CachedToken
from .utils._url import append_query_params


def basic_authorization(username: str, password: str) -> str:
    credentials = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")

    return f"Basic {credentials}"


def _with_headers(
    headers: list[HeaderEntry], additions: list[HeaderEntry]
) -> list[HeaderEntry]:
    replaced = {header.key.lower() for header in additions}

    return [
        header for header in headers if header.key.lower() not in replaced
    ] + additions


def decorate(
    request: RequestDescriptor,
    config: AuthConfig | None,
    cached_token: CachedToken | None = None,
) -> DecoratedRequest:
    """Apply ``config`` to a copy of ``request``.

    Auth headers replace headers of the same name already on the request.

    Raises:
        TokenRequired: If an OAuth2 config comes without a live token
    """
    url = request.url
    additions: list[HeaderEntry] = []

    match config:
        case None | NoAuth():
            pass
        case BasicAuth(basic=basic):
            additions.append(
                HeaderEntry(
                    key="Authorization",
                    value=basic_authorization(basic.username, basic.password),
                )
            )
        case BearerAuth(bearer=bearer):
            additions.append(
                HeaderEntry(key="Authorization", value=f"Bearer {bearer.token}")
            )
        case ApiKeyAuth(api_key=api_key) if api_key.location == "query":
            url = append_query_params(url, {api_key.key: api_key.value})
        case ApiKeyAuth(api_key=api_key):
            additions.append(HeaderEntry(key=api_key.key, value=api_key.value))
        case (
            OAuth2ClientCredentialsAuth()
            | OAuth2PasswordAuth()
            | OAuth2AuthorizationCodeAuth()
            | OAuth2ImplicitAuth()
        ):
            if cached_token is None or cached_token.is_expired():
                raise TokenRequired(
                    f"A valid token is required for {config.type}; run the flow first"
                )

            additions.append(
                HeaderEntry(key="Authorization", value=cached_token.authorization)
            )
        case ManualHeadersAuth(manual_headers=manual_headers):
            additions.extend(
                HeaderEntry(key=header.key, value=header.value)
                for header in manual_headers.headers
                if header.enabled
            )

    return DecoratedRequest(
        method=request.method,
        url=url,
        headers=_with_headers(list(request.headers), additions),
        auth_type=config.type if config is not None else "none",
    )
