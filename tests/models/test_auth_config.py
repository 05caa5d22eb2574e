import pytest
from inline_snapshot import snapshot
from pydantic import ValidationError

from request_auth.exceptions import ConfigInvalid
from request_auth.models.auth_config import (
    AUTH_TYPE_LABELS,
    ApiKeyAuth,
    BasicAuth,
    BasicCredentials,
    ManualHeadersAuth,
    NoAuth,
    OAuth2AuthorizationCodeAuth,
    OAuth2ClientCredentialsAuth,
    default_auth_config,
    ensure_complete,
    is_oauth2,
    parse_auth_config,
)


def test_parses_camel_case_payload():
    config = parse_auth_config(
        {
            "type": "oauth2-authorization-code",
            "oauth2AuthorizationCode": {
                "authorizationUrl": "https://auth.example.com/authorize",
                "tokenUrl": "https://auth.example.com/token",
                "clientId": "abc",
                "redirectUri": "http://localhost/callback",
                "usePkce": False,
            },
        }
    )

    assert isinstance(config, OAuth2AuthorizationCodeAuth)
    assert config.oauth2_authorization_code.client_id == "abc"
    assert config.oauth2_authorization_code.use_pkce is False


def test_parses_snake_case_payload():
    config = parse_auth_config(
        {
            "type": "oauth2-client-credentials",
            "oauth2_client_credentials": {
                "token_url": "https://auth.example.com/token",
                "client_id": "abc",
                "client_secret": "secret",
            },
        }
    )

    assert isinstance(config, OAuth2ClientCredentialsAuth)


def test_api_key_location_uses_in_key():
    config = parse_auth_config(
        {"type": "api-key", "apiKey": {"key": "X-Key", "value": "v", "in": "query"}}
    )

    assert isinstance(config, ApiKeyAuth)
    assert config.api_key.location == "query"


def test_payload_of_another_type_is_rejected():
    with pytest.raises(ConfigInvalid) as exc_info:
        parse_auth_config(
            {
                "type": "basic",
                "basic": {"username": "u", "password": "p"},
                "bearer": {"token": "t"},
            }
        )

    assert str(exc_info.value) == snapshot(
        "basic.bearer is not allowed for this auth type"
    )


def test_missing_payload_is_rejected():
    with pytest.raises(ConfigInvalid) as exc_info:
        parse_auth_config({"type": "bearer"})

    assert str(exc_info.value) == snapshot("bearer.bearer is required")


def test_unknown_type_is_rejected():
    with pytest.raises(ConfigInvalid) as exc_info:
        parse_auth_config({"type": "digest"})

    assert str(exc_info.value) == snapshot("Auth type 'digest' is not supported")


def test_missing_type_is_rejected():
    with pytest.raises(ConfigInvalid) as exc_info:
        parse_auth_config({"basic": {"username": "u", "password": "p"}})

    assert str(exc_info.value) == snapshot("type is required")
    assert exc_info.value.error == "config_invalid"


def test_configs_are_immutable():
    config = BasicAuth(basic=BasicCredentials(username="u", password="p"))

    with pytest.raises(ValidationError):
        config.basic.username = "other"  # type: ignore[misc]


@pytest.mark.parametrize("auth_type", list(AUTH_TYPE_LABELS))
def test_default_config_has_requested_type(auth_type: str):
    config = default_auth_config(auth_type, redirect_uri="http://localhost/cb")

    assert config.type == auth_type
    assert is_oauth2(config) == auth_type.startswith("oauth2-")


def test_default_interactive_configs_use_redirect_uri_and_pkce():
    config = default_auth_config("oauth2-authorization-code", "http://localhost/cb")

    assert isinstance(config, OAuth2AuthorizationCodeAuth)
    assert config.oauth2_authorization_code.redirect_uri == "http://localhost/cb"
    assert config.oauth2_authorization_code.use_pkce is True


def test_default_config_rejects_unknown_type():
    with pytest.raises(ConfigInvalid):
        default_auth_config("digest")


def test_complete_configs_pass():
    ensure_complete(NoAuth())
    ensure_complete(ManualHeadersAuth.model_validate({"manualHeaders": {}}))
    ensure_complete(BasicAuth(basic=BasicCredentials(username="u", password="")))


def test_incomplete_client_credentials_lists_missing_values():
    config = default_auth_config("oauth2-client-credentials")

    with pytest.raises(ConfigInvalid) as exc_info:
        ensure_complete(config)

    assert str(exc_info.value) == snapshot(
        "Token URL, Client ID, and Client Secret are required (missing: token_url, client_id, client_secret)"
    )


def test_incomplete_implicit_config_is_reported():
    config = default_auth_config("oauth2-implicit", "http://localhost/cb")

    with pytest.raises(ConfigInvalid) as exc_info:
        ensure_complete(config)

    assert str(exc_info.value) == snapshot(
        "Authorization URL, Client ID, and Redirect URI are required (missing: authorization_url, client_id)"
    )
