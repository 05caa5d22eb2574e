class AuthError(Exception):
    error = "auth_error"

    def __init__(self, error_description: str | None = None) -> None:
        super().__init__(error_description or self.error)
        self.error_description = error_description


class ConfigInvalid(AuthError):
    """The auth config is malformed or misses required values."""

    error = "config_invalid"


class CryptoUnavailable(AuthError):
    error = "crypto_unavailable"


class ProviderBlockedOrTimeout(AuthError):
    """No redirect arrived within the surface's window.

    Usually means the provider refused to render inside an embedded frame;
    callers may retry the flow with a separate window.
    """

    error = "provider_blocked_or_timeout"

    def __init__(self, timeout: float, error_description: str | None = None) -> None:
        super().__init__(
            error_description or f"No authorization redirect within {timeout}s"
        )
        self.timeout = timeout


class UserCancelled(AuthError):
    error = "user_cancelled"


class StateMismatch(AuthError):
    """A redirect arrived for a state that is not pending (possible CSRF)."""

    error = "state_mismatch"

    def __init__(self, state: str | None) -> None:
        super().__init__("No pending authorization matches the redirect state")
        self.state = state


class ProviderError(AuthError):
    error = "provider_error"

    def __init__(
        self,
        error: str,
        error_description: str | None = None,
        error_uri: str | None = None,
    ) -> None:
        super().__init__(error_description or error)
        self.provider_error = error
        self.error_uri = error_uri


class TokenExchangeFailed(AuthError):
    error = "token_exchange_failed"

    def __init__(self, status: int | None, body: str) -> None:
        if status is None:
            description = f"Token request failed: {body}"
        else:
            description = f"Token request failed: {status} - {body}"

        super().__init__(description)
        self.status = status
        self.body = body


class TokenRequired(AuthError):
    """An OAuth2 config was used to decorate a request without a valid token."""

    error = "token_required"
