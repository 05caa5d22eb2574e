from typing import TypedDict

DEFAULT_REFRESH_BUFFER = 60.0
DEFAULT_TOKEN_REQUEST_TIMEOUT = 30.0


class Config(TypedDict, total=False):
    # Seconds to wait for the authorization redirect; overrides the surface's
    # own window when set
    redirect_timeout: float

    # Tokens with a refresh token are renewed this many seconds before expiry
    refresh_buffer: float

    # Timeout of token endpoint requests, in seconds
    token_request_timeout: float
