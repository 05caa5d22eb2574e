import secrets

from request_auth.exceptions import CryptoUnavailable


def generate_state() -> str:
    """Generate an opaque, single-use state token (256 bits of entropy)."""
    try:
        return secrets.token_urlsafe(32)
    except NotImplementedError as e:
        raise CryptoUnavailable("No secure random source available") from e
