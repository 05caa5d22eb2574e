import logging

from .models.token import CachedToken, now_ms

logger = logging.getLogger(__name__)


class TokenCache:
    """In-memory OAuth2 tokens, one per owning request/folder identity.

    Writes are last-writer-wins; expired tokens are dropped when read.
    """

    def __init__(self) -> None:
        self._tokens: dict[str, CachedToken] = {}

    def set(self, key: str, token: CachedToken) -> None:
        self._tokens[key] = token

    def get(self, key: str) -> CachedToken | None:
        """Return the live token for ``key``, None if absent or expired."""
        token = self._tokens.get(key)

        if token is None:
            return None

        if token.is_expired():
            logger.debug("Dropping expired token for %s", key)
            del self._tokens[key]
            return None

        return token

    def peek(self, key: str) -> CachedToken | None:
        """Return the stored token for ``key`` even if it has expired."""
        return self._tokens.get(key)

    def is_expired(self, key: str) -> bool:
        """True when there is no usable token for ``key``."""
        token = self._tokens.get(key)

        return token is None or token.is_expired()

    def needs_refresh(self, key: str, buffer: float = 60.0) -> bool:
        """True if the token for ``key`` expires within ``buffer`` seconds."""
        token = self._tokens.get(key)

        if token is None or token.expires_at is None:
            return False

        return now_ms() >= token.expires_at - int(buffer * 1000)

    def delete(self, key: str) -> None:
        self._tokens.pop(key, None)

    def clear(self) -> None:
        self._tokens.clear()

    def keys(self) -> list[str]:
        return list(self._tokens)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._tokens)
