import time

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def now_ms() -> int:
    return int(time.time() * 1000)


class CachedToken(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    access_token: str = Field(description="The issued access token")
    token_type: str = Field(
        "Bearer", description="Authorization scheme, usually 'Bearer'"
    )
    expires_at: int | None = Field(
        None, description="Expiry as epoch milliseconds, None if it never expires"
    )
    refresh_token: str | None = Field(
        None, description="Token used to obtain new access tokens"
    )
    scope: str | None = Field(None, description="Scopes granted with the token")

    @classmethod
    def issued(
        cls,
        access_token: str,
        token_type: str | None = None,
        expires_in: int | None = None,
        refresh_token: str | None = None,
        scope: str | None = None,
        received_at: int | None = None,
    ) -> "CachedToken":
        """Build a token whose expiry counts from when it was received."""
        expires_at = None

        if expires_in:
            if received_at is None:
                received_at = now_ms()

            expires_at = received_at + expires_in * 1000

        return cls(
            access_token=access_token,
            token_type=token_type or "Bearer",
            expires_at=expires_at,
            refresh_token=refresh_token,
            scope=scope,
        )

    def is_expired(self, now: int | None = None) -> bool:
        if self.expires_at is None:
            return False

        return (now if now is not None else now_ms()) >= self.expires_at

    def expires_in(self, now: int | None = None) -> float | None:
        """Seconds left before expiry, None for tokens that never expire."""
        if self.expires_at is None:
            return None

        return (self.expires_at - (now if now is not None else now_ms())) / 1000

    @property
    def authorization(self) -> str:
        return f"{self.token_type} {self.access_token}"
