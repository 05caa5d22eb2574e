from pydantic import BaseModel, ConfigDict, Field

from request_auth.utils._url import split_redirect_params

# Parameters an implicit grant returns in the URL fragment
FRAGMENT_ONLY_PARAMS = ("access_token", "token_type", "expires_in", "scope")


class RedirectMessage(BaseModel):
    """What the authorization surface reports back after the provider redirect."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    state: str | None = None
    code: str | None = None
    access_token: str | None = None
    token_type: str | None = None
    expires_in: int | None = None
    scope: str | None = None
    error: str | None = None
    error_description: str | None = None
    error_uri: str | None = None
    raw: dict[str, str] = Field(default_factory=dict, exclude=True)

    @classmethod
    def from_url(cls, url: str) -> "RedirectMessage":
        """
        Parse a provider redirect.

        The authorization code, state and errors may come in the query string
        or the fragment; the access token of an implicit grant is only read
        from the fragment.
        """
        query, fragment = split_redirect_params(url)

        data: dict[str, str] = {
            key: value
            for key, value in {**fragment, **query}.items()
            if key not in FRAGMENT_ONLY_PARAMS
        }

        for key in FRAGMENT_ONLY_PARAMS:
            if key in fragment:
                data[key] = fragment[key]

        if not data.get("expires_in", "").isdigit():
            data.pop("expires_in", None)

        return cls.model_validate({**data, "raw": {**fragment, **query}})
