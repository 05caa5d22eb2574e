from pydantic import BaseModel, ConfigDict, Field

from .auth_config import HeaderEntry


class RequestDescriptor(BaseModel):
    """The parts of an outgoing request that authentication can touch."""

    model_config = ConfigDict(frozen=True)

    method: str = "GET"
    url: str
    headers: list[HeaderEntry] = Field(default_factory=list)

    def get_header(self, name: str) -> str | None:
        """Value of the last enabled header called ``name`` (case-insensitive)."""
        value = None

        for header in self.headers:
            if header.enabled and header.key.lower() == name.lower():
                value = header.value

        return value


class DecoratedRequest(RequestDescriptor):
    auth_type: str = "none"
