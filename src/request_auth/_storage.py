from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from typing_extensions import Protocol

from .models.auth_config import AuthConfig

GLOBAL_TOKEN_KEY = "global"


def folder_token_key(folder_id: str) -> str:
    return f"folder:{folder_id}"


@dataclass(frozen=True)
class ResolvedAuth:
    config: AuthConfig
    # Token cache key of the entity that owns the config
    token_key: str
    source: Literal["request", "folder", "global"]


class AuthConfigStore(Protocol):
    def resolve(
        self, request_id: str, folder_ids: Sequence[str] = ()
    ) -> ResolvedAuth | None:
        """Return the config that applies to a request, own or inherited.

        ``folder_ids`` lists the request's ancestor folders, nearest first.
        """
        ...

    def remove_request_config(self, request_id: str) -> None: ...

    def remove_folder_config(self, folder_id: str) -> None: ...


class MemoryAuthConfigStore:
    """Auth configs for requests, folders and a global default.

    Inheritance is looked up when resolving; nothing is copied between
    entities.
    """

    def __init__(self) -> None:
        self.request_configs: dict[str, AuthConfig] = {}
        self.folder_configs: dict[str, AuthConfig] = {}
        self.global_config: AuthConfig | None = None

    def set_request_config(self, request_id: str, config: AuthConfig) -> None:
        self.request_configs[request_id] = config

    def remove_request_config(self, request_id: str) -> None:
        self.request_configs.pop(request_id, None)

    def set_folder_config(self, folder_id: str, config: AuthConfig) -> None:
        self.folder_configs[folder_id] = config

    def remove_folder_config(self, folder_id: str) -> None:
        self.folder_configs.pop(folder_id, None)

    def set_global_config(self, config: AuthConfig | None) -> None:
        self.global_config = config

    def resolve(
        self, request_id: str, folder_ids: Sequence[str] = ()
    ) -> ResolvedAuth | None:
        if (config := self.request_configs.get(request_id)) is not None:
            return ResolvedAuth(config, request_id, "request")

        for folder_id in folder_ids:
            if (config := self.folder_configs.get(folder_id)) is not None:
                return ResolvedAuth(config, folder_token_key(folder_id), "folder")

        if self.global_config is not None:
            return ResolvedAuth(self.global_config, GLOBAL_TOKEN_KEY, "global")

        return None
