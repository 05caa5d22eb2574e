from request_auth._config import Config
from request_auth._decorator import decorate
from request_auth._flow import AuthFlow, FlowOrchestrator, FlowState
from request_auth._redirect import PendingAuthorization, RedirectCaptureChannel
from request_auth._service import AuthService, ConfigTestResult
from request_auth._storage import AuthConfigStore, MemoryAuthConfigStore, ResolvedAuth
from request_auth._surface import (
    AuthorizationSurface,
    EmbeddedFrameSurface,
    PopupWindowSurface,
)
from request_auth._token_cache import TokenCache
from request_auth._token_endpoint import TokenEndpointClient
from request_auth.models.auth_config import (
    AuthConfig,
    default_auth_config,
    ensure_complete,
    parse_auth_config,
)
from request_auth.models.redirect import RedirectMessage
from request_auth.models.request import DecoratedRequest, RequestDescriptor
from request_auth.models.token import CachedToken
from request_auth.utils._variables import make_variable_resolver

__all__ = [
    "AuthConfig",
    "AuthConfigStore",
    "AuthFlow",
    "AuthService",
    "AuthorizationSurface",
    "CachedToken",
    "Config",
    "ConfigTestResult",
    "DecoratedRequest",
    "EmbeddedFrameSurface",
    "FlowOrchestrator",
    "FlowState",
    "MemoryAuthConfigStore",
    "PendingAuthorization",
    "PopupWindowSurface",
    "RedirectCaptureChannel",
    "RedirectMessage",
    "RequestDescriptor",
    "ResolvedAuth",
    "TokenCache",
    "TokenEndpointClient",
    "decorate",
    "default_auth_config",
    "ensure_complete",
    "make_variable_resolver",
    "parse_auth_config",
]
