"""
Credentials: token storage, sanitation, OAuth refresh and token providers.
"""
from .sanitize import (
    mask_token,
    sanitize_token,
    validate_token,
    format_auth_header,
)
from .storage import (
    TokenData,
    TokenStorage,
    get_default_token_path,
    is_expired,
    needs_refresh,
)
from .singleflight import Singleflight, SingleflightResult
from .oauth import LINEAR_TOKEN_URL, OAuthClient, OAuthError, TokenResponse
from .provider import (
    TokenProvider,
    TokenProviderError,
    SessionExpiredError,
    NoRefreshTokenError,
    TokenRefreshError,
    StaticProvider,
    TokenRefresher,
    RefreshingProvider,
)


__all__ = [
    # Sanitize
    "mask_token",
    "sanitize_token",
    "validate_token",
    "format_auth_header",
    # Storage
    "TokenData",
    "TokenStorage",
    "get_default_token_path",
    "is_expired",
    "needs_refresh",
    # Singleflight
    "Singleflight",
    "SingleflightResult",
    # OAuth
    "LINEAR_TOKEN_URL",
    "OAuthClient",
    "OAuthError",
    "TokenResponse",
    # Providers
    "TokenProvider",
    "TokenProviderError",
    "SessionExpiredError",
    "NoRefreshTokenError",
    "TokenRefreshError",
    "StaticProvider",
    "TokenRefresher",
    "RefreshingProvider",
]
