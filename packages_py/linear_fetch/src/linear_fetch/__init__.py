"""
linear_fetch - resilient GraphQL request engine for the Linear API.

Sends operations over a shared connection pool, retries transient failures
with exponential backoff, honours Retry-After, refreshes credentials once on
401 and maps responses onto a closed error taxonomy.
"""
from .errors import (
    ErrorKind,
    LinearError,
    NetworkError,
    HTTPError,
    RateLimitError,
    AuthenticationError,
    GraphQLError,
    ValidationError,
    NotFoundError,
    OperationError,
    REAUTH_GUIDANCE,
    wrap_error,
    find_error,
    error_kind,
    is_network_error,
    is_http_error,
    is_rate_limit_error,
    is_authentication_error,
    is_graphql_error,
    is_validation_error,
    is_not_found_error,
    get_retry_after,
    get_attempts,
)
from .types import (
    Operation,
    RawResponse,
    ResponseEnvelope,
    Attempt,
    AttemptOutcome,
    RetryEvent,
    RetryEventListener,
)
from .retry import RetryPolicy, RetryExecutor, DEFAULT_RETRY_POLICY
from .connection import ConnectionConfig, ConnectionManager, DEFAULT_CONNECTION_CONFIG
from .auth import (
    TokenProvider,
    StaticProvider,
    RefreshingProvider,
    TokenRefresher,
    TokenStorage,
    TokenData,
    OAuthClient,
    SessionExpiredError,
    NoRefreshTokenError,
)
from .decoder import decode_response, parse_envelope, query_excerpt
from .client import GraphQLClient, LINEAR_API_URL
from .settings import LinearSettings, get_settings
from .factory import create_client, create_token_provider


__all__ = [
    # Errors
    "ErrorKind",
    "LinearError",
    "NetworkError",
    "HTTPError",
    "RateLimitError",
    "AuthenticationError",
    "GraphQLError",
    "ValidationError",
    "NotFoundError",
    "OperationError",
    "REAUTH_GUIDANCE",
    "wrap_error",
    "find_error",
    "error_kind",
    "is_network_error",
    "is_http_error",
    "is_rate_limit_error",
    "is_authentication_error",
    "is_graphql_error",
    "is_validation_error",
    "is_not_found_error",
    "get_retry_after",
    "get_attempts",
    # Types
    "Operation",
    "RawResponse",
    "ResponseEnvelope",
    "Attempt",
    "AttemptOutcome",
    "RetryEvent",
    "RetryEventListener",
    # Retry
    "RetryPolicy",
    "RetryExecutor",
    "DEFAULT_RETRY_POLICY",
    # Connection
    "ConnectionConfig",
    "ConnectionManager",
    "DEFAULT_CONNECTION_CONFIG",
    # Auth
    "TokenProvider",
    "StaticProvider",
    "RefreshingProvider",
    "TokenRefresher",
    "TokenStorage",
    "TokenData",
    "OAuthClient",
    "SessionExpiredError",
    "NoRefreshTokenError",
    # Decoder
    "decode_response",
    "parse_envelope",
    "query_excerpt",
    # Client
    "GraphQLClient",
    "LINEAR_API_URL",
    "create_client",
    "create_token_provider",
    # Settings
    "LinearSettings",
    "get_settings",
]


__version__ = "1.0.0"
