"""
Factory functions for creating Linear clients.

Token provider selection:
1. A stored token with a refresh token, plus OAuth client credentials,
   gives a RefreshingProvider.
2. Any other stored token gives a StaticProvider.
3. Otherwise LINEAR_API_KEY / LINEAR_API_TOKEN gives a StaticProvider.
"""
import logging
from typing import Callable, Optional

from .auth.oauth import OAuthClient
from .auth.provider import RefreshingProvider, StaticProvider, TokenProvider, TokenRefresher
from .auth.sanitize import mask_token, sanitize_token
from .auth.storage import TokenStorage
from .client import GraphQLClient
from .connection.manager import ConnectionManager
from .errors import AuthenticationError
from .settings import LinearSettings, get_settings

logger = logging.getLogger(__name__)


def create_token_provider(
    settings: Optional[LinearSettings] = None,
    storage: Optional[TokenStorage] = None,
    connection: Optional[ConnectionManager] = None,
) -> TokenProvider:
    """
    Pick a token provider from stored credentials or the environment.

    Args:
        settings: Settings, defaults to get_settings()
        storage: Token storage, defaults to settings.token_path or
            ~/.config/linear/token
        connection: Connection used for OAuth refresh requests

    Raises:
        AuthenticationError: no credentials found (code NO_CREDENTIALS)
    """
    settings = settings or get_settings()
    storage = storage or TokenStorage(settings.token_path)

    if storage.token_exists():
        try:
            token_data = storage.load_token_data()
        except OSError as err:
            logger.warning(f"create_token_provider: failed to read {storage.path}: {err}")
            token_data = None

        if token_data is not None and token_data.access_token:
            if token_data.has_refresh_token and settings.has_oauth_client:
                logger.debug(
                    f"create_token_provider: refreshing provider for "
                    f"token={mask_token(token_data.access_token)}"
                )
                oauth = OAuthClient(
                    settings.client_id,
                    settings.client_secret,
                    connection or ConnectionManager(settings.connection_config()),
                    token_url=settings.token_url,
                )
                return RefreshingProvider(
                    TokenRefresher(storage, oauth),
                    refresh_buffer_seconds=settings.refresh_buffer_seconds,
                    initial=token_data,
                )
            logger.debug(
                f"create_token_provider: static provider for stored "
                f"token={mask_token(token_data.access_token)}"
            )
            return StaticProvider(token_data.access_token)

    env_token = sanitize_token(settings.env_token or "")
    if env_token:
        logger.debug(f"create_token_provider: static provider for env token={mask_token(env_token)}")
        return StaticProvider(env_token)

    raise AuthenticationError("no credentials found", code="NO_CREDENTIALS")


def create_client(
    api_key: Optional[str] = None,
    settings: Optional[LinearSettings] = None,
    storage: Optional[TokenStorage] = None,
    connection: Optional[ConnectionManager] = None,
    sleep: Optional[Callable[[float], None]] = None,
) -> GraphQLClient:
    """
    Create a GraphQL client wired from settings.

    Args:
        api_key: Explicit API key; skips provider selection
        settings: Settings, defaults to get_settings()
        storage: Token storage used for provider selection
        connection: Shared connection manager; one is created (and owned by
            the client) when omitted
        sleep: Sleep function used between retries

    Example:
        with create_client() as client:
            data = client.execute("query { viewer { id name } }")
    """
    settings = settings or get_settings()
    owns_connection = connection is None
    connection = connection or ConnectionManager(settings.connection_config())

    try:
        if api_key:
            provider: TokenProvider = StaticProvider(api_key)
        else:
            provider = create_token_provider(settings, storage=storage, connection=connection)
    except BaseException:
        if owns_connection:
            connection.close()
        raise

    return GraphQLClient(
        provider,
        connection=connection,
        policy=settings.retry_policy(),
        endpoint=settings.api_url,
        idempotency_keys=settings.idempotency_keys,
        sleep=sleep,
        owns_connection=owns_connection,
    )
