"""
Token providers: supply the current bearer credential and refresh it.
"""
import logging
import threading
from abc import ABC, abstractmethod
from typing import Optional, Protocol

import httpx

from .oauth import OAuthError
from .sanitize import mask_token, sanitize_token
from .singleflight import Singleflight
from .storage import TokenData, TokenStorage, is_expired, needs_refresh

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_BUFFER_SECONDS = 300.0


class TokenProviderError(Exception):
    """Base class for credential failures."""
    pass


class SessionExpiredError(TokenProviderError):
    """Both access and refresh token are no longer accepted."""
    pass


class NoRefreshTokenError(TokenProviderError):
    """The provider has no way to refresh its token."""
    pass


class TokenRefreshError(TokenProviderError):
    """Refresh failed for a reason that may not be permanent."""
    pass


class TokenProvider(ABC):
    """
    Credential source used by the retry executor.

    Implementations must be safe to call from several threads; concurrent
    refreshes of the same stale token must collapse into one.
    """

    @abstractmethod
    def get_token(self) -> str:
        """Return the current access token."""
        ...

    @abstractmethod
    def refresh_if_needed(self, stale_token: str) -> str:
        """
        Return a token newer than ``stale_token``, refreshing if nobody has yet.

        Raises:
            SessionExpiredError: the session cannot be recovered
            NoRefreshTokenError: refresh was never configured
            TokenRefreshError: any other refresh failure
        """
        ...


class StaticProvider(TokenProvider):
    """Fixed token (personal API key or legacy OAuth token)."""

    def __init__(self, token: str):
        self._token = sanitize_token(token or "")

    def get_token(self) -> str:
        if not self._token:
            raise TokenProviderError("no token configured")
        return self._token

    def refresh_if_needed(self, stale_token: str) -> str:
        raise NoRefreshTokenError("static token cannot be refreshed")


class OAuthRefresher(Protocol):
    """Anything that can trade a refresh token for new token data."""

    def refresh_access_token(self, refresh_token: str) -> TokenData:
        ...


class TokenRefresher:
    """Refreshes stored token data and persists the result."""

    def __init__(self, storage: TokenStorage, oauth: OAuthRefresher):
        self._storage = storage
        self._oauth = oauth

    def load(self) -> TokenData:
        """Load the stored token data."""
        return self._storage.load_token_data()

    def refresh(self, current: TokenData) -> TokenData:
        """
        Refresh ``current`` and save the new token data.

        Raises:
            NoRefreshTokenError: current has no refresh token
            SessionExpiredError: the token endpoint rejected the refresh token
            TokenRefreshError: transport failure or unexpected response
        """
        if not current.has_refresh_token:
            raise NoRefreshTokenError("no refresh token available")

        try:
            new_data = self._oauth.refresh_access_token(current.refresh_token)
        except OAuthError as err:
            if err.status_code in (400, 401):
                raise SessionExpiredError(f"refresh token rejected: {err}") from err
            raise TokenRefreshError(str(err)) from err
        except (httpx.RequestError, OSError) as err:
            raise TokenRefreshError(f"failed to request token refresh: {err}") from err

        updates = {}
        if not new_data.refresh_token:
            updates["refresh_token"] = current.refresh_token
        if new_data.auth_mode is None and current.auth_mode is not None:
            updates["auth_mode"] = current.auth_mode
        if updates:
            new_data = new_data.model_copy(update=updates)

        try:
            self._storage.save_token_data(new_data)
        except OSError as err:
            # The refreshed token is still valid for this process
            logger.error(f"TokenRefresher.refresh: failed to persist refreshed token: {err}")

        logger.info(
            f"TokenRefresher.refresh: refreshed token={mask_token(new_data.access_token)}, "
            f"expires_at={new_data.expires_at}"
        )
        return new_data


class RefreshingProvider(TokenProvider):
    """
    OAuth token provider with proactive and on-demand refresh.

    ``get_token`` refreshes ahead of time when the token expires within
    ``refresh_buffer_seconds``. ``refresh_if_needed`` refreshes only if the
    caller's token is still the current one (double-checked), and concurrent
    callers holding the same stale token share one refresh.
    """

    def __init__(
        self,
        refresher: TokenRefresher,
        refresh_buffer_seconds: float = DEFAULT_REFRESH_BUFFER_SECONDS,
        initial: Optional[TokenData] = None,
    ):
        self._refresher = refresher
        self._refresh_buffer_seconds = refresh_buffer_seconds
        self._lock = threading.Lock()
        self._flight = Singleflight()
        self._data = initial if initial is not None else refresher.load()

    @property
    def token_data(self) -> TokenData:
        with self._lock:
            return self._data

    def get_token(self) -> str:
        data = self.token_data
        if data.has_refresh_token and needs_refresh(data, self._refresh_buffer_seconds):
            logger.debug(
                f"RefreshingProvider.get_token: token={mask_token(data.access_token)} "
                f"expires at {data.expires_at}, refreshing proactively"
            )
            try:
                return self.refresh_if_needed(data.access_token)
            except TokenProviderError as err:
                if is_expired(data):
                    raise
                logger.warning(
                    f"RefreshingProvider.get_token: proactive refresh failed, "
                    f"using current token: {err}"
                )
        return data.access_token

    def refresh_if_needed(self, stale_token: str) -> str:
        current = self.token_data
        if current.access_token != stale_token:
            return current.access_token

        result = self._flight.do(stale_token, lambda: self._refresh(stale_token))
        if result.shared:
            logger.debug(
                f"RefreshingProvider.refresh_if_needed: shared refresh "
                f"with {result.subscribers} callers"
            )
        return result.value

    def _refresh(self, stale_token: str) -> str:
        with self._lock:
            current = self._data
        # Another caller may have finished a refresh since the first check
        if current.access_token != stale_token:
            return current.access_token

        new_data = self._refresher.refresh(current)
        with self._lock:
            self._data = new_data
        return new_data.access_token
