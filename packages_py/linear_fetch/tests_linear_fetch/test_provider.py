"""
Tests for token providers and the token refresher.
"""
import logging
import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import httpx
import pytest

from linear_fetch.auth.oauth import OAuthError
from linear_fetch.auth.provider import (
    NoRefreshTokenError,
    RefreshingProvider,
    SessionExpiredError,
    StaticProvider,
    TokenProviderError,
    TokenRefresher,
    TokenRefreshError,
)
from linear_fetch.auth.storage import TokenData


def _in(seconds: float) -> datetime:
    return datetime.now(timezone.utc) + timedelta(seconds=seconds)


@pytest.fixture
def current():
    return TokenData(
        access_token="old-access",
        refresh_token="refresh-1",
        expires_at=_in(3600),
        auth_mode="user",
    )


@pytest.fixture
def refresher(current):
    """TokenRefresher stand-in returning new-access."""
    mock = MagicMock(spec=TokenRefresher)
    mock.load.return_value = current
    mock.refresh.return_value = TokenData(
        access_token="new-access", refresh_token="refresh-2", expires_at=_in(3600)
    )
    return mock


class TestStaticProvider:
    """Tests for StaticProvider."""

    def test_returns_sanitized_token(self):
        """Should strip whitespace from the configured token."""
        assert StaticProvider("  lin_api_abc\n").get_token() == "lin_api_abc"

    def test_empty_token(self):
        """Should fail when no token is configured."""
        with pytest.raises(TokenProviderError):
            StaticProvider("").get_token()

    def test_cannot_refresh(self):
        """Should report that refresh is not available."""
        with pytest.raises(NoRefreshTokenError):
            StaticProvider("tok").refresh_if_needed("tok")


class TestTokenRefresher:
    """Tests for TokenRefresher."""

    @pytest.fixture
    def storage(self):
        return MagicMock()

    @pytest.fixture
    def oauth(self):
        mock = MagicMock()
        mock.refresh_access_token.return_value = TokenData(
            access_token="new-access", refresh_token="refresh-2", expires_at=_in(3600)
        )
        return mock

    def test_refreshes_and_saves(self, storage, oauth, current):
        """Should exchange the refresh token and persist the result."""
        result = TokenRefresher(storage, oauth).refresh(current)

        oauth.refresh_access_token.assert_called_once_with("refresh-1")
        storage.save_token_data.assert_called_once_with(result)
        assert result.access_token == "new-access"
        assert result.refresh_token == "refresh-2"

    def test_keeps_old_refresh_token_when_omitted(self, storage, oauth, current):
        """Should keep the existing refresh token if the server sends none."""
        oauth.refresh_access_token.return_value = TokenData(access_token="new-access")

        result = TokenRefresher(storage, oauth).refresh(current)

        assert result.refresh_token == "refresh-1"
        assert result.auth_mode == "user"

    def test_requires_refresh_token(self, storage, oauth):
        """Should fail without contacting the server when there is no refresh token."""
        with pytest.raises(NoRefreshTokenError):
            TokenRefresher(storage, oauth).refresh(TokenData(access_token="legacy"))

        oauth.refresh_access_token.assert_not_called()

    @pytest.mark.parametrize("status", [400, 401])
    def test_rejected_refresh_token_is_session_expired(self, storage, oauth, current, status):
        """Should map 400/401 from the token endpoint to SessionExpiredError."""
        oauth.refresh_access_token.side_effect = OAuthError("rejected", status_code=status)

        with pytest.raises(SessionExpiredError):
            TokenRefresher(storage, oauth).refresh(current)

        storage.save_token_data.assert_not_called()

    def test_server_failure_is_refresh_error(self, storage, oauth, current):
        """Should map other token endpoint failures to TokenRefreshError."""
        oauth.refresh_access_token.side_effect = OAuthError("oops", status_code=500)

        with pytest.raises(TokenRefreshError):
            TokenRefresher(storage, oauth).refresh(current)

    def test_transport_failure_is_refresh_error(self, storage, oauth, current):
        """Should map transport failures to TokenRefreshError."""
        oauth.refresh_access_token.side_effect = httpx.ConnectError("refused")

        with pytest.raises(TokenRefreshError) as exc_info:
            TokenRefresher(storage, oauth).refresh(current)

        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    def test_save_failure_still_returns_token(self, storage, oauth, current, caplog):
        """Should log a failed save and keep going with the new token."""
        storage.save_token_data.side_effect = PermissionError("read-only")

        with caplog.at_level(logging.ERROR):
            result = TokenRefresher(storage, oauth).refresh(current)

        assert result.access_token == "new-access"
        assert "failed to persist" in caplog.text


class TestRefreshingProvider:
    """Tests for RefreshingProvider."""

    def test_loads_initial_token(self, refresher):
        """Should load token data from the refresher when none is given."""
        provider = RefreshingProvider(refresher)

        assert provider.get_token() == "old-access"
        refresher.load.assert_called_once()
        refresher.refresh.assert_not_called()

    def test_refresh_replaces_stale_token(self, refresher, current):
        """Should refresh when the stale token is the current one."""
        provider = RefreshingProvider(refresher, initial=current)

        assert provider.refresh_if_needed("old-access") == "new-access"
        assert provider.get_token() == "new-access"
        refresher.refresh.assert_called_once_with(current)

    def test_skips_refresh_when_already_rotated(self, refresher, current):
        """Should return the current token if someone already refreshed."""
        provider = RefreshingProvider(refresher, initial=current)
        provider.refresh_if_needed("old-access")

        assert provider.refresh_if_needed("old-access") == "new-access"
        assert refresher.refresh.call_count == 1

    def test_concurrent_refreshes_coalesce(self, refresher, current):
        """Should perform one refresh for many threads holding the same stale token."""
        started = threading.Event()
        release = threading.Event()

        def slow_refresh(data):
            started.set()
            release.wait(5)
            return TokenData(access_token="new-access", refresh_token="refresh-2")

        refresher.refresh.side_effect = slow_refresh
        provider = RefreshingProvider(refresher, initial=current)
        results = []
        lock = threading.Lock()

        def worker():
            token = provider.refresh_if_needed("old-access")
            with lock:
                results.append(token)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        assert started.wait(5)
        release.set()
        for thread in threads:
            thread.join(5)

        assert refresher.refresh.call_count == 1
        assert results == ["new-access"] * 8

    def test_refresh_failure_propagates(self, refresher, current):
        """Should raise the refresher's error to the caller."""
        refresher.refresh.side_effect = SessionExpiredError("expired")
        provider = RefreshingProvider(refresher, initial=current)

        with pytest.raises(SessionExpiredError):
            provider.refresh_if_needed("old-access")

    def test_proactive_refresh_near_expiry(self, refresher):
        """Should refresh in get_token when the token expires within the buffer."""
        expiring = TokenData(access_token="old-access", refresh_token="r", expires_at=_in(60))
        provider = RefreshingProvider(refresher, refresh_buffer_seconds=300, initial=expiring)

        assert provider.get_token() == "new-access"

    def test_proactive_failure_falls_back(self, refresher, caplog):
        """Should keep using a still-valid token if proactive refresh fails."""
        refresher.refresh.side_effect = TokenRefreshError("down")
        expiring = TokenData(access_token="old-access", refresh_token="r", expires_at=_in(60))
        provider = RefreshingProvider(refresher, initial=expiring)

        with caplog.at_level(logging.WARNING):
            assert provider.get_token() == "old-access"

        assert "proactive refresh failed" in caplog.text

    def test_proactive_failure_with_expired_token_raises(self, refresher):
        """Should raise when the token is already expired and refresh fails."""
        refresher.refresh.side_effect = SessionExpiredError("expired")
        expired = TokenData(access_token="old-access", refresh_token="r", expires_at=_in(-60))
        provider = RefreshingProvider(refresher, initial=expired)

        with pytest.raises(SessionExpiredError):
            provider.get_token()

    def test_no_proactive_refresh_without_expiry(self, refresher):
        """Should not refresh tokens that carry no expiry."""
        provider = RefreshingProvider(
            refresher, initial=TokenData(access_token="old-access", refresh_token="r")
        )

        assert provider.get_token() == "old-access"
        refresher.refresh.assert_not_called()
