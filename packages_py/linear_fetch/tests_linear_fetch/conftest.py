"""
Pytest configuration and shared fixtures for linear_fetch integration tests.
"""
import logging
import time
from unittest.mock import MagicMock

import httpx
import pytest
import respx

from linear_fetch.auth.provider import TokenProvider
from linear_fetch.client import LINEAR_API_URL
from linear_fetch.connection.config import ConnectionConfig
from linear_fetch.connection.manager import ConnectionManager


# Configure logging for tests
logging.basicConfig(
    level=logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)


class SlowStream(httpx.SyncByteStream):
    """Response body that waits before every chunk."""

    def __init__(self, chunks, delay):
        self._chunks = chunks
        self._delay = delay

    def __iter__(self):
        for chunk in self._chunks:
            time.sleep(self._delay)
            yield chunk


@pytest.fixture
def api_url():
    """GraphQL endpoint used by the tests."""
    return LINEAR_API_URL


@pytest.fixture
def router():
    """respx router; requests reach it through httpx.MockTransport."""
    return respx.MockRouter(assert_all_called=False)


@pytest.fixture
def connection(router):
    """ConnectionManager whose transport is the respx router."""
    manager = ConnectionManager(transport=httpx.MockTransport(router.handler))
    yield manager
    manager.close()


@pytest.fixture
def sleeps():
    """Delays requested by the code under test, in order."""
    return []


@pytest.fixture
def record_sleep(sleeps):
    """Sleep replacement that records instead of blocking."""
    return sleeps.append


@pytest.fixture
def token_provider():
    """Provider that hands out tok-1 and refreshes to tok-2."""
    provider = MagicMock(spec=TokenProvider)
    provider.get_token.return_value = "tok-1"
    provider.refresh_if_needed.return_value = "tok-2"
    return provider


@pytest.fixture
def slow_stream():
    """Factory for bodies that stream in slowly: slow_stream(chunks, delay)."""
    return SlowStream


@pytest.fixture
def short_deadline_connection():
    """
    Factory for a ConnectionManager with a 0.05s request deadline in front of
    a plain handler function.
    """
    managers = []

    def build(handler):
        config = ConnectionConfig(
            dial_timeout_seconds=0.05,
            tls_handshake_timeout_seconds=0.05,
            response_header_timeout_seconds=0.05,
            request_timeout_seconds=0.05,
        )
        manager = ConnectionManager(config, transport=httpx.MockTransport(handler))
        managers.append(manager)
        return manager

    yield build
    for manager in managers:
        manager.close()
