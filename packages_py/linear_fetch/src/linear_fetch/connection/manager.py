"""
Shared, connection-pooling HTTP client.
"""
import logging
import socket
import threading
import time
from typing import Any, Dict, List, Optional, Tuple

import httpx

from ..types import RawResponse
from .config import (
    DEFAULT_CONNECTION_CONFIG,
    ConnectionConfig,
    build_limits,
    build_timeout,
    validate_config,
)

logger = logging.getLogger(__name__)

USER_AGENT = "linear-fetch"


class ResponseBodyError(httpx.TransportError):
    """
    The status line arrived but the body could not be read in full.

    The server may already have acted on the request, so this is never
    treated as a transient failure.
    """


def _keep_alive_socket_options() -> List[Tuple[int, int, int]]:
    """SO_KEEPALIVE plus probe timing where the platform exposes it."""
    options = [(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)]
    if hasattr(socket, "TCP_KEEPIDLE"):
        options.append((socket.IPPROTO_TCP, socket.TCP_KEEPIDLE, 30))
    if hasattr(socket, "TCP_KEEPINTVL"):
        options.append((socket.IPPROTO_TCP, socket.TCP_KEEPINTVL, 30))
    return options


class ConnectionManager:
    """
    Long-lived HTTP client shared by every operation.

    Wraps one ``httpx.Client`` with bounded pooling and timeouts, and adds two
    things httpx does not do on its own:
    - a per-host cap on in-flight requests
    - an overall deadline for one physical attempt, body read included

    Construct it once and pass it to the clients that need it. Safe to use
    from several threads.
    """

    def __init__(
        self,
        config: Optional[ConnectionConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Create a new ConnectionManager.

        Args:
            config: Pool and timeout settings
            transport: Replace the network transport (tests use httpx.MockTransport)
        """
        self._config = config or DEFAULT_CONNECTION_CONFIG
        errors = validate_config(self._config)
        if errors:
            raise ValueError(f"Invalid connection config: {'; '.join(errors)}")

        if transport is None:
            transport = httpx.HTTPTransport(
                limits=build_limits(self._config),
                http2=self._config.http2,
                socket_options=_keep_alive_socket_options() if self._config.keep_alive else None,
            )

        self._client = httpx.Client(
            transport=transport,
            timeout=build_timeout(self._config),
            headers={"User-Agent": USER_AGENT},
        )
        self._host_slots: Dict[str, threading.BoundedSemaphore] = {}
        self._slots_lock = threading.Lock()
        self._closed = False

        logger.debug(
            f"ConnectionManager.__init__: max_connections={self._config.max_connections}, "
            f"per_host={self._config.max_connections_per_host}, "
            f"request_timeout={self._config.request_timeout_seconds}s"
        )

    @property
    def config(self) -> ConnectionConfig:
        """Get the connection configuration."""
        return self._config

    @property
    def client(self) -> httpx.Client:
        """Get the underlying httpx client."""
        return self._client

    @property
    def closed(self) -> bool:
        return self._closed

    def build_request(self, method: str, url: str, **kwargs: Any) -> httpx.Request:
        """Build a request carrying the client's default headers."""
        return self._client.build_request(method, url, **kwargs)

    def _host_slot(self, host_key: str) -> threading.BoundedSemaphore:
        with self._slots_lock:
            slot = self._host_slots.get(host_key)
            if slot is None:
                slot = threading.BoundedSemaphore(self._config.max_connections_per_host)
                self._host_slots[host_key] = slot
            return slot

    def send(self, request: httpx.Request) -> RawResponse:
        """
        Send one request and read its whole body.

        A body whose final chunk lands after the deadline is still returned;
        only a body that keeps streaming past it is abandoned.

        Args:
            request: The request to send

        Returns:
            The fully-read response

        Raises:
            httpx.PoolTimeout: no per-host slot became free in time
            ResponseBodyError: the body overran request_timeout_seconds, or
                failed to read or decode after the status line arrived
            httpx.TransportError: any other transport failure
        """
        if self._closed:
            raise RuntimeError("ConnectionManager has been closed")

        port = request.url.port or (443 if request.url.scheme == "https" else 80)
        host_key = f"{request.url.host}:{port}"
        slot = self._host_slot(host_key)

        if not slot.acquire(timeout=self._config.dial_timeout_seconds):
            raise httpx.PoolTimeout(f"no free connection slot for {host_key}", request=request)

        try:
            started = time.monotonic()
            deadline = started + self._config.request_timeout_seconds
            response = self._client.send(request, stream=True)
            try:
                chunks = self._read_body(request, response, deadline)
            finally:
                response.close()
            elapsed = time.monotonic() - started
        finally:
            slot.release()

        logger.debug(
            f"ConnectionManager.send: {request.method} {request.url} -> "
            f"{response.status_code} in {elapsed:.3f}s"
        )
        return RawResponse(
            status_code=response.status_code,
            headers=response.headers,
            content=b"".join(chunks),
            elapsed_seconds=elapsed,
        )

    def _read_body(
        self,
        request: httpx.Request,
        response: httpx.Response,
        deadline: float,
    ) -> List[bytes]:
        chunks: List[bytes] = []
        overran = False
        try:
            for chunk in response.iter_bytes():
                # A chunk after the deadline is only fatal if more follow it
                if overran:
                    raise ResponseBodyError(
                        f"response body exceeded {self._config.request_timeout_seconds}s deadline",
                        request=request,
                    )
                chunks.append(chunk)
                overran = time.monotonic() > deadline
        except ResponseBodyError:
            raise
        except httpx.RequestError as err:
            raise ResponseBodyError(
                f"failed reading response body: {str(err) or type(err).__name__}",
                request=request,
            ) from err

        if overran:
            logger.debug(f"ConnectionManager._read_body: body for {request.url} completed after deadline")
        return chunks

    def close(self) -> None:
        """Close the pool and every idle connection."""
        if not self._closed:
            self._closed = True
            self._client.close()

    def __enter__(self) -> "ConnectionManager":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
