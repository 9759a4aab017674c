"""
Retry executor: drives one logical request through one or more physical attempts.
"""
import logging
import time
from typing import Any, Callable, Dict, Mapping, Optional

import httpx

from ..auth.provider import NoRefreshTokenError, SessionExpiredError, TokenProvider
from ..auth.sanitize import format_auth_header, mask_token
from ..connection.manager import ConnectionManager
from ..errors import (
    AuthenticationError,
    HTTPError,
    LinearError,
    NetworkError,
    RateLimitError,
    wrap_error,
)
from ..types import (
    Attempt,
    AttemptOutcome,
    RawResponse,
    RetryEvent,
    RetryEventListener,
)
from .config import (
    DEFAULT_RETRY_POLICY,
    calculate_backoff_delay,
    calculate_rate_limit_delay,
    is_server_error,
    is_success_status,
    is_temporary_network_error,
    parse_retry_after,
    sync_sleep,
)
from .types import RetryPolicy

logger = logging.getLogger(__name__)


class RetryExecutor:
    """
    Retry Executor

    Sends a buffered request body with:
    - Exponential backoff for temporary network errors and 5xx responses
    - Retry-After compliance for 429 responses (scaled backoff without one)
    - A single credential refresh per operation on 401
    - Event emission for observability

    Attempts for one call to ``execute`` are strictly sequential. The executor
    holds no per-operation state, so one instance can serve many threads.
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        connection: ConnectionManager,
        policy: Optional[RetryPolicy] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        """
        Create a new RetryExecutor.

        Args:
            token_provider: Supplies and refreshes the bearer credential
            connection: Shared connection manager used for every attempt
            policy: Retry policy, defaults to DEFAULT_RETRY_POLICY
            sleep: Blocking sleep used between attempts
        """
        self._token_provider = token_provider
        self._connection = connection
        self._policy = policy or DEFAULT_RETRY_POLICY
        self._sleep = sleep or sync_sleep
        self._listeners: list[RetryEventListener] = []

    @property
    def policy(self) -> RetryPolicy:
        """Get the retry policy."""
        return self._policy

    def on(self, listener: RetryEventListener) -> Callable[[], None]:
        """
        Add an event listener.

        Args:
            listener: Event listener function

        Returns:
            Function to remove the listener
        """
        self._listeners.append(listener)
        return lambda: self.off(listener)

    def off(self, listener: RetryEventListener) -> None:
        """Remove an event listener."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, event: RetryEvent) -> None:
        """Emit an event to all listeners."""
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.warning(
                    f"RetryExecutor._emit: listener failed for {event.type}", exc_info=True
                )

    def execute(
        self,
        url: str,
        body: bytes,
        headers: Optional[Mapping[str, str]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> RawResponse:
        """
        POST ``body`` to ``url`` until it succeeds, fails terminally, or the
        attempt budget runs out.

        Args:
            url: Endpoint to send to
            body: Request payload, replayed byte-for-byte on every attempt
            headers: Extra headers sent on every attempt
            metadata: Passed through to emitted events

        Returns:
            The final response: 2xx, or a 4xx other than 401/429

        Raises:
            AuthenticationError: no credential, refresh failed, or 401 after refresh
            NetworkError: non-temporary transport failure
            OperationError: attempt budget exhausted; wraps the last error
        """
        base_headers = dict(headers or {})
        base_headers["Content-Type"] = "application/json"

        budget = self._policy.max_retries
        attempted_refresh = False
        refreshed_token: Optional[str] = None
        last_error: Optional[LinearError] = None
        attempt = 0
        event_data = {"metadata": metadata} if metadata else {}

        while attempt <= budget:
            if refreshed_token is not None:
                token, refreshed_token = refreshed_token, None
            else:
                token = self._get_token()

            record = Attempt(number=attempt, token=token)
            request_headers = dict(base_headers)
            request_headers["Authorization"] = format_auth_header(token)
            request = self._connection.build_request(
                "POST", url, content=body, headers=request_headers
            )

            self._emit(RetryEvent(type="attempt:start", attempt=attempt, data=dict(event_data)))
            logger.debug(
                f"RetryExecutor.execute: attempt={attempt} url={url} "
                f"token={mask_token(token)} body_bytes={len(body)}"
            )

            try:
                response = self._connection.send(request)
            except (httpx.RequestError, OSError) as err:
                message = str(err) or type(err).__name__
                network_error = NetworkError(message)
                network_error.__cause__ = err
                record.error = network_error

                if not is_temporary_network_error(err):
                    record.outcome = AttemptOutcome.TERMINAL
                    self._fail(record, event_data, will_retry=False)
                    logger.error(f"RetryExecutor.execute: non-temporary network error: {message}")
                    raise network_error from err

                last_error = network_error
                if attempt >= budget:
                    record.outcome = AttemptOutcome.TERMINAL
                    self._fail(record, event_data, will_retry=False)
                    break

                record.outcome = AttemptOutcome.RETRYABLE
                self._fail(record, event_data, will_retry=True)
                self._wait(calculate_backoff_delay(attempt, self._policy), attempt, event_data)
                attempt += 1
                continue

            status = response.status_code
            record.status_code = status

            if is_success_status(status):
                record.outcome = AttemptOutcome.SUCCESS
                self._emit(RetryEvent(
                    type="attempt:success",
                    attempt=attempt,
                    data={**event_data, "record": record, "elapsed_seconds": response.elapsed_seconds},
                ))
                return response

            if status == 401:
                http_error = HTTPError(status, response.text, content=response.content)
                record.error = http_error
                if attempted_refresh:
                    record.outcome = AttemptOutcome.TERMINAL
                    self._fail(record, event_data, will_retry=False)
                    logger.error("RetryExecutor.execute: 401 after token refresh, giving up")
                    raise AuthenticationError(
                        "unauthorized after token refresh - token may be expired or invalid",
                        code="UNAUTHORIZED",
                    ) from http_error

                attempted_refresh = True
                record.outcome = AttemptOutcome.RETRYABLE
                self._fail(record, event_data, will_retry=True)
                self._emit(RetryEvent(type="auth:refresh", attempt=attempt, data=dict(event_data)))
                refreshed_token = self._refresh(token)
                # The retry that follows a refresh does not consume the budget
                budget += 1
                attempt += 1
                continue

            if status == 429:
                retry_after = parse_retry_after(response.headers.get("retry-after"))
                rate_limit_error = RateLimitError(retry_after)
                record.error = rate_limit_error
                record.wait_hint_seconds = retry_after
                last_error = rate_limit_error

                if attempt >= budget:
                    record.outcome = AttemptOutcome.TERMINAL
                    self._fail(record, event_data, will_retry=False)
                    break

                record.outcome = AttemptOutcome.RETRYABLE
                self._fail(record, event_data, will_retry=True)
                if retry_after is not None:
                    delay = float(retry_after)
                else:
                    delay = calculate_rate_limit_delay(attempt, self._policy)
                self._wait(delay, attempt, event_data)
                attempt += 1
                continue

            if is_server_error(status):
                server_error = HTTPError(status, response.text, content=response.content)
                record.error = server_error
                last_error = server_error

                if attempt >= budget:
                    record.outcome = AttemptOutcome.TERMINAL
                    self._fail(record, event_data, will_retry=False)
                    break

                record.outcome = AttemptOutcome.RETRYABLE
                self._fail(record, event_data, will_retry=True)
                self._wait(calculate_backoff_delay(attempt, self._policy), attempt, event_data)
                attempt += 1
                continue

            # Remaining 4xx will not resolve by retrying; the decoder maps them
            record.outcome = AttemptOutcome.TERMINAL
            self._fail(record, event_data, will_retry=False)
            return response

        attempts = attempt + 1
        self._emit(RetryEvent(
            type="retry:abort",
            attempt=attempt,
            data={**event_data, "attempts": attempts, "error": str(last_error)},
        ))
        logger.error(f"RetryExecutor.execute: giving up after {attempts} attempts: {last_error}")
        if last_error is None:
            raise RuntimeError("Retry failed")
        raise wrap_error(last_error, f"request failed after {attempts} attempts", attempts=attempts)

    def _get_token(self) -> str:
        """Obtain the current credential; failure is terminal."""
        try:
            return self._token_provider.get_token()
        except Exception as err:
            logger.error(f"RetryExecutor._get_token: failed to get valid token: {err}")
            raise AuthenticationError(
                f"failed to get valid token: {err}",
                code="TOKEN_UNAVAILABLE",
            ) from err

    def _refresh(self, stale_token: str) -> str:
        """Refresh the credential once and translate provider failures."""
        logger.info(f"RetryExecutor._refresh: 401 received, refreshing token={mask_token(stale_token)}")
        try:
            return self._token_provider.refresh_if_needed(stale_token)
        except SessionExpiredError as err:
            raise AuthenticationError("session expired", code="SESSION_EXPIRED") from err
        except NoRefreshTokenError as err:
            raise AuthenticationError(
                "unauthorized - token may be expired or invalid",
                code="NO_REFRESH_TOKEN",
            ) from err
        except Exception as err:
            raise AuthenticationError(
                f"token refresh failed: {err}",
                code="REFRESH_FAILED",
            ) from err

    def _fail(self, record: Attempt, event_data: Dict[str, Any], will_retry: bool) -> None:
        self._emit(RetryEvent(
            type="attempt:fail",
            attempt=record.number,
            data={
                **event_data,
                "record": record,
                "error": str(record.error) if record.error else None,
                "status_code": record.status_code,
                "will_retry": will_retry,
            },
        ))

    def _wait(self, delay: float, attempt: int, event_data: Dict[str, Any]) -> None:
        self._emit(RetryEvent(
            type="retry:wait",
            attempt=attempt,
            data={**event_data, "delay_seconds": delay},
        ))
        logger.warning(f"RetryExecutor._wait: attempt {attempt} failed, retrying in {delay:.3f}s")
        started = time.monotonic()
        self._sleep(delay)
        logger.debug(f"RetryExecutor._wait: slept {time.monotonic() - started:.3f}s")
