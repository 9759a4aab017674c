"""
Error taxonomy for linear_fetch.

Every failure raised by the engine is one of a closed set of kinds. Intermediate
layers may wrap an error with more context (``wrap_error``); the wrapped kind
stays reachable through the ``__cause__`` chain, so the ``is_*`` helpers keep
working after wrapping.
"""
from enum import Enum
from typing import Any, Dict, Optional, Type, TypeVar


E = TypeVar("E", bound=BaseException)

REAUTH_GUIDANCE = "please re-authenticate: linear auth login"


class ErrorKind(str, Enum):
    """Kind of a linear_fetch error"""
    NETWORK = "network"
    HTTP = "http"
    RATE_LIMIT = "rate_limit"
    AUTHENTICATION = "authentication"
    GRAPHQL = "graphql"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"


class LinearError(Exception):
    """Base class for all errors raised by linear_fetch."""

    kind: Optional[ErrorKind] = None


class NetworkError(LinearError):
    """Transport-level failure (DNS, refused connection, timeout, reset)."""

    kind = ErrorKind.NETWORK

    def __init__(self, message: str):
        super().__init__(f"network error: {message}")
        self.message = message


class HTTPError(LinearError):
    """
    Non-2xx response, or a 2xx whose body could not be understood.

    ``body`` is the response body decoded as UTF-8 with invalid bytes
    replaced; ``content`` holds the exact bytes as received.
    """

    kind = ErrorKind.HTTP

    def __init__(
        self,
        status_code: int,
        body: str,
        message: Optional[str] = None,
        content: Optional[bytes] = None,
    ):
        text = f"HTTP {status_code}: {body}"
        if message:
            text = f"{message}: {text}"
        super().__init__(text)
        self.status_code = status_code
        self.body = body
        self.message = message
        self.content = content if content is not None else body.encode("utf-8")


class RateLimitError(LinearError):
    """The API answered 429."""

    kind = ErrorKind.RATE_LIMIT

    def __init__(self, retry_after_seconds: Optional[float] = None):
        if retry_after_seconds:
            text = f"rate limit exceeded, retry after {retry_after_seconds:g}s"
        else:
            text = "rate limit exceeded"
        super().__init__(text)
        self.retry_after_seconds = retry_after_seconds


class AuthenticationError(LinearError):
    """
    Authentication failed and could not be recovered.

    Carries a machine-readable ``code`` (e.g. ``SESSION_EXPIRED``) and
    ``guidance`` telling the user how to recover.
    """

    kind = ErrorKind.AUTHENTICATION

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        guidance: Optional[str] = REAUTH_GUIDANCE,
    ):
        text = f"authentication failed: {message}"
        if code:
            text += f" (code: {code})"
        if guidance:
            text += f" - {guidance}"
        super().__init__(text)
        self.message = message
        self.code = code
        self.guidance = guidance


class GraphQLError(LinearError):
    """The response envelope carried application-level errors."""

    kind = ErrorKind.GRAPHQL

    def __init__(
        self,
        message: str,
        query_excerpt: str = "",
        extensions: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.query_excerpt = query_excerpt
        self.extensions = extensions or {}

        text = f"GraphQL error: {message}"
        code = self.extensions.get("code")
        if isinstance(code, str) and code:
            text += f" (code: {code})"
        if query_excerpt:
            text += f" (query: {query_excerpt})"
        super().__init__(text)

    @property
    def code(self) -> Optional[str]:
        code = self.extensions.get("code")
        return code if isinstance(code, str) else None


class ValidationError(LinearError):
    """Input (or decoded output) failed validation."""

    kind = ErrorKind.VALIDATION

    def __init__(
        self,
        field: str,
        value: Any = None,
        message: Optional[str] = None,
        reason: Optional[str] = None,
    ):
        if message:
            text = f"validation error: {field} {message}"
        elif reason:
            text = f"validation error: field '{field}' with value '{value}' {reason}"
        else:
            text = f"validation error: invalid {field}"
        super().__init__(text)
        self.field = field
        self.value = value
        self.message = message
        self.reason = reason


class NotFoundError(LinearError):
    """A requested resource does not exist."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, resource_type: str, resource_id: Optional[str] = None):
        if resource_id:
            text = f"{resource_type} not found: {resource_id}"
        else:
            text = f"{resource_type} not found"
        super().__init__(text)
        self.resource_type = resource_type
        self.resource_id = resource_id


class OperationError(LinearError):
    """
    Context wrapper around another error.

    ``kind`` reports the kind of the wrapped error, ``attempts`` is set when
    the wrapper was added by the retry executor after exhausting its budget.
    """

    def __init__(
        self,
        message: str,
        cause: BaseException,
        attempts: Optional[int] = None,
    ):
        super().__init__(f"{message}: {cause}")
        self.message = message
        self.attempts = attempts
        self.__cause__ = cause

    @property
    def kind(self) -> Optional[ErrorKind]:  # type: ignore[override]
        return error_kind(self.__cause__)


def wrap_error(err: BaseException, message: str, attempts: Optional[int] = None) -> OperationError:
    """Wrap an error with context while keeping its kind recoverable."""
    return OperationError(message, err, attempts=attempts)


def _iter_chain(err: Optional[BaseException]):
    """Yield err and every error reachable through __cause__."""
    seen = set()
    while err is not None and id(err) not in seen:
        seen.add(id(err))
        yield err
        err = err.__cause__


def find_error(err: Optional[BaseException], cls: Type[E]) -> Optional[E]:
    """
    Find the first error of type ``cls`` in the cause chain.

    Args:
        err: The error to inspect
        cls: The error class to look for

    Returns:
        The matching error, or None
    """
    for candidate in _iter_chain(err):
        if isinstance(candidate, cls):
            return candidate
    return None


def error_kind(err: Optional[BaseException]) -> Optional[ErrorKind]:
    """Return the kind of the innermost-known linear_fetch error."""
    for candidate in _iter_chain(err):
        if isinstance(candidate, LinearError) and not isinstance(candidate, OperationError):
            return candidate.kind
    return None


def is_network_error(err: Optional[BaseException]) -> bool:
    return find_error(err, NetworkError) is not None


def is_http_error(err: Optional[BaseException]) -> bool:
    return find_error(err, HTTPError) is not None


def is_rate_limit_error(err: Optional[BaseException]) -> bool:
    return find_error(err, RateLimitError) is not None


def is_authentication_error(err: Optional[BaseException]) -> bool:
    return find_error(err, AuthenticationError) is not None


def is_graphql_error(err: Optional[BaseException]) -> bool:
    return find_error(err, GraphQLError) is not None


def is_validation_error(err: Optional[BaseException]) -> bool:
    return find_error(err, ValidationError) is not None


def is_not_found_error(err: Optional[BaseException]) -> bool:
    return find_error(err, NotFoundError) is not None


def get_retry_after(err: Optional[BaseException]) -> float:
    """Retry-After hint carried by a RateLimitError in the chain, 0 if none."""
    rate_limit = find_error(err, RateLimitError)
    if rate_limit is None or not rate_limit.retry_after_seconds:
        return 0.0
    return float(rate_limit.retry_after_seconds)


def get_attempts(err: Optional[BaseException]) -> Optional[int]:
    """Attempt count recorded by the retry executor, if any."""
    for candidate in _iter_chain(err):
        if isinstance(candidate, OperationError) and candidate.attempts is not None:
            return candidate.attempts
    return None


def validate_non_empty_string(value: Optional[str], field_name: str) -> None:
    """Raise ValidationError if value is empty."""
    if not value:
        raise ValidationError(field_name, message="cannot be empty")


def validate_positive_int(value: int, field_name: str) -> None:
    """Raise ValidationError if value is not a positive integer."""
    if value <= 0:
        raise ValidationError(field_name, value=value, message="must be positive")
