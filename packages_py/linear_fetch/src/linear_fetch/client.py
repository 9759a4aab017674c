"""
Linear GraphQL client.
"""
import logging
import uuid
from typing import Any, Callable, Dict, Mapping, Optional

from .auth.provider import TokenProvider
from .connection.manager import ConnectionManager
from .decoder import decode_response
from .errors import ValidationError, validate_non_empty_string
from .retry.executor import RetryExecutor
from .retry.types import RetryPolicy
from .types import Operation, RetryEventListener

logger = logging.getLogger(__name__)

LINEAR_API_URL = "https://api.linear.app/graphql"
IDEMPOTENCY_KEY_HEADER = "Idempotency-Key"


def generate_idempotency_key() -> str:
    """Default key generator using UUID4."""
    return str(uuid.uuid4())


class GraphQLClient:
    """
    Synchronous GraphQL client.

    One instance is meant to live for the whole process and may be shared by
    worker threads: the connection pool and the token provider are the only
    shared state, and both are thread-safe.
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        connection: Optional[ConnectionManager] = None,
        policy: Optional[RetryPolicy] = None,
        endpoint: str = LINEAR_API_URL,
        idempotency_keys: bool = True,
        sleep: Optional[Callable[[float], None]] = None,
        owns_connection: Optional[bool] = None,
    ):
        self._token_provider = token_provider
        self._owns_connection = connection is None if owns_connection is None else owns_connection
        self._connection = connection if connection is not None else ConnectionManager()
        self._endpoint = endpoint
        self._idempotency_keys = idempotency_keys
        self._executor = RetryExecutor(
            token_provider,
            self._connection,
            policy=policy,
            sleep=sleep,
        )
        self._closed = False

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def connection(self) -> ConnectionManager:
        return self._connection

    @property
    def executor(self) -> RetryExecutor:
        return self._executor

    def execute(
        self,
        query: str,
        variables: Optional[Mapping[str, Any]] = None,
        result_type: Optional[Any] = None,
    ) -> Any:
        """
        Execute a GraphQL operation.

        Args:
            query: GraphQL query or mutation text
            variables: Named variables, must be JSON-serializable
            result_type: Optional type (pydantic model, TypedDict, ...) the
                response ``data`` is validated into

        Returns:
            The decoded ``data`` field, or None when the response has none

        Raises:
            ValidationError: empty query, unserializable variables, or data
                that does not match ``result_type``
            AuthenticationError, NetworkError, HTTPError, GraphQLError,
            OperationError: see the retry executor and decoder
        """
        if self._closed:
            raise RuntimeError("Client has been closed")

        validate_non_empty_string(query, "query")
        operation = Operation(query=query, variables=variables)
        try:
            body = operation.encode()
        except (TypeError, ValueError) as err:
            raise ValidationError(
                "variables", message=f"failed to marshal request: {err}"
            ) from err

        headers: Dict[str, str] = {"Accept": "application/json"}
        metadata: Dict[str, Any] = {}
        if self._idempotency_keys:
            key = generate_idempotency_key()
            headers[IDEMPOTENCY_KEY_HEADER] = key
            metadata["idempotency_key"] = key

        logger.debug(
            f"GraphQLClient.execute: endpoint={self._endpoint}, body_bytes={len(body)}, "
            f"variables={sorted(variables) if variables else []}"
        )
        raw = self._executor.execute(self._endpoint, body, headers=headers, metadata=metadata)
        return decode_response(raw, query, result_type=result_type)

    def get_token(self) -> str:
        """Current credential from the token provider."""
        return self._token_provider.get_token()

    def on(self, listener: RetryEventListener) -> Callable[[], None]:
        """Subscribe to retry events; returns an unsubscribe function."""
        return self._executor.on(listener)

    def close(self) -> None:
        """Close the client (and the connection manager if it was created here)."""
        if self._closed:
            return
        self._closed = True
        if self._owns_connection:
            self._connection.close()

    def __enter__(self) -> "GraphQLClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()
