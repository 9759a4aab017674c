"""
Response decoding: GraphQL envelope parsing and error mapping.
"""
import json
import logging
from typing import Any, Optional

from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from .errors import GraphQLError, HTTPError, ValidationError
from .types import RawResponse, ResponseEnvelope

logger = logging.getLogger(__name__)

QUERY_EXCERPT_LIMIT = 100


def query_excerpt(query: str, limit: int = QUERY_EXCERPT_LIMIT) -> str:
    """First ``limit`` characters of the query, with ``...`` if truncated."""
    if len(query) <= limit:
        return query
    return query[:limit] + "..."


def _malformed(raw: RawResponse) -> HTTPError:
    return HTTPError(raw.status_code, raw.text, "malformed response envelope", content=raw.content)


def parse_envelope(raw: RawResponse) -> ResponseEnvelope:
    """
    Parse the ``{"data", "errors"}`` envelope.

    Raises:
        HTTPError: body is not a JSON object or ``errors`` is not a list
    """
    try:
        body = json.loads(raw.content)
    except (json.JSONDecodeError, UnicodeDecodeError) as err:
        raise _malformed(raw) from err

    if not isinstance(body, dict):
        raise _malformed(raw)

    errors = body.get("errors") or []
    if not isinstance(errors, list):
        raise _malformed(raw)

    normalized = []
    for entry in errors:
        if isinstance(entry, dict):
            normalized.append(entry)
        else:
            normalized.append({"message": str(entry)})

    return ResponseEnvelope(data=body.get("data"), errors=normalized)


def _to_graphql_error(entry: dict, query: str) -> GraphQLError:
    message = entry.get("message")
    if not isinstance(message, str) or not message:
        message = "unknown error"
    extensions = entry.get("extensions")
    return GraphQLError(
        message,
        query_excerpt=query_excerpt(query),
        extensions=extensions if isinstance(extensions, dict) else None,
    )


def decode_response(raw: RawResponse, query: str, result_type: Optional[Any] = None) -> Any:
    """
    Turn a final response into a result or an error.

    Args:
        raw: The response returned by the retry executor
        query: Operation text, used for the error excerpt
        result_type: Optional type the ``data`` field is validated into

    Returns:
        None when there is no data, the raw ``data`` when no ``result_type``
        is given, otherwise an instance of ``result_type``

    Raises:
        HTTPError: non-2xx status or malformed envelope
        GraphQLError: the envelope carried errors (even if data is present)
        ValidationError: ``data`` does not match ``result_type``
    """
    if not raw.ok:
        raise HTTPError(raw.status_code, raw.text, content=raw.content)

    envelope = parse_envelope(raw)

    if envelope.has_errors:
        if len(envelope.errors) > 1:
            logger.debug(
                f"decode_response: surfacing first of {len(envelope.errors)} GraphQL errors"
            )
        raise _to_graphql_error(envelope.errors[0], query)

    if envelope.data is None:
        return None

    if result_type is None:
        return envelope.data

    try:
        return TypeAdapter(result_type).validate_python(envelope.data)
    except PydanticValidationError as err:
        raise ValidationError(
            "data",
            message=f"failed to decode response data: {err.error_count()} validation errors",
        ) from err
