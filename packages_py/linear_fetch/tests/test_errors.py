"""
Tests for the linear_fetch error taxonomy.

Test coverage includes:
- Message formatting for every error kind
- Kind recovery through wrapping (__cause__ chain)
- Validation helpers
"""

import pytest

from linear_fetch.errors import (
    REAUTH_GUIDANCE,
    AuthenticationError,
    ErrorKind,
    GraphQLError,
    HTTPError,
    NetworkError,
    NotFoundError,
    OperationError,
    RateLimitError,
    ValidationError,
    error_kind,
    find_error,
    get_attempts,
    get_retry_after,
    is_authentication_error,
    is_graphql_error,
    is_http_error,
    is_network_error,
    is_not_found_error,
    is_rate_limit_error,
    is_validation_error,
    validate_non_empty_string,
    validate_positive_int,
    wrap_error,
)


class TestErrorMessages:
    """Tests for error formatting."""

    def test_network_error(self):
        """Should prefix network errors."""
        assert str(NetworkError("connection reset")) == "network error: connection reset"

    def test_http_error(self):
        """Should include status and body verbatim."""
        err = HTTPError(502, "<html>bad gateway</html>")
        assert str(err) == "HTTP 502: <html>bad gateway</html>"
        assert err.status_code == 502
        assert err.body == "<html>bad gateway</html>"
        assert err.content == b"<html>bad gateway</html>"

    def test_http_error_keeps_raw_content(self):
        """Should carry the undecoded bytes when given."""
        err = HTTPError(500, "\ufffdoops", content=b"\xffoops")
        assert err.body == "\ufffdoops"
        assert err.content == b"\xffoops"

    def test_http_error_with_message(self):
        """Should prepend an explanatory message."""
        assert str(HTTPError(200, "nope", "malformed response envelope")) == (
            "malformed response envelope: HTTP 200: nope"
        )

    def test_rate_limit_error(self):
        """Should mention the retry-after hint when known."""
        assert str(RateLimitError(3)) == "rate limit exceeded, retry after 3s"
        assert str(RateLimitError()) == "rate limit exceeded"

    def test_authentication_error_carries_guidance(self):
        """Should include code and re-authentication guidance."""
        err = AuthenticationError("session expired", code="SESSION_EXPIRED")
        assert str(err) == (
            f"authentication failed: session expired (code: SESSION_EXPIRED) - {REAUTH_GUIDANCE}"
        )
        assert err.guidance == REAUTH_GUIDANCE

    def test_graphql_error(self):
        """Should include message, code extension and query excerpt."""
        err = GraphQLError("Entity not found", "query { issue }", {"code": "NOT_FOUND"})
        assert str(err) == "GraphQL error: Entity not found (code: NOT_FOUND) (query: query { issue })"
        assert err.code == "NOT_FOUND"

    def test_graphql_error_without_extensions(self):
        """Should have no code without extensions."""
        assert GraphQLError("boom").code is None

    def test_validation_error_variants(self):
        """Should format message, reason and bare variants."""
        assert str(ValidationError("limit", message="must be positive")) == (
            "validation error: limit must be positive"
        )
        assert str(ValidationError("team", "x", reason="is unknown")) == (
            "validation error: field 'team' with value 'x' is unknown"
        )
        assert str(ValidationError("id")) == "validation error: invalid id"

    def test_not_found_error(self):
        """Should name the resource."""
        assert str(NotFoundError("issue", "ENG-1")) == "issue not found: ENG-1"
        assert str(NotFoundError("team")) == "team not found"


class TestWrapping:
    """Tests for wrap_error and kind recovery."""

    def test_wrap_preserves_kind(self):
        """Should report the wrapped error's kind."""
        wrapped = wrap_error(RateLimitError(5), "request failed after 6 attempts", attempts=6)

        assert isinstance(wrapped, OperationError)
        assert wrapped.kind == ErrorKind.RATE_LIMIT
        assert is_rate_limit_error(wrapped)
        assert get_retry_after(wrapped) == 5.0
        assert get_attempts(wrapped) == 6
        assert str(wrapped) == "request failed after 6 attempts: rate limit exceeded, retry after 5s"

    def test_nested_wrapping(self):
        """Should recover the kind through several wrappers."""
        inner = NetworkError("timeout")
        wrapped = wrap_error(wrap_error(inner, "attempt failed"), "listing issues")

        assert error_kind(wrapped) == ErrorKind.NETWORK
        assert find_error(wrapped, NetworkError) is inner

    def test_raise_from_chain(self):
        """Should follow __cause__ set by raise ... from."""
        try:
            try:
                raise HTTPError(401, "unauthorized")
            except HTTPError as err:
                raise AuthenticationError("unauthorized", code="UNAUTHORIZED") from err
        except AuthenticationError as err:
            caught = err

        assert is_authentication_error(caught)
        assert is_http_error(caught)
        assert error_kind(caught) == ErrorKind.AUTHENTICATION

    def test_foreign_errors(self):
        """Should report nothing for errors outside the taxonomy."""
        err = ValueError("x")

        assert error_kind(err) is None
        assert not is_network_error(err)
        assert get_retry_after(err) == 0.0
        assert get_attempts(err) is None
        assert error_kind(None) is None

    @pytest.mark.parametrize(
        "err, check",
        [
            (GraphQLError("x"), is_graphql_error),
            (ValidationError("x"), is_validation_error),
            (NotFoundError("x"), is_not_found_error),
            (HTTPError(500, ""), is_http_error),
        ],
    )
    def test_classification_helpers(self, err, check):
        """Should classify each kind, wrapped or not."""
        assert check(err)
        assert check(wrap_error(err, "context"))


class TestValidationHelpers:
    """Tests for input validation helpers."""

    def test_non_empty_string(self):
        """Should reject empty strings and None."""
        validate_non_empty_string("ok", "name")
        with pytest.raises(ValidationError):
            validate_non_empty_string("", "name")
        with pytest.raises(ValidationError):
            validate_non_empty_string(None, "name")

    @pytest.mark.parametrize("value", [0, -1])
    def test_positive_int_rejects(self, value):
        """Should reject zero and negatives."""
        with pytest.raises(ValidationError) as exc_info:
            validate_positive_int(value, "limit")
        assert exc_info.value.value == value

    def test_positive_int_accepts(self):
        """Should accept positive values."""
        validate_positive_int(1, "limit")
