"""
Token sanitation and Authorization header formatting.
"""
import unicodedata
from typing import Optional


def mask_token(value: Optional[str], visible_chars: int = 10) -> str:
    """Mask a credential for safe logging."""
    if value is None:
        return "<None>"
    if not value:
        return "<empty>"
    if len(value) <= visible_chars:
        return "*" * len(value)
    return value[:visible_chars] + "*" * (len(value) - visible_chars)


def sanitize_token(token: str) -> str:
    """
    Remove characters that are invalid in an HTTP header value.

    Strips all whitespace (spaces, tabs, newlines, carriage returns) and any
    remaining control characters.
    """
    token = token.strip()
    return "".join(
        ch for ch in token
        if not ch.isspace() and unicodedata.category(ch) != "Cc"
    )


def validate_token(token: str) -> None:
    """
    Check that a token is non-empty and already sanitized.

    Raises:
        ValueError: token is empty or contains whitespace/control characters
    """
    if not token:
        raise ValueError("token is empty")
    if sanitize_token(token) != token:
        raise ValueError("token contains invalid characters (whitespace or control characters)")


def format_auth_header(token: str) -> str:
    """
    Format a token for the Authorization header.

    Linear personal API keys (``lin_api_*``) are sent as-is; OAuth access
    tokens get a ``Bearer`` prefix. A token that already carries the prefix is
    normalized first.
    """
    sanitized = sanitize_token(token)
    if not sanitized:
        return ""

    # Sanitizing drops the space, so "Bearer abc" arrives as "Bearerabc"
    if sanitized.startswith("Bearer"):
        sanitized = sanitize_token(sanitized[len("Bearer"):])

    if sanitized.startswith("lin_api_"):
        return sanitized

    return f"Bearer {sanitized}"
