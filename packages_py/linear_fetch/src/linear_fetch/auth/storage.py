"""
On-disk token storage.

Tokens are bearer credentials: the directory is created owner-only (0700) and
the token file is written owner read/write only (0600).
"""
import json
import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, ValidationError as PydanticValidationError

from .sanitize import sanitize_token, validate_token

logger = logging.getLogger(__name__)


class TokenData(BaseModel):
    """Stored OAuth token with expiry tracking. Legacy tokens have no expiry."""

    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"
    expires_at: Optional[datetime] = None
    scope: str = ""
    auth_mode: Optional[str] = None
    """'user' or 'agent'"""

    @property
    def has_refresh_token(self) -> bool:
        return bool(self.refresh_token)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def is_expired(data: TokenData) -> bool:
    """True once expires_at has passed. Tokens without expiry never expire."""
    if data.expires_at is None:
        return False
    return _now() > _aware(data.expires_at)


def needs_refresh(data: TokenData, buffer_seconds: float) -> bool:
    """True if the token expires within ``buffer_seconds``."""
    if data.expires_at is None:
        return False
    return _now() + timedelta(seconds=buffer_seconds) > _aware(data.expires_at)


def get_default_token_path() -> Path:
    """
    Default token location: ~/.config/linear/token.

    Falls back to a path relative to the working directory when the home
    directory cannot be determined.
    """
    try:
        home = Path.home()
    except RuntimeError:
        return Path(".config") / "linear" / "token"
    return home / ".config" / "linear" / "token"


class TokenStorage:
    """Reads and writes the token file."""

    def __init__(self, token_path: Union[str, Path, None] = None):
        self._path = Path(token_path) if token_path else get_default_token_path()

    @property
    def path(self) -> Path:
        return self._path

    def _write_private(self, content: str) -> None:
        self._path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
        os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, self._path)

    def save_token(self, token: str) -> None:
        """
        Save a plain access token.

        Raises:
            ValueError: the token is empty after sanitizing
        """
        sanitized = sanitize_token(token)
        try:
            validate_token(sanitized)
        except ValueError as err:
            raise ValueError(f"invalid token: {err}") from err
        self._write_private(sanitized)
        logger.debug(f"TokenStorage.save_token: wrote {self._path}")

    def load_token(self) -> str:
        """Read the raw token file content."""
        return self._path.read_text(encoding="utf-8")

    def token_exists(self) -> bool:
        """
        Check whether the token file exists.

        A missing file is not an error; other failures (e.g. permission
        denied) propagate as OSError.
        """
        try:
            self._path.stat()
        except FileNotFoundError:
            return False
        return True

    def delete_token(self) -> None:
        """Remove the token file if present."""
        try:
            self._path.unlink()
        except FileNotFoundError:
            return

    def save_token_data(self, data: TokenData) -> None:
        """Save structured token data as indented JSON."""
        data = data.model_copy(update={
            "access_token": sanitize_token(data.access_token),
            "refresh_token": sanitize_token(data.refresh_token) if data.refresh_token else None,
        })
        self._write_private(data.model_dump_json(indent=2, exclude_none=True))
        logger.debug(
            f"TokenStorage.save_token_data: wrote {self._path} "
            f"(refreshable={data.has_refresh_token}, expires_at={data.expires_at})"
        )

    def load_token_data(self) -> TokenData:
        """
        Load structured token data.

        JSON content is parsed as TokenData. Anything else is treated as a
        legacy plain access token with no refresh capability.
        """
        content = self._path.read_text(encoding="utf-8").strip()
        try:
            raw = json.loads(content)
        except json.JSONDecodeError:
            raw = None

        if isinstance(raw, dict):
            try:
                data = TokenData.model_validate(raw)
            except PydanticValidationError as err:
                logger.warning(f"TokenStorage.load_token_data: invalid token JSON, treating as legacy: {err}")
            else:
                return data.model_copy(update={
                    "access_token": sanitize_token(data.access_token),
                    "refresh_token": sanitize_token(data.refresh_token) if data.refresh_token else None,
                })

        return TokenData(access_token=sanitize_token(content), token_type="Bearer")
