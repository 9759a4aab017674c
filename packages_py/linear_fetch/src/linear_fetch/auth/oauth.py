"""
OAuth token refresh against Linear's token endpoint.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, ValidationError as PydanticValidationError

from ..connection.manager import ConnectionManager
from .sanitize import mask_token, sanitize_token
from .storage import TokenData

logger = logging.getLogger(__name__)

LINEAR_TOKEN_URL = "https://api.linear.app/oauth/token"


class OAuthError(Exception):
    """The token endpoint rejected the request or returned garbage."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class TokenResponse(BaseModel):
    """Response from the token endpoint"""

    access_token: str = ""
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"
    expires_in: Optional[int] = None
    """Seconds until expiration"""
    scope: str = ""

    def to_token_data(self) -> TokenData:
        expires_at = None
        if self.expires_in and self.expires_in > 0:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=self.expires_in)
        return TokenData(
            access_token=sanitize_token(self.access_token),
            refresh_token=sanitize_token(self.refresh_token) if self.refresh_token else None,
            token_type=self.token_type,
            expires_at=expires_at,
            scope=self.scope,
        )


class OAuthClient:
    """Exchanges refresh tokens for new access tokens."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        connection: ConnectionManager,
        token_url: str = LINEAR_TOKEN_URL,
    ):
        self._client_id = client_id
        self._client_secret = client_secret
        self._connection = connection
        self._token_url = token_url

    def refresh_access_token(self, refresh_token: str) -> TokenData:
        """
        Obtain a new access token.

        Args:
            refresh_token: The stored refresh token

        Returns:
            The new token data

        Raises:
            OAuthError: non-200 status, undecodable body, or no access token
            httpx.TransportError: the token endpoint could not be reached
        """
        request = self._connection.build_request(
            "POST",
            self._token_url,
            data={
                "grant_type": "refresh_token",
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "refresh_token": refresh_token,
            },
            headers={"Accept": "application/json"},
        )
        logger.debug(
            f"OAuthClient.refresh_access_token: url={self._token_url}, "
            f"refresh_token={mask_token(refresh_token)}"
        )

        response = self._connection.send(request)

        if response.status_code != 200:
            logger.warning(
                f"OAuthClient.refresh_access_token: token endpoint returned {response.status_code}"
            )
            raise OAuthError(
                f"token refresh failed with status: {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            token_response = TokenResponse.model_validate_json(response.content)
        except PydanticValidationError as err:
            raise OAuthError(
                f"failed to decode token refresh response: {err}",
                status_code=response.status_code,
                body=response.text,
            ) from err

        if not token_response.access_token:
            raise OAuthError("no access token in refresh response", status_code=response.status_code)

        return token_response.to_token_data()
