"""OAuth token exchange against github.com.

GitHub's OAuth App flow uses one endpoint for both grants:

- authorization code: ``code=<code>`` after the user approved the app
- refresh: ``grant_type=refresh_token&refresh_token=<token>`` once the
  access token expired

Both are a POST with the client credentials as query parameters and an
``Accept: application/json`` header. A refused grant still answers 200,
with an ``error`` field instead of tokens.
"""

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from pydantic import BaseModel, ValidationError

from .errors import TokenExchangeError
from .http import GitHubTransport


logger = logging.getLogger(__name__)

TOKEN_URL = "https://github.com/login/oauth/access_token"
AUTHORIZE_URL = "https://github.com/login/oauth/authorize"


class OAuthTokens(BaseModel):
    """Token pair returned by the exchange endpoint."""

    access_token: str
    refresh_token: str = ""
    expires_in: Optional[int] = None
    refresh_token_expires_in: Optional[int] = None
    token_type: str = "bearer"
    scope: str = ""


class TokenClient:
    """Client for the OAuth token exchange endpoint.

    Attributes:
        app_id: OAuth App client id.
        app_secret: OAuth App client secret.
        token_url: Exchange endpoint, overridable for GitHub Enterprise.
    """

    def __init__(
        self,
        app_id: Optional[str],
        app_secret: Optional[str],
        transport: GitHubTransport,
        token_url: str = TOKEN_URL,
    ):
        self.app_id = app_id
        self.app_secret = app_secret
        self.token_url = token_url
        self._transport = transport

    def authorize_url(self, state: str, redirect_uri: Optional[str] = None) -> str:
        """Build the URL that starts the authorization flow for a user."""
        params = {"client_id": self.app_id or "", "state": state}
        if redirect_uri:
            params["redirect_uri"] = redirect_uri
        return f"{AUTHORIZE_URL}?{urlencode(params)}"

    async def get_tokens(self, params: Dict[str, Any]) -> OAuthTokens:
        """Exchange a grant for a token pair.

        Args:
            params: Grant parameters merged over the client credentials.

        Returns:
            The new token pair.

        Raises:
            TokenExchangeError: If GitHub refused the grant.
            GitHubAPIError: If the request itself failed.
        """
        response = await self._transport.send(
            "POST",
            self.token_url,
            params={
                "client_id": self.app_id,
                "client_secret": self.app_secret,
                **params,
            },
            headers={"Accept": "application/json"},
        )
        try:
            data = response.json()
        except ValueError as e:
            raise TokenExchangeError(
                message=f"Token endpoint returned non-JSON body: {e}",
                status_code=response.status_code,
                response_body=response.text,
                request_url=self.token_url,
            ) from e
        if not isinstance(data, dict) or "error" in data:
            error = data.get("error") if isinstance(data, dict) else None
            description = (
                data.get("error_description") if isinstance(data, dict) else None
            )
            raise TokenExchangeError(
                message=description or f"Token exchange refused: {error}",
                error=error,
                status_code=response.status_code,
                response_body=response.text,
                request_url=self.token_url,
            )
        try:
            return OAuthTokens.model_validate(data)
        except ValidationError as e:
            raise TokenExchangeError(
                message=f"Malformed token response: {e}",
                status_code=response.status_code,
                response_body=response.text,
                request_url=self.token_url,
            ) from e

    async def exchange_code(self, code: str) -> OAuthTokens:
        """Exchange an authorization code for a token pair."""
        logger.info("Exchanging authorization code")
        return await self.get_tokens({"code": code})

    async def refresh(self, refresh_token: str) -> OAuthTokens:
        """Exchange a refresh token for a new token pair."""
        return await self.get_tokens(
            {
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            }
        )
