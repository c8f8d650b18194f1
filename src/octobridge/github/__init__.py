"""GitHub API access for the bridge.

This module provides:
- Credential storage contract and an in-memory store
- OAuth token exchange (authorization code and refresh grants)
- AuthGateway, which performs authenticated calls and recovers from an
  expired access token with a single refresh

All HTTP failures surface as GitHubAPIError or one of its subclasses.
"""

from .credentials import Credential, CredentialStore, InMemoryCredentialStore
from .errors import GitHubAPIError, RateLimitError, TokenExchangeError
from .gateway import AuthGateway, AuthState
from .http import GitHubTransport
from .oauth import OAuthTokens, TokenClient

__all__ = [
    "AuthGateway",
    "AuthState",
    "Credential",
    "CredentialStore",
    "GitHubAPIError",
    "GitHubTransport",
    "InMemoryCredentialStore",
    "OAuthTokens",
    "RateLimitError",
    "TokenClient",
    "TokenExchangeError",
]
