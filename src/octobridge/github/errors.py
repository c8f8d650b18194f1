"""Exceptions raised by the GitHub HTTP layer.

Everything in this module is a transport-level failure: the dispatcher
turns it into a user-facing message instead of letting it escape.
"""

from typing import Any, Optional


class GitHubAPIError(Exception):
    """Raised when a GitHub API request fails.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code from the response, None for network
                     failures that never produced a response.
        response_body: Response body from GitHub API.
        request_url: The URL that was requested.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url
        super().__init__(message)

    @property
    def is_unauthorized(self) -> bool:
        return self.status_code == 401


class RateLimitError(GitHubAPIError):
    """Raised when GitHub API rate limit is exceeded.

    Attributes:
        reset_at: Unix timestamp when the rate limit resets.
        retry_after: Seconds to wait before retrying.
    """

    def __init__(
        self,
        message: str,
        reset_at: Optional[int] = None,
        retry_after: Optional[int] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.reset_at = reset_at
        self.retry_after = retry_after


class TokenExchangeError(GitHubAPIError):
    """Raised when the OAuth endpoint refuses a code or refresh token.

    GitHub answers these with 200 and an ``error`` field, so the status
    code alone does not reveal the failure.

    Attributes:
        error: The OAuth error code, e.g. ``bad_refresh_token``.
    """

    def __init__(self, message: str, error: Optional[str] = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.error = error
