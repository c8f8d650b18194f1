"""Shared async HTTP transport for GitHub calls.

This module wraps a lazily created httpx.AsyncClient and maps every HTTP
failure onto the GitHubAPIError hierarchy:

- 429, or 403 with an exhausted ``x-ratelimit-remaining``: RateLimitError
- any other status >= 400: GitHubAPIError with the status code
- timeouts and connection errors: GitHubAPIError without a status code

Nothing here retries; retry policy belongs to the caller.
"""

import logging
import time
from typing import Any, Dict, Optional

import httpx

from .errors import GitHubAPIError, RateLimitError


logger = logging.getLogger(__name__)


class GitHubTransport:
    """Async HTTP transport used by the token client and the gateway.

    Attributes:
        timeout: Request timeout in seconds, None for the httpx default.

    Example:
        >>> transport = GitHubTransport(timeout=10.0)
        >>> async with transport:
        ...     response = await transport.send("GET", "https://api.github.com/user")
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the transport.

        Args:
            timeout: Request timeout in seconds applied to every call.
            client: Optional preconfigured client, e.g. one built on
                    httpx.MockTransport in tests.
        """
        self.timeout = timeout
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, creating it if necessary."""
        if self._client is None or self._client.is_closed:
            kwargs: Dict[str, Any] = {}
            if self.timeout is not None:
                kwargs["timeout"] = self.timeout
            self._client = httpx.AsyncClient(**kwargs)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GitHubTransport":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def send(
        self,
        method: str,
        url: str,
        json_data: Any = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """Send one request and raise on any failure.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE, PATCH).
            url: Absolute URL.
            json_data: Optional JSON body.
            params: Optional query parameters.
            headers: Optional request headers.

        Returns:
            The successful HTTP response.

        Raises:
            RateLimitError: If the rate limit is exceeded.
            GitHubAPIError: For any other failure.
        """
        kwargs: Dict[str, Any] = {"params": params, "headers": headers}
        if json_data is not None:
            kwargs["json"] = json_data
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout

        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning(
                "GitHub request timed out",
                extra={"method": method, "url": url, "timeout": self.timeout},
            )
            raise GitHubAPIError(
                message=f"Request timed out: {e}",
                request_url=url,
            ) from e
        except httpx.RequestError as e:
            logger.warning(
                "GitHub request failed",
                extra={"method": method, "url": url, "error": str(e)},
            )
            raise GitHubAPIError(
                message=f"Request failed: {e}",
                request_url=url,
            ) from e

        if response.status_code == 429 or (
            response.status_code == 403
            and _int_header(response.headers, "x-ratelimit-remaining") == 0
        ):
            raise self._rate_limit_error(response)

        if response.status_code >= 400:
            error_body = response.text
            logger.debug(
                "GitHub API error",
                extra={
                    "status_code": response.status_code,
                    "url": url,
                    "method": method,
                    "response_body": error_body[:500],
                },
            )
            raise GitHubAPIError(
                message=f"GitHub API error: {response.status_code}",
                status_code=response.status_code,
                response_body=error_body,
                request_url=str(response.url),
            )

        return response

    def _rate_limit_error(self, response: httpx.Response) -> RateLimitError:
        reset_at = _int_header(response.headers, "x-ratelimit-reset")

        retry_after = None
        if reset_at is not None:
            retry_after = max(0, reset_at - int(time.time()))

        # Retry-After wins when both are present
        retry_after_header = _int_header(response.headers, "retry-after")
        if retry_after_header is not None:
            retry_after = retry_after_header

        logger.warning(
            "GitHub API rate limit exceeded",
            extra={"reset_at": reset_at, "retry_after": retry_after},
        )
        return RateLimitError(
            message="GitHub API rate limit exceeded",
            status_code=response.status_code,
            response_body=response.text,
            request_url=str(response.url),
            reset_at=reset_at,
            retry_after=retry_after,
        )


def _int_header(headers: httpx.Headers, name: str) -> Optional[int]:
    value = headers.get(name)
    if value is not None:
        try:
            return int(value)
        except ValueError:
            pass
    return None


def decode_json(response: httpx.Response) -> Any:
    """Decode a response body, returning None for empty bodies."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text
