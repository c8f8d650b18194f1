"""Authenticated GitHub API gateway.

This module provides the AuthGateway class, the only way the bridge
talks to the GitHub REST API on behalf of a chat user. Every call goes
through the same recovery path:

    UNAUTHENTICATED  no access token on file: prompt the user to authorize,
                     no network call
    AUTHENTICATED    the call succeeded with the stored access token
    REFRESHING       the call answered 401: exchange the refresh token once,
                     persist the new pair, retry the call once
    FAILED           the refresh was refused: prompt the user to authorize
                     again, the call is not retried

Any failure other than the first 401 propagates unchanged, including a
401 on the retry; there is never more than one refresh per call.

Concurrent calls for the same account that all hit a 401 share a single
refresh (single-flight), so a refresh token is never spent twice.

Linking an account starts with begin_authorization, which issues a random
single-use state that expires. The OAuth callback must claim that state
before any code is exchanged.
"""

import asyncio
import logging
import secrets
import time
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from ..events.metrics import BridgeMetrics
from ..messages import MessageKey, text
from ..session import AUTHORIZE_COMMAND, ReplySession
from .credentials import Credential, CredentialStore
from .errors import GitHubAPIError
from .http import GitHubTransport, decode_json
from .oauth import TokenClient


logger = logging.getLogger(__name__)

DEFAULT_ACCEPT = "application/vnd.github.v3+json"

# Seconds an issued authorization state stays claimable
AUTHORIZE_STATE_TTL = 600.0


class AuthState(str, Enum):
    """Authentication state of a single gateway request."""

    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"
    FAILED = "failed"


class AuthGateway:
    """Issues authenticated GitHub calls with one-shot token recovery.

    Attributes:
        credentials: Store holding each account's token pair.
        tokens: Client for the OAuth token exchange endpoint.

    Example:
        >>> gateway = AuthGateway(store, tokens, transport)
        >>> issue = await gateway.request(
        ...     "GET", "https://api.github.com/repos/o/r/issues/1", session
        ... )
    """

    def __init__(
        self,
        credentials: CredentialStore,
        tokens: TokenClient,
        transport: GitHubTransport,
        metrics: Optional[BridgeMetrics] = None,
        state_ttl: float = AUTHORIZE_STATE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        if state_ttl <= 0:
            raise ValueError("state_ttl must be positive")
        self.credentials = credentials
        self.tokens = tokens
        self.state_ttl = state_ttl
        self._transport = transport
        self._metrics = metrics
        self._clock = clock
        self._refreshing: Dict[str, "asyncio.Future[Credential]"] = {}
        # state -> (account_id, expires_at)
        self._pending: Dict[str, Tuple[str, float]] = {}

    async def close(self) -> None:
        """Close the underlying transport."""
        await self._transport.close()

    async def __aenter__(self) -> "AuthGateway":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def authorize(self, session: ReplySession, message: str) -> None:
        """Tell the user why, then start the authorization flow."""
        await session.send(message)
        await session.execute(AUTHORIZE_COMMAND)

    def begin_authorization(
        self, account_id: str, redirect_uri: Optional[str] = None
    ) -> str:
        """Issue a single-use state for an account and build its authorize URL.

        The state is random and only this gateway knows which account it
        belongs to, so a callback can link tokens to the account that
        started the flow and to no other.

        Returns:
            The GitHub URL to send the user to.
        """
        self._evict_expired_states()
        state = secrets.token_urlsafe(32)
        self._pending[state] = (account_id, self._clock() + self.state_ttl)
        logger.debug("Issued authorization state", extra={"account_id": account_id})
        return self.tokens.authorize_url(state=state, redirect_uri=redirect_uri)

    def claim_authorization(self, state: str) -> Optional[str]:
        """Consume a state issued by begin_authorization.

        Returns:
            The account the state was issued for, or None if the state is
            unknown, already claimed or expired.
        """
        entry = self._pending.pop(state, None)
        if entry is None:
            return None
        account_id, expires_at = entry
        if self._clock() >= expires_at:
            logger.warning(
                "Authorization state expired", extra={"account_id": account_id}
            )
            return None
        return account_id

    def _evict_expired_states(self) -> None:
        now = self._clock()
        for state in [s for s, (_, expires_at) in self._pending.items() if expires_at <= now]:
            del self._pending[state]

    async def link_account(self, account_id: str, code: str) -> Credential:
        """Complete authorization by exchanging a code and storing the tokens.

        Args:
            account_id: The chat account being linked.
            code: Authorization code from the OAuth callback.

        Returns:
            The stored credential.
        """
        data = await self.tokens.exchange_code(code)
        credential = Credential(
            access_token=data.access_token,
            refresh_token=data.refresh_token,
        )
        await self.credentials.save(account_id, credential)
        logger.info("Linked GitHub account", extra={"account_id": account_id})
        return credential

    async def request(
        self,
        method: str,
        url: str,
        session: ReplySession,
        body: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """Perform an authenticated call for the session's account.

        Args:
            method: HTTP method.
            url: Absolute API URL.
            session: The chat session whose account is acting.
            body: Optional JSON body.
            headers: Headers merged over the defaults, e.g. a preview
                     media type in ``accept``.

        Returns:
            The decoded response body, or None when the user was prompted
            to authorize instead.

        Raises:
            GitHubAPIError: For any failure other than a recoverable 401.
        """
        _, result = await self.call(method, url, session, body, headers)
        return result

    async def call(
        self,
        method: str,
        url: str,
        session: ReplySession,
        body: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Tuple[AuthState, Any]:
        """Like request, but also report how the call was authenticated.

        Returns:
            ``(state, result)``. The state is UNAUTHENTICATED or FAILED when
            the user was prompted to authorize (the result is then None),
            AUTHENTICATED or REFRESHING when the call went through.
        """
        account_id = session.account_id
        credential = await self.credentials.get(account_id)
        if credential is None or not credential.is_linked:
            self._log_state(AuthState.UNAUTHENTICATED, account_id, method, url)
            await self.authorize(session, text(MessageKey.REQUIRE_AUTH))
            return AuthState.UNAUTHENTICATED, None

        stale_token = credential.access_token
        try:
            result = await self._request(method, url, stale_token, body, headers)
            self._log_state(AuthState.AUTHENTICATED, account_id, method, url)
            return AuthState.AUTHENTICATED, result
        except GitHubAPIError as e:
            if not e.is_unauthorized:
                raise

        self._log_state(AuthState.REFRESHING, account_id, method, url)
        try:
            credential = await self._refresh(account_id, stale_token)
        except GitHubAPIError as e:
            self._log_state(AuthState.FAILED, account_id, method, url, error=e)
            await self.authorize(session, text(MessageKey.AUTH_EXPIRED))
            return AuthState.FAILED, None

        result = await self._request(
            method, url, credential.access_token, body, headers
        )
        return AuthState.REFRESHING, result

    async def _request(
        self,
        method: str,
        url: str,
        access_token: str,
        body: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        logger.debug(
            "GitHub request",
            extra={"method": method, "url": url, "has_body": body is not None},
        )
        response = await self._transport.send(
            method,
            url,
            json_data=body,
            headers={
                "accept": DEFAULT_ACCEPT,
                "authorization": f"token {access_token}",
                **(headers or {}),
            },
        )
        return decode_json(response)

    async def _refresh(self, account_id: str, stale_token: str) -> Credential:
        """Refresh an account's tokens, joining any refresh already running."""
        pending = self._refreshing.get(account_id)
        if pending is None:
            pending = asyncio.ensure_future(
                self._exchange_refresh_token(account_id, stale_token)
            )
            self._refreshing[account_id] = pending

            def _forget(future: "asyncio.Future[Credential]") -> None:
                if self._refreshing.get(account_id) is future:
                    del self._refreshing[account_id]

            pending.add_done_callback(_forget)
        else:
            logger.debug(
                "Joining in-flight token refresh",
                extra={"account_id": account_id},
            )
        return await asyncio.shield(pending)

    async def _exchange_refresh_token(
        self, account_id: str, stale_token: str
    ) -> Credential:
        credential = await self.credentials.get(account_id)
        if credential is None:
            credential = Credential()

        # Someone already replaced the token that failed
        if credential.access_token and credential.access_token != stale_token:
            return credential

        try:
            data = await self.tokens.refresh(credential.refresh_token)
        except GitHubAPIError:
            self._record_refresh("failure")
            raise

        credential.access_token = data.access_token
        credential.refresh_token = data.refresh_token
        await self.credentials.save(account_id, credential)
        self._record_refresh("success")
        logger.info("Refreshed GitHub token", extra={"account_id": account_id})
        return credential

    def _record_refresh(self, result: str) -> None:
        if self._metrics is not None:
            self._metrics.record_token_refresh(result)

    def _log_state(
        self,
        state: AuthState,
        account_id: str,
        method: str,
        url: str,
        error: Optional[Exception] = None,
    ) -> None:
        level = logging.DEBUG
        if state in (AuthState.UNAUTHENTICATED, AuthState.FAILED):
            level = logging.WARNING
        logger.log(
            level,
            "GitHub request %s",
            state.value,
            extra={
                "state": state.value,
                "account_id": account_id,
                "method": method,
                "url": url,
                "error": str(error) if error else None,
            },
        )
