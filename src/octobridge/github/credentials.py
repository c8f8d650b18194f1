"""Linked-account credentials and their storage contract.

The bridge never owns persistence: the chat platform's user table stores
the tokens. This module defines the Credential model, the CredentialStore
protocol the gateway depends on, and an in-memory store for local
development and tests.
"""

import logging
from typing import Dict, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


class Credential(BaseModel):
    """OAuth tokens of one linked GitHub account.

    Mutated in place whenever a refresh succeeds.

    Attributes:
        access_token: Token sent with every API call. Empty if the account
                      never completed authorization.
        refresh_token: Token exchanged for a new pair when the access
                       token expires.
    """

    access_token: str = Field(default="", description="OAuth access token")
    refresh_token: str = Field(default="", description="OAuth refresh token")

    @property
    def is_linked(self) -> bool:
        return bool(self.access_token)


@runtime_checkable
class CredentialStore(Protocol):
    """Protocol for reading and writing account credentials."""

    async def get(self, account_id: str) -> Optional[Credential]:
        """Get the credential of an account.

        Args:
            account_id: Identity of the chat account.

        Returns:
            The credential if the account has one, None otherwise.
        """
        ...

    async def save(self, account_id: str, credential: Credential) -> None:
        """Persist the credential of an account.

        Args:
            account_id: Identity of the chat account.
            credential: The credential to store.
        """
        ...


class InMemoryCredentialStore:
    """Dictionary-backed credential store for local development."""

    def __init__(self, credentials: Optional[Dict[str, Credential]] = None):
        self._credentials: Dict[str, Credential] = dict(credentials or {})

    async def get(self, account_id: str) -> Optional[Credential]:
        return self._credentials.get(account_id)

    async def save(self, account_id: str, credential: Credential) -> None:
        self._credentials[account_id] = credential
        logger.debug("Stored credential", extra={"account_id": account_id})
