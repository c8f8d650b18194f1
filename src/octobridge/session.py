"""Chat session contract.

A session represents one chat user interacting with the bridge: the
account whose GitHub credentials are used, and the channel to talk back
on. The chat platform provides the implementation.
"""

from typing import Protocol, runtime_checkable


AUTHORIZE_COMMAND = "github.authorize"


@runtime_checkable
class ReplySession(Protocol):
    """Protocol for the chat session of a user acting on GitHub.

    Attributes:
        account_id: Identity of the linked account, used as the key into
                    the credential store.
    """

    account_id: str

    async def send(self, message: str) -> None:
        """Send a message back to the user."""
        ...

    async def execute(self, command: str) -> None:
        """Run a chat command on behalf of the user."""
        ...
