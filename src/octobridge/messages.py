"""User-facing message catalogue.

The chat platform normally localizes these; the bridge ships a fixed
English catalogue keyed by ``MessageKey`` so the core never hard-codes
prompt text at call sites.
"""

from enum import Enum


class MessageKey(str, Enum):
    """Keys of every message the bridge may send to a chat user."""

    REQUIRE_AUTH = "github.require-auth"
    AUTH_EXPIRED = "github.auth-expired"
    SEND_FAILED = "github.send-failed"
    MODIFY_FAILED = "github.modify-failed"
    ACTION_FAILED = "github.action-failed"
    SCREENSHOT_FAILED = "github.screenshot-failed"


MESSAGES = {
    MessageKey.REQUIRE_AUTH: (
        "Please link your GitHub account first: follow the authorization link."
    ),
    MessageKey.AUTH_EXPIRED: (
        "Your GitHub authorization has expired, please authorize again."
    ),
    MessageKey.SEND_FAILED: "Failed to send the message to GitHub.",
    MessageKey.MODIFY_FAILED: "Failed to modify the pull request.",
    MessageKey.ACTION_FAILED: "The GitHub action failed.",
    MessageKey.SCREENSHOT_FAILED: "Failed to capture a screenshot.",
}


def text(key: MessageKey) -> str:
    """Return the message for ``key``."""
    return MESSAGES[key]
