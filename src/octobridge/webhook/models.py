"""GitHub webhook envelope models.

This module defines the data models that flow through event routing:

- WebhookEnvelope: the decoded webhook payload plus its event type and
  optional action classifier
- EventResult: what a handler returns when it wants a notification sent

The models use Pydantic for validation, consistent with the bridge's
configuration approach in config.py.

GitHub Webhook Delivery (issue_comment event):
    X-GitHub-Event: issue_comment
    {
      "action": "created",
      "issue": {...},
      "comment": {...},
      "repository": {"full_name": "owner/repo", ...},
      "sender": {"login": "username"}
    }
"""

from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from ..replies.actions import ReplyMenu


EventResult = Tuple[str, Optional[ReplyMenu]]
"""Outgoing message text plus the quick-action menu to register for it."""


class WebhookEnvelope(BaseModel):
    """A webhook delivery ready for routing.

    Envelopes are immutable once received; handlers read the payload but
    cannot rebind any field.

    Attributes:
        event_type: The GitHub event name (X-GitHub-Event header).
        action: The sub-action from the payload, if the event has one.
        payload: The decoded JSON body.
    """

    model_config = ConfigDict(frozen=True)

    event_type: str = Field(
        ...,
        min_length=1,
        description="GitHub event name, e.g. 'issues' or 'pull_request'",
    )

    action: Optional[str] = Field(
        default=None,
        description="Payload action, e.g. 'opened'; selects a narrower route",
    )

    payload: Dict[str, Any] = Field(
        default_factory=dict,
        description="The decoded webhook body",
    )

    @classmethod
    def from_payload(
        cls, event_type: str, payload: Mapping[str, Any]
    ) -> "WebhookEnvelope":
        """Build an envelope, taking the action from the payload itself."""
        action = payload.get("action")
        return cls(
            event_type=event_type,
            action=action if isinstance(action, str) and action else None,
            payload=dict(payload),
        )

    @property
    def route(self) -> str:
        """The most specific routing key, e.g. ``issues/opened``."""
        if self.action:
            return f"{self.event_type}/{self.action}"
        return self.event_type

    @property
    def repository(self) -> Optional[str]:
        """Full name of the repository the event belongs to."""
        repo = self.payload.get("repository")
        if isinstance(repo, dict):
            name = repo.get("full_name")
            if isinstance(name, str):
                return name
        return None

    @property
    def sender(self) -> Optional[str]:
        """Login of the user that triggered the event."""
        sender = self.payload.get("sender")
        if isinstance(sender, dict):
            login = sender.get("login")
            if isinstance(login, str):
                return login
        return None
