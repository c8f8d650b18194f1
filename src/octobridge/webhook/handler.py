"""GitHub webhook receiver.

This module provides the WebhookReceiver class for turning a raw webhook
delivery into a WebhookEnvelope. Signature validation is done in front of
this service, so incoming requests are trusted.

GitHub sends the event name in the ``X-GitHub-Event`` header and the
action, when the event has one, inside the JSON body:

    X-GitHub-Event: pull_request
    {"action": "opened", "pull_request": {...}, "repository": {...}}
"""

import json
import logging
from typing import Any, Mapping, Optional, Union

from .models import WebhookEnvelope


logger = logging.getLogger(__name__)

EVENT_HEADER = "x-github-event"
DELIVERY_HEADER = "x-github-delivery"


class InvalidWebhookError(ValueError):
    """Raised when a delivery cannot be turned into an envelope."""


class WebhookReceiver:
    """Parser for raw GitHub webhook deliveries."""

    def parse(
        self,
        headers: Mapping[str, str],
        body: Union[bytes, str, Mapping[str, Any]],
    ) -> WebhookEnvelope:
        """Build an envelope from delivery headers and body.

        Args:
            headers: Request headers; lookup is case-insensitive.
            body: Raw JSON body, or an already decoded mapping.

        Returns:
            The envelope for routing.

        Raises:
            InvalidWebhookError: If the event header is missing or the body
                                 is not a JSON object.
        """
        event_type = self._header(headers, EVENT_HEADER)
        if not event_type:
            raise InvalidWebhookError("missing X-GitHub-Event header")

        payload = self._decode(body)
        envelope = WebhookEnvelope.from_payload(event_type.strip(), payload)

        logger.info(
            "Received webhook event",
            extra={
                "event": envelope.route,
                "delivery": self._header(headers, DELIVERY_HEADER),
                "repository": envelope.repository,
            },
        )
        return envelope

    def _decode(
        self, body: Union[bytes, str, Mapping[str, Any]]
    ) -> Mapping[str, Any]:
        if isinstance(body, Mapping):
            return body
        try:
            payload = json.loads(body)
        except (TypeError, ValueError) as e:
            raise InvalidWebhookError(f"body is not valid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise InvalidWebhookError(
                f"expected a JSON object, got {type(payload).__name__}"
            )
        return payload

    def _header(self, headers: Mapping[str, str], name: str) -> Optional[str]:
        for key, value in headers.items():
            if key.lower() == name:
                return value
        return None
