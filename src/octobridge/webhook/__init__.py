"""GitHub webhook handling for the bridge.

This module receives webhook deliveries and routes them:
- WebhookReceiver parses headers and body into a WebhookEnvelope
- EventRouter runs the short-circuiting handler chain for the envelope
"""

from .handler import InvalidWebhookError, WebhookReceiver
from .models import EventResult, WebhookEnvelope
from .router import EventHandler, EventRouter, parse_route

__all__ = [
    "EventHandler",
    "EventResult",
    "EventRouter",
    "InvalidWebhookError",
    "WebhookEnvelope",
    "WebhookReceiver",
    "parse_route",
]
