"""Webhook-to-chat notification flow.

The Notifier ties the pieces together in both directions:

    outbound  envelope -> EventRouter -> (text, menu) -> ChannelSender
              -> ReplyRegistry.register for every delivered message id
    inbound   quoted message id -> ReplyRegistry.lookup -> ActionDispatcher
              -> outcome message back to the replying session

Which channels receive an event is decided by the ChannelSender, which
owns the channel subscriptions.
"""

import logging
import uuid
from typing import List, Optional, Protocol, runtime_checkable

from .events.metrics import BridgeMetrics
from .replies.dispatcher import ActionDispatcher, ActionOutcome
from .replies.registry import ReplyRegistry
from .session import ReplySession
from .webhook.models import EventResult, WebhookEnvelope
from .webhook.router import EventRouter


logger = logging.getLogger(__name__)


@runtime_checkable
class ChannelSender(Protocol):
    """Protocol for delivering a notification to subscribed chat channels."""

    async def broadcast(self, envelope: WebhookEnvelope, message: str) -> List[str]:
        """Send the message to every channel subscribed to the envelope.

        Returns:
            The chat message ids of the delivered notifications.
        """
        ...


class LoggingChannelSender:
    """Channel sender for local development: logs instead of delivering."""

    async def broadcast(self, envelope: WebhookEnvelope, message: str) -> List[str]:
        message_id = uuid.uuid4().hex
        logger.info(
            "Notification: %s",
            message,
            extra={"event": envelope.route, "message_id": message_id},
        )
        return [message_id]


class Notifier:
    """Routes webhook events to chat and chat replies back to GitHub."""

    def __init__(
        self,
        router: EventRouter,
        registry: ReplyRegistry,
        dispatcher: ActionDispatcher,
        sender: ChannelSender,
        message_prefix: str = "",
        metrics: Optional[BridgeMetrics] = None,
    ):
        self.router = router
        self.registry = registry
        self.dispatcher = dispatcher
        self.sender = sender
        self.message_prefix = message_prefix
        self._metrics = metrics

    async def handle_event(self, envelope: WebhookEnvelope) -> Optional[EventResult]:
        """Route an envelope and deliver the resulting notification.

        Returns:
            The handler result, or None if no handler claimed the event.
        """
        result = await self.router.dispatch(envelope.event_type, envelope)
        if self._metrics is not None:
            self._metrics.record_webhook_event(envelope.route, handled=result is not None)
        if result is None:
            return None

        message, menu = result
        message_ids = await self.sender.broadcast(
            envelope, self.message_prefix + message
        )
        if menu:
            for message_id in message_ids:
                self.registry.register(message_id, menu)

        logger.info(
            "Delivered notification",
            extra={
                "event": envelope.route,
                "repository": envelope.repository,
                "deliveries": len(message_ids),
                "actions": sorted(menu) if menu else [],
            },
        )
        return result

    async def handle_reply(
        self,
        session: ReplySession,
        quote_id: str,
        content: str,
        explicit: bool = False,
    ) -> Optional[ActionOutcome]:
        """Replay a chat reply to a notification as a GitHub action.

        Args:
            session: The replying user's session.
            quote_id: Message id of the quoted notification.
            content: The reply text.
            explicit: The platform already identified the reply as a command.

        Returns:
            The action outcome, or None if the notification is unknown or
            expired, or the reply matches no action.
        """
        menu = self.registry.lookup(quote_id)
        if menu is None:
            return None

        outcome = await self.dispatcher.resolve(menu, content, session, explicit)
        if outcome is not None and outcome.message:
            await session.send(outcome.message)
        return outcome
