"""Short-circuiting webhook event router.

This module provides the EventRouter class, which turns a webhook
envelope into a serial dispatch over registered handlers:

1. If the envelope carries an action, handlers registered under the
   composite key ``(event_type, action)`` run first.
2. If none of them produced a result, handlers registered under the bare
   ``event_type`` run.
3. Within a key, handlers run in priority order and the chain stops at the
   first handler that returns a non-empty result.

An event that no handler claims is simply unhandled: dispatch returns None
and nothing else happens.

Each router owns its registrations; there is no process-wide registry.
"""

import inspect
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Tuple, Union

from .models import EventResult, WebhookEnvelope


logger = logging.getLogger(__name__)


HandlerReturn = Optional[EventResult]
EventHandler = Callable[
    [WebhookEnvelope], Union[HandlerReturn, Awaitable[HandlerReturn]]
]

RouteKey = Tuple[str, Optional[str]]


class _Registration:
    """One entry in a handler chain; compared by identity."""

    __slots__ = ("handler",)

    def __init__(self, handler: EventHandler):
        self.handler = handler


def parse_route(
    event_type: str, action: Optional[str] = None
) -> RouteKey:
    """Normalize an event name into a routing key.

    Accepts either ``("issues", "opened")`` or the composite form
    ``"issues/opened"``.

    Args:
        event_type: The event name, optionally with a ``/action`` suffix.
        action: Explicit action; must not be combined with the composite form.

    Returns:
        A ``(event_type, action)`` tuple.

    Raises:
        ValueError: If the event name is empty or the action is given twice.
    """
    if not event_type:
        raise ValueError("event_type cannot be empty")
    if "/" in event_type:
        if action is not None:
            raise ValueError(
                f"action given twice: {event_type!r} and {action!r}"
            )
        name, action = event_type.split("/", 1)
        if not name or not action:
            raise ValueError(f"invalid composite event name: {event_type!r}")
        return name, action
    return event_type, action or None


class EventRouter:
    """Priority-ordered handler chains keyed by event type and action.

    Example:
        >>> router = EventRouter()
        >>> router.on("issues/opened", lambda env: ("opened!", None))
        >>> await router.dispatch("issues", envelope)
        ('opened!', None)
    """

    def __init__(self) -> None:
        self._handlers: Dict[RouteKey, List[_Registration]] = {}

    def on(
        self,
        event_type: str,
        handler: EventHandler,
        action: Optional[str] = None,
        prepend: bool = False,
    ) -> Callable[[], bool]:
        """Register a handler.

        Args:
            event_type: Event name, or composite ``event/action`` name.
            handler: Callable taking the envelope and returning an
                     EventResult or None; may be a coroutine function.
            action: Optional action to register under the composite key.
            prepend: Put the handler in front of existing handlers so it
                     can shadow a default one.

        Returns:
            A disposer that removes this registration and reports whether
            it was still registered.
        """
        key = parse_route(event_type, action)
        registration = _Registration(handler)
        chain = self._handlers.setdefault(key, [])
        if prepend:
            chain.insert(0, registration)
        else:
            chain.append(registration)

        def dispose() -> bool:
            registered = self._handlers.get(key, [])
            for index, entry in enumerate(registered):
                if entry is registration:
                    del registered[index]
                    return True
            return False

        return dispose

    def handlers(
        self, event_type: str, action: Optional[str] = None
    ) -> List[EventHandler]:
        """Return a copy of the handler chain for a key, in priority order."""
        chain = self._handlers.get(parse_route(event_type, action), [])
        return [registration.handler for registration in chain]

    async def dispatch(
        self, event_type: str, envelope: WebhookEnvelope
    ) -> Optional[EventResult]:
        """Route an envelope and return the first non-empty handler result.

        Args:
            event_type: The event name to route under.
            envelope: The webhook envelope passed to every handler.

        Returns:
            The winning EventResult, or None if the event is unhandled.
        """
        result: Optional[EventResult] = None
        if envelope.action:
            result = await self._serial((event_type, envelope.action), envelope)
        if not result:
            result = await self._serial((event_type, None), envelope)

        if not result:
            logger.debug(
                "Unhandled webhook event",
                extra={"event": event_type, "action": envelope.action},
            )
            return None
        return result

    async def _serial(
        self, key: RouteKey, envelope: WebhookEnvelope
    ) -> Optional[EventResult]:
        # Snapshot so handlers may (un)register during dispatch
        for registration in list(self._handlers.get(key, [])):
            result = registration.handler(envelope)
            if inspect.isawaitable(result):
                result = await result
            if result:
                return result
        return None
