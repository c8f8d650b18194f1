"""Quick-action menu registry.

Maps the id of every notification the bridge sent to chat onto the menu
of follow-up actions it accepts. Menus are only useful while a user may
still reply, so the registry is a bounded cache:

- an entry expires ``ttl`` seconds after it was registered
- at most ``max_entries`` entries are kept; registering beyond that evicts
  the oldest entry first
- expired entries are dropped on every ``register`` and by an explicit
  ``evict_expired`` call

The registry lives in the event loop thread and has no locking; register
and lookup never suspend.
"""

import logging
import time
from collections import OrderedDict
from types import MappingProxyType
from typing import Callable, Dict, Optional, Tuple

from ..events.metrics import BridgeMetrics
from .actions import ActionBinding, ReplyMenu


logger = logging.getLogger(__name__)


class ReplyRegistry:
    """Bounded, time-expiring table of quick-action menus.

    Attributes:
        ttl: Seconds a menu stays valid after registration.
        max_entries: Maximum number of remembered notifications.

    Example:
        >>> registry = ReplyRegistry(ttl=3600)
        >>> registry.register("msg-1", build_menu(LinkAction(url=url)))
        >>> registry.lookup("msg-1")["link"].url
    """

    def __init__(
        self,
        ttl: float,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
        metrics: Optional[BridgeMetrics] = None,
    ):
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._metrics = metrics
        self._entries: "OrderedDict[str, Tuple[float, ReplyMenu]]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, notification_id: object) -> bool:
        return self.lookup(notification_id) is not None  # type: ignore[arg-type]

    def register(self, notification_id: str, menu: ReplyMenu) -> None:
        """Remember the menu of a notification, replacing any previous one.

        Args:
            notification_id: Chat message id of the notification.
            menu: Bindings keyed by command name.
        """
        self.evict_expired()

        frozen: Dict[str, ActionBinding] = dict(menu)
        self._entries.pop(notification_id, None)
        self._entries[notification_id] = (
            self._clock() + self.ttl,
            MappingProxyType(frozen),
        )

        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(
                "Evicted quick-action menu at capacity",
                extra={"notification_id": evicted, "max_entries": self.max_entries},
            )
        self._update_gauge()

    def lookup(self, notification_id: str) -> Optional[ReplyMenu]:
        """Return a read-only view of a notification's menu.

        Returns:
            The menu, or None if the id is unknown or its menu expired.
        """
        entry = self._entries.get(notification_id)
        if entry is None:
            return None
        expires_at, menu = entry
        if self._clock() >= expires_at:
            del self._entries[notification_id]
            self._update_gauge()
            return None
        return menu

    def discard(self, notification_id: str) -> bool:
        """Forget a notification's menu; returns whether it was present."""
        removed = self._entries.pop(notification_id, None) is not None
        if removed:
            self._update_gauge()
        return removed

    def evict_expired(self) -> int:
        """Drop every expired entry.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        # Insertion order is expiry order since ttl is fixed
        removed = 0
        while self._entries:
            notification_id, (expires_at, _) = next(iter(self._entries.items()))
            if expires_at > now:
                break
            del self._entries[notification_id]
            removed += 1
        if removed:
            logger.debug("Evicted expired quick-action menus", extra={"count": removed})
            self._update_gauge()
        return removed

    def clear(self) -> None:
        self._entries.clear()
        self._update_gauge()

    def _update_gauge(self) -> None:
        if self._metrics is not None:
            self._metrics.set_reply_menus(len(self._entries))
