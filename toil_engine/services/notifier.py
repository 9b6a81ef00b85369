"""In-process publish/subscribe for ledger change notifications.

Handlers run in subscription order. A failing handler is logged and never
breaks the publisher or the remaining handlers. Other processes observe the
same changes through the shared database on their next read.
"""

from __future__ import annotations

import inspect
import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from toil_engine.schemas.events import ChangeEvent, ChangeTopic

    Handler = Callable[[ChangeEvent], Awaitable[None] | None]

logger = logging.getLogger(__name__)


class ChangeNotifier:
    """Topic-keyed observer list."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def subscribe(self, topic: ChangeTopic | str, handler: Handler) -> Callable[[], None]:
        """Register a handler and return a function that removes it again."""
        key = str(topic)
        self._handlers[key].append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(key, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def subscriber_count(self, topic: ChangeTopic | str) -> int:
        return len(self._handlers.get(str(topic), []))

    async def publish(self, topic: ChangeTopic | str, payload: ChangeEvent) -> int:
        """Deliver payload to every handler of topic. Returns the number delivered."""
        key = str(topic)
        delivered = 0
        # Copy so handlers may unsubscribe while being notified.
        for handler in list(self._handlers.get(key, [])):
            try:
                result: Any = handler(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Change handler failed for topic=%s", key)
                continue
            delivered += 1
        logger.debug("Published %s to %d handler(s)", key, delivered)
        return delivered


_notifier = ChangeNotifier()


def get_notifier() -> ChangeNotifier:
    """Return the process-wide notifier."""
    return _notifier


def set_notifier(notifier: ChangeNotifier) -> None:
    """Override the notifier (for testing or production wiring)."""
    global _notifier
    _notifier = notifier
