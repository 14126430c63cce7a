"""In-process event bus for schedule changes."""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger(__name__)


class EventBus:
    """Synchronous publish/subscribe bus shared by request threads.

    Handlers run in registration order on the publishing thread. A handler
    error propagates to the publisher.
    """

    def __init__(self) -> None:
        self._subscribers: dict[type, list[Callable[[Any], None]]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, event_type: type, handler: Callable[[Any], None]) -> None:
        with self._lock:
            self._subscribers[event_type].append(handler)

    def publish(self, event: Any) -> None:
        with self._lock:
            handlers = list(self._subscribers.get(type(event), ()))
        logger.debug("publishing %s to %d handler(s)", type(event).__name__, len(handlers))
        for handler in handlers:
            handler(event)
