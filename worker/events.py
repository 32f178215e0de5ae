"""
Lifecycle event bus.

Collaborators (metrics, logging, alerting, dashboards) subscribe explicitly to
the events they care about:

    bus.subscribe(JobEvent.FAILED, alert_on_dead_letter)

emit() calls every subscriber synchronously, in subscription order, on the
event loop thread. A subscriber that raises is logged and skipped — it never
breaks the engine or the subscribers after it.
"""

import logging
from collections import defaultdict
from typing import Any, Callable

from models.enums import JobEvent

logger = logging.getLogger(__name__)

Subscriber = Callable[[Any], None]


class EventBus:

    def __init__(self):
        self._subscribers: dict[JobEvent, list[Subscriber]] = defaultdict(list)

    def subscribe(self, event: JobEvent, callback: Subscriber) -> Callable[[], None]:
        """Register callback for event. Returns a function that unsubscribes it."""
        event = JobEvent(event)
        self._subscribers[event].append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers[event]:
                self._subscribers[event].remove(callback)

        return unsubscribe

    def emit(self, event: JobEvent, payload: Any) -> None:
        for callback in list(self._subscribers.get(event, ())):
            try:
                callback(payload)
            except Exception as e:
                logger.error(f"Subscriber for {event.value} raised: {e}", exc_info=True)

    def subscriber_count(self, event: JobEvent) -> int:
        return len(self._subscribers.get(event, ()))
