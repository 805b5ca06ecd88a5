"""Event channel for notifying views and sinks about lending changes.

An ``EventChannel`` is created once and passed explicitly to the
components that publish or listen; there is no process-global bus.
Subscribers are called synchronously in subscription order, then the
event is written to every attached sink under ``<prefix>.<event_type>``.
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict, deque
from datetime import datetime
from typing import Any, Callable

from lendbook.models.base import Event

logger = logging.getLogger(__name__)

WILDCARD = "*"

# Event types published by PaymentService
EVENT_TYPES = (
    "transaction.created",
    "transaction.deleted",
    "instrument.updated",
    "instrument.closed",
    "instrument.deleted",
    "advance.credited",
    "payment.rejected",
)

EventHandler = Callable[[Event], None]


class EventChannel:
    """Publish/subscribe channel for lending events."""

    def __init__(
        self,
        source: str = "lendbook",
        topic_prefix: str = "lendbook",
        sinks: list[Any] | None = None,
        history_size: int | None = 1000,
    ) -> None:
        self.source = source
        self.topic_prefix = topic_prefix
        self.sinks: list[Any] = list(sinks or [])
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)
        # Most recent events only; history_size=None keeps everything
        self.history: deque[Event] = deque(maxlen=history_size)

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """Call ``handler`` for every event of ``event_type`` (``"*"`` for all)."""
        self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: str, handler: EventHandler) -> None:
        """Remove a previously subscribed handler."""
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def add_sink(self, sink: Any) -> None:
        self.sinks.append(sink)

    def topic_for(self, event_type: str) -> str:
        return f"{self.topic_prefix}.{event_type}"

    def publish(
        self,
        event_type: str,
        subject: str,
        data: dict[str, Any],
        metadata: dict[str, Any] | None = None,
    ) -> Event:
        """Build an event envelope and deliver it to handlers and sinks."""
        event = Event(
            event_id=uuid.uuid4().hex,
            event_type=event_type,
            event_time=datetime.now(),
            source=self.source,
            subject=subject,
            data=data,
            metadata=metadata or {},
        )
        self.history.append(event)

        for handler in [*self._handlers.get(event_type, []), *self._handlers.get(WILDCARD, [])]:
            handler(event)

        topic = self.topic_for(event_type)
        for sink in self.sinks:
            sink.write_batch(topic, [event])

        logger.debug("Published %s for %s", event_type, subject)
        return event

    def close(self) -> None:
        """Close all attached sinks."""
        for sink in self.sinks:
            sink.close()
