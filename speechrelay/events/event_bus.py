"""Topic-keyed publish/subscribe bus for text events.

Delivery is synchronous: ``publish`` calls every handler registered for the
topic, in subscription order, before returning. A handler that raises is
logged and skipped so that slow or broken consumers never affect the
producer or the other subscribers.
"""

import logging
from collections.abc import Callable
from typing import Any
from uuid import uuid4

from speechrelay.errors import TransientDeliveryError
from speechrelay.events.types import TextEvent

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


class TextEventBus:
    """Synchronous fan-out bus keyed by opaque topic strings.

    Topics are matched exactly; there is no wildcard matching. Handlers are
    plain callables taking the published payload (usually a
    :class:`TextEvent`, but state and notification topics carry other
    models, and some signal topics carry ``None``).
    """

    def __init__(self) -> None:
        self._topics: dict[str, dict[str, Handler]] = {}
        self._index: dict[str, str] = {}

    def subscribe(self, topic: str, handler: Handler) -> str:
        """Register *handler* for *topic* and return its subscription id."""
        subscription_id = str(uuid4())
        self._topics.setdefault(topic, {})[subscription_id] = handler
        self._index[subscription_id] = topic
        logger.debug(
            "Subscribed %s to '%s' (total: %d)",
            subscription_id,
            topic,
            len(self._topics[topic]),
        )
        return subscription_id

    def unsubscribe(self, subscription_id: str | None) -> None:
        """Remove a subscription.  No-op if the id is unknown or None."""
        if not subscription_id:
            return
        topic = self._index.pop(subscription_id, None)
        if topic is None:
            logger.debug("Attempted to unsubscribe unknown id %s; ignoring", subscription_id)
            return
        handlers = self._topics.get(topic, {})
        handlers.pop(subscription_id, None)
        if not handlers:
            self._topics.pop(topic, None)
        logger.debug("Unsubscribed %s from '%s'", subscription_id, topic)

    def publish(self, topic: str, event: Any = None) -> int:
        """Deliver *event* to every handler currently subscribed to *topic*.

        Returns the number of handlers that completed without raising.
        """
        handlers = list(self._topics.get(topic, {}).items())
        delivered = 0
        for subscription_id, handler in handlers:
            if subscription_id not in self._index:
                # Unsubscribed by an earlier handler during this publish.
                continue
            try:
                handler(event)
                delivered += 1
            except Exception as exc:
                error = TransientDeliveryError(topic, subscription_id, exc)
                logger.warning("%s", error, exc_info=True)
        return delivered

    def publish_text(self, event: TextEvent) -> int:
        """Publish a text event on the topic named after its source."""
        return self.publish(event.topic, event)

    def subscriber_count(self, topic: str | None = None) -> int:
        """Return the number of subscriptions, for one topic or in total."""
        if topic is None:
            return len(self._index)
        return len(self._topics.get(topic, {}))


class SourceSubscription:
    """A subscription whose topic can be switched at runtime.

    Switching unsubscribes the previous topic and then subscribes the new
    one. Both calls run back to back on the event loop thread, but a
    producer running on another scheduling path (e.g. a backend callback
    queued between the two calls) may still see the gap: at most the one
    in-flight event is dropped. Consumers that cannot tolerate losing that
    event must not switch sources while text is flowing.
    """

    def __init__(self, bus: TextEventBus, handler: Handler) -> None:
        self._bus = bus
        self._handler = handler
        self._topic: str | None = None
        self._subscription_id: str | None = None

    @property
    def topic(self) -> str | None:
        return self._topic

    @property
    def active(self) -> bool:
        return self._subscription_id is not None

    def switch(self, topic: str | None) -> None:
        """Listen to *topic* instead of the current one; ``None`` detaches."""
        if topic == self._topic and self.active:
            return
        self._bus.unsubscribe(self._subscription_id)
        self._subscription_id = None
        self._topic = topic or None
        if self._topic:
            self._subscription_id = self._bus.subscribe(self._topic, self._handler)
            logger.debug("Source subscription switched to '%s'", self._topic)

    def close(self) -> None:
        """Drop the subscription."""
        self.switch(None)
