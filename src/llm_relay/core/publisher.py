"""Best-effort progress events with per-subscriber bounded queues.

``publish`` never blocks and never raises: a full subscriber queue drops
the event for that subscriber and logs it, so a slow consumer cannot
stall generation.
"""

import asyncio
import logging
from typing import Any

logger = logging.getLogger(__name__)


class Subscription:
    """Receives events for one topic until closed."""

    def __init__(self, publisher: "ProgressPublisher", topic: str, max_queue_size: int):
        self.topic = topic
        self.queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=max_queue_size)
        self.dropped = 0
        self._publisher = publisher

    async def get(self, timeout: float | None = None) -> dict[str, Any]:
        """Next event; raises ``asyncio.TimeoutError`` after ``timeout`` seconds."""
        if timeout is None:
            return await self.queue.get()
        return await asyncio.wait_for(self.queue.get(), timeout=timeout)

    def close(self) -> None:
        self._publisher.unsubscribe(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> dict[str, Any]:
        return await self.queue.get()


class ProgressPublisher:
    def __init__(self, max_queue_size: int = 256):
        self.max_queue_size = max_queue_size
        self._subscriptions: dict[str, list[Subscription]] = {}

    def subscribe(self, topic: str) -> Subscription:
        subscription = Subscription(self, topic, self.max_queue_size)
        self._subscriptions.setdefault(topic, []).append(subscription)
        logger.debug(f"Subscriber added to '{topic}' ({len(self._subscriptions[topic])} total)")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscribers = self._subscriptions.get(subscription.topic, [])
        if subscription in subscribers:
            subscribers.remove(subscription)
        if not subscribers:
            self._subscriptions.pop(subscription.topic, None)

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscriptions.get(topic, []))

    def publish(self, topic: str, event: dict[str, Any]) -> None:
        for subscription in list(self._subscriptions.get(topic, [])):
            try:
                subscription.queue.put_nowait(event)
            except asyncio.QueueFull:
                subscription.dropped += 1
                logger.warning(
                    f"Progress queue full on '{topic}'; dropped {event.get('type', 'event')} "
                    f"({subscription.dropped} dropped for this subscriber)"
                )
            except Exception as e:
                logger.warning(f"Failed to publish to '{topic}': {e}")
                logger.debug("Publish traceback", exc_info=True)
