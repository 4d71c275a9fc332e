"""
Publish/subscribe fan-out for queue events.

Each queue owns its EventBus; nothing is global. External code subscribes
callbacks per event type (or "*" for all) and the dispatcher publishes.
"""

import asyncio
import inspect
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable

from jobqueue.constants import EVENT_ALL, EVENT_TYPES
from jobqueue.types.events import QueueEvent

logger = logging.getLogger(__name__)

# Subscriber callbacks may be plain functions or coroutine functions
EventCallback = Callable[[QueueEvent], Awaitable[None] | None]


class EventBus:
    """
    Callback registry for queue events.

    Delivery is in subscription order. A subscriber that raises is logged
    and skipped; it never affects the queue or other subscribers.
    Coroutine callbacks are scheduled as tasks on the running loop.
    """

    def __init__(self):
        """Initialize an empty bus."""
        self._subscribers: dict[str, list[EventCallback]] = defaultdict(list)
        self._tasks: set[asyncio.Task] = set()

    def subscribe(self, event_type: str, callback: EventCallback) -> Callable[[], None]:
        """
        Register a callback for an event type.

        Args:
            event_type: One of the queue event names, or "*" for all.
            callback: Called with the QueueEvent.

        Returns:
            A function that removes this subscription.

        Raises:
            ValueError: If the event type is unknown.
        """
        if event_type != EVENT_ALL and event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type: {event_type}")

        self._subscribers[event_type].append(callback)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(event_type, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def publish(self, event: QueueEvent) -> None:
        """
        Deliver an event to its subscribers and to "*" subscribers.

        Args:
            event: The event to deliver.
        """
        callbacks = [
            *self._subscribers.get(event.event_type, []),
            *self._subscribers.get(EVENT_ALL, []),
        ]

        for callback in callbacks:
            try:
                result = callback(event)
                if inspect.isawaitable(result):
                    task = asyncio.ensure_future(result)
                    self._tasks.add(task)
                    task.add_done_callback(self._on_task_done)
            except Exception as e:
                logger.warning(
                    f"Event subscriber failed: {e}",
                    extra={"event_type": event.event_type},
                )

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(
                f"Async event subscriber failed: {exc}",
            )

    async def drain(self) -> None:
        """Wait for scheduled async subscribers to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def subscriber_count(self, event_type: str | None = None) -> int:
        """
        Get the number of registered callbacks.

        Args:
            event_type: Optional event type filter.

        Returns:
            Number of callbacks.
        """
        if event_type is not None:
            return len(self._subscribers.get(event_type, []))
        return sum(len(callbacks) for callbacks in self._subscribers.values())
