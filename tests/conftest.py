"""
Pytest configuration and shared fixtures.
"""

import asyncio
from collections.abc import AsyncGenerator, Callable
from typing import Any

import pytest
import pytest_asyncio
from prometheus_client import CollectorRegistry

from jobqueue.config import QueueConfig
from jobqueue.constants import EVENT_ALL
from jobqueue.observability.metrics import MetricsCollector
from jobqueue.queue.service import QueueService
from jobqueue.storage import MemoryJobStore
from jobqueue.storage.base import JobStore
from jobqueue.types.events import QueueEvent

# Long enough that the poll never fires during a test; dispatch must be immediate
TEST_POLLING_INTERVAL = 30.0


class EventRecorder:
    """Collects every event published on a queue."""

    def __init__(self):
        self.events: list[QueueEvent] = []

    def __call__(self, event: QueueEvent) -> None:
        self.events.append(event)

    def types(self) -> list[str]:
        return [event.event_type for event in self.events]

    def of_type(self, event_type: str) -> list[QueueEvent]:
        return [event for event in self.events if event.event_type == event_type]


@pytest.fixture
def metrics_registry() -> CollectorRegistry:
    """A private Prometheus registry per test."""
    return CollectorRegistry()


@pytest.fixture
def metrics(metrics_registry: CollectorRegistry) -> MetricsCollector:
    """Create a metrics collector bound to the test registry."""
    return MetricsCollector(registry=metrics_registry)


@pytest.fixture
def store() -> MemoryJobStore:
    """Create an in-memory job store."""
    return MemoryJobStore()


@pytest_asyncio.fixture
async def make_queue(
    metrics: MetricsCollector,
) -> AsyncGenerator[Callable[..., QueueService]]:
    """
    Factory for queues sharing the test metrics collector.

    Every queue created is stopped (drained) at teardown.
    """
    created: list[QueueService] = []

    def _make(store: JobStore | None = None, **config: Any) -> QueueService:
        config.setdefault("polling_interval", TEST_POLLING_INTERVAL)
        queue = QueueService(
            config=QueueConfig(**config),
            store=store,
            metrics=metrics,
        )
        created.append(queue)
        return queue

    yield _make

    for queue in created:
        if queue.is_running:
            await asyncio.wait_for(queue.stop(), timeout=5)


@pytest.fixture
def recorder() -> EventRecorder:
    """Create an event recorder; subscribe it with queue.subscribe("*", recorder)."""
    return EventRecorder()


@pytest.fixture
def subscribe_all(recorder: EventRecorder) -> Callable[[QueueService], EventRecorder]:
    """Attach the recorder to every event of a queue."""

    def _subscribe(queue: QueueService) -> EventRecorder:
        queue.subscribe(EVENT_ALL, recorder)
        return recorder

    return _subscribe
