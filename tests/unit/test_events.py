"""
Unit tests for the event bus.
"""

import asyncio
import logging

import pytest

from jobqueue.constants import EVENT_ALL, EVENT_JOB_ADDED, EVENT_JOB_STARTED
from jobqueue.events import EventBus
from jobqueue.types.events import QueueEvent
from jobqueue.types.job import Job


@pytest.fixture
def job() -> Job:
    return Job.create("email", {"to": "a@x.com"})


class TestEventBus:
    """Tests for EventBus."""

    def test_publish_to_matching_subscribers(self, job: Job):
        """Test only subscribers of the event type receive it."""
        bus = EventBus()
        added: list[QueueEvent] = []
        started: list[QueueEvent] = []
        bus.subscribe(EVENT_JOB_ADDED, added.append)
        bus.subscribe(EVENT_JOB_STARTED, started.append)

        bus.publish(QueueEvent.job_added(job))

        assert len(added) == 1
        assert added[0].job.id == job.id
        assert started == []

    def test_wildcard_receives_everything(self, job: Job):
        """Test "*" subscribers see every event."""
        bus = EventBus()
        seen: list[str] = []
        bus.subscribe(EVENT_ALL, lambda event: seen.append(event.event_type))

        bus.publish(QueueEvent.job_added(job))
        bus.publish(QueueEvent.queue_started())

        assert seen == ["job:added", "queue:started"]

    def test_unsubscribe(self, job: Job):
        """Test the returned callable removes the subscription."""
        bus = EventBus()
        seen: list[QueueEvent] = []
        unsubscribe = bus.subscribe(EVENT_JOB_ADDED, seen.append)

        unsubscribe()
        unsubscribe()
        bus.publish(QueueEvent.job_added(job))

        assert seen == []
        assert bus.subscriber_count() == 0

    def test_unknown_event_type_rejected(self):
        """Test subscribing to a misspelled event fails loudly."""
        bus = EventBus()

        with pytest.raises(ValueError, match="Unknown event type"):
            bus.subscribe("job:finished", lambda event: None)

    def test_failing_subscriber_is_isolated(self, job: Job, caplog):
        """Test a raising subscriber does not stop delivery to others."""
        bus = EventBus()
        seen: list[QueueEvent] = []

        def broken(event: QueueEvent) -> None:
            raise RuntimeError("subscriber bug")

        bus.subscribe(EVENT_JOB_ADDED, broken)
        bus.subscribe(EVENT_JOB_ADDED, seen.append)

        with caplog.at_level(logging.WARNING, logger="jobqueue.events"):
            bus.publish(QueueEvent.job_added(job))

        assert len(seen) == 1
        assert "subscriber bug" in caplog.text

    async def test_async_subscriber_is_scheduled(self, job: Job):
        """Test coroutine subscribers run as tasks and can be drained."""
        bus = EventBus()
        seen: list[str] = []

        async def on_added(event: QueueEvent) -> None:
            await asyncio.sleep(0)
            seen.append(event.job.id)

        bus.subscribe(EVENT_JOB_ADDED, on_added)
        bus.publish(QueueEvent.job_added(job))

        assert seen == []
        await bus.drain()
        assert seen == [job.id]

    async def test_failing_async_subscriber_is_logged(self, job: Job, caplog):
        """Test an async subscriber error is logged, not raised."""
        bus = EventBus()

        async def broken(event: QueueEvent) -> None:
            raise RuntimeError("async subscriber bug")

        bus.subscribe(EVENT_JOB_ADDED, broken)

        with caplog.at_level(logging.WARNING, logger="jobqueue.events"):
            bus.publish(QueueEvent.job_added(job))
            await bus.drain()

        assert "async subscriber bug" in caplog.text
