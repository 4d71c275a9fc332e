"""
Integration tests for worker wiring.
"""

import asyncio
from pathlib import Path

import pytest

from jobqueue.config import Settings
from jobqueue.constants import JobStatus
from jobqueue.storage import FileJobStore, MemoryJobStore, SqlJobStore
from jobqueue.worker.main import build_queue, build_store


def make_settings(**overrides) -> Settings:
    overrides.setdefault("queue_polling_interval_seconds", 30.0)
    return Settings(_env_file=None, **overrides)


class TestBuildStore:
    """Tests for storage backend selection."""

    async def test_memory_backend(self):
        """Test the default backend."""
        store = await build_store(make_settings())

        assert isinstance(store, MemoryJobStore)

    async def test_file_backend(self, tmp_path: Path):
        """Test the file backend writes under storage_dir."""
        store = await build_store(make_settings(storage_backend="file", storage_dir=str(tmp_path)))

        assert isinstance(store, FileJobStore)
        await store.save("queue_x", {"id": "x"})
        assert (tmp_path / "queue_x.json").exists()

    async def test_database_backend(self, tmp_path: Path):
        """Test the database backend creates its table and round-trips records."""
        settings = make_settings(
            storage_backend="database",
            database_url=f"sqlite+aiosqlite:///{tmp_path / 'queue.db'}",
        )

        store = await build_store(settings)

        assert isinstance(store, SqlJobStore)
        await store.save("queue_x", {"id": "x"})
        assert await store.read("queue_x") == {"id": "x"}


class TestBuildQueue:
    """Tests for queue wiring from settings."""

    @pytest.fixture
    def file_settings(self, tmp_path: Path) -> Settings:
        return make_settings(
            queue_enable_persistence=True,
            queue_max_retries=1,
            storage_backend="file",
            storage_dir=str(tmp_path),
        )

    async def test_config_from_settings(self):
        """Test queue settings flow into the queue configuration."""
        queue = await build_queue(make_settings(queue_max_concurrent_jobs=7, queue_max_retries=0))

        assert queue.config.max_concurrent_jobs == 7
        assert queue.config.max_retries == 0
        assert queue.config.enable_persistence is False
        assert sorted(queue.registry.list_types()) == [
            "echo",
            "failing_job",
            "http_request",
            "sleep",
        ]

    async def test_builtin_jobs_end_to_end(self, file_settings: Settings, tmp_path: Path):
        """Test echo completes and failing_job is dead-lettered to disk."""
        queue = await build_queue(file_settings)
        await queue.start()

        echo_id = await queue.submit("echo", {"message": "hi"})
        failing_id = await queue.submit("failing_job")
        await queue.wait_until_idle()
        await queue.stop()

        assert queue.get_job(echo_id).status == JobStatus.COMPLETED
        failing = queue.get_job(failing_id)
        assert failing.status == JobStatus.FAILED
        assert failing.retries == 1
        assert failing.error == "Intentional failure on attempt 2"

        assert (tmp_path / f"queue_{echo_id}.json").exists()
        assert not (tmp_path / f"queue_{failing_id}.json").exists()
        assert len(list(tmp_path.glob(f"failed_{failing_id}_*.json"))) == 1

    async def test_restart_recovers_pending_jobs(self, file_settings: Settings):
        """Test a job submitted before shutdown runs after the next start."""
        first = await build_queue(file_settings)
        job_id = await first.submit("echo", {"message": "later"})

        second = await build_queue(file_settings)
        await second.start()
        await asyncio.sleep(0)
        await second.wait_until_idle()
        await second.stop()

        assert second.get_job(job_id).status == JobStatus.COMPLETED
