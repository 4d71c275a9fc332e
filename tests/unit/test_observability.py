"""
Unit tests for logging and metrics setup.
"""

import io
import json
import logging

import pytest
import structlog
from prometheus_client import CollectorRegistry

from jobqueue.config import Settings
from jobqueue.observability.logging import job_log_context, setup_logging
from jobqueue.observability.metrics import MetricsCollector


class TestMetricsCollector:
    """Tests for MetricsCollector."""

    def test_exposition_contains_queue_metrics(self):
        """Test the Prometheus payload lists every queue metric."""
        collector = MetricsCollector(registry=CollectorRegistry())
        collector.record_job_submitted("email")
        collector.record_job_duration("email", "success", 0.2)
        collector.update_queue_depth(active=1, pending=4)

        output = collector.get_metrics().decode()

        assert 'jobs_submitted_total{job_type="email"} 1.0' in output
        assert "job_duration_seconds_bucket" in output
        assert "queue_active_jobs 1.0" in output
        assert "queue_pending_jobs 4.0" in output
        assert collector.get_content_type().startswith("text/plain")

    def test_persistence_errors_by_operation(self):
        """Test store failures are counted per operation."""
        registry = CollectorRegistry()
        collector = MetricsCollector(registry=registry)

        collector.record_persistence_error("save")
        collector.record_persistence_error("save")
        collector.record_persistence_error("delete")

        assert registry.get_sample_value("persistence_errors_total", {"operation": "save"}) == 2
        assert registry.get_sample_value("persistence_errors_total", {"operation": "delete"}) == 1


class TestLogging:
    """Tests for setup_logging."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers = handlers
        root.setLevel(level)
        structlog.reset_defaults()
        structlog.contextvars.clear_contextvars()

    @pytest.fixture
    def stream(self) -> io.StringIO:
        return io.StringIO()

    def events(self, stream: io.StringIO) -> list[dict]:
        return [json.loads(line) for line in stream.getvalue().splitlines()]

    def test_json_output_includes_extra_fields(self, stream: io.StringIO):
        """Test stdlib log calls with extra= render as structured JSON."""
        setup_logging(Settings(_env_file=None, log_format="json", log_level="INFO"), stream=stream)

        logging.getLogger("jobqueue.test").info("Added job", extra={"job_id": "email_1_abc"})

        [event] = self.events(stream)
        assert event["event"] == "Added job"
        assert event["job_id"] == "email_1_abc"
        assert event["level"] == "info"

    def test_log_level_applied(self):
        """Test the configured level is set on the root logger."""
        setup_logging(Settings(_env_file=None, log_level="WARNING"), stream=io.StringIO())

        assert logging.getLogger().level == logging.WARNING

    def test_job_log_context_tags_and_resets(self, stream: io.StringIO):
        """Test lines inside the block carry the job fields and later lines do not."""
        setup_logging(Settings(_env_file=None, log_format="json"), stream=stream)
        log = logging.getLogger("jobqueue.test")

        with job_log_context("email_1_abc", "email", 2):
            log.info("inside")
        log.info("outside")

        inside, outside = self.events(stream)
        assert inside["job_id"] == "email_1_abc"
        assert inside["job_type"] == "email"
        assert inside["attempt"] == 2
        assert "job_id" not in outside

    async def test_handler_logs_carry_running_job(self, make_queue, stream: io.StringIO):
        """Test a handler's own log lines are tagged with the job it runs in."""
        setup_logging(Settings(_env_file=None, log_format="json"), stream=stream)
        queue = make_queue()

        def send_email(job) -> None:
            logging.getLogger("app.email").info("sending")

        queue.register_handler("email", send_email)
        await queue.start()
        job_id = await queue.submit("email")
        await queue.wait_until_idle()

        [event] = [event for event in self.events(stream) if event["event"] == "sending"]
        assert event["job_id"] == job_id
        assert event["job_type"] == "email"
        assert event["attempt"] == 1
