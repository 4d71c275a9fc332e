"""
Unit tests for the built-in job handlers.
"""

import json

import httpx
import pytest

from jobqueue.queue.registry import HandlerRegistry
from jobqueue.types.job import Job
from jobqueue.worker.handlers import (
    handle_echo,
    handle_failing_job,
    handle_http_request,
    handle_sleep,
    register_builtin_handlers,
)


def make_job(job_type: str, payload: object) -> Job:
    return Job.create(job_type, payload, max_retries=3)


class TestBuiltinHandlers:
    """Tests for job handlers."""

    def test_register_builtin_handlers(self):
        """Test every built-in is registered under its type."""
        registry = HandlerRegistry()

        register_builtin_handlers(registry)

        assert registry.get("echo") is handle_echo
        assert "sleep" in registry
        assert "failing_job" in registry
        assert "http_request" in registry

    async def test_echo_handler(self):
        """Test the echo handler."""
        job = make_job("echo", {"message": "test"})

        result = await handle_echo(job)

        assert result.success is True
        assert result.output == {"echo": {"message": "test"}}

    async def test_sleep_handler(self):
        """Test the sleep handler reports how long it slept."""
        job = make_job("sleep", {"duration_seconds": 0})

        result = await handle_sleep(job)

        assert result.success is True
        assert result.output == {"slept_for": 0}

    async def test_failing_handler(self):
        """Test the failing job handler."""
        job = make_job("failing_job", None)
        job.retries = 1

        result = await handle_failing_job(job)

        assert result.success is False
        assert result.error == "Intentional failure on attempt 2"


class TestHttpRequestHandler:
    """Tests for the http_request handler."""

    @pytest.fixture
    def requests(self) -> list[httpx.Request]:
        return []

    def client_returning(self, status_code: int, requests: list[httpx.Request]) -> httpx.AsyncClient:
        def respond(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(status_code, text="body")

        return httpx.AsyncClient(transport=httpx.MockTransport(respond))

    async def test_success(self, requests: list[httpx.Request]):
        """Test a 2xx response succeeds and sends the JSON body."""
        job = make_job(
            "http_request",
            {"url": "https://example.test/hook", "method": "post", "body": {"a": 1}},
        )

        async with self.client_returning(200, requests) as client:
            result = await handle_http_request(job, client=client)

        assert result.success is True
        assert result.output["status_code"] == 200
        assert result.output["body"] == "body"
        assert requests[0].method == "POST"
        assert json.loads(requests[0].content) == {"a": 1}

    async def test_error_status_fails(self, requests: list[httpx.Request]):
        """Test a 5xx response fails the attempt."""
        job = make_job("http_request", {"url": "https://example.test/hook"})

        async with self.client_returning(503, requests) as client:
            result = await handle_http_request(job, client=client)

        assert result.success is False
        assert result.error == "HTTP 503"

    async def test_transport_error_fails(self):
        """Test connection errors become a failed result."""
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        job = make_job("http_request", {"url": "https://example.test/hook"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(refuse)) as client:
            result = await handle_http_request(job, client=client)

        assert result.success is False
        assert "connection refused" in result.error

    async def test_missing_url(self):
        """Test a payload without url is rejected."""
        result = await handle_http_request(make_job("http_request", {}))

        assert result.success is False
        assert result.error == "Missing 'url' in payload"
