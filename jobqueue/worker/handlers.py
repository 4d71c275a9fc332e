"""
Built-in job handlers.

Small handlers for smoke-testing a deployment: echo, sleep, failing_job,
and http_request. Register them with register_builtin_handlers().
"""

import asyncio
import logging
from typing import Any

import httpx

from jobqueue.queue.registry import HandlerRegistry
from jobqueue.types.job import Job, JobResult

logger = logging.getLogger(__name__)


def _payload(job: Job) -> dict[str, Any]:
    return job.payload if isinstance(job.payload, dict) else {}


async def handle_echo(job: Job) -> JobResult:
    """
    Echo handler for testing.

    Simply returns the input payload as output.
    """
    logger.info(
        "Echo job executing",
        extra={"job_id": job.id, "attempt": job.attempt}
    )

    return JobResult(
        success=True,
        output={"echo": job.payload},
    )


async def handle_sleep(job: Job) -> JobResult:
    """
    Sleep handler for testing delays.

    Payload should contain:
    - duration_seconds: How long to sleep
    """
    duration = _payload(job).get("duration_seconds", 1)

    logger.info(
        "Sleep job starting",
        extra={"job_id": job.id, "duration": duration}
    )

    await asyncio.sleep(duration)

    return JobResult(
        success=True,
        output={"slept_for": duration},
    )


async def handle_failing_job(job: Job) -> JobResult:
    """
    Handler that always fails - for testing retry logic.
    """
    logger.info(
        "Failing job executing (will fail)",
        extra={"job_id": job.id, "attempt": job.attempt}
    )

    return JobResult(
        success=False,
        error=f"Intentional failure on attempt {job.attempt}",
    )


async def handle_http_request(
    job: Job,
    client: httpx.AsyncClient | None = None,
) -> JobResult:
    """
    Make an HTTP request.

    Payload should contain:
    - url: The URL to request
    - method: HTTP method (GET, POST, etc.)
    - headers: Optional headers
    - body: Optional JSON request body

    A non-2xx response fails the attempt so the queue retries it.
    """
    data = _payload(job)
    url = data.get("url")
    method = data.get("method", "GET").upper()
    headers = data.get("headers", {})
    body = data.get("body")

    if not url:
        return JobResult(
            success=False,
            error="Missing 'url' in payload",
        )

    logger.info(
        "HTTP request job",
        extra={"job_id": job.id, "method": method, "url": url}
    )

    try:
        if client is None:
            async with httpx.AsyncClient() as owned_client:
                response = await _send(owned_client, method, url, headers, body)
        else:
            response = await _send(client, method, url, headers, body)
    except httpx.HTTPError as e:
        return JobResult(
            success=False,
            error=f"HTTP request failed: {e}",
        )

    return JobResult(
        success=response.is_success,
        output={
            "status_code": response.status_code,
            "headers": dict(response.headers),
            "body": response.text[:1000],  # Truncate response
        },
        error=None if response.is_success else f"HTTP {response.status_code}",
    )


async def _send(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    headers: dict[str, str],
    body: Any,
) -> httpx.Response:
    return await client.request(
        method=method,
        url=url,
        headers=headers,
        json=body if method in ["POST", "PUT", "PATCH"] else None,
        timeout=30.0,
    )


BUILTIN_HANDLERS = {
    "echo": handle_echo,
    "sleep": handle_sleep,
    "failing_job": handle_failing_job,
    "http_request": handle_http_request,
}


def register_builtin_handlers(registry: HandlerRegistry) -> None:
    """Register every built-in handler on the given registry."""
    for job_type, handler in BUILTIN_HANDLERS.items():
        registry.register(job_type, handler)
