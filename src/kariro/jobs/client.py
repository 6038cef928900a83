"""Status readers used by :class:`kariro.jobs.polling.JobPoller`."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any
from urllib.parse import quote

import httpx

from kariro.jobs.polling import JobStatusResponse, StatusFetcher
from kariro.jobs.service import AiJobService

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


class JobStatusClient:
    """Async HTTP reader for ``GET /ai/jobs/{jobId}``; never raises on transport errors."""

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
            follow_redirects=False,
        )

    async def fetch(self, job_id: str) -> JobStatusResponse:
        """Read one tracking record and normalize it into a :class:`JobStatusResponse`."""

        try:
            response = await self._client.get(f"/ai/jobs/{quote(job_id, safe='')}")
        except httpx.TimeoutException:
            logger.warning("Timeout reading job %s", job_id)
            return JobStatusResponse(success=False, error="Request timed out")
        except httpx.HTTPError as error:
            logger.warning("HTTP error reading job %s: %s", job_id, error)
            return JobStatusResponse(success=False, error=str(error) or type(error).__name__)

        try:
            body: Any = response.json()
        except json.JSONDecodeError:
            return JobStatusResponse(
                success=False,
                error=f"Invalid response from server (HTTP {response.status_code})",
            )
        if not isinstance(body, dict):
            return JobStatusResponse(success=False, error="Invalid response from server")

        if not body.get("success"):
            return JobStatusResponse(
                success=False,
                error=body.get("error") or f"HTTP {response.status_code}",
            )
        data = body.get("data")
        return JobStatusResponse(success=True, data=data if isinstance(data, dict) else None)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> JobStatusClient:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()


def service_status_fetcher(service: AiJobService, user_id: str) -> StatusFetcher:
    """Adapt the in-process service to the poller's async fetch signature."""

    async def _fetch(job_id: str) -> JobStatusResponse:
        result = await asyncio.to_thread(service.get_job, user_id, job_id)
        return JobStatusResponse(success=result.success, data=result.data, error=result.error)

    return _fetch
