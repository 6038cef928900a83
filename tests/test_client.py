from __future__ import annotations

import asyncio
import json

import allure
import httpx

from kariro.jobs.client import JobStatusClient, service_status_fetcher
from kariro.jobs.models import AnalyzeJobRequest
from kariro.jobs.polling import JobStatusResponse
from kariro.jobs.runtime import JobRuntime
from kariro.jobs.service import JOB_NOT_FOUND_MESSAGE, AiJobService

pytestmark = [
    allure.epic("Client Polling"),
    allure.feature("Status Readers"),
]

BASE_URL = "https://api.example.com/"


def _fetch(
    handler,  # noqa: ANN001
    job_id: str = "job-1",
    token: str | None = "secret",
) -> JobStatusResponse:
    async def scenario() -> JobStatusResponse:
        transport = httpx.MockTransport(handler)
        async with JobStatusClient(BASE_URL, token=token, transport=transport) as client:
            return await client.fetch(job_id)

    return asyncio.run(scenario())


def test_fetch_reads_public_view_with_bearer_token() -> None:
    seen: list[httpx.Request] = []
    body = {"success": True, "data": {"jobId": "job-1", "status": "processing"}}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=body)

    response = _fetch(handler)

    assert response == JobStatusResponse(success=True, data=body["data"])
    assert seen[0].url.path == "/ai/jobs/job-1"
    assert seen[0].headers["authorization"] == "Bearer secret"
    assert seen[0].headers["accept"] == "application/json"


def test_fetch_without_token_sends_no_authorization() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"success": True, "data": {"status": "completed"}})

    _fetch(handler, token=None)

    assert "authorization" not in seen[0].headers


def test_job_id_is_escaped_into_a_single_path_segment() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"success": True, "data": {"status": "queued"}})

    _fetch(handler, job_id="../admin?x=1")

    assert seen[0].url.raw_path == b"/ai/jobs/..%2Fadmin%3Fx%3D1"
    assert seen[0].url.query == b""


def test_error_body_is_reported() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = {"success": False, "error": JOB_NOT_FOUND_MESSAGE, "code": "NOT_FOUND"}
        return httpx.Response(404, json=body)

    assert _fetch(handler) == JobStatusResponse(success=False, error=JOB_NOT_FOUND_MESSAGE)


def test_error_without_message_falls_back_to_status() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, json={"success": False})

    assert _fetch(handler).error == "HTTP 502"


def test_non_json_body_is_invalid_response() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="<html>Bad Gateway</html>")

    response = _fetch(handler)

    assert response.success is False
    assert response.error == "Invalid response from server (HTTP 502)"


def test_non_object_body_is_invalid_response() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=json.dumps([1, 2]).encode())

    assert _fetch(handler).error == "Invalid response from server"


def test_transport_errors_are_returned_not_raised() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    def stall(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("read timed out", request=request)

    refused = _fetch(refuse)
    stalled = _fetch(stall)

    assert refused == JobStatusResponse(success=False, error="connection refused")
    assert stalled == JobStatusResponse(success=False, error="Request timed out")


def test_service_status_fetcher_reads_local_records(runtime: JobRuntime) -> None:
    service = AiJobService.from_runtime(runtime, rate_limited=False)
    job_id = service.submit_job("user-1", AnalyzeJobRequest(job_description="Go dev")).data["jobId"]

    async def scenario() -> tuple[JobStatusResponse, JobStatusResponse]:
        own = await service_status_fetcher(service, "user-1")(job_id)
        foreign = await service_status_fetcher(service, "user-2")(job_id)
        return own, foreign

    own, foreign = asyncio.run(scenario())

    assert own.success is True
    assert own.data["status"] == "processing"
    assert foreign == JobStatusResponse(success=False, error=JOB_NOT_FOUND_MESSAGE)
