from __future__ import annotations

import asyncio
from typing import Any

import allure
import pytest

from kariro.jobs.polling import (
    ANALYSIS_FAILED_MESSAGE,
    EMPTY_RESPONSE_MESSAGE,
    TIMEOUT_MESSAGE,
    UNKNOWN_ERROR_MESSAGE,
    JobPoller,
    JobStatusResponse,
    PollState,
)

pytestmark = [
    allure.epic("Client Polling"),
    allure.feature("Job Poller"),
]


async def _no_sleep(_: float) -> None:
    await asyncio.sleep(0)


def _processing() -> JobStatusResponse:
    return JobStatusResponse(success=True, data={"status": "processing", "result": None})


class ScriptedFetcher:
    """Returns queued responses in order, repeating the last one."""

    def __init__(self, *responses: JobStatusResponse | Exception) -> None:
        self.responses = list(responses)
        self.calls: list[str] = []

    async def __call__(self, job_id: str) -> JobStatusResponse:
        self.calls.append(job_id)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def _run(poller: JobPoller, job_id: str = "job-1") -> PollState:
    async def scenario() -> PollState:
        poller.start(job_id)
        return await poller.wait()

    return asyncio.run(scenario())


def test_completes_after_processing_responses() -> None:
    completed: list[Any] = []
    errors: list[str] = []
    fetcher = ScriptedFetcher(
        _processing(),
        _processing(),
        JobStatusResponse(success=True, data={"status": "completed", "result": {"fitScore": 80}}),
    )
    poller = JobPoller(
        fetcher,
        sleep=_no_sleep,
        on_complete=completed.append,
        on_error=errors.append,
    )

    state = _run(poller)

    assert state is PollState.COMPLETED
    assert poller.attempts == 3
    assert poller.result == {"fitScore": 80}
    assert completed == [{"fitScore": 80}]
    assert errors == []
    assert fetcher.calls == ["job-1"] * 3


def test_gives_up_after_max_attempts() -> None:
    errors: list[str] = []
    fetcher = ScriptedFetcher(_processing())
    poller = JobPoller(fetcher, max_attempts=150, sleep=_no_sleep, on_error=errors.append)

    state = _run(poller)

    assert state is PollState.FAILED
    assert len(fetcher.calls) == 150
    assert poller.error == TIMEOUT_MESSAGE
    assert errors == [TIMEOUT_MESSAGE]


@pytest.mark.parametrize(
    ("response", "message"),
    [
        (JobStatusResponse(success=False, error="Job not found"), "Job not found"),
        (JobStatusResponse(success=False), UNKNOWN_ERROR_MESSAGE),
        (JobStatusResponse(success=True, data=None), EMPTY_RESPONSE_MESSAGE),
        (
            JobStatusResponse(success=True, data={"status": "failed", "error": "No job text"}),
            "No job text",
        ),
        (JobStatusResponse(success=True, data={"status": "failed"}), ANALYSIS_FAILED_MESSAGE),
        (ConnectionError("connection reset"), "connection reset"),
    ],
)
def test_failures_stop_polling_immediately(
    response: JobStatusResponse | Exception,
    message: str,
) -> None:
    completed: list[Any] = []
    fetcher = ScriptedFetcher(response)
    poller = JobPoller(fetcher, sleep=_no_sleep, on_complete=completed.append)

    state = _run(poller)

    assert state is PollState.FAILED
    assert poller.error == message
    assert len(fetcher.calls) == 1
    assert completed == []


def test_restart_drops_response_for_superseded_job() -> None:
    completed: list[Any] = []
    gate = asyncio.Event()
    calls: list[str] = []

    async def fetch(job_id: str) -> JobStatusResponse:
        calls.append(job_id)
        if job_id == "old":
            try:
                await gate.wait()
            except asyncio.CancelledError:
                pass
            return JobStatusResponse(
                success=True,
                data={"status": "completed", "result": {"job": "old"}},
            )
        return JobStatusResponse(
            success=True,
            data={"status": "completed", "result": {"job": "new"}},
        )

    async def scenario() -> PollState:
        poller = JobPoller(fetch, sleep=_no_sleep, on_complete=completed.append)
        old_task = poller.start("old")
        await asyncio.sleep(0)
        poller.start("new")
        await old_task
        state = await poller.wait()
        assert poller.job_id == "new"
        return state

    state = asyncio.run(scenario())

    assert state is PollState.COMPLETED
    assert calls == ["old", "new"]
    assert completed == [{"job": "new"}]


def test_reset_returns_to_idle() -> None:
    fetcher = ScriptedFetcher(_processing())

    async def scenario() -> JobPoller:
        poller = JobPoller(fetcher, interval_seconds=60)
        poller.start("job-1")
        await asyncio.sleep(0)
        poller.reset()
        await asyncio.sleep(0)
        return poller

    poller = asyncio.run(scenario())

    assert poller.state is PollState.IDLE
    assert poller.job_id is None
    assert poller.attempts == 0
    assert fetcher.calls == ["job-1"]
