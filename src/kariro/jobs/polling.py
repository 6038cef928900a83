"""Client-side polling of a tracking record until it reaches a terminal state."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 2.0
DEFAULT_MAX_ATTEMPTS = 150
TIMEOUT_MESSAGE = "Analysis timed out. Please try again."
EMPTY_RESPONSE_MESSAGE = "Empty response from server"
UNKNOWN_ERROR_MESSAGE = "Unknown error"
ANALYSIS_FAILED_MESSAGE = "Analysis failed"


class PollState(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(slots=True)
class JobStatusResponse:
    """Tagged result of one tracking-record read."""

    success: bool
    data: dict[str, Any] | None = None
    error: str | None = None


StatusFetcher = Callable[[str], Awaitable[JobStatusResponse]]


class JobPoller:
    """One live poll loop per instance, driven by the running event loop.

    Every :meth:`start` and :meth:`reset` bumps a generation counter and cancels
    the previous loop. The loop compares its own generation with the current
    one before every state change, so a response that arrives for a superseded
    poll is dropped instead of overwriting the new poll's state.
    """

    def __init__(  # noqa: PLR0913
        self,
        fetch_status: StatusFetcher,
        *,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        on_complete: Callable[[dict[str, Any] | None], None] | None = None,
        on_error: Callable[[str], None] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._fetch_status = fetch_status
        self.interval_seconds = interval_seconds
        self.max_attempts = max_attempts
        self._on_complete = on_complete
        self._on_error = on_error
        self._sleep = sleep
        self._generation = 0
        self._task: asyncio.Task[None] | None = None
        self.state = PollState.IDLE
        self.job_id: str | None = None
        self.attempts = 0
        self.result: dict[str, Any] | None = None
        self.error: str | None = None

    def start(self, job_id: str) -> asyncio.Task[None]:
        """Begin polling ``job_id``, abandoning any poll already in flight."""

        self._cancel()
        generation = self._generation
        self.job_id = job_id
        self.attempts = 0
        self.result = None
        self.error = None
        self.state = PollState.PROCESSING
        self._task = asyncio.get_running_loop().create_task(self._run(generation, job_id))
        return self._task

    def reset(self) -> None:
        """Cancel any scheduled poll and return to ``idle``."""

        self._cancel()
        self.job_id = None
        self.attempts = 0
        self.result = None
        self.error = None
        self.state = PollState.IDLE

    async def wait(self) -> PollState:
        """Wait for the current loop to finish and return the resulting state."""

        task = self._task
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                if task is self._task:
                    raise
        return self.state

    def _cancel(self) -> None:
        self._generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def _run(self, generation: int, job_id: str) -> None:
        attempts = 0
        while True:
            if not self._is_current(generation):
                return
            if attempts >= self.max_attempts:
                self._fail(generation, TIMEOUT_MESSAGE)
                return

            attempts += 1
            self.attempts = attempts
            try:
                response = await self._fetch_status(job_id)
            except Exception as error:  # noqa: BLE001
                response = JobStatusResponse(
                    success=False,
                    error=str(error) or type(error).__name__,
                )

            if not self._is_current(generation):
                return
            if not response.success:
                self._fail(generation, response.error or UNKNOWN_ERROR_MESSAGE)
                return
            if not response.data:
                self._fail(generation, EMPTY_RESPONSE_MESSAGE)
                return

            status = response.data.get("status")
            if status == PollState.COMPLETED.value:
                self._complete(generation, response.data.get("result"))
                return
            if status == PollState.FAILED.value:
                self._fail(generation, response.data.get("error") or ANALYSIS_FAILED_MESSAGE)
                return

            await self._sleep(self.interval_seconds)

    def _complete(self, generation: int, result: dict[str, Any] | None) -> None:
        if not self._is_current(generation):
            return
        self.state = PollState.COMPLETED
        self.result = result
        logger.debug("Job %s completed after %d polls", self.job_id, self.attempts)
        if self._on_complete is not None:
            self._on_complete(result)

    def _fail(self, generation: int, error: str) -> None:
        if not self._is_current(generation):
            return
        self.state = PollState.FAILED
        self.error = error
        logger.debug("Job %s failed after %d polls: %s", self.job_id, self.attempts, error)
        if self._on_error is not None:
            self._on_error(error)
