"""Queue workers that execute AI jobs with bounded concurrency."""

from __future__ import annotations

import logging
import signal
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from kariro.ai.base import AiProvider
from kariro.ai.factory import build_ai_provider
from kariro.http.safe_fetcher import SafeFetcher
from kariro.jobs.failure_classifier import GENERIC_FAILURE_MESSAGE, classify_failure
from kariro.jobs.handlers import TaskExecutor
from kariro.jobs.models import JobType, QueuedJob, request_from_payload
from kariro.jobs.queue import DurableQueue, QueueEntry
from kariro.jobs.repository import AnalysisJobRepository
from kariro.jobs.runtime import JobRuntime
from kariro.jobs.sanitization import redact_error

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class WorkerRunSummary:
    """Aggregate worker counters for CLI reporting."""

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    retried: int = 0
    skipped: int = 0
    idle_polls: int = 0

    def add(self, other: WorkerRunSummary) -> None:
        self.processed += other.processed
        self.succeeded += other.succeeded
        self.failed += other.failed
        self.retried += other.retried
        self.skipped += other.skipped
        self.idle_polls += other.idle_polls


class AiJobWorker:
    """Claims queue entries one at a time and hands them to the task executor."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        queue: DurableQueue,
        jobs: AnalysisJobRepository,
        executor: TaskExecutor,
        worker_id: str,
        poll_interval_seconds: float = 1.0,
        stale_after_seconds: float = 1_800,
        heartbeat_interval_seconds: float = 30.0,
        stop_event: threading.Event | None = None,
    ) -> None:
        self.queue = queue
        self.jobs = jobs
        self.executor = executor
        self.worker_id = worker_id
        self.poll_interval_seconds = poll_interval_seconds
        self.stale_after_seconds = stale_after_seconds
        self.heartbeat_interval_seconds = heartbeat_interval_seconds
        self._stop_event = stop_event or threading.Event()

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    def request_stop(self) -> None:
        self._stop_event.set()

    def run_once(self) -> WorkerRunSummary:
        """Process at most one entry from the queue."""

        summary = WorkerRunSummary()
        entry = None if self.stop_requested else self._claim_entry()
        if entry is None:
            summary.idle_polls = 1
            return summary

        summary.processed = 1
        try:
            job = _to_queued_job(entry)
        except (KeyError, TypeError, ValueError) as error:
            logger.error("Malformed queue entry %s: %s", entry.job_id, type(error).__name__)
            self.queue.fail(entry.job_id, error=f"malformed payload: {error}", retryable=False)
            self.jobs.mark_failed(job_id=entry.job_id, error=GENERIC_FAILURE_MESSAGE)
            summary.failed = 1
            return summary

        try:
            with _heartbeat(self.queue, entry.job_id, self.heartbeat_interval_seconds):
                executed = self.executor.execute(job)
        except Exception as error:  # noqa: BLE001
            classification = classify_failure(error)
            retried = self.queue.fail(
                entry.job_id,
                error=redact_error(str(error) or type(error).__name__),
                retryable=classification.retryable,
            )
            if retried:
                summary.retried = 1
            else:
                summary.failed = 1
            return summary

        self.queue.complete(entry.job_id)
        if executed:
            summary.succeeded = 1
        else:
            summary.skipped = 1
        return summary

    def run_loop(
        self,
        *,
        max_tasks: int | None = None,
        max_idle_polls: int | None = 1,
    ) -> WorkerRunSummary:
        """Run until the queue is idle, ``max_tasks`` is reached or a stop is requested.

        Args:
            max_tasks: Stop after processing this many entries (None = unlimited).
            max_idle_polls: Consecutive empty polls before exiting (None = never).
        """

        aggregate = WorkerRunSummary()
        consecutive_idle = 0
        with _stop_on_signals(self._stop_event):
            while not self.stop_requested:
                if max_tasks is not None and aggregate.processed >= max_tasks:
                    break

                summary = self.run_once()
                aggregate.add(summary)

                if summary.processed == 0:
                    consecutive_idle += 1
                    if max_idle_polls is not None and consecutive_idle >= max_idle_polls:
                        break
                    self._sleep_with_stop(self.poll_interval_seconds)
                    continue
                consecutive_idle = 0
        return aggregate

    def _claim_entry(self) -> QueueEntry | None:
        self._recover_stale_entries()
        if self.stop_requested:
            return None
        entry = self.queue.claim(worker_id=self.worker_id)
        if entry is not None:
            logger.info(
                "Worker %s claimed %s job %s (attempt %d/%d)",
                self.worker_id,
                entry.task_type,
                entry.job_id,
                entry.attempt,
                entry.max_attempts,
            )
        return entry

    def _recover_stale_entries(self) -> None:
        if self.stale_after_seconds <= 0:
            return
        recovery = self.queue.recover_stale(stale_after_seconds=self.stale_after_seconds)
        for job_id in recovery.exhausted:
            self.jobs.mark_failed(job_id=job_id, error=GENERIC_FAILURE_MESSAGE)

    def _sleep_with_stop(self, seconds: float) -> None:
        deadline = time.monotonic() + seconds
        while not self.stop_requested and time.monotonic() < deadline:
            time.sleep(min(0.1, max(0.0, deadline - time.monotonic())))


class WorkerPool:
    """Fixed number of workers sharing one queue and one stop flag.

    Workers run in threads; each executes one job at a time and shares no
    mutable state with the others beyond the database.
    """

    def __init__(
        self,
        workers: list[AiJobWorker],
        *,
        stop_event: threading.Event,
        owned_fetcher: SafeFetcher | None = None,
    ) -> None:
        if not workers:
            raise ValueError("WorkerPool requires at least one worker")
        self.workers = workers
        self._stop_event = stop_event
        self._owned_fetcher = owned_fetcher

    def close(self) -> None:
        """Release the HTTP client the pool built for itself; injected fetchers stay open."""

        if self._owned_fetcher is not None:
            self._owned_fetcher.close()
            self._owned_fetcher = None

    def __enter__(self) -> WorkerPool:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    def request_stop(self) -> None:
        self._stop_event.set()

    def run(
        self,
        *,
        max_tasks: int | None = None,
        max_idle_polls: int | None = None,
    ) -> WorkerRunSummary:
        """Run all workers until each one exits and return combined counters."""

        summaries = [WorkerRunSummary() for _ in self.workers]
        per_worker_cap = None
        if max_tasks is not None:
            per_worker_cap = max(1, -(-max_tasks // len(self.workers)))

        def _run(index: int) -> None:
            summaries[index] = self.workers[index].run_loop(
                max_tasks=per_worker_cap,
                max_idle_polls=max_idle_polls,
            )

        threads = [
            threading.Thread(target=_run, args=(index,), name=worker.worker_id)
            for index, worker in enumerate(self.workers)
        ]
        with _stop_on_signals(self._stop_event):
            for thread in threads:
                thread.start()
            for thread in threads:
                while thread.is_alive():
                    thread.join(timeout=0.5)

        aggregate = WorkerRunSummary()
        for summary in summaries:
            aggregate.add(summary)
        return aggregate


def build_worker_pool(
    runtime: JobRuntime,
    *,
    concurrency: int | None = None,
    provider: AiProvider | None = None,
    fetcher: SafeFetcher | None = None,
    worker_prefix: str = "worker",
) -> WorkerPool:
    """Build a pool from settings; raises ``AiNotConfiguredError`` without a provider."""

    settings = runtime.settings
    provider = provider or build_ai_provider(settings.ai)
    size = concurrency or settings.queue.worker_concurrency
    owned_fetcher = None
    if fetcher is None:
        fetcher = owned_fetcher = SafeFetcher(
            timeout_seconds=settings.fetch.timeout_seconds,
            max_response_bytes=settings.fetch.max_response_bytes,
            max_text_chars=settings.fetch.max_text_chars,
            user_agent=settings.fetch.user_agent,
            max_workers=size,
        )
    executor = TaskExecutor(
        domain=runtime.domain,
        jobs=runtime.jobs,
        provider=provider,
        fetcher=fetcher,
        max_content_chars=settings.limits.max_cover_letter_chars,
    )
    stop_event = threading.Event()
    workers = [
        AiJobWorker(
            queue=runtime.queue,
            jobs=runtime.jobs,
            executor=executor,
            worker_id=f"{worker_prefix}-{index}",
            poll_interval_seconds=settings.queue.poll_interval_seconds,
            stale_after_seconds=settings.queue.stale_after_seconds,
            stop_event=stop_event,
        )
        for index in range(1, size + 1)
    ]
    return WorkerPool(workers, stop_event=stop_event, owned_fetcher=owned_fetcher)


def _to_queued_job(entry: QueueEntry) -> QueuedJob:
    job_type = JobType(entry.task_type)
    payload = dict(entry.payload)
    user_id = str(payload.pop("userId"))
    payload.pop("jobId", None)
    return QueuedJob(
        job_id=entry.job_id,
        user_id=user_id,
        request=request_from_payload(job_type, payload),
        attempt=entry.attempt,
        max_attempts=entry.max_attempts,
    )


@contextmanager
def _stop_on_signals(stop_event: threading.Event) -> Iterator[None]:
    if not hasattr(signal, "SIGINT"):
        yield
        return

    original_sigint = signal.getsignal(signal.SIGINT)
    original_sigterm = signal.getsignal(signal.SIGTERM)

    def _handler(signum: int, _: object | None) -> None:
        try:
            name = signal.Signals(signum).name
        except ValueError:
            name = str(signum)
        logger.info("Received %s, finishing current jobs before shutdown", name)
        stop_event.set()

    try:
        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)
    except ValueError:
        # Signal handlers can only be installed in main thread.
        yield
        return
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, original_sigint)
        signal.signal(signal.SIGTERM, original_sigterm)


@contextmanager
def _heartbeat(queue: DurableQueue, job_id: str, interval_seconds: float) -> Iterator[None]:
    """Refresh the entry heartbeat in the background while the job runs."""

    if interval_seconds <= 0:
        yield
        return

    done = threading.Event()

    def _beat() -> None:
        while not done.wait(interval_seconds):
            try:
                queue.heartbeat(job_id)
            except Exception as error:  # noqa: BLE001
                logger.warning("Heartbeat failed for %s: %s", job_id, type(error).__name__)

    thread = threading.Thread(target=_beat, name=f"heartbeat-{job_id}", daemon=True)
    thread.start()
    try:
        yield
    finally:
        done.set()
        thread.join(timeout=1.0)
