"""Controllers for kariro CLI commands."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from kariro.ai.base import AiNotConfiguredError
from kariro.config import Settings
from kariro.domain.models import ApplicationCreate
from kariro.http.safe_fetcher import FetchError, SafeFetcher
from kariro.jobs.client import JobStatusClient, service_status_fetcher
from kariro.jobs.models import (
    AnalyzeJobRequest,
    ApiResult,
    CoverLetterRequest,
    CoverLetterTone,
    InterviewPrepRequest,
    JobRequest,
    JobType,
    ResumeGapRequest,
)
from kariro.jobs.polling import JobPoller, PollState
from kariro.jobs.runtime import JobRuntime, open_runtime
from kariro.jobs.service import AiJobService
from kariro.jobs.worker import build_worker_pool

LOCAL_CLIENT_KEY = "cli"


class CliCommandError(Exception):
    """Command failed; the message is printed and the CLI exits non-zero."""


@dataclass(slots=True)
class CommandOutput:
    """Printable lines plus overall outcome."""

    lines: list[str]
    success: bool = True


@dataclass(slots=True)
class DbInitCommand:
    db_path: Path | None


@dataclass(slots=True)
class ApplicationCreateCommand:
    """CLI input for creating a job application."""

    db_path: Path | None
    user_id: str
    company_name: str
    role_title: str
    job_url: str | None = None
    job_description: str | None = None
    location: str | None = None
    work_mode: str | None = None


@dataclass(slots=True)
class ProfileSetCommand:
    """CLI input for replacing the candidate profile."""

    db_path: Path | None
    user_id: str
    resume_text: str | None
    skills: tuple[str, ...] = ()
    preferred_roles: tuple[str, ...] = ()
    preferred_locations: tuple[str, ...] = ()
    salary_expectation_min: int | None = None
    salary_expectation_max: int | None = None


@dataclass(slots=True)
class AnalyzeJobCommand:
    """CLI input for ad-hoc job analysis."""

    db_path: Path | None
    user_id: str
    job_description: str | None
    job_url: str | None
    application_id: str | None = None
    auto_create_application: bool = False


@dataclass(slots=True)
class ApplicationJobCommand:
    """CLI input for cover letter, interview prep and resume gap jobs."""

    db_path: Path | None
    user_id: str
    job_type: JobType
    application_id: str
    tone: CoverLetterTone = CoverLetterTone.FORMAL


@dataclass(slots=True)
class JobStatusCommand:
    db_path: Path | None
    user_id: str
    job_id: str


@dataclass(slots=True)
class JobPollCommand:
    """CLI input for polling a job until it finishes."""

    db_path: Path | None
    user_id: str
    job_id: str
    remote: bool = False
    token: str | None = None
    interval_seconds: float | None = None
    max_attempts: int | None = None


@dataclass(slots=True)
class WorkerRunCommand:
    """CLI input for worker execution."""

    db_path: Path | None
    once: bool
    concurrency: int | None = None
    max_tasks: int | None = None
    max_idle_polls: int | None = None


@dataclass(slots=True)
class QueueStatsCommand:
    db_path: Path | None


@dataclass(slots=True)
class FetchCommand:
    """CLI input for a one-off outbound fetch."""

    db_path: Path | None
    url: str
    preview_chars: int = 500


@dataclass(slots=True)
class _PollOutcome:
    state: PollState
    attempts: int
    result: dict[str, Any] | None = None
    error: str | None = None


class KariroCliController:
    """Coordinates storage, admission, worker and polling CLI operations."""

    def init_db(self, command: DbInitCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _runtime(settings):
            pass
        return [f"Database ready: {settings.db_path}"]

    def create_application(self, command: ApplicationCreateCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _runtime(settings) as runtime:
            application = runtime.domain.create_application(
                user_id=command.user_id,
                payload=ApplicationCreate(
                    company_name=command.company_name,
                    role_title=command.role_title,
                    job_url=command.job_url,
                    job_description=command.job_description,
                    location=command.location,
                    work_mode=command.work_mode,
                ),
            )
        return [
            "Application created: "
            f"application_id={application.application_id} "
            f"company={application.company_name} role={application.role_title}",
        ]

    def set_profile(self, command: ProfileSetCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _runtime(settings) as runtime:
            profile = runtime.domain.upsert_profile(
                user_id=command.user_id,
                resume_text=command.resume_text,
                skills=list(command.skills),
                preferred_roles=list(command.preferred_roles),
                preferred_locations=list(command.preferred_locations),
                salary_expectation_min=command.salary_expectation_min,
                salary_expectation_max=command.salary_expectation_max,
            )
        return [f"Profile saved: user_id={profile.user_id} skills={len(profile.skills)}"]

    def analyze_job(self, command: AnalyzeJobCommand) -> CommandOutput:
        request = AnalyzeJobRequest(
            job_description=command.job_description,
            job_url=command.job_url,
            application_id=command.application_id,
            auto_create_application=command.auto_create_application,
        )
        return self._submit(command.db_path, command.user_id, request)

    def submit_application_job(self, command: ApplicationJobCommand) -> CommandOutput:
        request: JobRequest
        if command.job_type is JobType.COVER_LETTER:
            request = CoverLetterRequest(application_id=command.application_id, tone=command.tone)
        elif command.job_type is JobType.INTERVIEW_PREP:
            request = InterviewPrepRequest(application_id=command.application_id)
        elif command.job_type is JobType.RESUME_GAP:
            request = ResumeGapRequest(application_id=command.application_id)
        else:
            raise CliCommandError(f"Unsupported application job type: {command.job_type.value}")
        return self._submit(command.db_path, command.user_id, request)

    def job_status(self, command: JobStatusCommand) -> CommandOutput:
        settings = _settings(command.db_path)
        with _runtime(settings) as runtime:
            result = AiJobService.from_runtime(runtime, rate_limited=False).get_job(
                command.user_id,
                command.job_id,
            )
        if not result.success:
            return CommandOutput(lines=[_error_line(result)], success=False)
        return CommandOutput(lines=[json.dumps(result.data, indent=2, ensure_ascii=False)])

    def poll_job(self, command: JobPollCommand) -> CommandOutput:
        """Poll until the job completes, fails or the attempt budget runs out."""

        settings = _settings(command.db_path)
        interval = (
            command.interval_seconds
            if command.interval_seconds is not None
            else settings.polling.interval_seconds
        )
        max_attempts = command.max_attempts or settings.polling.max_attempts

        if command.remote:
            outcome = asyncio.run(
                _poll_remote(
                    settings,
                    job_id=command.job_id,
                    token=command.token,
                    interval_seconds=interval,
                    max_attempts=max_attempts,
                ),
            )
        else:
            with _runtime(settings) as runtime:
                service = AiJobService.from_runtime(runtime, rate_limited=False)
                poller = JobPoller(
                    service_status_fetcher(service, command.user_id),
                    interval_seconds=interval,
                    max_attempts=max_attempts,
                )
                outcome = asyncio.run(_poll(poller, command.job_id))

        header = f"Job {command.job_id}: {outcome.state.value} after {outcome.attempts} polls"
        if outcome.state is PollState.COMPLETED:
            return CommandOutput(
                lines=[header, json.dumps(outcome.result, indent=2, ensure_ascii=False)],
            )
        return CommandOutput(lines=[header, f"Error: {outcome.error}"], success=False)

    def run_worker(self, command: WorkerRunCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _runtime(settings) as runtime:
            try:
                pool = build_worker_pool(runtime, concurrency=command.concurrency)
            except AiNotConfiguredError as error:
                raise CliCommandError(str(error)) from error
            with pool:
                summary = (
                    pool.workers[0].run_once()
                    if command.once
                    else pool.run(
                        max_tasks=command.max_tasks,
                        max_idle_polls=command.max_idle_polls,
                    )
                )

        return [
            "Worker summary: "
            f"processed={summary.processed} succeeded={summary.succeeded} "
            f"failed={summary.failed} retried={summary.retried} "
            f"skipped={summary.skipped} idle_polls={summary.idle_polls}",
        ]

    def queue_stats(self, command: QueueStatsCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _runtime(settings) as runtime:
            counts = runtime.queue.stats()
        return [
            "Queue entries: " + " ".join(f"{status}={count}" for status, count in counts.items()),
        ]

    def fetch(self, command: FetchCommand) -> list[str]:
        settings = _settings(command.db_path)
        fetch_settings = settings.fetch
        with SafeFetcher(
            timeout_seconds=fetch_settings.timeout_seconds,
            max_response_bytes=fetch_settings.max_response_bytes,
            max_text_chars=fetch_settings.max_text_chars,
            user_agent=fetch_settings.user_agent,
        ) as fetcher:
            try:
                page = fetcher.fetch(command.url)
            except FetchError as error:
                raise CliCommandError(str(error)) from error

        lines = [
            f"Fetched {page.url}: status={page.status_code} "
            f"content_type={page.content_type or '-'} chars={len(page.text)} "
            f"truncated={page.body_truncated}",
        ]
        if command.preview_chars > 0 and page.text:
            lines.append(page.text[: command.preview_chars])
        return lines

    def _submit(self, db_path: Path | None, user_id: str, request: JobRequest) -> CommandOutput:
        settings = _settings(db_path)
        with _runtime(settings) as runtime:
            result = AiJobService.from_runtime(runtime, rate_limited=False).submit_job(
                user_id,
                request,
                client_key=LOCAL_CLIENT_KEY,
            )
        if not result.success or result.data is None:
            return CommandOutput(lines=[_error_line(result)], success=False)
        return CommandOutput(
            lines=[
                "Job enqueued: "
                f"job_id={result.data['jobId']} type={request.job_type.value} "
                f"status={result.data['status']}",
            ],
        )


async def _poll(poller: JobPoller, job_id: str) -> _PollOutcome:
    poller.start(job_id)
    state = await poller.wait()
    return _PollOutcome(
        state=state,
        attempts=poller.attempts,
        result=poller.result,
        error=poller.error,
    )


async def _poll_remote(
    settings: Settings,
    *,
    job_id: str,
    token: str | None,
    interval_seconds: float,
    max_attempts: int,
) -> _PollOutcome:
    async with JobStatusClient(settings.polling.api_base_url, token=token) as client:
        poller = JobPoller(
            client.fetch,
            interval_seconds=interval_seconds,
            max_attempts=max_attempts,
        )
        return await _poll(poller, job_id)


def _settings(db_path: Path | None) -> Settings:
    settings = Settings.from_env(db_path=db_path)
    try:
        settings.validate()
    except ValueError as error:
        raise CliCommandError(str(error)) from error
    return settings


@contextmanager
def _runtime(settings: Settings) -> Iterator[JobRuntime]:
    runtime = open_runtime(settings)
    try:
        yield runtime
    finally:
        runtime.close()


def _error_line(result: ApiResult) -> str:
    return f"Error [{result.error_code}]: {result.error}"
