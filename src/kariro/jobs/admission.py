"""Job admission: ownership, quotas, tracking record and queue submission."""

from __future__ import annotations

import logging
from collections.abc import Callable
from urllib.parse import urlsplit
from uuid import uuid4

from kariro.config import LimitSettings, QueueSettings
from kariro.domain.repository import DomainRepository
from kariro.jobs.errors import QueueUnavailableError, QuotaExceededError, ValidationError
from kariro.jobs.models import (
    AnalyzeJobRequest,
    CoverLetterRequest,
    EnqueuedJob,
    InterviewPrepRequest,
    JobRequest,
    ResumeGapRequest,
    request_to_payload,
)
from kariro.jobs.queue import DurableQueue
from kariro.jobs.repository import AnalysisJobRepository

logger = logging.getLogger(__name__)

PENDING_LIMIT_MESSAGE = "You have too many pending analyses. Please wait for some to complete."
QUEUE_UNAVAILABLE_MESSAGE = "Job processing is temporarily unavailable. Please try again later."


class JobAdmission:
    """Accepts or rejects a job request before any AI work begins.

    Checks run in a fixed order and stop at the first failure: ownership,
    per-application artifact cap, per-user pending cap. Counts are re-read on
    every call and are not locked against concurrent admissions, so a burst
    may overshoot a cap slightly. Only after all checks pass is the tracking
    record written and the payload enqueued under the same ``job_id``.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        domain: DomainRepository,
        jobs: AnalysisJobRepository,
        queue: DurableQueue,
        limits: LimitSettings,
        queue_settings: QueueSettings,
        id_factory: Callable[[], str] = lambda: str(uuid4()),
    ) -> None:
        self.domain = domain
        self.jobs = jobs
        self.queue = queue
        self.limits = limits
        self.queue_settings = queue_settings
        self._id_factory = id_factory

    def submit(self, *, user_id: str, request: JobRequest) -> EnqueuedJob:
        """Admit ``request`` for ``user_id`` and return its correlation id."""

        self.validate(request)

        if request.application_id is not None:
            self.domain.get_application(user_id=user_id, application_id=request.application_id)
            self._check_artifact_cap(user_id=user_id, request=request)

        pending = self.jobs.count_processing(user_id=user_id)
        if pending >= self.limits.max_pending_jobs:
            raise QuotaExceededError(PENDING_LIMIT_MESSAGE, error_code="QUEUE_LIMIT")

        job_id = self._id_factory()
        payload = request_to_payload(request)
        self.jobs.insert(
            user_id=user_id,
            job_id=job_id,
            job_type=request.job_type,
            input_payload=payload,
            application_id=request.application_id,
        )

        try:
            self.queue.enqueue(
                request.job_type.value,
                {"userId": user_id, "jobId": job_id, **payload},
                dedupe_key=job_id,
                attempts=self.queue_settings.attempts,
                backoff_seconds=self.queue_settings.backoff_seconds,
            )
        except Exception as error:  # noqa: BLE001
            logger.error(
                "Queue submission failed for job %s (%s): %s",
                job_id,
                request.job_type.value,
                type(error).__name__,
            )
            self._compensate(job_id)
            raise QueueUnavailableError(QUEUE_UNAVAILABLE_MESSAGE) from error

        logger.info("Admitted %s job %s for user %s", request.job_type.value, job_id, user_id)
        return EnqueuedJob(job_id=job_id)

    def validate(self, request: JobRequest) -> None:
        """Reject malformed input before any storage access."""

        if isinstance(request, AnalyzeJobRequest):
            description = (request.job_description or "").strip()
            url = (request.job_url or "").strip()
            if not description and not url:
                raise ValidationError("Either jobDescription or jobUrl is required")
            if len(request.job_description or "") > self.limits.max_job_description_chars:
                raise ValidationError(
                    "jobDescription must be at most "
                    f"{self.limits.max_job_description_chars} characters",
                )
            if url:
                if len(url) > self.limits.max_job_url_chars:
                    raise ValidationError(
                        f"jobUrl must be at most {self.limits.max_job_url_chars} characters",
                    )
                if urlsplit(url).scheme.lower() not in {"http", "https"}:
                    raise ValidationError("jobUrl must be an http or https URL")
            return
        if isinstance(request, (CoverLetterRequest, InterviewPrepRequest, ResumeGapRequest)):
            if not request.application_id.strip():
                raise ValidationError("applicationId is required")
            return
        raise TypeError(f"Unsupported job request: {type(request).__name__}")

    def _check_artifact_cap(self, *, user_id: str, request: JobRequest) -> None:
        if isinstance(request, CoverLetterRequest):
            count = self.domain.count_cover_letters(
                user_id=user_id,
                application_id=request.application_id,
            )
            cap = self.limits.max_cover_letters_per_application
            if count >= cap:
                raise QuotaExceededError(
                    f"Maximum of {cap} cover letters reached for this application. "
                    "Delete some to generate more.",
                    error_code="COVER_LETTER_LIMIT",
                )
        elif isinstance(request, InterviewPrepRequest):
            count = self.domain.count_interview_preps(
                user_id=user_id,
                application_id=request.application_id,
            )
            cap = self.limits.max_interview_preps_per_application
            if count >= cap:
                raise QuotaExceededError(
                    f"Maximum of {cap} interview preps reached for this application. "
                    "Delete some to generate more.",
                    error_code="INTERVIEW_PREP_LIMIT",
                )
        elif isinstance(request, ResumeGapRequest):
            count = self.domain.count_resume_gap_analyses(
                user_id=user_id,
                application_id=request.application_id,
            )
            cap = self.limits.max_resume_gaps_per_application
            if count >= cap:
                raise QuotaExceededError(
                    f"Maximum of {cap} resume gap analyses reached for this application. "
                    "Delete some to generate more.",
                    error_code="RESUME_GAP_LIMIT",
                )

    def _compensate(self, job_id: str) -> None:
        try:
            self.jobs.delete_by_job_id(job_id)
        except Exception as error:  # noqa: BLE001
            logger.error(
                "Compensating delete failed for job %s: %s; record left in processing",
                job_id,
                type(error).__name__,
            )
