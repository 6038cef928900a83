"""Task handlers executed by workers, one per job type."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from kariro.ai.base import AiProvider
from kariro.ai.prompts import (
    build_analyze_job_prompt,
    build_cover_letter_prompt,
    build_interview_prep_prompt,
    build_resume_gap_prompt,
)
from kariro.ai.schemas import (
    CoverLetterResult,
    InterviewPrepResult,
    JobAnalysisResult,
    ResumeGapResult,
)
from kariro.domain.models import ApplicationCreate, ApplicationView, ProfileView
from kariro.domain.repository import DomainRepository
from kariro.http.safe_fetcher import SafeFetcher
from kariro.jobs.errors import MissingJobDescriptionError
from kariro.jobs.failure_classifier import classify_failure
from kariro.jobs.models import (
    AnalyzeJobRequest,
    CoverLetterRequest,
    InterviewPrepRequest,
    QueuedJob,
    ResumeGapRequest,
)
from kariro.jobs.repository import AnalysisJobRepository
from kariro.jobs.sanitization import redact_error

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONTENT_CHARS = 50_000


@dataclass(slots=True)
class ApplicationContext:
    """Inputs shared by the application-scoped handlers."""

    application: ApplicationView
    job_description: str
    profile: ProfileView | None
    analysis: JobAnalysisResult | None


class TaskExecutor:
    """Runs one queued job to a persisted result.

    On success the tracking record is marked ``completed``. On failure the raw
    error is logged after redaction, the record is marked ``failed`` with a
    user-safe message when no retry will follow, and the original exception is
    re-raised so the queue applies its retry policy.
    """

    def __init__(
        self,
        *,
        domain: DomainRepository,
        jobs: AnalysisJobRepository,
        provider: AiProvider,
        fetcher: SafeFetcher,
        max_content_chars: int = DEFAULT_MAX_CONTENT_CHARS,
    ) -> None:
        self.domain = domain
        self.jobs = jobs
        self.provider = provider
        self.fetcher = fetcher
        self.max_content_chars = max_content_chars

    def execute(self, job: QueuedJob) -> bool:
        """Run the job; return False when its tracking record is gone or already terminal."""

        record = self.jobs.get_by_job_id(user_id=job.user_id, job_id=job.job_id)
        if record is None or record.status.is_terminal:
            logger.warning(
                "Skipping job %s: tracking record %s",
                job.job_id,
                "missing" if record is None else record.status.value,
            )
            return False

        try:
            self._dispatch(job)
        except Exception as error:
            classification = classify_failure(error)
            logger.error(
                "%s job %s failed (%s, attempt %d/%d): %s",
                job.request.job_type.value,
                job.job_id,
                classification.reason_code,
                job.attempt,
                job.max_attempts,
                redact_error(str(error) or type(error).__name__),
            )
            if not classification.retryable or job.is_final_attempt:
                self.jobs.mark_failed(job_id=job.job_id, error=classification.user_message)
            raise

        logger.info("%s job %s completed", job.request.job_type.value, job.job_id)
        return True

    def _dispatch(self, job: QueuedJob) -> None:
        request = job.request
        if isinstance(request, AnalyzeJobRequest):
            self._analyze_job(job, request)
        elif isinstance(request, CoverLetterRequest):
            self._generate_cover_letter(job, request)
        elif isinstance(request, InterviewPrepRequest):
            self._generate_interview_prep(job, request)
        elif isinstance(request, ResumeGapRequest):
            self._analyze_resume_gap(job, request)
        else:
            raise TypeError(f"Unsupported job request: {type(request).__name__}")

    def _analyze_job(self, job: QueuedJob, request: AnalyzeJobRequest) -> None:
        description = request.job_description
        if not description and request.job_url:
            description = self.fetcher.fetch_text(request.job_url)
        if not description or not description.strip():
            raise MissingJobDescriptionError()

        profile = self.domain.get_profile(user_id=job.user_id)
        analysis = self.provider.generate_object(
            build_analyze_job_prompt(description, profile),
            JobAnalysisResult,
        )

        application_id = request.application_id
        if request.auto_create_application and application_id is None:
            application_id = self._create_application(
                user_id=job.user_id,
                analysis=analysis,
                job_url=request.job_url,
                job_description=description,
            )

        self.jobs.mark_completed(
            job_id=job.job_id,
            result=analysis.to_payload(),
            application_id=application_id,
        )

    def _generate_cover_letter(self, job: QueuedJob, request: CoverLetterRequest) -> None:
        context = self._application_context(
            user_id=job.user_id,
            application_id=request.application_id,
            purpose="cover letter generation",
        )
        raw_content = self.provider.generate_text(
            build_cover_letter_prompt(
                context.job_description,
                context.profile,
                request.tone.value,
                context.analysis,
            ),
        )
        content = raw_content[: self.max_content_chars]
        self.domain.save_cover_letter(
            user_id=job.user_id,
            application_id=request.application_id,
            tone=request.tone.value,
            content=content,
        )
        result = CoverLetterResult(
            content=content,
            tone=request.tone.value,
            application_id=request.application_id,
        )
        self.jobs.mark_completed(job_id=job.job_id, result=result.to_payload())

    def _generate_interview_prep(self, job: QueuedJob, request: InterviewPrepRequest) -> None:
        context = self._application_context(
            user_id=job.user_id,
            application_id=request.application_id,
            purpose="interview preparation",
        )
        prep = self.provider.generate_object(
            build_interview_prep_prompt(context.job_description, context.profile, context.analysis),
            InterviewPrepResult,
        )
        payload = prep.to_payload()
        self.domain.save_interview_prep(
            user_id=job.user_id,
            application_id=request.application_id,
            content=payload,
        )
        self.jobs.mark_completed(job_id=job.job_id, result=payload)

    def _analyze_resume_gap(self, job: QueuedJob, request: ResumeGapRequest) -> None:
        context = self._application_context(
            user_id=job.user_id,
            application_id=request.application_id,
            purpose="resume gap analysis",
        )
        gap = self.provider.generate_object(
            build_resume_gap_prompt(context.job_description, context.profile, context.analysis),
            ResumeGapResult,
        )
        payload = gap.to_payload()
        self.domain.save_resume_gap_analysis(
            user_id=job.user_id,
            application_id=request.application_id,
            content=payload,
        )
        self.jobs.mark_completed(job_id=job.job_id, result=payload)

    def _application_context(
        self,
        *,
        user_id: str,
        application_id: str,
        purpose: str,
    ) -> ApplicationContext:
        application = self.domain.get_application(user_id=user_id, application_id=application_id)
        if not application.job_description or not application.job_description.strip():
            raise MissingJobDescriptionError(f"No job description available for {purpose}")

        return ApplicationContext(
            application=application,
            job_description=application.job_description,
            profile=self.domain.get_profile(user_id=user_id),
            analysis=self._latest_analysis(user_id=user_id, application_id=application_id),
        )

    def _latest_analysis(self, *, user_id: str, application_id: str) -> JobAnalysisResult | None:
        raw = self.jobs.latest_completed_analysis(user_id=user_id, application_id=application_id)
        if raw is None:
            return None
        try:
            return JobAnalysisResult.model_validate(raw)
        except PydanticValidationError:
            logger.warning("Ignoring unreadable job analysis for application %s", application_id)
            return None

    def _create_application(
        self,
        *,
        user_id: str,
        analysis: JobAnalysisResult,
        job_url: str | None,
        job_description: str,
    ) -> str:
        salary: dict[str, Any] = {}
        if analysis.salary_range is not None:
            salary = {
                "salary_min": analysis.salary_range.min,
                "salary_max": analysis.salary_range.max,
                "salary_currency": analysis.salary_range.currency,
            }
        application = self.domain.create_application(
            user_id=user_id,
            payload=ApplicationCreate(
                company_name=analysis.company_name,
                role_title=analysis.role_title,
                job_url=job_url,
                job_description=job_description,
                location=analysis.location,
                work_mode=analysis.work_mode,
                **salary,
            ),
        )
        logger.info(
            "Created application %s from job analysis for user %s",
            application.application_id,
            user_id,
        )
        return application.application_id
