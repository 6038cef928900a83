"""API-facing facade over rate limiting, admission and tracking-record reads."""

from __future__ import annotations

import logging

from kariro.jobs.admission import JobAdmission
from kariro.jobs.errors import AppError, NotFoundError, RateLimitedError
from kariro.jobs.models import ApiResult, JobRequest
from kariro.jobs.rate_limiter import RATE_LIMIT_MESSAGE, SlidingWindowRateLimiter
from kariro.jobs.repository import AnalysisJobRepository
from kariro.jobs.runtime import JobRuntime

logger = logging.getLogger(__name__)

JOB_NOT_FOUND_MESSAGE = "Analysis job not found"
INTERNAL_ERROR_MESSAGE = "Internal server error"
UNKNOWN_CLIENT_KEY = "unknown"


class AiJobService:
    """Entry points for API handlers; never raises across the boundary."""

    def __init__(
        self,
        *,
        admission: JobAdmission,
        jobs: AnalysisJobRepository,
        rate_limiter: SlidingWindowRateLimiter | None = None,
    ) -> None:
        self.admission = admission
        self.jobs = jobs
        self.rate_limiter = rate_limiter

    @classmethod
    def from_runtime(cls, runtime: JobRuntime, *, rate_limited: bool = True) -> AiJobService:
        settings = runtime.settings
        rate_limiter = None
        if rate_limited:
            rate_limiter = SlidingWindowRateLimiter(
                window_seconds=settings.rate_limit.window_seconds,
                max_requests=settings.rate_limit.max_requests,
                max_entries=settings.rate_limit.max_entries,
            )
        return cls(
            admission=JobAdmission(
                domain=runtime.domain,
                jobs=runtime.jobs,
                queue=runtime.queue,
                limits=settings.limits,
                queue_settings=settings.queue,
            ),
            jobs=runtime.jobs,
            rate_limiter=rate_limiter,
        )

    def start(self) -> None:
        if self.rate_limiter is not None:
            self.rate_limiter.start()

    def stop(self) -> None:
        if self.rate_limiter is not None:
            self.rate_limiter.stop()

    def submit_job(
        self,
        user_id: str,
        request: JobRequest,
        *,
        client_key: str | None = None,
    ) -> ApiResult:
        """Rate-limit by client network identity, then admit the job."""

        try:
            self._check_rate_limit(client_key or UNKNOWN_CLIENT_KEY)
            enqueued = self.admission.submit(user_id=user_id, request=request)
        except RateLimitedError as error:
            return ApiResult.fail(
                error=error.message,
                error_code=error.error_code,
                status_code=error.status_code,
                headers={"Retry-After": str(error.retry_after_seconds)},
            )
        except AppError as error:
            return _error_result(error)
        except Exception as error:  # noqa: BLE001
            logger.exception("Unexpected error while submitting job: %s", type(error).__name__)
            return _internal_error()
        return ApiResult.ok(enqueued.to_payload(), status_code=202)

    def get_job(self, user_id: str, job_id: str) -> ApiResult:
        """Return the public view of the caller's tracking record."""

        try:
            record = self.jobs.get_by_job_id(user_id=user_id, job_id=job_id)
            if record is None:
                raise NotFoundError(JOB_NOT_FOUND_MESSAGE)
        except AppError as error:
            return _error_result(error)
        except Exception as error:  # noqa: BLE001
            logger.exception(
                "Unexpected error while reading job %s: %s",
                job_id,
                type(error).__name__,
            )
            return _internal_error()
        return ApiResult.ok(record.public_view())

    def _check_rate_limit(self, client_key: str) -> None:
        if self.rate_limiter is None:
            return
        decision = self.rate_limiter.admit(client_key)
        if not decision.allowed:
            logger.info("Rate limit exceeded for %s", client_key)
            raise RateLimitedError(
                RATE_LIMIT_MESSAGE,
                retry_after_seconds=decision.retry_after_seconds,
            )


def _error_result(error: AppError) -> ApiResult:
    return ApiResult.fail(
        error=error.message,
        error_code=error.error_code,
        status_code=error.status_code,
    )


def _internal_error() -> ApiResult:
    return ApiResult.fail(
        error=INTERNAL_ERROR_MESSAGE,
        error_code="INTERNAL_ERROR",
        status_code=500,
    )
