"""Domain models for AI job requests, tracking records and API results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class AnalysisStatus(str, Enum):
    """Tracking-record lifecycle; ``processing`` is the only non-terminal state."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not AnalysisStatus.PROCESSING


class JobType(str, Enum):
    ANALYZE_JOB = "analyze-job"
    COVER_LETTER = "generate-cover-letter"
    INTERVIEW_PREP = "generate-interview-prep"
    RESUME_GAP = "analyze-resume-gap"


class CoverLetterTone(str, Enum):
    FORMAL = "formal"
    CONVERSATIONAL = "conversational"
    CONFIDENT = "confident"


@dataclass(slots=True, frozen=True)
class AnalyzeJobRequest:
    """Ad-hoc analysis of pasted text or a fetched posting URL."""

    job_description: str | None = None
    job_url: str | None = None
    application_id: str | None = None
    auto_create_application: bool = False

    @property
    def job_type(self) -> JobType:
        return JobType.ANALYZE_JOB


@dataclass(slots=True, frozen=True)
class CoverLetterRequest:
    application_id: str
    tone: CoverLetterTone = CoverLetterTone.FORMAL

    @property
    def job_type(self) -> JobType:
        return JobType.COVER_LETTER


@dataclass(slots=True, frozen=True)
class InterviewPrepRequest:
    application_id: str

    @property
    def job_type(self) -> JobType:
        return JobType.INTERVIEW_PREP


@dataclass(slots=True, frozen=True)
class ResumeGapRequest:
    application_id: str

    @property
    def job_type(self) -> JobType:
        return JobType.RESUME_GAP


JobRequest = AnalyzeJobRequest | CoverLetterRequest | InterviewPrepRequest | ResumeGapRequest


def request_to_payload(request: JobRequest) -> dict[str, Any]:
    """Serialize request to the camelCase payload stored on queue entries."""

    if isinstance(request, AnalyzeJobRequest):
        payload: dict[str, Any] = {}
        if request.job_description is not None:
            payload["jobDescription"] = request.job_description
        if request.job_url is not None:
            payload["jobUrl"] = request.job_url
        if request.application_id is not None:
            payload["applicationId"] = request.application_id
        if request.auto_create_application:
            payload["autoCreateApplication"] = True
        return payload
    if isinstance(request, CoverLetterRequest):
        return {"applicationId": request.application_id, "tone": request.tone.value}
    if isinstance(request, (InterviewPrepRequest, ResumeGapRequest)):
        return {"applicationId": request.application_id}
    raise TypeError(f"Unsupported job request: {type(request).__name__}")


def request_from_payload(job_type: JobType, payload: dict[str, Any]) -> JobRequest:
    """Rebuild the typed request from a queue payload."""

    if job_type is JobType.ANALYZE_JOB:
        return AnalyzeJobRequest(
            job_description=payload.get("jobDescription"),
            job_url=payload.get("jobUrl"),
            application_id=payload.get("applicationId"),
            auto_create_application=bool(payload.get("autoCreateApplication", False)),
        )
    if job_type is JobType.COVER_LETTER:
        return CoverLetterRequest(
            application_id=str(payload["applicationId"]),
            tone=CoverLetterTone(payload.get("tone", CoverLetterTone.FORMAL.value)),
        )
    if job_type is JobType.INTERVIEW_PREP:
        return InterviewPrepRequest(application_id=str(payload["applicationId"]))
    if job_type is JobType.RESUME_GAP:
        return ResumeGapRequest(application_id=str(payload["applicationId"]))
    raise TypeError(f"Unsupported job type: {job_type}")


@dataclass(slots=True)
class QueuedJob:
    """Unit of work delivered by the queue to a task handler."""

    job_id: str
    user_id: str
    request: JobRequest
    attempt: int = 1
    max_attempts: int = 1

    @property
    def is_final_attempt(self) -> bool:
        return self.attempt >= self.max_attempts


@dataclass(slots=True)
class AnalysisJobView:
    """Tracking record as stored."""

    id: str
    user_id: str
    application_id: str | None
    job_id: str
    type: JobType
    status: AnalysisStatus
    input: dict[str, Any]
    result: dict[str, Any] | None
    error: str | None
    created_at: datetime
    updated_at: datetime

    def public_view(self) -> dict[str, Any]:
        """Fields safe to return to the polling client; never includes ``input``."""

        return {
            "id": self.id,
            "jobId": self.job_id,
            "applicationId": self.application_id,
            "type": self.type.value,
            "status": self.status.value,
            "result": self.result,
            "error": self.error,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


@dataclass(slots=True)
class EnqueuedJob:
    job_id: str
    status: AnalysisStatus = AnalysisStatus.PROCESSING

    def to_payload(self) -> dict[str, str]:
        return {"jobId": self.job_id, "status": self.status.value}


@dataclass(slots=True)
class ApiResult:
    """Tagged success/error result returned across the API boundary."""

    success: bool
    data: dict[str, Any] | None = None
    error: str | None = None
    error_code: str | None = None
    status_code: int = 200
    headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def ok(cls, data: dict[str, Any], *, status_code: int = 200) -> ApiResult:
        return cls(success=True, data=data, status_code=status_code)

    @classmethod
    def fail(
        cls,
        *,
        error: str,
        error_code: str,
        status_code: int,
        headers: dict[str, str] | None = None,
    ) -> ApiResult:
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            status_code=status_code,
            headers=headers or {},
        )

    def to_payload(self) -> dict[str, Any]:
        if self.success:
            return {"success": True, "data": self.data}
        return {"success": False, "error": self.error, "code": self.error_code}
