from __future__ import annotations

from dataclasses import replace

import allure
import pytest

from kariro.domain.models import ApplicationView
from kariro.jobs.admission import PENDING_LIMIT_MESSAGE, JobAdmission
from kariro.jobs.errors import (
    NotFoundError,
    QueueUnavailableError,
    QuotaExceededError,
    ValidationError,
)
from kariro.jobs.models import (
    AnalysisStatus,
    AnalyzeJobRequest,
    CoverLetterRequest,
    CoverLetterTone,
    InterviewPrepRequest,
    JobType,
    ResumeGapRequest,
)
from kariro.jobs.queue import QueueStatus
from kariro.jobs.runtime import JobRuntime

pytestmark = [
    allure.epic("Admission"),
    allure.feature("Quotas & Queue Submission"),
]


class _BrokenQueue:
    def enqueue(self, *args, **kwargs):  # noqa: ANN002, ANN003, ANN201
        raise ConnectionError("queue backend unreachable")


def _admission(
    runtime: JobRuntime,
    *,
    queue=None,  # noqa: ANN001
    **limits,  # noqa: ANN003
) -> JobAdmission:
    counter = iter(range(1, 1_000))
    return JobAdmission(
        domain=runtime.domain,
        jobs=runtime.jobs,
        queue=queue or runtime.queue,
        limits=replace(runtime.settings.limits, **limits),
        queue_settings=runtime.settings.queue,
        id_factory=lambda: f"job-{next(counter)}",
    )


def test_submit_writes_record_and_queue_entry_under_one_id(runtime: JobRuntime) -> None:
    enqueued = _admission(runtime).submit(
        user_id="user-1",
        request=AnalyzeJobRequest(job_description="Senior engineer, Go, 5 years"),
    )

    assert enqueued.to_payload() == {"jobId": "job-1", "status": "processing"}
    record = runtime.jobs.get_by_job_id(user_id="user-1", job_id="job-1")
    assert record.status is AnalysisStatus.PROCESSING
    assert record.input == {"jobDescription": "Senior engineer, Go, 5 years"}
    entry = runtime.queue.get("job-1")
    assert entry.task_type == JobType.ANALYZE_JOB.value
    assert entry.max_attempts == runtime.settings.queue.attempts
    assert entry.payload == {
        "userId": "user-1",
        "jobId": "job-1",
        "jobDescription": "Senior engineer, Go, 5 years",
    }


def test_pending_cap_rejects_without_creating_record(runtime: JobRuntime) -> None:
    for index in range(10):
        runtime.jobs.insert(
            user_id="user-1",
            job_id=f"existing-{index}",
            job_type=JobType.ANALYZE_JOB,
            input_payload={},
        )

    with pytest.raises(QuotaExceededError) as excinfo:
        _admission(runtime).submit(
            user_id="user-1",
            request=AnalyzeJobRequest(job_description="Go developer"),
        )

    assert excinfo.value.error_code == "QUEUE_LIMIT"
    assert excinfo.value.status_code == 429
    assert excinfo.value.message == PENDING_LIMIT_MESSAGE
    assert runtime.jobs.count_processing(user_id="user-1") == 10
    assert runtime.queue.stats()[QueueStatus.WAITING.value] == 0


def test_pending_cap_counts_only_processing_records(runtime: JobRuntime) -> None:
    for index in range(10):
        runtime.jobs.insert(
            user_id="user-1",
            job_id=f"done-{index}",
            job_type=JobType.ANALYZE_JOB,
            input_payload={},
        )
        runtime.jobs.mark_completed(job_id=f"done-{index}", result={})

    enqueued = _admission(runtime).submit(
        user_id="user-1",
        request=AnalyzeJobRequest(job_description="Go developer"),
    )

    assert enqueued.job_id == "job-1"


def test_application_owned_by_another_user_is_not_found(
    runtime: JobRuntime,
    application: ApplicationView,
) -> None:
    with pytest.raises(NotFoundError):
        _admission(runtime).submit(
            user_id="user-2",
            request=CoverLetterRequest(application_id=application.application_id),
        )

    assert runtime.jobs.count_processing(user_id="user-2") == 0


def test_analyze_job_with_foreign_application_is_not_found(
    runtime: JobRuntime,
    application: ApplicationView,
) -> None:
    with pytest.raises(NotFoundError):
        _admission(runtime).submit(
            user_id="user-2",
            request=AnalyzeJobRequest(
                job_description="Go developer",
                application_id=application.application_id,
            ),
        )


def test_queue_failure_deletes_tracking_record(runtime: JobRuntime) -> None:
    admission = _admission(runtime, queue=_BrokenQueue())

    with pytest.raises(QueueUnavailableError) as excinfo:
        admission.submit(
            user_id="user-1",
            request=AnalyzeJobRequest(job_description="Go developer"),
        )

    assert excinfo.value.status_code == 503
    assert runtime.jobs.get_by_job_id(user_id="user-1", job_id="job-1") is None
    assert runtime.jobs.count_processing(user_id="user-1") == 0


def test_cover_letter_cap(runtime: JobRuntime, application: ApplicationView) -> None:
    for _ in range(2):
        runtime.domain.save_cover_letter(
            user_id="user-1",
            application_id=application.application_id,
            tone="formal",
            content="Dear Hiring Manager,",
        )

    with pytest.raises(QuotaExceededError) as excinfo:
        _admission(runtime, max_cover_letters_per_application=2).submit(
            user_id="user-1",
            request=CoverLetterRequest(
                application_id=application.application_id,
                tone=CoverLetterTone.CONFIDENT,
            ),
        )

    assert excinfo.value.error_code == "COVER_LETTER_LIMIT"
    assert "Maximum of 2 cover letters" in excinfo.value.message
    assert runtime.jobs.count_processing(user_id="user-1") == 0


def test_interview_prep_and_resume_gap_caps(
    runtime: JobRuntime,
    application: ApplicationView,
) -> None:
    runtime.domain.save_interview_prep(
        user_id="user-1",
        application_id=application.application_id,
        content={"technicalQuestions": []},
    )
    runtime.domain.save_resume_gap_analysis(
        user_id="user-1",
        application_id=application.application_id,
        content={"overallMatch": 40},
    )
    admission = _admission(
        runtime,
        max_interview_preps_per_application=1,
        max_resume_gaps_per_application=1,
    )

    with pytest.raises(QuotaExceededError) as prep_error:
        admission.submit(
            user_id="user-1",
            request=InterviewPrepRequest(application_id=application.application_id),
        )
    with pytest.raises(QuotaExceededError) as gap_error:
        admission.submit(
            user_id="user-1",
            request=ResumeGapRequest(application_id=application.application_id),
        )

    assert prep_error.value.error_code == "INTERVIEW_PREP_LIMIT"
    assert gap_error.value.error_code == "RESUME_GAP_LIMIT"


def test_cover_letter_under_cap_is_admitted(
    runtime: JobRuntime,
    application: ApplicationView,
) -> None:
    enqueued = _admission(runtime).submit(
        user_id="user-1",
        request=CoverLetterRequest(application_id=application.application_id),
    )

    record = runtime.jobs.get_by_job_id(user_id="user-1", job_id=enqueued.job_id)
    assert record.application_id == application.application_id
    assert record.input == {"applicationId": application.application_id, "tone": "formal"}


@pytest.mark.parametrize(
    ("request_", "message"),
    [
        (AnalyzeJobRequest(), "Either jobDescription or jobUrl is required"),
        (AnalyzeJobRequest(job_description="   "), "Either jobDescription or jobUrl is required"),
        (AnalyzeJobRequest(job_url="ftp://example.com/job"), "http or https"),
        (AnalyzeJobRequest(job_description="x" * 50_001), "at most 50000 characters"),
        (CoverLetterRequest(application_id=" "), "applicationId is required"),
    ],
)
def test_invalid_requests_are_rejected_before_storage(
    runtime: JobRuntime,
    request_,  # noqa: ANN001
    message: str,
) -> None:
    with pytest.raises(ValidationError, match=message) as excinfo:
        _admission(runtime).submit(user_id="user-1", request=request_)

    assert excinfo.value.error_code == "INVALID_INPUT"
    assert runtime.jobs.count_processing(user_id="user-1") == 0
