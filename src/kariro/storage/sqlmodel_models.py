"""SQLModel ORM tables for applications, AI artifacts, tracking records and the queue."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Text
from sqlmodel import Field, SQLModel


class JobApplication(SQLModel, table=True):
    __tablename__ = "job_applications"  # type: ignore[bad-override]
    __table_args__ = (Index("idx_job_applications_user_time", "user_id", "created_at"),)

    application_id: str = Field(primary_key=True)
    user_id: str = Field(index=True)
    company_name: str
    role_title: str
    job_url: str | None = None
    job_description: str | None = Field(default=None, sa_column=Column(Text))
    status: str = Field(default="saved", index=True)
    salary_min: int | None = None
    salary_max: int | None = None
    salary_currency: str = Field(default="USD")
    location: str | None = None
    work_mode: str | None = None
    notes: str | None = Field(default=None, sa_column=Column(Text))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class UserProfile(SQLModel, table=True):
    __tablename__ = "user_profiles"  # type: ignore[bad-override]

    user_id: str = Field(primary_key=True)
    resume_text: str | None = Field(default=None, sa_column=Column(Text))
    skills_json: str = Field(default="[]", sa_column=Column(Text, nullable=False))
    preferred_roles_json: str = Field(default="[]", sa_column=Column(Text, nullable=False))
    preferred_locations_json: str = Field(default="[]", sa_column=Column(Text, nullable=False))
    salary_expectation_min: int | None = None
    salary_expectation_max: int | None = None
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class CoverLetter(SQLModel, table=True):
    __tablename__ = "cover_letters"  # type: ignore[bad-override]
    __table_args__ = (Index("idx_cover_letters_application_user", "application_id", "user_id"),)

    cover_letter_id: str = Field(primary_key=True)
    application_id: str = Field(
        sa_column=Column(
            ForeignKey("job_applications.application_id", ondelete="CASCADE"),
            nullable=False,
        ),
    )
    user_id: str = Field(index=True)
    tone: str
    content: str = Field(sa_column=Column(Text, nullable=False))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class InterviewPrep(SQLModel, table=True):
    __tablename__ = "interview_preps"  # type: ignore[bad-override]
    __table_args__ = (Index("idx_interview_preps_application_user", "application_id", "user_id"),)

    prep_id: str = Field(primary_key=True)
    application_id: str = Field(
        sa_column=Column(
            ForeignKey("job_applications.application_id", ondelete="CASCADE"),
            nullable=False,
        ),
    )
    user_id: str = Field(index=True)
    content_json: str = Field(sa_column=Column(Text, nullable=False))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class ResumeGapAnalysis(SQLModel, table=True):
    __tablename__ = "resume_gap_analyses"  # type: ignore[bad-override]
    __table_args__ = (
        Index("idx_resume_gap_analyses_application_user", "application_id", "user_id"),
    )

    analysis_id: str = Field(primary_key=True)
    application_id: str = Field(
        sa_column=Column(
            ForeignKey("job_applications.application_id", ondelete="CASCADE"),
            nullable=False,
        ),
    )
    user_id: str = Field(index=True)
    content_json: str = Field(sa_column=Column(Text, nullable=False))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class AiAnalysis(SQLModel, table=True):
    """Tracking record shared by admission, workers and pollers."""

    __tablename__ = "ai_analyses"  # type: ignore[bad-override]
    __table_args__ = (
        Index("idx_ai_analyses_user_status", "user_id", "status"),
        Index("idx_ai_analyses_application_type_status", "application_id", "type", "status"),
    )

    id: str = Field(primary_key=True)
    user_id: str = Field(index=True)
    application_id: str | None = Field(
        default=None,
        sa_column=Column(
            ForeignKey("job_applications.application_id", ondelete="SET NULL"),
            nullable=True,
        ),
    )
    job_id: str = Field(unique=True, index=True)
    type: str
    status: str
    input_json: str = Field(sa_column=Column(Text, nullable=False))
    result_json: str | None = Field(default=None, sa_column=Column(Text))
    error: str | None = Field(default=None, sa_column=Column(Text))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class QueueJob(SQLModel, table=True):
    __tablename__ = "queue_jobs"  # type: ignore[bad-override]
    __table_args__ = (Index("idx_queue_jobs_ready", "status", "run_after"),)

    job_id: str = Field(primary_key=True)
    task_type: str = Field(index=True)
    payload_json: str = Field(sa_column=Column(Text, nullable=False))
    status: str
    attempt: int = Field(default=0)
    max_attempts: int = Field(default=3)
    backoff_seconds: float = Field(default=5.0)
    run_after: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    started_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    heartbeat_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    finished_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    worker_id: str | None = Field(default=None, index=True)
    last_error: str | None = Field(default=None, sa_column=Column(Text))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
