"""Read/write models for applications, profiles and generated artifacts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

DEFAULT_APPLICATION_STATUS = "saved"
DEFAULT_SALARY_CURRENCY = "USD"


@dataclass(slots=True)
class ApplicationCreate:
    """Input payload for creating a job application."""

    company_name: str
    role_title: str
    job_url: str | None = None
    job_description: str | None = None
    status: str = DEFAULT_APPLICATION_STATUS
    salary_min: int | None = None
    salary_max: int | None = None
    salary_currency: str = DEFAULT_SALARY_CURRENCY
    location: str | None = None
    work_mode: str | None = None
    notes: str | None = None


@dataclass(slots=True)
class ApplicationView:
    """Job application owned by one user."""

    application_id: str
    user_id: str
    company_name: str
    role_title: str
    job_url: str | None
    job_description: str | None
    status: str
    salary_min: int | None
    salary_max: int | None
    salary_currency: str
    location: str | None
    work_mode: str | None
    notes: str | None
    created_at: datetime
    updated_at: datetime


@dataclass(slots=True)
class ProfileView:
    """Candidate profile used to personalize generated content."""

    user_id: str
    resume_text: str | None = None
    skills: list[str] = field(default_factory=list)
    preferred_roles: list[str] = field(default_factory=list)
    preferred_locations: list[str] = field(default_factory=list)
    salary_expectation_min: int | None = None
    salary_expectation_max: int | None = None


@dataclass(slots=True)
class CoverLetterView:
    cover_letter_id: str
    application_id: str
    user_id: str
    tone: str
    content: str
    created_at: datetime


@dataclass(slots=True)
class ArtifactView:
    """Structured AI artifact (interview prep or resume-gap analysis)."""

    artifact_id: str
    application_id: str
    user_id: str
    content: dict[str, Any]
    created_at: datetime
