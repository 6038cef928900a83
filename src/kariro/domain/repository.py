"""Relational store for applications, profiles and AI artifacts."""

from __future__ import annotations

import json
from typing import Any
from uuid import uuid4

from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlmodel import Session, col, select

from kariro.domain.models import (
    ApplicationCreate,
    ApplicationView,
    ArtifactView,
    CoverLetterView,
    ProfileView,
)
from kariro.jobs.errors import NotFoundError
from kariro.storage.common import to_utc_aware, utc_now
from kariro.storage.sqlmodel_models import (
    CoverLetter,
    InterviewPrep,
    JobApplication,
    ResumeGapAnalysis,
    UserProfile,
)

APPLICATION_NOT_FOUND_MESSAGE = "Application not found"


class DomainRepository:
    """Ownership-scoped CRUD over the entities AI jobs depend on.

    Every read takes the caller's ``user_id``; an entity owned by someone else
    is indistinguishable from one that does not exist.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def create_application(self, *, user_id: str, payload: ApplicationCreate) -> ApplicationView:
        """Insert a new application for the user."""

        now = utc_now()
        with Session(self.engine) as session:
            row = JobApplication(
                application_id=str(uuid4()),
                user_id=user_id,
                company_name=payload.company_name,
                role_title=payload.role_title,
                job_url=payload.job_url,
                job_description=payload.job_description,
                status=payload.status,
                salary_min=payload.salary_min,
                salary_max=payload.salary_max,
                salary_currency=payload.salary_currency,
                location=payload.location,
                work_mode=payload.work_mode,
                notes=payload.notes,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_application_view(row)

    def get_application(self, *, user_id: str, application_id: str) -> ApplicationView:
        """Return the application or raise ``NotFoundError`` when not owned by the user."""

        with Session(self.engine) as session:
            row = session.exec(
                select(JobApplication).where(
                    JobApplication.application_id == application_id,
                    JobApplication.user_id == user_id,
                ),
            ).one_or_none()
        if row is None:
            raise NotFoundError(APPLICATION_NOT_FOUND_MESSAGE)
        return _to_application_view(row)

    def upsert_profile(  # noqa: PLR0913
        self,
        *,
        user_id: str,
        resume_text: str | None = None,
        skills: list[str] | None = None,
        preferred_roles: list[str] | None = None,
        preferred_locations: list[str] | None = None,
        salary_expectation_min: int | None = None,
        salary_expectation_max: int | None = None,
    ) -> ProfileView:
        """Create or replace the user's profile."""

        now = utc_now()
        with Session(self.engine) as session:
            row = session.exec(
                select(UserProfile).where(UserProfile.user_id == user_id),
            ).one_or_none()
            if row is None:
                row = UserProfile(user_id=user_id, created_at=now, updated_at=now)
            row.resume_text = resume_text
            row.skills_json = json.dumps(skills or [], ensure_ascii=False)
            row.preferred_roles_json = json.dumps(preferred_roles or [], ensure_ascii=False)
            row.preferred_locations_json = json.dumps(preferred_locations or [], ensure_ascii=False)
            row.salary_expectation_min = salary_expectation_min
            row.salary_expectation_max = salary_expectation_max
            row.updated_at = now
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_profile_view(row)

    def get_profile(self, *, user_id: str) -> ProfileView | None:
        with Session(self.engine) as session:
            row = session.exec(
                select(UserProfile).where(UserProfile.user_id == user_id),
            ).one_or_none()
        if row is None:
            return None
        return _to_profile_view(row)

    def save_cover_letter(
        self,
        *,
        user_id: str,
        application_id: str,
        tone: str,
        content: str,
    ) -> CoverLetterView:
        with Session(self.engine) as session:
            row = CoverLetter(
                cover_letter_id=str(uuid4()),
                application_id=application_id,
                user_id=user_id,
                tone=tone,
                content=content,
                created_at=utc_now(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return CoverLetterView(
                cover_letter_id=row.cover_letter_id,
                application_id=row.application_id,
                user_id=row.user_id,
                tone=row.tone,
                content=row.content,
                created_at=to_utc_aware(row.created_at),
            )

    def save_interview_prep(
        self,
        *,
        user_id: str,
        application_id: str,
        content: dict[str, Any],
    ) -> ArtifactView:
        with Session(self.engine) as session:
            row = InterviewPrep(
                prep_id=str(uuid4()),
                application_id=application_id,
                user_id=user_id,
                content_json=json.dumps(content, ensure_ascii=False),
                created_at=utc_now(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return ArtifactView(
                artifact_id=row.prep_id,
                application_id=row.application_id,
                user_id=row.user_id,
                content=content,
                created_at=to_utc_aware(row.created_at),
            )

    def save_resume_gap_analysis(
        self,
        *,
        user_id: str,
        application_id: str,
        content: dict[str, Any],
    ) -> ArtifactView:
        with Session(self.engine) as session:
            row = ResumeGapAnalysis(
                analysis_id=str(uuid4()),
                application_id=application_id,
                user_id=user_id,
                content_json=json.dumps(content, ensure_ascii=False),
                created_at=utc_now(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return ArtifactView(
                artifact_id=row.analysis_id,
                application_id=row.application_id,
                user_id=row.user_id,
                content=content,
                created_at=to_utc_aware(row.created_at),
            )

    def count_cover_letters(self, *, user_id: str, application_id: str) -> int:
        with Session(self.engine) as session:
            return session.exec(
                select(func.count())
                .select_from(CoverLetter)
                .where(
                    CoverLetter.application_id == application_id,
                    CoverLetter.user_id == user_id,
                ),
            ).one()

    def count_interview_preps(self, *, user_id: str, application_id: str) -> int:
        with Session(self.engine) as session:
            return session.exec(
                select(func.count())
                .select_from(InterviewPrep)
                .where(
                    InterviewPrep.application_id == application_id,
                    InterviewPrep.user_id == user_id,
                ),
            ).one()

    def count_resume_gap_analyses(self, *, user_id: str, application_id: str) -> int:
        with Session(self.engine) as session:
            return session.exec(
                select(func.count())
                .select_from(ResumeGapAnalysis)
                .where(
                    ResumeGapAnalysis.application_id == application_id,
                    ResumeGapAnalysis.user_id == user_id,
                ),
            ).one()

    def list_cover_letters(self, *, user_id: str, application_id: str) -> list[CoverLetterView]:
        """Return cover letters for the application, newest first."""

        with Session(self.engine) as session:
            rows = session.exec(
                select(CoverLetter)
                .where(
                    CoverLetter.application_id == application_id,
                    CoverLetter.user_id == user_id,
                )
                .order_by(col(CoverLetter.created_at).desc()),
            ).all()
        return [
            CoverLetterView(
                cover_letter_id=row.cover_letter_id,
                application_id=row.application_id,
                user_id=row.user_id,
                tone=row.tone,
                content=row.content,
                created_at=to_utc_aware(row.created_at),
            )
            for row in rows
        ]

    def latest_interview_prep(self, *, user_id: str, application_id: str) -> ArtifactView | None:
        with Session(self.engine) as session:
            row = session.exec(
                select(InterviewPrep)
                .where(
                    InterviewPrep.application_id == application_id,
                    InterviewPrep.user_id == user_id,
                )
                .order_by(col(InterviewPrep.created_at).desc())
                .limit(1),
            ).one_or_none()
        if row is None:
            return None
        return ArtifactView(
            artifact_id=row.prep_id,
            application_id=row.application_id,
            user_id=row.user_id,
            content=json.loads(row.content_json),
            created_at=to_utc_aware(row.created_at),
        )

    def latest_resume_gap_analysis(
        self,
        *,
        user_id: str,
        application_id: str,
    ) -> ArtifactView | None:
        with Session(self.engine) as session:
            row = session.exec(
                select(ResumeGapAnalysis)
                .where(
                    ResumeGapAnalysis.application_id == application_id,
                    ResumeGapAnalysis.user_id == user_id,
                )
                .order_by(col(ResumeGapAnalysis.created_at).desc())
                .limit(1),
            ).one_or_none()
        if row is None:
            return None
        return ArtifactView(
            artifact_id=row.analysis_id,
            application_id=row.application_id,
            user_id=row.user_id,
            content=json.loads(row.content_json),
            created_at=to_utc_aware(row.created_at),
        )


def _to_application_view(row: JobApplication) -> ApplicationView:
    return ApplicationView(
        application_id=row.application_id,
        user_id=row.user_id,
        company_name=row.company_name,
        role_title=row.role_title,
        job_url=row.job_url,
        job_description=row.job_description,
        status=row.status,
        salary_min=row.salary_min,
        salary_max=row.salary_max,
        salary_currency=row.salary_currency,
        location=row.location,
        work_mode=row.work_mode,
        notes=row.notes,
        created_at=to_utc_aware(row.created_at),
        updated_at=to_utc_aware(row.updated_at),
    )


def _to_profile_view(row: UserProfile) -> ProfileView:
    return ProfileView(
        user_id=row.user_id,
        resume_text=row.resume_text,
        skills=_load_string_list(row.skills_json),
        preferred_roles=_load_string_list(row.preferred_roles_json),
        preferred_locations=_load_string_list(row.preferred_locations_json),
        salary_expectation_min=row.salary_expectation_min,
        salary_expectation_max=row.salary_expectation_max,
    )


def _load_string_list(raw: str | None) -> list[str]:
    if not raw:
        return []
    parsed = json.loads(raw)
    if not isinstance(parsed, list):
        return []
    return [str(item) for item in parsed]
