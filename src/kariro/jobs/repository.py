"""Persistence for AI job tracking records."""

from __future__ import annotations

import json
import logging
from typing import Any
from uuid import uuid4

from sqlalchemy import delete as sa_delete
from sqlalchemy import func
from sqlalchemy import update as sa_update
from sqlalchemy.engine import Engine
from sqlmodel import Session, col, select

from kariro.jobs.models import AnalysisJobView, AnalysisStatus, JobType
from kariro.storage.common import to_db_datetime, to_utc_aware, utc_now
from kariro.storage.sqlmodel_models import AiAnalysis

logger = logging.getLogger(__name__)


class AnalysisJobRepository:
    """Tracking-record store keyed by the correlation ``job_id``.

    Terminal transitions are conditional updates on ``status = processing``:
    a record that already reached ``completed`` or ``failed`` is never changed,
    and the caller learns that from the ``False`` return value.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def insert(
        self,
        *,
        user_id: str,
        job_id: str,
        job_type: JobType,
        input_payload: dict[str, Any],
        application_id: str | None = None,
    ) -> AnalysisJobView:
        """Write a new record in ``processing`` state."""

        now = utc_now()
        with Session(self.engine) as session:
            row = AiAnalysis(
                id=str(uuid4()),
                user_id=user_id,
                application_id=application_id,
                job_id=job_id,
                type=job_type.value,
                status=AnalysisStatus.PROCESSING.value,
                input_json=json.dumps(input_payload, ensure_ascii=False),
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_view(row)

    def delete_by_job_id(self, job_id: str) -> bool:
        """Remove a record; used only to compensate a failed queue submission."""

        with Session(self.engine) as session:
            result = session.exec(
                sa_delete(AiAnalysis).where(col(AiAnalysis.job_id) == job_id),
            )
            session.commit()
            return result.rowcount == 1

    def get_by_job_id(self, *, user_id: str, job_id: str) -> AnalysisJobView | None:
        with Session(self.engine) as session:
            row = session.exec(
                select(AiAnalysis).where(
                    AiAnalysis.job_id == job_id,
                    AiAnalysis.user_id == user_id,
                ),
            ).one_or_none()
        if row is None:
            return None
        return _to_view(row)

    def count_processing(self, *, user_id: str) -> int:
        with Session(self.engine) as session:
            return session.exec(
                select(func.count())
                .select_from(AiAnalysis)
                .where(
                    AiAnalysis.user_id == user_id,
                    AiAnalysis.status == AnalysisStatus.PROCESSING.value,
                ),
            ).one()

    def mark_completed(
        self,
        *,
        job_id: str,
        result: dict[str, Any],
        application_id: str | None = None,
    ) -> bool:
        """Attach result and move to ``completed``; back-fill the application link if given."""

        now = utc_now()
        values: dict[str, Any] = {
            "status": AnalysisStatus.COMPLETED.value,
            "result_json": json.dumps(result, ensure_ascii=False),
            "error": None,
            "updated_at": to_db_datetime(now),
        }
        if application_id is not None:
            values["application_id"] = application_id
        return self._transition(job_id=job_id, values=values)

    def mark_failed(self, *, job_id: str, error: str) -> bool:
        """Store a user-safe error message and move to ``failed``."""

        now = utc_now()
        return self._transition(
            job_id=job_id,
            values={
                "status": AnalysisStatus.FAILED.value,
                "error": error,
                "result_json": None,
                "updated_at": to_db_datetime(now),
            },
        )

    def latest_completed_analysis(
        self,
        *,
        user_id: str,
        application_id: str,
    ) -> dict[str, Any] | None:
        """Return the newest completed job-analysis result for the application."""

        with Session(self.engine) as session:
            row = session.exec(
                select(AiAnalysis)
                .where(
                    AiAnalysis.application_id == application_id,
                    AiAnalysis.user_id == user_id,
                    AiAnalysis.type == JobType.ANALYZE_JOB.value,
                    AiAnalysis.status == AnalysisStatus.COMPLETED.value,
                )
                .order_by(col(AiAnalysis.updated_at).desc())
                .limit(1),
            ).one_or_none()
        if row is None or row.result_json is None:
            return None
        return json.loads(row.result_json)

    def _transition(self, *, job_id: str, values: dict[str, Any]) -> bool:
        with Session(self.engine) as session:
            result = session.exec(
                sa_update(AiAnalysis)
                .where(
                    col(AiAnalysis.job_id) == job_id,
                    col(AiAnalysis.status) == AnalysisStatus.PROCESSING.value,
                )
                .values(**values),
            )
            if result.rowcount != 1:
                session.rollback()
                logger.warning(
                    "Tracking record %s not in processing state; %s ignored",
                    job_id,
                    values["status"],
                )
                return False
            session.commit()
            return True


def _to_view(row: AiAnalysis) -> AnalysisJobView:
    return AnalysisJobView(
        id=row.id,
        user_id=row.user_id,
        application_id=row.application_id,
        job_id=row.job_id,
        type=JobType(row.type),
        status=AnalysisStatus(row.status),
        input=json.loads(row.input_json),
        result=json.loads(row.result_json) if row.result_json is not None else None,
        error=row.error,
        created_at=to_utc_aware(row.created_at),
        updated_at=to_utc_aware(row.updated_at),
    )
