"""Durable SQLite work queue with per-entry retry and exponential backoff."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from sqlalchemy import func
from sqlalchemy import update as sa_update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from kariro.storage.common import to_db_datetime, to_utc_aware, utc_now
from kariro.storage.sqlmodel_models import QueueJob

logger = logging.getLogger(__name__)


class QueueStatus(str, Enum):
    WAITING = "waiting"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(slots=True)
class QueueEntry:
    """Queue entry as seen by workers and operators."""

    job_id: str
    task_type: str
    payload: dict[str, Any]
    status: QueueStatus
    attempt: int
    max_attempts: int
    backoff_seconds: float
    run_after: datetime
    worker_id: str | None
    last_error: str | None
    created_at: datetime
    updated_at: datetime

    @property
    def is_final_attempt(self) -> bool:
        return self.attempt >= self.max_attempts


@dataclass(slots=True)
class StaleRecovery:
    """Outcome of reclaiming entries whose worker stopped heartbeating."""

    requeued: list[str] = field(default_factory=list)
    exhausted: list[str] = field(default_factory=list)


def backoff_delay(*, backoff_seconds: float, attempt: int) -> float:
    """Exponential delay before retrying after ``attempt`` failed."""

    return backoff_seconds * 2 ** max(0, attempt - 1)


class DurableQueue:
    """Queue table shared by admission (producer) and workers (consumers).

    Entries are claimed with a conditional update so two workers can never run
    the same entry; ordering between entries is not guaranteed.
    """

    def __init__(self, engine: Engine, *, clock: Callable[[], datetime] = utc_now) -> None:
        self.engine = engine
        self._clock = clock

    def enqueue(
        self,
        task_type: str,
        payload: dict[str, Any],
        *,
        dedupe_key: str,
        attempts: int,
        backoff_seconds: float,
    ) -> QueueEntry:
        """Add entry keyed by ``dedupe_key``; resubmitting the same key is a no-op."""

        existing = self.get(dedupe_key)
        if existing is not None:
            logger.info("Queue entry %s already exists; skipping duplicate enqueue", dedupe_key)
            return existing

        now = self._clock()
        try:
            with Session(self.engine) as session:
                row = QueueJob(
                    job_id=dedupe_key,
                    task_type=task_type,
                    payload_json=json.dumps(payload, ensure_ascii=False),
                    status=QueueStatus.WAITING.value,
                    attempt=0,
                    max_attempts=max(1, attempts),
                    backoff_seconds=backoff_seconds,
                    run_after=to_db_datetime(now),
                    created_at=to_db_datetime(now),
                    updated_at=to_db_datetime(now),
                )
                session.add(row)
                session.commit()
                session.refresh(row)
                return _to_entry(row)
        except IntegrityError:
            entry = self.get(dedupe_key)
            if entry is None:
                raise
            return entry

    def get(self, job_id: str) -> QueueEntry | None:
        with Session(self.engine) as session:
            row = session.exec(select(QueueJob).where(QueueJob.job_id == job_id)).one_or_none()
        if row is None:
            return None
        return _to_entry(row)

    def claim(self, *, worker_id: str) -> QueueEntry | None:
        """Atomically move one ready entry to ``running``."""

        while True:
            now = to_db_datetime(self._clock())
            with Session(self.engine) as session:
                candidate = session.exec(
                    select(QueueJob)
                    .where(
                        QueueJob.status == QueueStatus.WAITING.value,
                        QueueJob.run_after <= now,
                    )
                    .order_by(col(QueueJob.run_after).asc(), col(QueueJob.created_at).asc())
                    .limit(1),
                ).one_or_none()
                if candidate is None:
                    return None

                result = session.exec(
                    sa_update(QueueJob)
                    .where(
                        col(QueueJob.job_id) == candidate.job_id,
                        col(QueueJob.status) == QueueStatus.WAITING.value,
                    )
                    .values(
                        status=QueueStatus.RUNNING.value,
                        attempt=candidate.attempt + 1,
                        started_at=now,
                        heartbeat_at=now,
                        finished_at=None,
                        worker_id=worker_id,
                        updated_at=now,
                    ),
                )
                if result.rowcount != 1:
                    session.rollback()
                    continue

                claimed = session.exec(
                    select(QueueJob).where(QueueJob.job_id == candidate.job_id),
                ).one()
                session.commit()
                return _to_entry(claimed)

    def heartbeat(self, job_id: str) -> bool:
        now = to_db_datetime(self._clock())
        return self._update_running(job_id, heartbeat_at=now, updated_at=now)

    def complete(self, job_id: str) -> bool:
        """Mark a running entry as done."""

        now = to_db_datetime(self._clock())
        return self._update_running(
            job_id,
            status=QueueStatus.COMPLETED.value,
            finished_at=now,
            heartbeat_at=now,
            last_error=None,
            updated_at=now,
        )

    def fail(self, job_id: str, *, error: str, retryable: bool = True) -> bool:
        """Record a failed attempt; return True when a retry was scheduled."""

        entry = self.get(job_id)
        if entry is None or entry.status is not QueueStatus.RUNNING:
            return False

        now = self._clock()
        if retryable and not entry.is_final_attempt:
            delay = backoff_delay(backoff_seconds=entry.backoff_seconds, attempt=entry.attempt)
            scheduled = self._update_running(
                job_id,
                status=QueueStatus.WAITING.value,
                run_after=to_db_datetime(now + timedelta(seconds=delay)),
                started_at=None,
                heartbeat_at=None,
                worker_id=None,
                last_error=error,
                updated_at=to_db_datetime(now),
            )
            if scheduled:
                logger.info(
                    "Queue entry %s attempt %d/%d failed; retry in %.1fs",
                    job_id,
                    entry.attempt,
                    entry.max_attempts,
                    delay,
                )
            return scheduled

        self._update_running(
            job_id,
            status=QueueStatus.FAILED.value,
            finished_at=to_db_datetime(now),
            heartbeat_at=to_db_datetime(now),
            last_error=error,
            updated_at=to_db_datetime(now),
        )
        logger.info(
            "Queue entry %s failed permanently after attempt %d/%d",
            job_id,
            entry.attempt,
            entry.max_attempts,
        )
        return False

    def recover_stale(self, *, stale_after_seconds: float) -> StaleRecovery:
        """Requeue running entries whose heartbeat is older than the threshold.

        Entries that already used their final attempt are marked failed and
        reported in ``exhausted`` so their tracking records can be closed.
        """

        now = self._clock()
        cutoff = to_db_datetime(now - timedelta(seconds=stale_after_seconds))
        recovery = StaleRecovery()
        with Session(self.engine) as session:
            stale = session.exec(
                select(QueueJob).where(
                    QueueJob.status == QueueStatus.RUNNING.value,
                    QueueJob.heartbeat_at < cutoff,
                ),
            ).all()
            stale_rows = [(row.job_id, row.attempt, row.max_attempts) for row in stale]

        for job_id, attempt, max_attempts in stale_rows:
            if attempt >= max_attempts:
                changed = self._update_running(
                    job_id,
                    status=QueueStatus.FAILED.value,
                    finished_at=to_db_datetime(now),
                    last_error="worker lost",
                    updated_at=to_db_datetime(now),
                )
                if changed:
                    recovery.exhausted.append(job_id)
                continue
            changed = self._update_running(
                job_id,
                status=QueueStatus.WAITING.value,
                run_after=to_db_datetime(now),
                started_at=None,
                heartbeat_at=None,
                worker_id=None,
                last_error="worker lost",
                updated_at=to_db_datetime(now),
            )
            if changed:
                recovery.requeued.append(job_id)

        if recovery.requeued or recovery.exhausted:
            logger.warning(
                "Recovered stale queue entries: requeued=%d exhausted=%d",
                len(recovery.requeued),
                len(recovery.exhausted),
            )
        return recovery

    def stats(self) -> dict[str, int]:
        """Entry counts by status."""

        counts = {status.value: 0 for status in QueueStatus}
        with Session(self.engine) as session:
            rows = session.exec(
                select(QueueJob.status, func.count()).group_by(QueueJob.status),
            ).all()
        for status, count in rows:
            counts[status] = count
        return counts

    def _update_running(self, job_id: str, **values: Any) -> bool:
        with Session(self.engine) as session:
            result = session.exec(
                sa_update(QueueJob)
                .where(
                    col(QueueJob.job_id) == job_id,
                    col(QueueJob.status) == QueueStatus.RUNNING.value,
                )
                .values(**values),
            )
            if result.rowcount != 1:
                session.rollback()
                return False
            session.commit()
            return True


def _to_entry(row: QueueJob) -> QueueEntry:
    return QueueEntry(
        job_id=row.job_id,
        task_type=row.task_type,
        payload=json.loads(row.payload_json),
        status=QueueStatus(row.status),
        attempt=row.attempt,
        max_attempts=row.max_attempts,
        backoff_seconds=row.backoff_seconds,
        run_after=to_utc_aware(row.run_after),
        worker_id=row.worker_id,
        last_error=row.last_error,
        created_at=to_utc_aware(row.created_at),
        updated_at=to_utc_aware(row.updated_at),
    )
