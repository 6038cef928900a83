"""Process-wide wiring of engine, repositories and queue."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.engine import Engine

from kariro.config import Settings
from kariro.domain.repository import DomainRepository
from kariro.jobs.queue import DurableQueue
from kariro.jobs.repository import AnalysisJobRepository
from kariro.storage.alembic_runner import upgrade_head
from kariro.storage.common import build_sqlite_engine


@dataclass(slots=True)
class JobRuntime:
    """Storage collaborators shared by admission and workers in one process."""

    settings: Settings
    engine: Engine
    domain: DomainRepository
    jobs: AnalysisJobRepository
    queue: DurableQueue

    def close(self) -> None:
        self.engine.dispose()


def open_runtime(settings: Settings, *, migrate: bool = True) -> JobRuntime:
    """Build runtime for ``settings.db_path``, applying migrations first by default."""

    if migrate:
        upgrade_head(settings.db_path)
    engine = build_sqlite_engine(
        db_path=settings.db_path,
        busy_timeout_ms=settings.sqlite_busy_timeout_ms,
    )
    return JobRuntime(
        settings=settings,
        engine=engine,
        domain=DomainRepository(engine),
        jobs=AnalysisJobRepository(engine),
        queue=DurableQueue(engine),
    )
