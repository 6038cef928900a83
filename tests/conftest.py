"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from kariro.config import AiSettings, QueueSettings, Settings
from kariro.domain.models import ApplicationCreate, ApplicationView
from kariro.jobs.runtime import JobRuntime, open_runtime


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """Echo provider, no backoff and a fast worker poll, on a per-test database."""

    return Settings(
        db_path=tmp_path / "kariro.db",
        ai=AiSettings(provider="echo"),
        queue=QueueSettings(
            attempts=3,
            backoff_seconds=0.0,
            worker_concurrency=1,
            poll_interval_seconds=0.01,
        ),
    )


@pytest.fixture()
def runtime(settings: Settings) -> Iterator[JobRuntime]:
    runtime = open_runtime(settings)
    yield runtime
    runtime.close()


@pytest.fixture()
def application(runtime: JobRuntime) -> ApplicationView:
    """Application owned by ``user-1`` with a short posting text."""

    return runtime.domain.create_application(
        user_id="user-1",
        payload=ApplicationCreate(
            company_name="Acme",
            role_title="Senior Engineer",
            job_description="Senior engineer, Go, 5 years",
            salary_min=150_000,
        ),
    )
