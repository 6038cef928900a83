"""Runtime configuration for admission, workers, fetching and polling."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

SUPPORTED_AI_PROVIDERS: tuple[str, ...] = ("openai", "echo")


@dataclass(slots=True)
class AiSettings:
    """AI provider selection and request policy."""

    provider: str | None = None
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    request_timeout_seconds: float = 120.0


@dataclass(slots=True)
class QueueSettings:
    """Durable queue retry policy and worker pool sizing."""

    attempts: int = 3
    backoff_seconds: float = 5.0
    worker_concurrency: int = 3
    poll_interval_seconds: float = 1.0
    stale_after_seconds: int = 1_800


@dataclass(slots=True)
class LimitSettings:
    """Admission quotas and generated content caps."""

    max_pending_jobs: int = 10
    max_cover_letters_per_application: int = 20
    max_interview_preps_per_application: int = 10
    max_resume_gaps_per_application: int = 10
    max_job_description_chars: int = 50_000
    max_job_url_chars: int = 2_048
    max_cover_letter_chars: int = 50_000


@dataclass(slots=True)
class FetchSettings:
    """Outbound fetcher limits."""

    timeout_seconds: float = 10.0
    max_response_bytes: int = 1_000_000
    max_text_chars: int = 50_000
    user_agent: str = "Kariro/1.0 Job Analyzer"


@dataclass(slots=True)
class RateLimitSettings:
    """Admission endpoint rate limit."""

    window_seconds: float = 60.0
    max_requests: int = 5
    max_entries: int = 10_000


@dataclass(slots=True)
class PollingSettings:
    """Client-side polling of tracking records."""

    api_base_url: str = "http://127.0.0.1:4000"
    interval_seconds: float = 2.0
    max_attempts: int = 150


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    db_path: Path = Path(".kariro.db")
    sqlite_busy_timeout_ms: int = 5_000
    ai: AiSettings = field(default_factory=AiSettings)
    queue: QueueSettings = field(default_factory=QueueSettings)
    limits: LimitSettings = field(default_factory=LimitSettings)
    fetch: FetchSettings = field(default_factory=FetchSettings)
    rate_limit: RateLimitSettings = field(default_factory=RateLimitSettings)
    polling: PollingSettings = field(default_factory=PollingSettings)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        openai_api_key = os.getenv("OPENAI_API_KEY", "").strip()
        provider = os.getenv("KARIRO_AI_PROVIDER", "").strip().lower() or None
        if provider is None and openai_api_key:
            provider = "openai"

        return cls(
            db_path=db_path or Path(os.getenv("KARIRO_DB_PATH", ".kariro.db")),
            sqlite_busy_timeout_ms=int(os.getenv("KARIRO_SQLITE_BUSY_TIMEOUT_MS", "5000")),
            ai=AiSettings(
                provider=provider,
                openai_api_key=openai_api_key,
                openai_model=os.getenv("KARIRO_OPENAI_MODEL", "gpt-4o-mini"),
                request_timeout_seconds=float(os.getenv("KARIRO_AI_TIMEOUT_SECONDS", "120")),
            ),
            queue=QueueSettings(
                attempts=int(os.getenv("KARIRO_QUEUE_ATTEMPTS", "3")),
                backoff_seconds=float(os.getenv("KARIRO_QUEUE_BACKOFF_SECONDS", "5.0")),
                worker_concurrency=int(os.getenv("KARIRO_WORKER_CONCURRENCY", "3")),
                poll_interval_seconds=float(
                    os.getenv("KARIRO_WORKER_POLL_INTERVAL_SECONDS", "1.0"),
                ),
                stale_after_seconds=int(os.getenv("KARIRO_WORKER_STALE_SECONDS", "1800")),
            ),
            limits=LimitSettings(
                max_pending_jobs=int(os.getenv("KARIRO_MAX_PENDING_JOBS", "10")),
            ),
            fetch=FetchSettings(
                timeout_seconds=float(os.getenv("KARIRO_FETCH_TIMEOUT_SECONDS", "10.0")),
            ),
            rate_limit=RateLimitSettings(
                window_seconds=float(os.getenv("KARIRO_RATE_LIMIT_WINDOW_SECONDS", "60")),
                max_requests=int(os.getenv("KARIRO_RATE_LIMIT_MAX_REQUESTS", "5")),
            ),
            polling=PollingSettings(
                api_base_url=os.getenv("KARIRO_API_BASE_URL", "http://127.0.0.1:4000"),
                interval_seconds=float(os.getenv("KARIRO_POLL_INTERVAL_SECONDS", "2.0")),
                max_attempts=int(os.getenv("KARIRO_POLL_MAX_ATTEMPTS", "150")),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error for out-of-range values."""

        if self.ai.provider is not None and self.ai.provider not in SUPPORTED_AI_PROVIDERS:
            raise ValueError(
                f"Unsupported KARIRO_AI_PROVIDER: {self.ai.provider!r}. "
                f"Expected one of: {', '.join(SUPPORTED_AI_PROVIDERS)}.",
            )
        if self.ai.request_timeout_seconds <= 0:
            raise ValueError("KARIRO_AI_TIMEOUT_SECONDS must be > 0.")
        if self.queue.attempts < 1:
            raise ValueError("KARIRO_QUEUE_ATTEMPTS must be >= 1.")
        if self.queue.backoff_seconds < 0:
            raise ValueError("KARIRO_QUEUE_BACKOFF_SECONDS must be >= 0.")
        if self.queue.worker_concurrency < 1:
            raise ValueError("KARIRO_WORKER_CONCURRENCY must be >= 1.")
        if self.limits.max_pending_jobs < 1:
            raise ValueError("KARIRO_MAX_PENDING_JOBS must be >= 1.")
        if self.fetch.timeout_seconds <= 0:
            raise ValueError("KARIRO_FETCH_TIMEOUT_SECONDS must be > 0.")
        if self.rate_limit.window_seconds <= 0:
            raise ValueError("KARIRO_RATE_LIMIT_WINDOW_SECONDS must be > 0.")
        if self.rate_limit.max_requests < 1:
            raise ValueError("KARIRO_RATE_LIMIT_MAX_REQUESTS must be >= 1.")
        if self.polling.max_attempts < 1:
            raise ValueError("KARIRO_POLL_MAX_ATTEMPTS must be >= 1.")
        _validate_base_url(self.polling.api_base_url)


def _validate_base_url(value: str) -> None:
    parsed = urlparse(value)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(
            "Invalid KARIRO_API_BASE_URL: "
            f"{value!r}. Expected an absolute URL with http:// or https:// scheme.",
        )
