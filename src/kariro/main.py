"""CLI entrypoint for kariro."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import TextIO

import rich_click as click

from kariro import __version__
from kariro.controllers import (
    AnalyzeJobCommand,
    ApplicationCreateCommand,
    ApplicationJobCommand,
    CliCommandError,
    CommandOutput,
    DbInitCommand,
    FetchCommand,
    JobPollCommand,
    JobStatusCommand,
    KariroCliController,
    ProfileSetCommand,
    QueueStatsCommand,
    WorkerRunCommand,
)
from kariro.jobs.models import CoverLetterTone, JobType

click.rich_click.USE_MARKDOWN = True
CONTROLLER = KariroCliController()
DEFAULT_USER_ID = "local-user"

db_path_option = click.option(
    "--db-path",
    type=click.Path(path_type=Path),
    default=None,
    help="SQLite DB path (defaults to KARIRO_DB_PATH or .kariro.db).",
)
user_id_option = click.option(
    "--user-id",
    envvar="KARIRO_USER_ID",
    default=DEFAULT_USER_ID,
    show_default=True,
    help="Caller identity used for ownership and quotas.",
)
application_id_option = click.option(
    "--application-id",
    required=True,
    help="Application the generated artifact belongs to.",
)


@click.group()
@click.version_option(version=__version__, prog_name="kariro")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging level for diagnostic output on stderr.",
)
def kariro(log_level: str) -> None:
    """Job application AI assistant: admission, queue, workers and polling."""

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@kariro.group()
def db() -> None:
    """Database commands."""


@db.command("init")
@db_path_option
def db_init(db_path: Path | None) -> None:
    """Create or upgrade the database schema."""

    _run(lambda: CONTROLLER.init_db(DbInitCommand(db_path=db_path)))


@kariro.group()
def applications() -> None:
    """Job application commands."""


@applications.command("create")
@db_path_option
@user_id_option
@click.option("--company", "company_name", required=True, help="Company name.")
@click.option("--role", "role_title", required=True, help="Role title.")
@click.option("--url", "job_url", default=None, help="Job posting URL.")
@click.option(
    "--description-file",
    type=click.File("r", encoding="utf-8"),
    default=None,
    help="File with the job description text.",
)
@click.option("--location", default=None, help="Job location.")
@click.option(
    "--work-mode",
    type=click.Choice(["remote", "hybrid", "onsite"]),
    default=None,
    help="Work arrangement.",
)
def applications_create(  # noqa: PLR0913
    db_path: Path | None,
    user_id: str,
    company_name: str,
    role_title: str,
    job_url: str | None,
    description_file: TextIO | None,
    location: str | None,
    work_mode: str | None,
) -> None:
    """Create a job application for the caller."""

    job_description = description_file.read() if description_file is not None else None
    _run(
        lambda: CONTROLLER.create_application(
            ApplicationCreateCommand(
                db_path=db_path,
                user_id=user_id,
                company_name=company_name,
                role_title=role_title,
                job_url=job_url,
                job_description=job_description,
                location=location,
                work_mode=work_mode,
            ),
        ),
    )


@kariro.group()
def profile() -> None:
    """Candidate profile commands."""


@profile.command("set")
@db_path_option
@user_id_option
@click.option(
    "--resume-file",
    type=click.File("r", encoding="utf-8"),
    default=None,
    help="File with resume text.",
)
@click.option("--skill", "skills", multiple=True, help="Skill. Can be repeated.")
@click.option("--role", "preferred_roles", multiple=True, help="Preferred role. Can be repeated.")
@click.option(
    "--location",
    "preferred_locations",
    multiple=True,
    help="Preferred location. Can be repeated.",
)
@click.option("--salary-min", type=click.IntRange(min=0), default=None)
@click.option("--salary-max", type=click.IntRange(min=0), default=None)
def profile_set(  # noqa: PLR0913
    db_path: Path | None,
    user_id: str,
    resume_file: TextIO | None,
    skills: tuple[str, ...],
    preferred_roles: tuple[str, ...],
    preferred_locations: tuple[str, ...],
    salary_min: int | None,
    salary_max: int | None,
) -> None:
    """Replace the caller's candidate profile."""

    resume_text = resume_file.read() if resume_file is not None else None
    _run(
        lambda: CONTROLLER.set_profile(
            ProfileSetCommand(
                db_path=db_path,
                user_id=user_id,
                resume_text=resume_text,
                skills=skills,
                preferred_roles=preferred_roles,
                preferred_locations=preferred_locations,
                salary_expectation_min=salary_min,
                salary_expectation_max=salary_max,
            ),
        ),
    )


@kariro.group()
def jobs() -> None:
    """AI job submission and tracking."""


@jobs.command("analyze")
@db_path_option
@user_id_option
@click.option("--description", default=None, help="Job description text.")
@click.option("--url", default=None, help="Job posting URL to fetch.")
@click.option("--application-id", default=None, help="Existing application to attach to.")
@click.option(
    "--auto-create/--no-auto-create",
    default=False,
    show_default=True,
    help="Create an application from the analysis result.",
)
def jobs_analyze(  # noqa: PLR0913
    db_path: Path | None,
    user_id: str,
    description: str | None,
    url: str | None,
    application_id: str | None,
    auto_create: bool,
) -> None:
    """Submit a job posting analysis."""

    _run(
        lambda: CONTROLLER.analyze_job(
            AnalyzeJobCommand(
                db_path=db_path,
                user_id=user_id,
                job_description=description,
                job_url=url,
                application_id=application_id,
                auto_create_application=auto_create,
            ),
        ),
    )


@jobs.command("cover-letter")
@db_path_option
@user_id_option
@application_id_option
@click.option(
    "--tone",
    type=click.Choice([tone.value for tone in CoverLetterTone]),
    default=CoverLetterTone.FORMAL.value,
    show_default=True,
    help="Cover letter tone.",
)
def jobs_cover_letter(
    db_path: Path | None,
    user_id: str,
    application_id: str,
    tone: str,
) -> None:
    """Submit cover letter generation for an application."""

    _run(
        lambda: CONTROLLER.submit_application_job(
            ApplicationJobCommand(
                db_path=db_path,
                user_id=user_id,
                job_type=JobType.COVER_LETTER,
                application_id=application_id,
                tone=CoverLetterTone(tone),
            ),
        ),
    )


@jobs.command("interview-prep")
@db_path_option
@user_id_option
@application_id_option
def jobs_interview_prep(db_path: Path | None, user_id: str, application_id: str) -> None:
    """Submit interview preparation for an application."""

    _run(
        lambda: CONTROLLER.submit_application_job(
            ApplicationJobCommand(
                db_path=db_path,
                user_id=user_id,
                job_type=JobType.INTERVIEW_PREP,
                application_id=application_id,
            ),
        ),
    )


@jobs.command("resume-gap")
@db_path_option
@user_id_option
@application_id_option
def jobs_resume_gap(db_path: Path | None, user_id: str, application_id: str) -> None:
    """Submit resume gap analysis for an application."""

    _run(
        lambda: CONTROLLER.submit_application_job(
            ApplicationJobCommand(
                db_path=db_path,
                user_id=user_id,
                job_type=JobType.RESUME_GAP,
                application_id=application_id,
            ),
        ),
    )


@jobs.command("status")
@db_path_option
@user_id_option
@click.argument("job_id")
def jobs_status(db_path: Path | None, user_id: str, job_id: str) -> None:
    """Show the public view of one tracking record."""

    _run(
        lambda: CONTROLLER.job_status(
            JobStatusCommand(db_path=db_path, user_id=user_id, job_id=job_id),
        ),
    )


@jobs.command("poll")
@db_path_option
@user_id_option
@click.argument("job_id")
@click.option(
    "--remote/--local",
    default=False,
    show_default=True,
    help="Poll the HTTP API at KARIRO_API_BASE_URL instead of the local database.",
)
@click.option("--token", envvar="KARIRO_API_TOKEN", default=None, help="Bearer token for --remote.")
@click.option(
    "--interval",
    type=click.FloatRange(min=0),
    default=None,
    help="Seconds between polls.",
)
@click.option("--max-attempts", type=click.IntRange(min=1), default=None, help="Poll budget.")
def jobs_poll(  # noqa: PLR0913
    db_path: Path | None,
    user_id: str,
    job_id: str,
    remote: bool,
    token: str | None,
    interval: float | None,
    max_attempts: int | None,
) -> None:
    """Poll a job until it completes or fails."""

    _run(
        lambda: CONTROLLER.poll_job(
            JobPollCommand(
                db_path=db_path,
                user_id=user_id,
                job_id=job_id,
                remote=remote,
                token=token,
                interval_seconds=interval,
                max_attempts=max_attempts,
            ),
        ),
    )


@kariro.group()
def worker() -> None:
    """Queue worker commands."""


@worker.command("run")
@db_path_option
@click.option("--once", is_flag=True, default=False, help="Process at most one queue entry.")
@click.option(
    "--concurrency",
    type=click.IntRange(min=1),
    default=None,
    help="Number of workers (defaults to KARIRO_WORKER_CONCURRENCY).",
)
@click.option("--max-tasks", type=click.IntRange(min=1), default=None, help="Stop after N tasks.")
@click.option(
    "--max-idle-polls",
    type=click.IntRange(min=1),
    default=None,
    help="Exit after N consecutive empty polls per worker (default: run until stopped).",
)
def worker_run(
    db_path: Path | None,
    once: bool,
    concurrency: int | None,
    max_tasks: int | None,
    max_idle_polls: int | None,
) -> None:
    """Run AI job workers."""

    _run(
        lambda: CONTROLLER.run_worker(
            WorkerRunCommand(
                db_path=db_path,
                once=once,
                concurrency=concurrency,
                max_tasks=max_tasks,
                max_idle_polls=max_idle_polls,
            ),
        ),
    )


@kariro.group()
def queue() -> None:
    """Durable queue commands."""


@queue.command("stats")
@db_path_option
def queue_stats(db_path: Path | None) -> None:
    """Show queue entry counts by status."""

    _run(lambda: CONTROLLER.queue_stats(QueueStatsCommand(db_path=db_path)))


@kariro.command("fetch")
@db_path_option
@click.argument("url")
@click.option(
    "--preview-chars",
    type=click.IntRange(min=0),
    default=500,
    show_default=True,
    help="How much extracted text to print.",
)
def fetch(db_path: Path | None, url: str, preview_chars: int) -> None:
    """Fetch a URL through the outbound fetcher and print extracted text."""

    _run(
        lambda: CONTROLLER.fetch(
            FetchCommand(db_path=db_path, url=url, preview_chars=preview_chars),
        ),
    )


def _run(action: Callable[[], list[str] | CommandOutput]) -> None:
    try:
        output = action()
    except CliCommandError as error:
        raise click.ClickException(str(error)) from error

    if isinstance(output, CommandOutput):
        _emit_lines(output.lines)
        if not output.success:
            click.get_current_context().exit(1)
        return
    _emit_lines(output)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    kariro()
