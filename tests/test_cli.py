from __future__ import annotations

import json
import re
from pathlib import Path

import allure
import pytest
from click.testing import CliRunner

from kariro import __version__
from kariro.main import kariro

pytestmark = [
    allure.epic("CLI"),
    allure.feature("Submit, Work, Poll"),
]


@pytest.fixture()
def cli_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in ("OPENAI_API_KEY", "KARIRO_DB_PATH", "KARIRO_USER_ID", "KARIRO_API_TOKEN"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("KARIRO_AI_PROVIDER", "echo")
    return monkeypatch


def _invoke(runner: CliRunner, *args: str):  # noqa: ANN202
    return runner.invoke(kariro, list(args))


def _job_id(output: str) -> str:
    match = re.search(r"job_id=([a-f0-9-]+)", output)
    assert match is not None, output
    return match.group(1)


def test_cli_analyze_work_and_poll(tmp_path: Path, cli_env: pytest.MonkeyPatch) -> None:
    db_path = str(tmp_path / "cli.db")
    runner = CliRunner()

    init = _invoke(runner, "db", "init", "--db-path", db_path)
    assert init.exit_code == 0
    assert "Database ready" in init.output

    submit = _invoke(
        runner,
        "jobs",
        "analyze",
        "--db-path",
        db_path,
        "--description",
        "Senior engineer, Go, 5 years",
    )
    assert submit.exit_code == 0, submit.output
    assert "type=analyze-job status=processing" in submit.output
    job_id = _job_id(submit.output)

    stats_before = _invoke(runner, "queue", "stats", "--db-path", db_path)
    assert "waiting=1" in stats_before.output

    worker = _invoke(runner, "worker", "run", "--db-path", db_path, "--once")
    assert worker.exit_code == 0, worker.output
    assert "processed=1" in worker.output
    assert "succeeded=1" in worker.output

    status = _invoke(runner, "jobs", "status", "--db-path", db_path, job_id)
    assert status.exit_code == 0
    view = json.loads(status.output)
    assert view["status"] == "completed"
    assert view["result"]["roleTitle"] == "Senior engineer"
    assert "input" not in view

    poll = _invoke(runner, "jobs", "poll", "--db-path", db_path, "--interval", "0", job_id)
    assert poll.exit_code == 0, poll.output
    assert f"Job {job_id}: completed after 1 polls" in poll.output
    assert '"fitScore": 50' in poll.output

    stats_after = _invoke(runner, "queue", "stats", "--db-path", db_path)
    assert "completed=1" in stats_after.output


def test_cli_application_jobs_use_profile(tmp_path: Path, cli_env: pytest.MonkeyPatch) -> None:
    db_path = str(tmp_path / "cli.db")
    description_file = tmp_path / "posting.txt"
    description_file.write_text("Backend engineer, Python, SQL", encoding="utf-8")
    runner = CliRunner()

    profile = _invoke(
        runner,
        "profile",
        "set",
        "--db-path",
        db_path,
        "--skill",
        "Python",
        "--skill",
        "SQL",
        "--salary-min",
        "100000",
    )
    assert profile.exit_code == 0, profile.output
    assert "skills=2" in profile.output

    created = _invoke(
        runner,
        "applications",
        "create",
        "--db-path",
        db_path,
        "--company",
        "Acme",
        "--role",
        "Backend Engineer",
        "--description-file",
        str(description_file),
    )
    assert created.exit_code == 0, created.output
    match = re.search(r"application_id=(\S+)", created.output)
    assert match is not None
    application_id = match.group(1)

    letter = _invoke(
        runner,
        "jobs",
        "cover-letter",
        "--db-path",
        db_path,
        "--application-id",
        application_id,
        "--tone",
        "confident",
    )
    assert letter.exit_code == 0, letter.output
    job_id = _job_id(letter.output)

    worker = _invoke(runner, "worker", "run", "--db-path", db_path, "--max-idle-polls", "1")
    assert "succeeded=1" in worker.output

    status = _invoke(runner, "jobs", "status", "--db-path", db_path, job_id)
    view = json.loads(status.output)
    assert view["result"]["tone"] == "confident"
    assert view["result"]["content"].startswith("Dear Hiring Manager,")


def test_cli_unknown_application_exits_with_error(
    tmp_path: Path,
    cli_env: pytest.MonkeyPatch,
) -> None:
    db_path = str(tmp_path / "cli.db")

    result = _invoke(
        CliRunner(),
        "jobs",
        "interview-prep",
        "--db-path",
        db_path,
        "--application-id",
        "missing",
    )

    assert result.exit_code == 1
    assert "Error [NOT_FOUND]" in result.output


def test_cli_poll_unknown_job_fails(tmp_path: Path, cli_env: pytest.MonkeyPatch) -> None:
    db_path = str(tmp_path / "cli.db")

    result = _invoke(CliRunner(), "jobs", "poll", "--db-path", db_path, "no-such-job")

    assert result.exit_code == 1
    assert "Job no-such-job: failed after 1 polls" in result.output
    assert "Analysis job not found" in result.output


def test_cli_worker_requires_provider(tmp_path: Path, cli_env: pytest.MonkeyPatch) -> None:
    cli_env.delenv("KARIRO_AI_PROVIDER")

    result = _invoke(CliRunner(), "worker", "run", "--db-path", str(tmp_path / "cli.db"), "--once")

    assert result.exit_code == 1
    assert "No AI provider configured" in result.output


def test_cli_rejects_invalid_configuration(tmp_path: Path, cli_env: pytest.MonkeyPatch) -> None:
    cli_env.setenv("KARIRO_AI_PROVIDER", "unknown")

    result = _invoke(CliRunner(), "queue", "stats", "--db-path", str(tmp_path / "cli.db"))

    assert result.exit_code == 1
    assert "Unsupported KARIRO_AI_PROVIDER" in result.output


def test_cli_version() -> None:
    result = _invoke(CliRunner(), "--version")

    assert result.exit_code == 0
    assert __version__ in result.output
