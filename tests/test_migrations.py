from __future__ import annotations

from pathlib import Path

import allure
import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect, text

from kariro.storage.alembic_runner import MIGRATIONS_DIR, head_revision, upgrade_head

pytestmark = [
    allure.epic("Storage"),
    allure.feature("Migrations"),
]


def test_upgrade_head_creates_schema_and_is_repeatable(tmp_path: Path) -> None:
    db_path = tmp_path / "kariro.db"

    upgrade_head(db_path)
    upgrade_head(db_path)

    engine = create_engine(f"sqlite:///{db_path}")
    try:
        tables = set(inspect(engine).get_table_names())
        with engine.connect() as connection:
            version = connection.execute(text("SELECT version_num FROM alembic_version")).scalar()
    finally:
        engine.dispose()

    assert {
        "job_applications",
        "user_profiles",
        "cover_letters",
        "interview_preps",
        "resume_gap_analyses",
        "ai_analyses",
        "queue_jobs",
    } <= tables
    assert version == "20261019_0001"
    assert head_revision() == version


def test_upgrade_head_creates_missing_parent_directory(tmp_path: Path) -> None:
    db_path = tmp_path / "nested" / "data" / "kariro.db"

    upgrade_head(db_path)

    assert db_path.exists()


def test_migration_env_falls_back_to_configured_database_path(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    db_path = tmp_path / "from-env.db"
    monkeypatch.setenv("KARIRO_DB_PATH", str(db_path))
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_DIR))

    command.upgrade(config, "head")

    engine = create_engine(f"sqlite:///{db_path}")
    try:
        assert "queue_jobs" in inspect(engine).get_table_names()
    finally:
        engine.dispose()
