"""Programmatic Alembic upgrade for the packaged migrations."""

from __future__ import annotations

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.script import ScriptDirectory

from kariro.storage.common import sqlite_url

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"


def _alembic_config(db_path: Path) -> Config:
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_DIR))
    config.set_main_option("sqlalchemy.url", sqlite_url(db_path))
    return config


def head_revision() -> str | None:
    """Newest revision shipped with the package."""

    return ScriptDirectory(str(MIGRATIONS_DIR)).get_current_head()


def upgrade_head(db_path: Path) -> None:
    """Bring the database at ``db_path`` to the newest schema; safe to repeat."""

    command.upgrade(_alembic_config(db_path), "head")
    logger.debug("Schema for %s is at revision %s", db_path, head_revision())
