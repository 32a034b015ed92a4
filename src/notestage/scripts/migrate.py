"""Apply database migrations: ``python -m notestage.scripts.migrate [revision]``."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from alembic import command
from alembic.config import Config

from notestage.core.settings import settings

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[3]
MIGRATIONS_DIR = PROJECT_ROOT / "migrations"


def build_config(database_url: str | None = None) -> Config:
    """Return an Alembic config pointing at this project's migrations."""
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_DIR))
    config.set_main_option("sqlalchemy.url", database_url or settings.database_url)
    return config


def upgrade(revision: str = "head", database_url: str | None = None) -> None:
    logger.info("Upgrading database to %s", revision)
    command.upgrade(build_config(database_url), revision)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("revision", nargs="?", default="head")
    parser.add_argument("--database-url", default=None)
    args = parser.parse_args(argv)
    logging.basicConfig(level=settings.log_level.upper())
    upgrade(args.revision, args.database_url)


if __name__ == "__main__":
    main()
