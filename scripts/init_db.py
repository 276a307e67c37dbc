from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config
from sqlalchemy import func, inspect, select

from giway.config import setup_logging
from giway.db.engine import make_engine
from giway.models import Base

PROJECT_ROOT = Path(__file__).resolve().parents[1]

logger = logging.getLogger("giway.scripts.init_db")


def alembic_config(database_url: Optional[str] = None) -> Config:
    cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    if database_url:
        # Forwarded to alembic/env.py as ``-x db_url=...``.
        cfg.cmd_opts = argparse.Namespace(x=[f"db_url={database_url}"])
    return cfg


def report_schema(database_url: Optional[str] = None) -> None:
    """Log every giway table of the database with its row count."""

    engine = make_engine(database_url)
    try:
        present = set(inspect(engine).get_table_names())
        with engine.connect() as conn:
            for name, table in sorted(Base.metadata.tables.items()):
                if name not in present:
                    logger.warning("Table %s is missing", name)
                    continue
                rows = conn.scalar(select(func.count()).select_from(table))
                logger.info("Table %s: %d row(s)", name, rows)
    finally:
        engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Upgrade the giway database schema.")
    parser.add_argument(
        "revision", nargs="?", default="head", help="target revision (default: head)"
    )
    parser.add_argument("--db-url", help="database URL (default: DB_URL or ./dev.db)")
    args = parser.parse_args()

    setup_logging()
    logger.info("Upgrading database to %s", args.revision)
    command.upgrade(alembic_config(args.db_url), args.revision)
    report_schema(args.db_url)


if __name__ == "__main__":
    main()
