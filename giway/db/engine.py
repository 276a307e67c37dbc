from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

import os
from pathlib import Path
from dotenv import load_dotenv
from .utils import resolve_sqlite_url

# Get DB url
load_dotenv()
# Project root directory (repo root)
ROOT_DIR = Path(__file__).resolve().parents[2]
DEFAULT_SQLITE_URL = resolve_sqlite_url(
    os.getenv("DB_URL", "sqlite:///./dev.db"), ROOT_DIR
)


from typing import Optional


def _install_sqlite_hooks(engine: Engine) -> None:
    """Make SQLite transactions behave like a row-locking database.

    pysqlite defers BEGIN until the first DML statement and breaks SAVEPOINT
    handling, so its own transaction management is switched off and every
    transaction opens with ``BEGIN IMMEDIATE``. Writers are then serialized
    on the database lock for the whole transaction, which lets guarded
    updates and read-then-write sequences run without upgrade deadlocks.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def make_engine(
    database_url: Optional[str] = None,
    echo: bool = False,
    busy_timeout: float = 30.0,
) -> Engine:
    url = database_url or DEFAULT_SQLITE_URL
    connect_args = {}
    if url.startswith("sqlite"):
        # seconds a writer waits for the database lock before giving up
        connect_args["timeout"] = busy_timeout
    engine = create_engine(
        url,
        echo=echo,
        future=True,
        connect_args=connect_args,
    )
    if url.startswith("sqlite"):
        _install_sqlite_hooks(engine)

    return engine


def get_sessionmaker(engine):
    return sessionmaker(
        bind=engine,
        expire_on_commit=False,  # Keep objects accessible after commit for dev convenience
        future=True,
    )
