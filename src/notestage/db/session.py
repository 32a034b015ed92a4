"""Database session configuration."""

from __future__ import annotations

from collections.abc import Generator

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from notestage.core.settings import settings


class Base(DeclarativeBase):
    """Declarative base shared by all ORM models."""


# Ensure model modules are imported so that metadata is populated when create_all runs.
import notestage.models  # noqa: E402,F401


def configure_sqlite(engine: Engine) -> Engine:
    """Let SQLAlchemy own transaction boundaries on pysqlite.

    pysqlite defers BEGIN until the first DML statement, which makes
    SAVEPOINTs issued before it release straight into a commit.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn) -> None:
        conn.exec_driver_sql("BEGIN")

    return engine


def build_engine(url: str, *, echo: bool = False, **kwargs) -> Engine:
    """Create an engine for ``url``, applying the SQLite fixes when needed."""
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        return configure_sqlite(create_engine(url, echo=echo, **kwargs))
    return create_engine(url, pool_pre_ping=True, echo=echo, **kwargs)


engine = build_engine(settings.database_url, echo=settings.sql_debug)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
    bind=engine,
)


def get_db() -> Generator[Session, None, None]:
    """Yield a database session for dependency injection."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
