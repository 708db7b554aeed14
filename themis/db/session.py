"""Database engine and session factory."""

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from themis.core.config import get_settings
from themis.db.base import Base

settings = get_settings()


def enable_sqlite_savepoints(engine) -> None:
    """
    Let SQLAlchemy emit BEGIN on SQLite connections.

    pysqlite otherwise opens transactions lazily, and a SAVEPOINT issued
    first becomes the outer transaction.
    """
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}

engine = create_engine(settings.database_url, connect_args=connect_args)
if settings.database_url.startswith("sqlite"):
    enable_sqlite_savepoints(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind=None) -> None:
    """Create all tables on the given engine (defaults to the app engine)."""
    # Register models on the metadata
    import themis.db.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
