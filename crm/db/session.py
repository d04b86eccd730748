from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from crm.core.config import settings


def create_db_engine(database_url: str) -> Engine:
    """
    Build an engine for the given URL.

    SQLite (local dev and tests) gets foreign keys switched on and explicit
    BEGIN handling so SAVEPOINTs behave like they do on PostgreSQL.
    """
    url = make_url(database_url)
    backend = url.get_backend_name()

    if backend.startswith("postgresql"):
        return create_engine(
            database_url,
            pool_pre_ping=True,
            connect_args={"options": "-c timezone=utc"},
        )

    if backend != "sqlite":
        return create_engine(database_url, pool_pre_ping=True)

    kwargs = {"connect_args": {"check_same_thread": False}}
    if url.database in (None, "", ":memory:"):
        kwargs["poolclass"] = StaticPool
    engine = create_engine(database_url, **kwargs)

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


engine = create_db_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
