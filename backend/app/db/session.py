from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from app.core.config import get_settings

settings = get_settings()


def enable_sqlite_transactions(target: Engine) -> Engine:
    """Let SQLAlchemy own transaction boundaries on pysqlite.

    The driver otherwise defers BEGIN until the first DML statement, which breaks
    SAVEPOINT semantics. BEGIN IMMEDIATE takes the write lock up front so
    concurrent writers queue on the busy timeout instead of deadlocking.
    """

    @event.listens_for(target, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(target, "begin")
    def _begin_immediate(connection):
        connection.exec_driver_sql("BEGIN IMMEDIATE")

    return target


engine = create_engine(settings.database_url, pool_pre_ping=True)
if engine.dialect.name == "sqlite":
    enable_sqlite_transactions(engine)

# Workflow results are returned after commit; keep their attribute values readable
# without a second round trip.
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
