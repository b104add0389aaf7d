import logging
import os
from time import perf_counter

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import DATABASE_URL

logger = logging.getLogger(__name__)

# Pool settings for server databases (SQLite uses its default pool)
POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "20"))
MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "30"))
POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "30"))
POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "300"))
ENABLE_QUERY_LOGGING = os.getenv("DB_LOG_SLOW_QUERIES", "true").lower() == "true"
SLOW_QUERY_THRESHOLD = float(os.getenv("DB_SLOW_QUERY_THRESHOLD", "1.0"))


def _enable_sqlite_transactions(engine: Engine) -> None:
    """
    Let SQLAlchemy emit BEGIN itself instead of pysqlite.

    pysqlite defers BEGIN until the first DML statement, which breaks
    SAVEPOINT handling for begin_nested().
    """

    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, _connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")


def _enable_slow_query_logging(engine: Engine) -> None:
    @event.listens_for(engine, "before_cursor_execute")
    def start_timer(conn, *_args):
        conn.info.setdefault("caretasks_query_start", []).append(perf_counter())

    @event.listens_for(engine, "after_cursor_execute")
    def log_slow_query(conn, _cursor, statement, *_args):
        elapsed = perf_counter() - conn.info["caretasks_query_start"].pop()
        if elapsed > SLOW_QUERY_THRESHOLD:
            logger.warning(f"🐌 Slow query ({elapsed:.2f}s): {statement[:200]}")


def create_db_engine(url: str, **kwargs) -> Engine:
    """Create an engine with pool settings for server databases and sane SQLite transactions"""
    is_sqlite = url.startswith("sqlite")
    if not is_sqlite:
        kwargs.setdefault("pool_pre_ping", True)  # Test connections before using
        kwargs.setdefault("pool_recycle", POOL_RECYCLE)
        kwargs.setdefault("pool_size", POOL_SIZE)
        kwargs.setdefault("max_overflow", MAX_OVERFLOW)
        kwargs.setdefault("pool_timeout", POOL_TIMEOUT)

    engine = create_engine(url, echo=False, **kwargs)

    if is_sqlite:
        _enable_sqlite_transactions(engine)
    if ENABLE_QUERY_LOGGING:
        _enable_slow_query_logging(engine)
    return engine


try:
    engine = create_db_engine(DATABASE_URL)
    logger.info("✅ Database engine created successfully")
except Exception as e:
    logger.error(f"❌ Failed to create database engine: {e}")
    raise

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
