"""
Database engine, session factory and transaction helpers
"""
from datetime import datetime, timezone
from typing import Generator, Optional

import structlog
from sqlalchemy import DateTime, create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.types import TypeDecorator
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from order_fulfillment.config import settings

logger = structlog.get_logger(__name__)

Base = declarative_base()

# lock_not_available, query_canceled (statement timeout), deadlock_detected
LOCK_TIMEOUT_PGCODES = {"55P03", "57014", "40P01"}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC timestamps, also on backends that drop the offset"""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


def build_engine(database_url: str, lock_timeout: Optional[float] = None) -> Engine:
    """
    Create an engine for the given URL

    SQLite connections begin every transaction with BEGIN IMMEDIATE so that
    writers serialize on the database lock, wait at most ``lock_timeout``
    seconds for it, and enforce foreign keys.
    """
    timeout = settings.LOCK_TIMEOUT_SECONDS if lock_timeout is None else lock_timeout

    if not database_url.startswith("sqlite"):
        return create_engine(database_url, pool_pre_ping=True)

    engine = create_engine(
        database_url,
        connect_args={"check_same_thread": False, "timeout": timeout},
    )

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Take over transaction control from pysqlite
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False)


def get_db() -> Generator[Session, None, None]:
    """Yield a session per request and always close it"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def apply_lock_timeout(db: Session, seconds: Optional[float] = None) -> None:
    """
    Bound how long the current transaction may wait for row locks

    PostgreSQL only; SQLite gets the same bound from the connection's busy
    timeout.
    """
    if db.get_bind().dialect.name != "postgresql":
        return
    timeout_ms = int((settings.LOCK_TIMEOUT_SECONDS if seconds is None else seconds) * 1000)
    db.execute(text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))


def is_lock_timeout(exc: OperationalError) -> bool:
    """True when the error means a lock could not be acquired in time"""
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) in LOCK_TIMEOUT_PGCODES:
        return True
    return "database is locked" in str(orig)


@retry(
    stop=stop_after_attempt(settings.DB_CONNECT_RETRIES),
    wait=wait_exponential(multiplier=settings.DB_RETRY_DELAY, min=1, max=10),
    retry=retry_if_exception_type(OperationalError),
    reraise=True
)
def init_db(bind: Optional[Engine] = None) -> None:
    """Create tables, retrying while the database is still coming up"""
    # Register mappers on Base.metadata
    from order_fulfillment import models  # noqa: F401

    target = bind or engine
    logger.info("Creating database schema", url=target.url.render_as_string(hide_password=True))
    Base.metadata.create_all(bind=target)
