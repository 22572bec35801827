from __future__ import annotations

from contextlib import contextmanager
from typing import Generator, Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, DisconnectionError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker

from .config import settings
from .errors import InfrastructureError
from .logging_config import get_logger

logger = get_logger(__name__)

RETRYABLE_ERRORS = (OperationalError, DisconnectionError, PoolTimeoutError)


def build_engine(url: str, timeout: float = settings.store_timeout_seconds) -> Engine:
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": timeout},
            future=True,
        )
    return create_engine(url, pool_pre_ping=True, pool_timeout=timeout, future=True)


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:  # type: ignore[no-untyped-def]
    module = type(dbapi_connection).__module__
    if not module.startswith("sqlite3"):
        return
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


engine = build_engine(settings.resolved_database_url)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def db_session() -> Generator:
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """Run one mutation atomically: commit on success, roll back on any error.

    Store failures are re-raised as :class:`InfrastructureError` so callers can
    tell them apart from validation and workflow rejections.
    """
    try:
        yield db
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        retryable = isinstance(exc, RETRYABLE_ERRORS) or (
            isinstance(exc, DBAPIError) and exc.connection_invalidated
        )
        logger.error("store.failure", error=str(exc), retryable=retryable, exc_info=True)
        raise InfrastructureError("Entry store is unavailable", retryable=retryable) from exc
    except Exception:
        db.rollback()
        raise
