import time
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, TypeVar

from fastapi import Request
from loguru import logger
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlmodel import Session, create_engine

from app.core.config import settings
from app.core.errors import StorageUnavailable


T = TypeVar("T")


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Request handlers run on a thread pool; SQLite waits on the write lock
        connect_args = {"check_same_thread": False, "timeout": 30}
    return create_engine(database_url, echo=echo, connect_args=connect_args)


def get_session(request: Request):
    with Session(request.app.state.ledger.engine) as session:
        yield session


@contextmanager
def storage_errors(session: Optional[Session] = None) -> Iterator[None]:
    """
    Maps driver-level failures (lost connection, locked database) to
    StorageUnavailable. A long-lived ``session`` is rolled back first so the
    retried call starts from a clean transaction.
    """
    try:
        yield
    except OperationalError as e:
        if session is not None:
            session.rollback()
        logger.warning(f"Storage error: {e}")
        raise StorageUnavailable(
            "Storage is temporarily unavailable.") from e


def run_with_storage_retry(
    operation: Callable[[], T],
    attempts: Optional[int] = None,
    backoff_seconds: Optional[float] = None,
) -> T:
    """
    Runs a ledger call, retrying it when storage reports a transient failure.
    Domain errors propagate on the first raise. The operation must redo its
    own reads, so pass the whole check-then-append call, not the append alone.

    ``attempts`` counts the first call; anything below 1 means a single try.
    """
    if attempts is None:
        attempts = settings.storage_retry_attempts
    attempts = max(1, attempts)
    if backoff_seconds is None:
        backoff_seconds = settings.storage_retry_backoff_seconds

    attempt = 1
    while True:
        try:
            return operation()
        except StorageUnavailable:
            if attempt >= attempts:
                logger.error(
                    f"Storage still unavailable after {attempts} attempts, giving up.")
                raise
            logger.warning(
                f"Transient storage failure (attempt {attempt}/{attempts}), retrying.")
            time.sleep(backoff_seconds * attempt)
            attempt += 1
