"""Transaction helpers shared by every repository.

A repository call opens its own short session unless a transaction is already
active for the same connection in the current context, in which case it joins
it. Database exceptions are translated to store errors at the outermost
boundary.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Callable, Iterator, Optional, Tuple, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm import Session

from ..core.exceptions import (
    DuplicateKeyError,
    InvalidReferenceError,
    QueryTimeoutError,
    StorageUnavailableError,
    TransientContentionError,
    ValidationError,
)
from .connection import DatabaseConnection

logger = logging.getLogger(__name__)

T = TypeVar("T")

_active: ContextVar[Optional[Tuple[DatabaseConnection, Session]]] = ContextVar(
    "hr_record_store_active_session", default=None
)

# mysql: 1205 lock wait timeout, 1213 deadlock
_CONTENTION_ERRNOS = {1205, 1213}
# mysql: 3024 max_execution_time exceeded
_TIMEOUT_ERRNOS = {3024}


def active_session(conn_factory: DatabaseConnection) -> Optional[Session]:
    current = _active.get()
    if current is not None and current[0] is conn_factory:
        return current[1]
    return None


@contextmanager
def db_session(conn_factory: DatabaseConnection, *, join: bool = True) -> Iterator[Session]:
    joined = active_session(conn_factory) if join else None
    if joined is not None:
        yield joined
        return

    session = conn_factory.session()
    token = _active.set((conn_factory, session))
    try:
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
    except DBAPIError as exc:
        raise translate_db_error(exc) from exc
    finally:
        _active.reset(token)
        session.close()


def run_in_transaction(
    conn_factory: DatabaseConnection,
    work: Callable[[Session], T],
    *,
    attempts: Optional[int] = None,
    join: bool = True,
) -> T:
    """Run ``work`` in one transaction, retrying transient lock contention.

    Only contention is retried; duplicate keys and version conflicts propagate
    on the first attempt. Inside an already active transaction the work simply
    joins it and the outer caller owns the retry, unless ``join`` is False.
    """
    joined = active_session(conn_factory) if join else None
    if joined is not None:
        return work(joined)

    attempts = attempts or conn_factory.retry_attempts
    for attempt in range(1, attempts + 1):
        try:
            with db_session(conn_factory, join=join) as session:
                return work(session)
        except TransientContentionError:
            if attempt >= attempts:
                raise
            delay = conn_factory.retry_backoff * (2 ** (attempt - 1))
            logger.warning("write contention, retrying (attempt %s/%s) in %.3fs", attempt, attempts, delay)
            time.sleep(delay)
    raise AssertionError("unreachable")


@contextmanager
def read_session(conn_factory: DatabaseConnection, *, timeout: Optional[float] = None) -> Iterator[Session]:
    """Session for reporting reads, bounded by ``timeout`` seconds (0 disables)."""
    timeout = conn_factory.query_timeout if timeout is None else float(timeout)
    with db_session(conn_factory) as session:
        if timeout > 0:
            _set_timeout(conn_factory, session, timeout)
        try:
            yield session
        finally:
            if timeout > 0:
                _clear_timeout(conn_factory, session)


def _set_timeout(conn_factory: DatabaseConnection, session: Session, timeout: float) -> None:
    dialect = conn_factory.dialect_name
    if dialect == "mysql":
        session.execute(text("SET SESSION MAX_EXECUTION_TIME = :ms"), {"ms": int(timeout * 1000)})
    elif dialect == "sqlite":
        deadline = time.monotonic() + timeout
        raw = session.connection().connection.driver_connection
        # A non-zero return from the handler interrupts the running statement.
        raw.set_progress_handler(lambda: int(time.monotonic() > deadline), 1000)


def _clear_timeout(conn_factory: DatabaseConnection, session: Session) -> None:
    dialect = conn_factory.dialect_name
    if dialect == "mysql":
        session.execute(text("SET SESSION MAX_EXECUTION_TIME = 0"))
    elif dialect == "sqlite":
        session.connection().connection.driver_connection.set_progress_handler(None, 0)


def translate_db_error(exc: DBAPIError) -> Exception:
    message = str(getattr(exc, "orig", exc))
    lowered = message.lower()
    errno = getattr(getattr(exc, "orig", None), "errno", None)

    if isinstance(exc, IntegrityError):
        if "foreign key" in lowered:
            return InvalidReferenceError(f"Referenced record does not exist: {message}")
        if "unique" in lowered or "duplicate" in lowered:
            return DuplicateKeyError(f"Duplicate key: {message}", constraint=_constraint_name(message))
        if "not null" in lowered or "cannot be null" in lowered:
            return ValidationError(f"Missing required value: {message}")
        return ValidationError(message)

    if isinstance(exc, OperationalError):
        if errno in _CONTENTION_ERRNOS or "database is locked" in lowered or "deadlock" in lowered:
            return TransientContentionError(message)
        if errno in _TIMEOUT_ERRNOS or "interrupted" in lowered:
            return QueryTimeoutError(message)
        return StorageUnavailableError(message)

    if isinstance(exc, InterfaceError) or exc.connection_invalidated:
        return StorageUnavailableError(message)

    return StorageUnavailableError(message)


def _constraint_name(message: str) -> Optional[str]:
    # sqlite: "UNIQUE constraint failed: employees.email"
    if "constraint failed:" in message:
        return message.split("constraint failed:", 1)[1].strip()
    # mysql: "Duplicate entry 'x' for key 'employees.uq_employees_email'"
    if "for key" in message:
        return message.rsplit("for key", 1)[1].strip(" '")
    return None
