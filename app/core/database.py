import time
from collections.abc import Callable, Generator, Iterator
from contextlib import contextmanager
from typing import Any, TypeVar

from sqlalchemy import Engine, create_engine, event, text
from sqlalchemy import exc as sa_exc
from sqlalchemy.engine import make_url
from sqlalchemy.orm import DeclarativeBase, MappedAsDataclass, Session, sessionmaker

from app.core.config import get_settings
from app.core.errors import (
    ConflictError,
    StoreError,
    StoreTimeoutError,
    UnclassifiedStoreError,
)

T = TypeVar("T")

settings = get_settings()

CONNECTION_URL = settings.database_url
QUERY_TIMEOUT_SECONDS = settings.query_timeout_seconds

_PG_UNIQUE_VIOLATION = "23505"
_PG_QUERY_CANCELED = "57014"
_PG_LOCK_NOT_AVAILABLE = "55P03"
_SQLITE_TIMEOUT_MARKERS = ("interrupted", "database is locked", "database is busy")
_DEADLINE_KEY = "statement_deadline"
_TX_ACTIVE_KEY = "run_in_transaction_active"


def _install_sqlite_deadline(engine: Engine, timeout_seconds: float) -> None:
    """
    Interrupt any SQLite statement that runs past ``timeout_seconds``.

    pysqlite steps most of a query while its rows are fetched, so the deadline
    set when a statement starts stays armed until the next statement replaces
    it or the transaction ends.
    """

    @event.listens_for(engine, "connect")
    def _set_progress_handler(dbapi_connection, connection_record):
        info = connection_record.info

        def _past_deadline() -> int:
            deadline = info.get(_DEADLINE_KEY)
            return int(deadline is not None and time.monotonic() > deadline)

        dbapi_connection.set_progress_handler(_past_deadline, 1000)
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    @event.listens_for(engine, "before_cursor_execute")
    def _arm_deadline(conn, cursor, statement, parameters, context, executemany):
        conn.info[_DEADLINE_KEY] = time.monotonic() + timeout_seconds

    @event.listens_for(engine, "commit")
    @event.listens_for(engine, "rollback")
    def _disarm_on_transaction_end(conn):
        conn.info.pop(_DEADLINE_KEY, None)

    @event.listens_for(engine, "checkin")
    def _disarm_on_checkin(dbapi_connection, connection_record):
        if connection_record is not None:
            connection_record.info.pop(_DEADLINE_KEY, None)

    @event.listens_for(engine, "handle_error")
    def _disarm_on_error(exception_context):
        # The rollback that follows a failed statement must not be interrupted too.
        if exception_context.connection is not None:
            exception_context.connection.info.pop(_DEADLINE_KEY, None)


def build_engine(
    url: str,
    *,
    timeout_seconds: float = QUERY_TIMEOUT_SECONDS,
    **overrides: Any,
) -> Engine:
    connection_url = make_url(url)
    engine_kwargs: dict[str, Any] = {"pool_pre_ping": True}
    connect_args: dict[str, Any] = {}
    is_sqlite = connection_url.drivername.startswith("sqlite")

    if is_sqlite:
        # Relax SQLite's default thread check so the same connection can be reused across requests.
        connect_args["check_same_thread"] = False
        # Lock waits share the statement budget.
        connect_args["timeout"] = timeout_seconds
        file_backed = connection_url.database not in (None, "", ":memory:")
        if file_backed and "poolclass" not in overrides:
            # file databases get a QueuePool, which accepts a checkout timeout
            engine_kwargs["pool_timeout"] = timeout_seconds
    else:
        engine_kwargs.update(
            {
                "pool_size": 5,
                "max_overflow": 10,
                "pool_recycle": 1800,
                "pool_timeout": timeout_seconds,
            }
        )
        connect_args["connect_timeout"] = 5
        connect_args["options"] = (
            f"-c statement_timeout={int(timeout_seconds * 1000)}"
        )

    connect_args.update(overrides.pop("connect_args", {}))
    engine_kwargs["connect_args"] = connect_args
    engine_kwargs.update(overrides)

    engine = create_engine(url, **engine_kwargs)
    if is_sqlite:
        _install_sqlite_deadline(engine, timeout_seconds)
    return engine


engine = build_engine(CONNECTION_URL)

SessionLocal = sessionmaker(
    bind=engine, autocommit=False, autoflush=False, expire_on_commit=False
)


def get_db() -> Generator[Session]:
    session = SessionLocal()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def ping_database() -> bool:
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        return True
    except sa_exc.SQLAlchemyError:
        return False


def _sqlstate(exc: sa_exc.DBAPIError) -> str | None:
    orig = exc.orig
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def _is_unique_violation(exc: sa_exc.IntegrityError) -> bool:
    if _sqlstate(exc) == _PG_UNIQUE_VIOLATION:
        return True
    return "UNIQUE constraint failed" in str(exc.orig)


def _is_timeout(exc: sa_exc.SQLAlchemyError) -> bool:
    if isinstance(exc, sa_exc.TimeoutError):
        return True
    if not isinstance(exc, sa_exc.DBAPIError):
        return False
    if _sqlstate(exc) in (_PG_QUERY_CANCELED, _PG_LOCK_NOT_AVAILABLE):
        return True
    if not isinstance(exc, sa_exc.OperationalError):
        return False
    message = str(exc.orig)
    return any(marker in message for marker in _SQLITE_TIMEOUT_MARKERS)


def translate_store_error(exc: sa_exc.SQLAlchemyError) -> StoreError:
    if isinstance(exc, sa_exc.IntegrityError) and _is_unique_violation(exc):
        return ConflictError()
    if _is_timeout(exc):
        return StoreTimeoutError()
    return UnclassifiedStoreError(type(exc).__name__)


@contextmanager
def store_errors(db: Session | None = None) -> Iterator[None]:
    """
    Re-raise SQLAlchemy failures as :class:`StoreError` subclasses.

    When ``db`` is given its transaction is rolled back first, so the session
    stays usable after a failed single-statement operation.
    """
    try:
        yield
    except sa_exc.SQLAlchemyError as exc:
        if db is not None:
            db.rollback()
        raise translate_store_error(exc) from exc


def run_in_transaction(db: Session, operation: Callable[[Session], T]) -> T:
    """
    Run ``operation`` inside a single transaction on ``db``.

    Commits when the operation returns and rolls back on any exception,
    ``BaseException`` included, before re-raising it. Calls do not nest:
    code that needs composite atomicity receives the session as an argument.

    Only work done by ``operation`` is committed. Unflushed changes already
    on the session are refused with ``RuntimeError``, and an implicit
    transaction left open by earlier statements is rolled back first.
    """
    if db.info.get(_TX_ACTIVE_KEY):
        raise RuntimeError(
            "run_in_transaction cannot be nested; pass the session down instead"
        )
    if db.new or db.dirty or db.deleted:
        raise RuntimeError(
            "run_in_transaction needs a session without pending changes"
        )

    db.info[_TX_ACTIVE_KEY] = True
    try:
        with store_errors():
            if db.in_transaction():
                db.rollback()
            with db.begin():
                return operation(db)
    finally:
        db.info.pop(_TX_ACTIVE_KEY, None)


class Base(MappedAsDataclass, DeclarativeBase):
    pass
