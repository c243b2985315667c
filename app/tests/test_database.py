import sqlite3

import pytest
from sqlalchemy import StaticPool, func, select, text
from sqlalchemy import exc as sa_exc
from sqlalchemy.orm import sessionmaker

from app.core.database import (
    build_engine,
    run_in_transaction,
    store_errors,
    translate_store_error,
)
from app.core.errors import (
    ConflictError,
    StoreTimeoutError,
    UnclassifiedStoreError,
)
from app.models.users import User
from app.tests.helpers import TEST_PASSWORD_HASH

SLOW_QUERY = text(
    "WITH RECURSIVE counter(n) AS ("
    " SELECT 1 UNION ALL SELECT n + 1 FROM counter WHERE n < 100000000"
    ") SELECT count(*) FROM counter"
)
ROWS_QUERY = text(
    "WITH RECURSIVE counter(n) AS ("
    " SELECT 1 UNION ALL SELECT n + 1 FROM counter WHERE n < 5000000"
    ") SELECT n FROM counter"
)


def _user(username: str) -> User:
    return User(
        username=username,
        email=f"{username}@example.com",
        password_hash=TEST_PASSWORD_HASH,
    )


def _user_count(db_session) -> int:
    return db_session.execute(select(func.count()).select_from(User)).scalar_one()


def test_run_in_transaction_commits_and_returns_result(db_session):
    def _create(tx):
        tx.add(_user("alice"))
        tx.flush()
        return "done"

    assert run_in_transaction(db_session, _create) == "done"

    db_session.rollback()
    assert _user_count(db_session) == 1


def test_run_in_transaction_rolls_back_on_error(db_session):
    def _create_then_fail(tx):
        tx.add(_user("alice"))
        tx.flush()
        raise ValueError("boom")

    with pytest.raises(ValueError, match="boom"):
        run_in_transaction(db_session, _create_then_fail)

    assert _user_count(db_session) == 0


def test_run_in_transaction_rolls_back_on_base_exception(db_session):
    def _create_then_interrupt(tx):
        tx.add(_user("alice"))
        tx.flush()
        raise KeyboardInterrupt

    with pytest.raises(KeyboardInterrupt):
        run_in_transaction(db_session, _create_then_interrupt)

    assert _user_count(db_session) == 0


def test_run_in_transaction_refuses_to_nest(db_session):
    def _outer(tx):
        tx.add(_user("alice"))
        tx.flush()
        return run_in_transaction(tx, lambda inner: None)

    with pytest.raises(RuntimeError):
        run_in_transaction(db_session, _outer)

    assert _user_count(db_session) == 0
    # the guard is released once the outer call returns
    assert run_in_transaction(db_session, lambda tx: 42) == 42


def test_run_in_transaction_after_plain_reads(db_session):
    assert _user_count(db_session) == 0

    run_in_transaction(db_session, lambda tx: tx.add(_user("alice")))

    assert _user_count(db_session) == 1


def test_run_in_transaction_refuses_pending_changes(db_session):
    db_session.add(_user("stray"))

    with pytest.raises(RuntimeError):
        run_in_transaction(db_session, lambda tx: tx.add(_user("alice")))

    db_session.rollback()
    assert _user_count(db_session) == 0


def test_run_in_transaction_does_not_commit_earlier_flushed_writes(db_session):
    db_session.add(_user("stray"))
    db_session.flush()

    def _create_then_fail(tx):
        tx.add(_user("alice"))
        tx.flush()
        raise ValueError("boom")

    with pytest.raises(ValueError):
        run_in_transaction(db_session, _create_then_fail)

    assert _user_count(db_session) == 0

    db_session.add(_user("stray2"))
    db_session.flush()
    run_in_transaction(db_session, lambda tx: tx.add(_user("bob")))

    usernames = db_session.execute(select(User.username)).scalars().all()
    assert usernames == ["bob"]


def test_run_in_transaction_translates_unique_violation(db_session):
    run_in_transaction(db_session, lambda tx: tx.add(_user("alice")))

    with pytest.raises(ConflictError):
        run_in_transaction(db_session, lambda tx: tx.add(_user("alice")))

    assert _user_count(db_session) == 1


def test_store_errors_translates_unknown_failures(db_session):
    with pytest.raises(UnclassifiedStoreError) as excinfo:
        with store_errors(db_session):
            db_session.execute(text("SELECT * FROM no_such_table"))

    assert isinstance(excinfo.value.__cause__, sa_exc.OperationalError)
    # the session is usable again
    assert _user_count(db_session) == 0


def test_statement_past_deadline_raises_timeout():
    engine = build_engine(
        "sqlite+pysqlite:///:memory:", timeout_seconds=0.05, poolclass=StaticPool
    )
    session = sessionmaker(bind=engine)()
    try:
        with pytest.raises(StoreTimeoutError):
            with store_errors(session):
                session.execute(SLOW_QUERY)

        # later statements get a fresh deadline
        assert session.execute(text("SELECT 1")).scalar_one() == 1
    finally:
        session.close()
        engine.dispose()


def test_fetching_rows_past_deadline_raises_timeout():
    engine = build_engine(
        "sqlite+pysqlite:///:memory:", timeout_seconds=0.05, poolclass=StaticPool
    )
    session = sessionmaker(bind=engine)()
    try:
        with pytest.raises(StoreTimeoutError):
            with store_errors(session):
                session.execute(ROWS_QUERY).all()

        assert session.execute(text("SELECT 1")).scalar_one() == 1
    finally:
        session.close()
        engine.dispose()


def test_waiting_on_a_locked_database_raises_timeout(tmp_path):
    path = tmp_path / "locked.db"
    engine = build_engine(f"sqlite+pysqlite:///{path}", timeout_seconds=0.2)
    User.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine)()

    holder = sqlite3.connect(path, isolation_level=None)
    holder.execute("BEGIN IMMEDIATE")
    try:
        with pytest.raises(StoreTimeoutError):
            with store_errors(session):
                session.add(_user("alice"))
                session.commit()
    finally:
        holder.execute("ROLLBACK")
        holder.close()
        session.close()
        engine.dispose()


def test_timeout_inside_transaction_rolls_back():
    engine = build_engine(
        "sqlite+pysqlite:///:memory:", timeout_seconds=0.05, poolclass=StaticPool
    )
    User.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine)()

    def _insert_then_stall(tx):
        tx.add(_user("alice"))
        tx.flush()
        tx.execute(SLOW_QUERY)

    try:
        with pytest.raises(StoreTimeoutError):
            run_in_transaction(session, _insert_then_stall)
        assert _user_count(session) == 0
    finally:
        session.close()
        engine.dispose()


def test_translate_store_error_classification():
    integrity = sa_exc.IntegrityError(
        "INSERT", {}, Exception("UNIQUE constraint failed: users.email")
    )
    not_null = sa_exc.IntegrityError(
        "INSERT", {}, Exception("NOT NULL constraint failed: users.email")
    )
    interrupted = sa_exc.OperationalError("SELECT", {}, Exception("interrupted"))
    locked = sa_exc.OperationalError("INSERT", {}, Exception("database is locked"))
    missing = sa_exc.OperationalError("SELECT", {}, Exception("no such table: x"))

    assert isinstance(translate_store_error(integrity), ConflictError)
    assert isinstance(translate_store_error(not_null), UnclassifiedStoreError)
    assert isinstance(translate_store_error(interrupted), StoreTimeoutError)
    assert isinstance(translate_store_error(locked), StoreTimeoutError)
    assert isinstance(translate_store_error(missing), UnclassifiedStoreError)
    assert isinstance(
        translate_store_error(sa_exc.TimeoutError("pool exhausted")), StoreTimeoutError
    )
