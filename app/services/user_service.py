import logging
from datetime import UTC, datetime

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.core.database import run_in_transaction, store_errors
from app.core.errors import NotFoundError
from app.core.security import hash_token, verify_password
from app.models.users import Invitation, User

logger = logging.getLogger(__name__)


def create_and_invite(
    db: Session,
    user: User,
    raw_token: str,
    expires_at: datetime,
) -> User:
    """
    Insert ``user`` and its invitation in one transaction.

    Only the hash of ``raw_token`` is stored; delivering the plaintext to the
    user is the caller's job. Raises ``ConflictError`` when the username or
    email is taken, in which case nothing is written.
    """
    token_hash = hash_token(raw_token)

    def _create(tx: Session) -> User:
        tx.add(user)
        tx.flush()
        tx.add(
            Invitation(token_hash=token_hash, user_id=user.id, expires_at=expires_at)
        )
        tx.flush()
        tx.refresh(user)
        return user

    created = run_in_transaction(db, _create)
    logger.info("User %s invited (id=%s)", created.username, created.id)
    return created


def activate(db: Session, raw_token: str, *, now: datetime | None = None) -> User:
    """
    Consume an invitation and activate its owner.

    Unknown and expired tokens both raise ``NotFoundError``. Every invitation
    of the owner is deleted, stale ones included.
    """
    now = now or datetime.now(UTC)
    token_hash = hash_token(raw_token)

    def _activate(tx: Session) -> User:
        user = tx.execute(
            select(User)
            .join(Invitation, Invitation.user_id == User.id)
            .where(Invitation.token_hash == token_hash, Invitation.expires_at > now)
        ).scalar_one_or_none()
        if user is None:
            raise NotFoundError()

        user.is_active = True
        tx.flush()

        result = tx.execute(
            delete(Invitation)
            .where(Invitation.user_id == user.id)
            .execution_options(synchronize_session=False)
        )
        if not result.rowcount:
            # a concurrent activation consumed the invitation first
            raise NotFoundError()
        return user

    user = run_in_transaction(db, _activate)
    logger.info("User %s activated (id=%s)", user.username, user.id)
    return user


def get_by_id(db: Session, user_id: int) -> User:
    with store_errors(db):
        user = db.execute(select(User).where(User.id == user_id)).scalar_one_or_none()
    if user is None:
        raise NotFoundError()
    return user


def get_by_email(db: Session, email: str) -> User:
    """Look up an active user; pending accounts are invisible here."""
    with store_errors(db):
        user = db.execute(
            select(User).where(User.email == email, User.is_active.is_(True))
        ).scalar_one_or_none()
    if user is None:
        raise NotFoundError()
    return user


def authenticate(db: Session, email: str, password: str) -> User:
    user = get_by_email(db, email)
    if not verify_password(password, user.password_hash):
        raise NotFoundError()
    return user
