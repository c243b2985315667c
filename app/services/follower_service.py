import logging

from sqlalchemy import delete, insert
from sqlalchemy.orm import Session

from app.core.database import store_errors
from app.core.errors import NotFoundError
from app.models.users import Follower

logger = logging.getLogger(__name__)


def follow(db: Session, follower_id: int, user_id: int) -> None:
    """Record that ``follower_id`` follows ``user_id``; a repeat raises ``ConflictError``."""
    with store_errors(db):
        db.execute(insert(Follower).values(follower_id=follower_id, user_id=user_id))
        db.commit()
    logger.info("User %s followed user %s", follower_id, user_id)


def unfollow(db: Session, follower_id: int, user_id: int) -> None:
    with store_errors(db):
        result = db.execute(
            delete(Follower).where(
                Follower.follower_id == follower_id,
                Follower.user_id == user_id,
            )
        )
        if not result.rowcount:
            db.rollback()
            raise NotFoundError("not following user")
        db.commit()
    logger.info("User %s unfollowed user %s", follower_id, user_id)
