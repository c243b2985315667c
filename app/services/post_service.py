import logging
from datetime import UTC, datetime

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from app.core.database import store_errors
from app.core.errors import NotFoundError
from app.models.posts import Post

logger = logging.getLogger(__name__)

INITIAL_VERSION = 1


def create_post(db: Session, post: Post, *, now: datetime | None = None) -> Post:
    now = now or datetime.now(UTC)
    post.created_at = now
    post.updated_at = now
    post.version = INITIAL_VERSION
    with store_errors(db):
        db.add(post)
        db.commit()
    logger.info("Post %s created by user %s", post.id, post.user_id)
    return post


def get_post(db: Session, post_id: int) -> Post:
    with store_errors(db):
        post = db.execute(select(Post).where(Post.id == post_id)).scalar_one_or_none()
    if post is None:
        raise NotFoundError()
    return post


def delete_post(db: Session, post_id: int) -> None:
    with store_errors(db):
        result = db.execute(delete(Post).where(Post.id == post_id))
        if not result.rowcount:
            db.rollback()
            raise NotFoundError()
        db.commit()
    logger.info("Post %s deleted", post_id)


def update_post(db: Session, post: Post, *, now: datetime | None = None) -> Post:
    """
    Write ``post`` only if the stored version still equals ``post.version``.

    On success the version is bumped by one and ``post`` picks up the new
    ``version`` and ``updated_at``. When no row matches, because the post is
    gone or another writer got there first, ``NotFoundError`` is raised, the
    transaction is rolled back and the stored row is left untouched.
    """
    now = now or datetime.now(UTC)
    stmt = (
        update(Post)
        .where(Post.id == post.id, Post.version == post.version)
        .values(
            title=post.title,
            content=post.content,
            tags=list(post.tags),
            version=Post.version + 1,
            updated_at=now,
        )
        .returning(Post.version, Post.updated_at)
        .execution_options(synchronize_session=False)
    )
    with store_errors(db):
        row = db.execute(stmt).one_or_none()
        if row is None:
            db.rollback()
            raise NotFoundError()

        # the row now holds these values; keep the flush from writing them again
        for key in ("title", "content", "tags"):
            set_committed_value(post, key, getattr(post, key))
        set_committed_value(post, "version", row.version)
        set_committed_value(post, "updated_at", row.updated_at)
        db.commit()

    logger.info("Post %s updated to version %s", post.id, post.version)
    return post
