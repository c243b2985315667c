from collections.abc import Sequence
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.database import store_errors
from app.models.posts import Comment


def list_post_comments(db: Session, post_id: int) -> Sequence[Comment]:
    stmt = (
        select(Comment)
        .where(Comment.post_id == post_id)
        .order_by(Comment.created_at, Comment.id)
    )
    with store_errors(db):
        return db.execute(stmt).scalars().all()


def create_comment(
    db: Session, comment: Comment, *, now: datetime | None = None
) -> Comment:
    comment.created_at = now or datetime.now(UTC)
    with store_errors(db):
        db.add(comment)
        db.commit()
    return comment
