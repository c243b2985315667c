from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy import ColumnElement, Select, func, select, type_coerce
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Session

from app.core.database import store_errors
from app.models.posts import Comment, Post
from app.models.users import Follower
from app.schemas.feed import FeedQuery, SortDirection


@dataclass(frozen=True)
class FeedItem:
    post: Post
    comments_count: int


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _contains_all_tags(tags: Sequence[str], dialect_name: str) -> list[ColumnElement[bool]]:
    if dialect_name == "postgresql":
        return [type_coerce(Post.tags, JSONB).contains(list(tags))]

    clauses: list[ColumnElement[bool]] = []
    for tag in tags:
        tag_values = func.json_each(Post.tags).table_valued("value")
        clauses.append(
            select(tag_values.c.value).where(tag_values.c.value == tag).exists()
        )
    return clauses


def build_feed_query(
    user_id: int,
    fq: FeedQuery,
    *,
    dialect_name: str = "postgresql",
) -> Select:
    """
    Build the feed statement for ``user_id``.

    Only posts by followed users qualify. Filters are appended in a fixed
    order (search, tags, since, until) and only when set, each binding its
    own parameter. Grouping, ordering and pagination come last.
    """
    comments_count = func.count(Comment.id).label("comments_count")
    stmt = (
        select(Post, comments_count)
        .join(Follower, Follower.user_id == Post.user_id)
        .outerjoin(Comment, Comment.post_id == Post.id)
        .where(Follower.follower_id == user_id)
    )

    if fq.search:
        pattern = f"%{_escape_like(fq.search)}%"
        stmt = stmt.where(
            Post.title.ilike(pattern, escape="\\")
            | Post.content.ilike(pattern, escape="\\")
        )

    if fq.tags:
        stmt = stmt.where(*_contains_all_tags(fq.tags, dialect_name))

    if fq.since is not None:
        stmt = stmt.where(Post.created_at >= fq.since)

    if fq.until is not None:
        stmt = stmt.where(Post.created_at <= fq.until)

    if fq.sort is SortDirection.asc:
        ordering = (Post.created_at.asc(), Post.id.asc())
    else:
        ordering = (Post.created_at.desc(), Post.id.desc())

    return (
        stmt.group_by(Post.id)
        .order_by(*ordering)
        .limit(fq.limit)
        .offset(fq.offset)
    )


def get_user_feed(db: Session, user_id: int, fq: FeedQuery) -> list[FeedItem]:
    dialect_name = db.get_bind().dialect.name
    stmt = build_feed_query(user_id, fq, dialect_name=dialect_name)
    with store_errors(db):
        rows = db.execute(stmt).all()
    return [FeedItem(post=post, comments_count=count) for post, count in rows]
