import datetime

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base
from app.models.types import TagList, UTCDateTime
from app.models.users import User


class Post(Base):
    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(primary_key=True, init=False)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    title: Mapped[str] = mapped_column(String(100))
    content: Mapped[str] = mapped_column(Text)
    tags: Mapped[list[str]] = mapped_column(TagList, default_factory=list)
    # assigned by post_service.create_post
    created_at: Mapped[datetime.datetime] = mapped_column(
        UTCDateTime(), index=True, init=False
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(UTCDateTime(), init=False)
    version: Mapped[int] = mapped_column(default=1, server_default="1", init=False)


class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(primary_key=True, init=False)
    post_id: Mapped[int] = mapped_column(
        ForeignKey("posts.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    content: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime.datetime] = mapped_column(UTCDateTime(), init=False)
    user: Mapped[User] = relationship(init=False, lazy="selectin")
