import datetime

from sqlalchemy import ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import expression

from app.core.database import Base
from app.models.types import UTCDateTime


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, init=False)
    username: Mapped[str] = mapped_column(String(100), unique=True)
    email: Mapped[str] = mapped_column(String(255), unique=True)
    password_hash: Mapped[str] = mapped_column(repr=False)
    is_active: Mapped[bool] = mapped_column(
        default=False, server_default=expression.false()
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        UTCDateTime(),
        insert_default=func.now(),
        server_default=func.now(),
        init=False,
    )


class Invitation(Base):
    """Single-use activation token. Only the sha256 of the secret is stored."""

    __tablename__ = "user_invitations"

    token_hash: Mapped[str] = mapped_column(String(64), primary_key=True, repr=False)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    expires_at: Mapped[datetime.datetime] = mapped_column(UTCDateTime())


class Follower(Base):
    __tablename__ = "followers"

    follower_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        UTCDateTime(),
        insert_default=func.now(),
        server_default=func.now(),
        init=False,
    )
