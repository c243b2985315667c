from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.users import UserSummary


class PostCreate(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    content: str = Field(min_length=1, max_length=1000)
    tags: list[str] = Field(default_factory=list)


class PostUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=100)
    content: str | None = Field(default=None, min_length=1, max_length=1000)
    tags: list[str] | None = None
    version: int | None = Field(
        default=None,
        ge=1,
        description="Version the client last read; defaults to the current one",
    )


class PostOut(BaseModel):
    id: int
    user_id: int
    title: str
    content: str
    tags: list[str]
    created_at: datetime
    updated_at: datetime
    version: int

    model_config = ConfigDict(
        from_attributes=True,
    )


class CommentCreate(BaseModel):
    content: str = Field(min_length=1, max_length=1000)


class CommentOut(BaseModel):
    id: int
    post_id: int
    user_id: int
    content: str
    created_at: datetime
    user: UserSummary

    model_config = ConfigDict(
        from_attributes=True,
    )


class PostDetailOut(PostOut):
    comments: list[CommentOut]


class FeedPostOut(PostOut):
    comments_count: int
