from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_FEED_LIMIT = 20
MAX_FEED_TAGS = 5


class SortDirection(StrEnum):
    asc = "asc"
    desc = "desc"


class FeedQuery(BaseModel):
    model_config = ConfigDict(frozen=True)

    limit: int = Field(default=MAX_FEED_LIMIT, ge=1, le=MAX_FEED_LIMIT)
    offset: int = Field(default=0, ge=0)
    sort: SortDirection = SortDirection.desc
    search: str | None = Field(default=None, max_length=100)
    tags: tuple[str, ...] | None = Field(default=None, max_length=MAX_FEED_TAGS)
    since: datetime | None = None
    until: datetime | None = None

    @field_validator("search")
    @classmethod
    def blank_search_is_none(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value

    @field_validator("tags")
    @classmethod
    def empty_tags_is_none(cls, value: tuple[str, ...] | None) -> tuple[str, ...] | None:
        if not value:
            return None
        return value

    @field_validator("since", "until")
    @classmethod
    def coerce_utc(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)
