import datetime

from sqlalchemy import JSON, DateTime
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import TypeDecorator


def _coerce_utc(value: datetime.datetime | None) -> datetime.datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.UTC)
    return value.astimezone(datetime.UTC)


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC timestamps, also on backends that store them naive."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return _coerce_utc(value)

    def process_result_value(self, value, dialect):
        return _coerce_utc(value)


TagList = JSON().with_variant(JSONB(), "postgresql")
