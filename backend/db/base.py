from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    # Naive UTC, matching the DateTime columns.
    return datetime.now(timezone.utc).replace(tzinfo=None)
