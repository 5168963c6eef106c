from datetime import datetime, timezone

from sqlalchemy import Column, DateTime


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def monotonic_now(current: datetime | None, now: datetime | None = None) -> datetime:
    """
    The timestamp to store next: ``now``, unless the stored value is already
    later, in which case the stored value is kept.
    """
    now = now or utc_now()
    if current is None:
        return now
    if current.tzinfo is None:
        # SQLite hands back naive datetimes
        current = current.replace(tzinfo=timezone.utc)
    return current if current > now else now


class TimestampsMixin:
    created_at = Column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=utc_now,
        onupdate=utc_now,
        nullable=False,
    )
