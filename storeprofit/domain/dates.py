"""Store-local date ranges.

Requested ranges are calendar days in the store's local time; upstream
timestamps are UTC. The store's offset is kept in minutes (e.g. -300 for
UTC-05:00).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta


@dataclass(frozen=True)
class DateRange:
    """Inclusive [start, end] range of store-local calendar days."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"start {self.start} is after end {self.end}")

    @classmethod
    def parse(cls, start: str, end: str) -> DateRange:
        return cls(date.fromisoformat(start), date.fromisoformat(end))

    @classmethod
    def last_days(cls, today: date, days: int) -> DateRange:
        """The `days` complete days before today (today itself excluded)."""
        return cls(today - timedelta(days=days), today - timedelta(days=1))

    @property
    def cache_key(self) -> str:
        return f"metrics_{self.start.isoformat()}_{self.end.isoformat()}"

    @property
    def label(self) -> str:
        return f"{self.start.isoformat()}_{self.end.isoformat()}"

    def contains(self, d: date) -> bool:
        return self.start <= d <= self.end


def offset_to_tz_string(offset_minutes: int) -> str:
    """-300 -> '-05:00', 330 -> '+05:30'."""
    sign = "-" if offset_minutes < 0 else "+"
    hours, mins = divmod(abs(offset_minutes), 60)
    return f"{sign}{hours:02d}:{mins:02d}"


def local_bounds_iso(date_range: DateRange, offset_minutes: int) -> tuple[str, str]:
    """ISO timestamps for the first and last second of the range, with the store offset."""
    tz = offset_to_tz_string(offset_minutes)
    return (
        f"{date_range.start.isoformat()}T00:00:00{tz}",
        f"{date_range.end.isoformat()}T23:59:59{tz}",
    )


def utc_window(date_range: DateRange, offset_minutes: int) -> tuple[datetime, datetime]:
    """UTC instants of local 00:00:00 on start and local 23:59:59 on end."""
    shift = timedelta(minutes=offset_minutes)
    start = datetime.combine(date_range.start, time(0, 0, 0), tzinfo=UTC) - shift
    end = datetime.combine(date_range.end, time(23, 59, 59), tzinfo=UTC) - shift
    return start, end


def as_utc(ts: datetime) -> datetime:
    """Treat naive timestamps as UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC)


__all__ = ["DateRange", "as_utc", "local_bounds_iso", "offset_to_tz_string", "utc_window"]
