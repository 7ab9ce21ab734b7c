"""Activity window — the time span a run measures."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from projectfacts.engines.aggregation.stats import days_between


@dataclass(frozen=True)
class ActivityWindow:
    """Half-open interval ``[start, end)`` of aware instants."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValueError("activity window bounds must be timezone-aware")
        if self.start >= self.end:
            raise ValueError("activity window start must precede its end")

    @classmethod
    def last_days(cls, days: int, now: datetime | None = None) -> ActivityWindow:
        end = now or datetime.now(timezone.utc)
        return cls(start=end - timedelta(days=days), end=end)

    @property
    def days(self) -> float:
        return days_between(self.start, self.end)

    def previous(self) -> ActivityWindow:
        """The window of equal length immediately before this one."""
        return ActivityWindow(start=self.start - (self.end - self.start), end=self.start)

    def contains(self, instant: datetime | None) -> bool:
        return instant is not None and self.start <= instant < self.end

    def collection_start(self, include_previous: bool) -> datetime:
        return self.previous().start if include_previous else self.start

    def to_dict(self) -> dict[str, str | float]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "days": self.days,
        }
