"""
Domain models for marketing attribution.

Plain dataclasses shared by the aggregation pipeline, the follower metric
service and the API layer.
"""

import datetime
from dataclasses import dataclass, field
from enum import Enum


class TimeRange(str, Enum):
    THIS_WEEK = "THIS_WEEK"
    LAST_WEEK = "LAST_WEEK"
    THIS_MONTH = "THIS_MONTH"
    CUSTOM = "CUSTOM"
    ALL = "ALL"


@dataclass(slots=True, frozen=True)
class TimeWindow:
    """Inclusive window in epoch milliseconds."""

    start_ms: int
    end_ms: int

    def contains(self, timestamp_ms: int) -> bool:
        return self.start_ms <= timestamp_ms <= self.end_ms


@dataclass(slots=True)
class SourceCount:
    tag: str
    count: int


@dataclass(slots=True)
class DailyPoint:
    date: str  # YYYY-MM-DD in the local time zone
    count: int


@dataclass(slots=True)
class AttributionReport:
    range: TimeRange
    window: TimeWindow | None
    current_total: int
    baseline_count: int
    window_total: int
    window_active: int
    window_blocked: int
    sources: list[SourceCount] = field(default_factory=list)
    daily_series: list[DailyPoint] = field(default_factory=list)
    average_daily_growth: float = 0.0


@dataclass(slots=True)
class FollowerMetric:
    """A manually recorded follower count for the official account."""

    id: str
    date: str  # YYYY-MM-DD
    follower_count: int
    recorded_by: str
    timestamp: int | None = None

    @classmethod
    def from_record(cls, record: dict) -> "FollowerMetric":
        return cls(
            id=record["id"],
            date=datetime.date.fromisoformat(record["date"]).isoformat(),
            follower_count=int(record["followerCount"]),
            recorded_by=record.get("recordedBy") or "",
            timestamp=record.get("timestamp"),
        )

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "date": self.date,
            "followerCount": self.follower_count,
            "recordedBy": self.recorded_by,
            "timestamp": self.timestamp,
        }


@dataclass(slots=True)
class FollowerGrowth:
    current: int = 0
    week_ago: int = 0
    diff: int = 0
    last_week_diff: int = 0
    percent: float = 0.0
