"""
Domain subpackage for marketing attribution.
"""

from .models import (
    AttributionReport,
    DailyPoint,
    FollowerGrowth,
    FollowerMetric,
    SourceCount,
    TimeRange,
    TimeWindow,
)

__all__ = [
    "AttributionReport",
    "DailyPoint",
    "FollowerGrowth",
    "FollowerMetric",
    "SourceCount",
    "TimeRange",
    "TimeWindow",
]
