"""
Attribution aggregation service.

Turns connection snapshots into the marketing KPIs shown on the console:
current friend total, per-source breakdown, daily growth series and the
average daily growth for a window.

The current total is an approximation, not a ledger. It starts from a
manually reconciled friend count taken before connections were tracked,
adds every non-blocked connection first seen after that snapshot and
subtracts every connection currently blocked, over the whole history.

Records with malformed timestamps are skipped with a warning; one bad
record never aborts a computation.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date, datetime, tzinfo

from studio_crm.features.attribution.domain.models import (
    AttributionReport,
    DailyPoint,
    SourceCount,
    TimeRange,
)
from studio_crm.features.attribution.pipeline.windows import (
    filter_by_window,
    from_ms,
    resolve_window,
)
from studio_crm.features.crm.domain.models import DataQualityError, InboundConnection
from studio_crm.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

UNCLASSIFIED_SOURCE = "direct/unclassified"


def _timestamp_of(connection: InboundConnection) -> int:
    if connection.timestamp is None:
        raise DataQualityError(f"connection {connection.id} has no usable timestamp")
    return connection.timestamp


def resolve_source(connection: InboundConnection, source_lookup: Mapping[str, str]) -> str:
    """Connection tag, then the join-page lookup, then the unclassified bucket."""
    if connection.source:
        return connection.source
    return source_lookup.get(connection.external_id) or UNCLASSIFIED_SOURCE


class AttributionAggregator:
    def __init__(self, baseline_count: int, baseline_timestamp_ms: int, tz: tzinfo):
        self.baseline_count = baseline_count
        self.baseline_timestamp_ms = baseline_timestamp_ms
        self.tz = tz

    def compute_current_total(self, connections: Sequence[InboundConnection]) -> int:
        active_since_baseline = 0
        blocked_now = 0
        skipped = 0

        for connection in connections:
            if connection.is_blocked:
                blocked_now += 1
                continue
            try:
                timestamp = _timestamp_of(connection)
            except DataQualityError as e:
                skipped += 1
                logger.warning("Skipping connection in total", error=str(e))
                continue
            if timestamp > self.baseline_timestamp_ms:
                active_since_baseline += 1

        if skipped:
            logger.info("Current total computed with skipped records", skipped=skipped)
        return self.baseline_count + active_since_baseline - blocked_now

    def compute_source_breakdown(
        self,
        windowed: Sequence[InboundConnection],
        source_lookup: Mapping[str, str],
    ) -> list[SourceCount]:
        """
        Count non-blocked connections per resolved source tag.

        Sorted by count descending; ties keep the order in which each tag
        was first seen in the input.
        """
        counts: dict[str, int] = {}
        for connection in windowed:
            if connection.is_blocked:
                continue
            tag = resolve_source(connection, source_lookup)
            counts[tag] = counts.get(tag, 0) + 1

        ranked = sorted(counts.items(), key=lambda item: -item[1])
        return [SourceCount(tag=tag, count=count) for tag, count in ranked]

    def compute_daily_series(self, windowed: Sequence[InboundConnection]) -> list[DailyPoint]:
        """One point per local calendar day that has data; empty days are not filled."""
        per_day: dict[date, int] = {}
        for connection in windowed:
            try:
                timestamp = _timestamp_of(connection)
            except DataQualityError as e:
                logger.warning("Skipping connection in daily series", error=str(e))
                continue
            day = from_ms(timestamp, self.tz).date()
            per_day[day] = per_day.get(day, 0) + 1

        return [DailyPoint(date=day.isoformat(), count=per_day[day]) for day in sorted(per_day)]

    def compute_average_daily_growth(
        self, windowed: Sequence[InboundConnection], series: Sequence[DailyPoint]
    ) -> float:
        # The denominator is floored at one day, so a window without any
        # series points reports its raw active count as the "average".
        active = sum(1 for c in windowed if not c.is_blocked)
        return active / max(1, len(series))

    def build_report(
        self,
        connections: Sequence[InboundConnection],
        source_lookup: Mapping[str, str],
        range_: TimeRange = TimeRange.ALL,
        custom_start: date | None = None,
        custom_end: date | None = None,
        now: datetime | None = None,
    ) -> AttributionReport:
        window = resolve_window(range_, self.tz, custom_start, custom_end, now)
        windowed = filter_by_window(connections, window)
        series = self.compute_daily_series(windowed)
        blocked = sum(1 for c in windowed if c.is_blocked)

        report = AttributionReport(
            range=range_,
            window=window,
            current_total=self.compute_current_total(connections),
            baseline_count=self.baseline_count,
            window_total=len(windowed),
            window_active=len(windowed) - blocked,
            window_blocked=blocked,
            sources=self.compute_source_breakdown(windowed, source_lookup),
            daily_series=series,
            average_daily_growth=self.compute_average_daily_growth(windowed, series),
        )

        logger.info(
            "Attribution report built",
            range=range_.value,
            connection_count=len(connections),
            window_total=report.window_total,
            current_total=report.current_total,
        )
        return report
