"""
Manually recorded follower counts for the official account.

Before connections were tracked automatically the marketing team typed in
the friend count from the chat platform's console; the weekly growth
cards are still computed from these records.
"""

import uuid
from collections.abc import Sequence
from datetime import date, datetime, timedelta

from studio_crm.datastore.base import LINE_METRICS, DataStore
from studio_crm.features.attribution.domain.models import FollowerGrowth, FollowerMetric
from studio_crm.features.crm.domain.models import now_ms
from studio_crm.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


def _latest_on_or_before(
    metrics: Sequence[FollowerMetric], cutoff: date
) -> FollowerMetric | None:
    for metric in reversed(metrics):
        if date.fromisoformat(metric.date) <= cutoff:
            return metric
    return None


def compute_follower_growth(metrics: Sequence[FollowerMetric], now: datetime) -> FollowerGrowth:
    """
    Weekly growth from the recorded counts.

    Compares the latest count with the closest record on or before seven
    days ago, and that one with the closest record on or before fourteen
    days ago. Missing history falls back to the earliest record.
    """
    ordered = sorted(metrics, key=lambda m: m.date)
    if len(ordered) < 2:
        return FollowerGrowth()

    latest = ordered[-1].follower_count
    week_ago = _latest_on_or_before(ordered, (now - timedelta(days=7)).date()) or ordered[0]
    two_weeks_ago = _latest_on_or_before(ordered, (now - timedelta(days=14)).date()) or ordered[0]

    diff = latest - week_ago.follower_count
    percent = (diff / week_ago.follower_count) * 100 if week_ago.follower_count > 0 else 0.0

    return FollowerGrowth(
        current=latest,
        week_ago=week_ago.follower_count,
        diff=diff,
        last_week_diff=week_ago.follower_count - two_weeks_ago.follower_count,
        percent=round(percent, 1),
    )


class FollowerMetricService:
    def __init__(self, store: DataStore):
        self._store = store

    async def list_metrics(self) -> list[FollowerMetric]:
        records = await self._store.list_records(LINE_METRICS, "date")
        metrics = []
        for record in records:
            try:
                metrics.append(FollowerMetric.from_record(record))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed follower metric", error=str(e))
        return metrics

    async def record_metric(self, day: date, follower_count: int, operator: str) -> FollowerMetric:
        if follower_count < 0:
            raise ValueError("follower count cannot be negative")

        timestamp = now_ms()
        metric = FollowerMetric(
            id=f"metric-{timestamp}-{uuid.uuid4().hex[:4]}",
            date=day.isoformat(),
            follower_count=follower_count,
            recorded_by=operator,
            timestamp=timestamp,
        )
        await self._store.put_record(LINE_METRICS, metric.id, metric.to_record())
        logger.info("Follower metric recorded", metric_id=metric.id, follower_count=follower_count)
        return metric

    async def delete_metric(self, metric_id: str) -> None:
        await self._store.delete_record(LINE_METRICS, metric_id)
        logger.info("Follower metric deleted", metric_id=metric_id)
