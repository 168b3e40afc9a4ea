"""
Project analytics: where the work is, which trades take the longest,
how far projects get and who is carrying them.

All four views are computed over the same time-filtered project list.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from studio_crm.features.projects.analytics.address import parse_address
from studio_crm.features.projects.domain.models import (
    CLOSED_STAGES,
    CONSTRUCTION_PHASES,
    DesignProject,
    ProjectStage,
)
from studio_crm.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

DAY_MS = 24 * 60 * 60 * 1000
TOP_LOCATIONS = 10
TOP_TRADES = 8
DEFAULT_TRADE_COUNT = 6


class AnalyticsRange(str, Enum):
    ONE_MONTH = "1M"
    THREE_MONTHS = "3M"
    SIX_MONTHS = "6M"
    ONE_YEAR = "1Y"
    ALL = "ALL"


RANGE_DAYS = {
    AnalyticsRange.ONE_MONTH: 30,
    AnalyticsRange.THREE_MONTHS: 90,
    AnalyticsRange.SIX_MONTHS: 180,
    AnalyticsRange.ONE_YEAR: 365,
}

CLOSED_BUCKET = "未成案/結案"
FUNNEL_STAGES = [
    ProjectStage.CONTACT,
    ProjectStage.DESIGN,
    ProjectStage.CONSTRUCTION,
    ProjectStage.COMPLETED,
]


@dataclass(slots=True)
class NamedCount:
    name: str
    count: int


@dataclass(slots=True)
class TradeDays:
    subject: str
    days: int


@dataclass(slots=True)
class DesignerLoad:
    name: str
    active: int = 0
    design: int = 0


@dataclass(slots=True)
class ProjectAnalytics:
    range: AnalyticsRange
    project_count: int
    locations: list[NamedCount] = field(default_factory=list)
    trades: list[TradeDays] = field(default_factory=list)
    funnel: list[NamedCount] = field(default_factory=list)
    workload: list[DesignerLoad] = field(default_factory=list)


def filter_by_range(
    projects: Sequence[DesignProject], range_: AnalyticsRange, now_ms: int
) -> list[DesignProject]:
    days = RANGE_DAYS.get(range_)
    start = now_ms - days * DAY_MS if days else 0
    return [p for p in projects if p.activity_timestamp >= start]


def location_breakdown(projects: Sequence[DesignProject]) -> list[NamedCount]:
    counts: dict[str, int] = {}
    for project in projects:
        if not project.address:
            continue
        label = parse_address(project.address).label
        counts[label] = counts.get(label, 0) + 1

    ranked = sorted(counts.items(), key=lambda item: -item[1])
    return [NamedCount(name=name, count=count) for name, count in ranked[:TOP_LOCATIONS]]


def _trade_name(phase: str) -> str:
    return phase.replace("工程", "", 1)


def trade_days(projects: Sequence[DesignProject]) -> list[TradeDays]:
    """Total scheduled days per trade, both ends inclusive."""
    totals: dict[str, int] = {}
    for project in projects:
        for item in project.schedule:
            if not item.start_date or not item.end_date:
                continue
            try:
                start = date.fromisoformat(item.start_date[:10])
                end = date.fromisoformat(item.end_date[:10])
            except ValueError:
                logger.warning(
                    "Skipping schedule item with bad dates",
                    project_id=project.id,
                    phase=item.phase,
                )
                continue
            name = _trade_name(item.phase)
            totals[name] = totals.get(name, 0) + abs((end - start).days) + 1

    if not totals:
        totals = {_trade_name(phase): 0 for phase in CONSTRUCTION_PHASES[:DEFAULT_TRADE_COUNT]}

    ranked = sorted(totals.items(), key=lambda item: -item[1])
    return [TradeDays(subject=name, days=days) for name, days in ranked[:TOP_TRADES]]


def stage_funnel(projects: Sequence[DesignProject]) -> list[NamedCount]:
    counts = {stage.value: 0 for stage in FUNNEL_STAGES}
    closed = 0
    for project in projects:
        if project.current_stage in {s.value for s in CLOSED_STAGES}:
            closed += 1
        elif project.current_stage in counts:
            counts[project.current_stage] += 1

    buckets = [NamedCount(name=name, count=count) for name, count in counts.items()]
    buckets.append(NamedCount(name=CLOSED_BUCKET, count=closed))
    return [b for b in buckets if b.count > 0]


def designer_workload(projects: Sequence[DesignProject]) -> list[DesignerLoad]:
    loads: dict[str, DesignerLoad] = {}
    for project in projects:
        load = loads.setdefault(project.assigned_employee, DesignerLoad(name=project.assigned_employee))
        if project.current_stage == ProjectStage.CONSTRUCTION.value:
            load.active += 1
        elif project.current_stage == ProjectStage.DESIGN.value:
            load.design += 1

    return sorted(loads.values(), key=lambda load: -(load.active + load.design))


def build_analytics(
    projects: Sequence[DesignProject], range_: AnalyticsRange, now_ms: int
) -> ProjectAnalytics:
    filtered = filter_by_range(projects, range_, now_ms)
    return ProjectAnalytics(
        range=range_,
        project_count=len(filtered),
        locations=location_breakdown(filtered),
        trades=trade_days(filtered),
        funnel=stage_funnel(filtered),
        workload=designer_workload(filtered),
    )
