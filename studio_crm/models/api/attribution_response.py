# studio_crm/models/api/attribution_response.py
"""
Attribution API request and response models.
"""

import datetime

from pydantic import BaseModel, Field


class SourceCountResponse(BaseModel):
    tag: str
    count: int


class DailyPointResponse(BaseModel):
    date: str = Field(..., description="Local calendar day, YYYY-MM-DD")
    count: int


class AttributionReportResponse(BaseModel):
    """Marketing KPIs for one time range."""

    range: str
    window_start_ms: int | None = Field(None, description="Inclusive window start, null for ALL")
    window_end_ms: int | None = Field(None, description="Inclusive window end, null for ALL")
    current_total: int = Field(..., description="Baseline-adjusted friend total")
    baseline_count: int
    window_total: int
    window_active: int
    window_blocked: int
    sources: list[SourceCountResponse]
    daily_series: list[DailyPointResponse]
    average_daily_growth: float


class FollowerMetricRequest(BaseModel):
    """Request for recording a follower count."""

    date: datetime.date
    follower_count: int = Field(..., ge=0, description="Friend count shown in the console")


class FollowerMetricResponse(BaseModel):
    id: str
    date: str
    follower_count: int
    recorded_by: str
    timestamp: int | None = None


class FollowerGrowthResponse(BaseModel):
    current: int
    week_ago: int
    diff: int
    last_week_diff: int
    percent: float


class FollowersResponse(BaseModel):
    metrics: list[FollowerMetricResponse]
    growth: FollowerGrowthResponse
