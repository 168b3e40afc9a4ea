"""
Marketing attribution routes: the KPI report and manual follower counts.
"""

from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status

from studio_crm.auth.verify import Operator, get_operator
from studio_crm.dependencies import ServiceContainer, get_services
from studio_crm.features.attribution.domain.models import AttributionReport, TimeRange
from studio_crm.features.attribution.services import compute_follower_growth
from studio_crm.models.api.attribution_response import (
    AttributionReportResponse,
    DailyPointResponse,
    FollowerGrowthResponse,
    FollowerMetricRequest,
    FollowerMetricResponse,
    FollowersResponse,
    SourceCountResponse,
)
from studio_crm.routes.errors import to_http_error
from studio_crm.utils.audit_helpers import audit_operator_action

router = APIRouter(prefix="/attribution", tags=["attribution"])


def report_response(report: AttributionReport) -> AttributionReportResponse:
    return AttributionReportResponse(
        range=report.range.value,
        window_start_ms=report.window.start_ms if report.window else None,
        window_end_ms=report.window.end_ms if report.window else None,
        current_total=report.current_total,
        baseline_count=report.baseline_count,
        window_total=report.window_total,
        window_active=report.window_active,
        window_blocked=report.window_blocked,
        sources=[SourceCountResponse(tag=s.tag, count=s.count) for s in report.sources],
        daily_series=[DailyPointResponse(date=p.date, count=p.count) for p in report.daily_series],
        average_daily_growth=report.average_daily_growth,
    )


@router.get("/report", response_model=AttributionReportResponse)
async def get_attribution_report(
    range_: TimeRange = Query(default=TimeRange.ALL, alias="range"),
    start: date | None = Query(default=None, description="CUSTOM range start day"),
    end: date | None = Query(default=None, description="CUSTOM range end day"),
    services: ServiceContainer = Depends(get_services),
    operator: Operator = Depends(get_operator),
):
    try:
        report = services.hub.attribution_report(range_, start, end)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return report_response(report)


@router.get("/followers", response_model=FollowersResponse)
async def list_follower_metrics(
    services: ServiceContainer = Depends(get_services),
    operator: Operator = Depends(get_operator),
):
    try:
        metrics = await services.followers.list_metrics()
    except Exception as e:
        raise to_http_error(e, "list follower metrics") from e

    growth = compute_follower_growth(metrics, datetime.now(services.tz))
    return FollowersResponse(
        metrics=[
            FollowerMetricResponse(
                id=m.id,
                date=m.date,
                follower_count=m.follower_count,
                recorded_by=m.recorded_by,
                timestamp=m.timestamp,
            )
            for m in metrics
        ],
        growth=FollowerGrowthResponse(
            current=growth.current,
            week_ago=growth.week_ago,
            diff=growth.diff,
            last_week_diff=growth.last_week_diff,
            percent=growth.percent,
        ),
    )


@router.post(
    "/followers", response_model=FollowerMetricResponse, status_code=status.HTTP_201_CREATED
)
async def record_follower_metric(
    body: FollowerMetricRequest,
    request: Request,
    services: ServiceContainer = Depends(get_services),
    operator: Operator = Depends(get_operator),
):
    try:
        metric = await services.followers.record_metric(
            body.date, body.follower_count, operator.name
        )
    except Exception as e:
        raise to_http_error(e, "record follower metric") from e

    await audit_operator_action(
        request=request,
        operator=operator,
        action="follower_metric_recorded",
        resource_type="line_metric",
        resource_id=metric.id,
    )
    return FollowerMetricResponse(
        id=metric.id,
        date=metric.date,
        follower_count=metric.follower_count,
        recorded_by=metric.recorded_by,
        timestamp=metric.timestamp,
    )


@router.delete("/followers/{metric_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_follower_metric(
    metric_id: str,
    request: Request,
    services: ServiceContainer = Depends(get_services),
    operator: Operator = Depends(get_operator),
):
    try:
        await services.followers.delete_metric(metric_id)
    except Exception as e:
        raise to_http_error(e, "delete follower metric", metric_id=metric_id) from e

    await audit_operator_action(
        request=request,
        operator=operator,
        action="follower_metric_deleted",
        resource_type="line_metric",
        resource_id=metric_id,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
