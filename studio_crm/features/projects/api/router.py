"""
Design project routes: analytics, CSV export, progress notes and AI reports.
"""

from fastapi import APIRouter, Depends, Query, Request, Response

from studio_crm.auth.verify import Operator, get_operator
from studio_crm.dependencies import ServiceContainer, get_services
from studio_crm.features.crm.domain.models import now_ms
from studio_crm.features.projects.analytics import AnalyticsRange, build_analytics
from studio_crm.features.projects.domain.models import DesignProject
from studio_crm.infrastructure.observability.logging import get_logger
from studio_crm.models.api.project_response import (
    DesignerLoadResponse,
    DesignIssueAnalysisResponse,
    DesignIssueRequest,
    NamedCountResponse,
    ProgressNoteRequest,
    ProjectAnalyticsResponse,
    ProjectReportResponse,
    ProjectSummaryResponse,
    TradeDaysResponse,
)
from studio_crm.routes.errors import to_http_error
from studio_crm.services.export_service import export_projects_csv
from studio_crm.utils.audit_helpers import audit_operator_action

logger = get_logger(__name__)

router = APIRouter(prefix="/projects", tags=["projects"])


def project_summary(project: DesignProject) -> ProjectSummaryResponse:
    return ProjectSummaryResponse(
        id=project.id,
        project_name=project.project_name,
        current_stage=project.current_stage,
        assigned_employee=project.assigned_employee,
        latest_progress_notes=project.latest_progress_notes,
        last_updated_timestamp=project.last_updated_timestamp,
        history_count=len(project.history),
    )


@router.get("/analytics", response_model=ProjectAnalyticsResponse)
async def get_project_analytics(
    range_: AnalyticsRange = Query(default=AnalyticsRange.ALL, alias="range"),
    services: ServiceContainer = Depends(get_services),
    operator: Operator = Depends(get_operator),
):
    try:
        projects = await services.projects.list_projects()
    except Exception as e:
        raise to_http_error(e, "load projects") from e

    analytics = build_analytics(projects, range_, now_ms())
    return ProjectAnalyticsResponse(
        range=analytics.range.value,
        project_count=analytics.project_count,
        locations=[NamedCountResponse(name=c.name, count=c.count) for c in analytics.locations],
        trades=[TradeDaysResponse(subject=t.subject, days=t.days) for t in analytics.trades],
        funnel=[NamedCountResponse(name=c.name, count=c.count) for c in analytics.funnel],
        workload=[
            DesignerLoadResponse(name=w.name, active=w.active, design=w.design)
            for w in analytics.workload
        ],
    )


@router.get("/export.csv")
async def export_projects(
    services: ServiceContainer = Depends(get_services),
    operator: Operator = Depends(get_operator),
):
    try:
        projects = await services.projects.list_projects()
    except Exception as e:
        raise to_http_error(e, "export projects") from e

    logger.info("Projects exported", operator=operator.name, count=len(projects))
    return Response(
        content=export_projects_csv(projects, services.tz),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="projects.csv"'},
    )


@router.post("/{project_id}/progress", response_model=ProjectSummaryResponse)
async def add_progress_note(
    project_id: str,
    body: ProgressNoteRequest,
    request: Request,
    services: ServiceContainer = Depends(get_services),
    operator: Operator = Depends(get_operator),
):
    try:
        project = await services.projects.add_progress_note(
            project_id,
            category=body.category,
            description=body.description,
            operator=operator.name,
            operator_id=operator.id,
        )
    except Exception as e:
        raise to_http_error(e, "add progress note", project_id=project_id) from e

    await audit_operator_action(
        request=request,
        operator=operator,
        action="progress_note_added",
        resource_type="project",
        resource_id=project_id,
        metadata={"category": body.category},
    )
    return project_summary(project)


@router.post("/{project_id}/report", response_model=ProjectReportResponse)
async def generate_project_report(
    project_id: str,
    services: ServiceContainer = Depends(get_services),
    operator: Operator = Depends(get_operator),
):
    try:
        project = await services.projects.get_project(project_id)
    except Exception as e:
        raise to_http_error(e, "load project", project_id=project_id) from e

    report = await services.ai.generate_project_report(project)
    return ProjectReportResponse(project_id=project_id, report=report)


@router.post("/{project_id}/analysis", response_model=DesignIssueAnalysisResponse)
async def analyze_design_issue(
    project_id: str,
    body: DesignIssueRequest,
    services: ServiceContainer = Depends(get_services),
    operator: Operator = Depends(get_operator),
):
    try:
        project = await services.projects.get_project(project_id)
    except Exception as e:
        raise to_http_error(e, "load project", project_id=project_id) from e

    result = await services.ai.analyze_design_issue(project, body.issue)
    return DesignIssueAnalysisResponse(
        project_id=project_id, analysis=result.analysis, suggestions=result.suggestions
    )
