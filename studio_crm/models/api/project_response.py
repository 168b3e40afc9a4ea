# studio_crm/models/api/project_response.py
"""
Project API request and response models.
"""

from pydantic import BaseModel, Field


class ProgressNoteRequest(BaseModel):
    """Request for publishing a site log entry."""

    category: str = Field(..., min_length=1, max_length=50, description="Log category")
    description: str = Field(..., min_length=1, max_length=2000, description="What happened")


class DesignIssueRequest(BaseModel):
    issue: str = Field(..., min_length=1, max_length=4000, description="Problem to analyse")


class ProjectSummaryResponse(BaseModel):
    id: str
    project_name: str
    current_stage: str
    assigned_employee: str
    latest_progress_notes: str
    last_updated_timestamp: int
    history_count: int


class NamedCountResponse(BaseModel):
    name: str
    count: int


class TradeDaysResponse(BaseModel):
    subject: str = Field(..., description="Trade name without the 工程 suffix")
    days: int


class DesignerLoadResponse(BaseModel):
    name: str
    active: int = Field(..., description="Projects under construction")
    design: int = Field(..., description="Projects in design")


class ProjectAnalyticsResponse(BaseModel):
    range: str
    project_count: int
    locations: list[NamedCountResponse]
    trades: list[TradeDaysResponse]
    funnel: list[NamedCountResponse]
    workload: list[DesignerLoadResponse]


class ProjectReportResponse(BaseModel):
    project_id: str
    report: str


class DesignIssueAnalysisResponse(BaseModel):
    project_id: str
    analysis: str
    suggestions: list[str]
