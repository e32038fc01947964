"""
Pydantic schemas for report output and saved report configurations.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from usg_portal.models.enums import ExportFormat, ReportFrequency, ReportType
from usg_portal.schemas.audit_log import AuditLogResponse
from usg_portal.schemas.common import UserSummary
from usg_portal.schemas.issuance import IssuanceFilters


class SummaryStatistics(BaseModel):
    total: int
    draft: int
    pending: int
    under_review: int
    approved: int
    rejected: int
    published: int
    by_priority: dict[str, int]


class DepartmentBreakdown(BaseModel):
    department: str
    count: int
    approved: int
    rejected: int
    pending: int
    high_priority: int


class TrendPoint(BaseModel):
    year: int
    month: int | None = None
    quarter: int | None = None
    label: str
    total: int
    approved: int
    rejected: int
    pending: int
    high_priority: int


class ResolutionTime(BaseModel):
    average_days: float | None
    resolved_count: int


class DashboardAnalytics(BaseModel):
    summary: SummaryStatistics
    status_breakdown: dict[str, int]
    priority_breakdown: dict[str, int]
    monthly_trends: list[TrendPoint]
    resolution_time: ResolutionTime
    recent_activity: list[AuditLogResponse]


# --- Saved Reports ---

class ReportConfig(BaseModel):
    filters: IssuanceFilters = Field(default_factory=IssuanceFilters)
    period: str = Field(default="monthly", pattern="^(monthly|quarterly)$")


class SavedReportCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=500)
    type: ReportType
    config: ReportConfig = Field(default_factory=ReportConfig)
    export_format: ExportFormat = ExportFormat.JSON

    model_config = {"str_strip_whitespace": True}


class ReportScheduleRequest(BaseModel):
    frequency: ReportFrequency


class SavedReportResponse(BaseModel):
    id: int
    name: str
    description: str | None
    type: ReportType
    config: dict[str, Any]
    export_format: ExportFormat
    schedule_enabled: bool
    schedule_frequency: ReportFrequency | None
    cron_expression: str | None
    last_run_at: datetime | None
    next_run_at: datetime | None
    is_system_report: bool
    created_by: UserSummary | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class GeneratedReport(BaseModel):
    report_id: int
    name: str
    type: ReportType
    generated_at: datetime
    data: Any
