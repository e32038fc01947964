"""
Report endpoints (admin). Rollups are read-only; saved reports
store a configuration and an optional schedule.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from usg_portal.api.deps import get_issuance_filters, require_admin
from usg_portal.config import get_settings
from usg_portal.exceptions import PortalError
from usg_portal.models.base import get_db
from usg_portal.models.user import User
from usg_portal.schemas.common import ApiResponse, Page
from usg_portal.schemas.issuance import IssuanceFilters, IssuanceResponse
from usg_portal.schemas.report import (
    DashboardAnalytics,
    DepartmentBreakdown,
    GeneratedReport,
    ReportScheduleRequest,
    ResolutionTime,
    SavedReportCreate,
    SavedReportResponse,
    SummaryStatistics,
    TrendPoint,
)
from usg_portal.services.report_service import ReportService
from usg_portal.services.saved_report_service import SavedReportService

settings = get_settings()

router = APIRouter(prefix="/api/reports", tags=["Reports"])


@router.get("/summary", response_model=ApiResponse[SummaryStatistics])
def summary(
    filters: IssuanceFilters = Depends(get_issuance_filters),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return ApiResponse(data=ReportService(db).get_summary_statistics(filters))


@router.get("/trends", response_model=ApiResponse[list[TrendPoint]])
def trends(
    period: str = Query("monthly", pattern="^(monthly|quarterly)$"),
    filters: IssuanceFilters = Depends(get_issuance_filters),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return ApiResponse(data=ReportService(db).get_trend_analysis(period, filters))


@router.get("/departments", response_model=ApiResponse[list[DepartmentBreakdown]])
def department_breakdown(
    filters: IssuanceFilters = Depends(get_issuance_filters),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return ApiResponse(data=ReportService(db).get_department_breakdown(filters))


@router.get("/resolution-time", response_model=ApiResponse[ResolutionTime])
def resolution_time(
    filters: IssuanceFilters = Depends(get_issuance_filters),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return ApiResponse(
        data=ReportService(db).get_average_resolution_time(filters)
    )


@router.get("/dashboard", response_model=ApiResponse[DashboardAnalytics])
def dashboard(
    filters: IssuanceFilters = Depends(get_issuance_filters),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return ApiResponse(data=ReportService(db).get_dashboard_analytics(filters))


@router.get("/search", response_model=ApiResponse[Page[IssuanceResponse]])
def search(
    q: str = Query(min_length=1, max_length=200),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Substring search over title, description, department, category, issuer."""
    issuances, pagination = ReportService(db).search_issuances(q, page, limit)
    return ApiResponse(data=Page(
        items=[IssuanceResponse.model_validate(i) for i in issuances],
        pagination=pagination,
    ))


# --- Saved Reports ---

@router.get("", response_model=ApiResponse[list[SavedReportResponse]])
def list_saved_reports(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """The caller's own saved reports, newest first."""
    reports = SavedReportService(db).get_saved_reports(admin.id)
    return ApiResponse(
        data=[SavedReportResponse.model_validate(r) for r in reports]
    )


@router.post("", response_model=ApiResponse[SavedReportResponse], status_code=201)
def create_saved_report(
    request: SavedReportCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    service = SavedReportService(db)
    try:
        report = service.create(request, admin.id)
        db.commit()
    except PortalError:
        db.rollback()
        raise
    return ApiResponse(
        message="Report configuration saved",
        data=SavedReportResponse.model_validate(report),
    )


@router.get("/{report_id}", response_model=ApiResponse[SavedReportResponse])
def get_saved_report(
    report_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    report = SavedReportService(db).get_by_id(report_id)
    return ApiResponse(data=SavedReportResponse.model_validate(report))


@router.post("/{report_id}/generate", response_model=ApiResponse[GeneratedReport])
def generate_saved_report(
    report_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    service = SavedReportService(db)
    try:
        generated = service.generate(report_id)
        db.commit()
    except PortalError:
        db.rollback()
        raise
    return ApiResponse(data=generated)


@router.post(
    "/{report_id}/schedule",
    response_model=ApiResponse[SavedReportResponse],
)
def schedule_saved_report(
    report_id: int,
    request: ReportScheduleRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Store a schedule on the report. Nothing here runs it."""
    service = SavedReportService(db)
    try:
        report = service.schedule(report_id, request.frequency, admin.id)
        db.commit()
    except PortalError:
        db.rollback()
        raise
    return ApiResponse(
        message="Report scheduling configured",
        data=SavedReportResponse.model_validate(report),
    )
