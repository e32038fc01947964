"""
Saved report service: named report configurations.

A saved report pairs a rollup from ReportService with the
filters to run it with. Schedules are stored as data only (a
frequency, a cron expression and the next due time); running
them on time is left to an external job runner.
"""

import calendar
import logging
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from usg_portal.exceptions import NotFoundError
from usg_portal.models.enums import (
    AuditAction,
    AuditEntityType,
    ReportFrequency,
    ReportType,
)
from usg_portal.models.report import SavedReport
from usg_portal.schemas.report import (
    GeneratedReport,
    ReportConfig,
    SavedReportCreate,
)
from usg_portal.services.audit_service import AuditService
from usg_portal.services.report_service import ReportService

logger = logging.getLogger(__name__)

# Runs at 08:00 on the first day of each period
CRON_EXPRESSIONS = {
    ReportFrequency.DAILY: "0 8 * * *",
    ReportFrequency.WEEKLY: "0 8 * * 1",
    ReportFrequency.MONTHLY: "0 8 1 * *",
    ReportFrequency.QUARTERLY: "0 8 1 1,4,7,10 *",
}


def _add_months(moment: datetime, months: int) -> datetime:
    """Shift by whole months, clamping the day to the target month's length."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def calculate_next_run(frequency: ReportFrequency, now: datetime) -> datetime:
    if frequency == ReportFrequency.DAILY:
        return now + timedelta(days=1)
    if frequency == ReportFrequency.WEEKLY:
        return now + timedelta(days=7)
    if frequency == ReportFrequency.MONTHLY:
        return _add_months(now, 1)
    return _add_months(now, 3)


class SavedReportService:

    def __init__(self, db: Session):
        self.db = db
        self.audit_service = AuditService(db)

    def get_saved_reports(self, user_id: int | None = None) -> list[SavedReport]:
        """A user's own reports, or the system reports when no user is given."""
        stmt = select(SavedReport)
        if user_id is not None:
            stmt = stmt.where(SavedReport.created_by_id == user_id)
        else:
            stmt = stmt.where(SavedReport.is_system_report.is_(True))
        stmt = stmt.order_by(SavedReport.created_at.desc(), SavedReport.id.desc())
        return list(self.db.execute(stmt).scalars().all())

    def get_by_id(self, report_id: int) -> SavedReport:
        report = self.db.get(SavedReport, report_id)
        if not report:
            raise NotFoundError("Report", report_id)
        return report

    def create(self, request: SavedReportCreate, user_id: int) -> SavedReport:
        report = SavedReport(
            name=request.name,
            description=request.description,
            type=request.type,
            config=request.config.model_dump(mode="json"),
            export_format=request.export_format,
            created_by_id=user_id,
            is_system_report=False,
        )
        self.db.add(report)
        self.db.flush()

        self.audit_service.log(
            performed_by_id=user_id,
            action=AuditAction.REPORT_CREATE,
            entity_type=AuditEntityType.REPORT,
            entity_id=report.id,
            description=f'Saved report "{report.name}"',
            changes=[{"field": "type", "old_value": None, "new_value": report.type.value}],
        )
        logger.info("Saved report %s (%s) for user %s", report.id, report.type.value, user_id)
        return report

    def generate(self, report_id: int) -> GeneratedReport:
        """Run the report's rollup with its stored filters."""
        report = self.get_by_id(report_id)
        config = ReportConfig.model_validate(report.config or {})
        reports = ReportService(self.db)
        filters = config.filters

        if report.type == ReportType.STATUS_BREAKDOWN:
            data = reports.get_status_counts(filters)
        elif report.type == ReportType.PRIORITY_DISTRIBUTION:
            data = reports.get_priority_counts(filters)
        elif report.type == ReportType.DEPARTMENT_ANALYSIS:
            data = [
                b.model_dump() for b in reports.get_department_breakdown(filters)
            ]
        elif report.type == ReportType.TREND_ANALYSIS:
            data = [
                p.model_dump()
                for p in reports.get_trend_analysis(config.period, filters)
            ]
        elif report.type == ReportType.CUSTOM:
            data = {
                "summary": reports.get_summary_statistics(filters).model_dump(),
                "departments": [
                    b.model_dump()
                    for b in reports.get_department_breakdown(filters)
                ],
                "trends": [
                    p.model_dump()
                    for p in reports.get_trend_analysis(config.period, filters)
                ],
                "resolution_time": reports.get_average_resolution_time(
                    filters
                ).model_dump(),
            }
        else:
            data = reports.get_summary_statistics(filters).model_dump()

        generated_at = datetime.utcnow()
        report.last_run_at = generated_at
        self.db.flush()

        return GeneratedReport(
            report_id=report.id,
            name=report.name,
            type=report.type,
            generated_at=generated_at,
            data=data,
        )

    def schedule(
        self,
        report_id: int,
        frequency: ReportFrequency,
        actor_id: int,
    ) -> SavedReport:
        """Attach a schedule. Rescheduling overwrites the previous one."""
        report = self.get_by_id(report_id)
        old_frequency = report.schedule_frequency

        report.schedule_enabled = True
        report.schedule_frequency = frequency
        report.cron_expression = CRON_EXPRESSIONS[frequency]
        report.next_run_at = calculate_next_run(frequency, datetime.utcnow())
        self.db.flush()

        self.audit_service.log(
            performed_by_id=actor_id,
            action=AuditAction.REPORT_SCHEDULE,
            entity_type=AuditEntityType.REPORT,
            entity_id=report.id,
            description=f'Scheduled report "{report.name}" ({frequency.value})',
            changes=[{
                "field": "schedule_frequency",
                "old_value": old_frequency.value if old_frequency else None,
                "new_value": frequency.value,
            }],
            metadata={"cron_expression": report.cron_expression},
        )
        logger.info(
            "Report %s scheduled %s, next run %s",
            report.id, frequency.value, report.next_run_at.isoformat(),
        )
        return report
