"""
Report service: read-only rollups over issuances.

Every report takes the same IssuanceFilters as the admin list
and ignores soft-deleted issuances. Counting happens in SQL
(GROUP BY with CASE sums); only the quarterly fold and the
resolution-time mean are finished in Python.
"""

from sqlalchemy import case, extract, func, or_, select
from sqlalchemy.orm import Session

from usg_portal.models.enums import IssuancePriority, IssuanceStatus
from usg_portal.models.issuance import Issuance
from usg_portal.schemas.audit_log import AuditLogResponse
from usg_portal.schemas.issuance import IssuanceFilters
from usg_portal.schemas.report import (
    DashboardAnalytics,
    DepartmentBreakdown,
    ResolutionTime,
    SummaryStatistics,
    TrendPoint,
)
from usg_portal.services.audit_service import AuditService
from usg_portal.services.query import escape_like, issuance_conditions, paginate

UNASSIGNED = "Unassigned"
TREND_PERIODS = ("monthly", "quarterly")


def _count_where(condition):
    return func.sum(case((condition, 1), else_=0))


# Columns shared by the department breakdown and the trend series
_OUTCOME_COLUMNS = (
    func.count(Issuance.id).label("total"),
    _count_where(Issuance.status == IssuanceStatus.APPROVED).label("approved"),
    _count_where(Issuance.status == IssuanceStatus.REJECTED).label("rejected"),
    _count_where(Issuance.status == IssuanceStatus.PENDING).label("pending"),
    _count_where(Issuance.priority == IssuancePriority.HIGH).label("high_priority"),
)


class ReportService:

    def __init__(self, db: Session):
        self.db = db

    def get_status_counts(self, filters: IssuanceFilters | None = None) -> dict[str, int]:
        """Every status, zero-filled."""
        rows = self.db.execute(
            select(Issuance.status, func.count(Issuance.id))
            .where(*issuance_conditions(filters))
            .group_by(Issuance.status)
        ).all()
        counts = {status.value: 0 for status in IssuanceStatus}
        for status, count in rows:
            counts[status.value] = count
        return counts

    def get_priority_counts(self, filters: IssuanceFilters | None = None) -> dict[str, int]:
        rows = self.db.execute(
            select(Issuance.priority, func.count(Issuance.id))
            .where(*issuance_conditions(filters))
            .group_by(Issuance.priority)
        ).all()
        counts = {priority.value: 0 for priority in IssuancePriority}
        for priority, count in rows:
            counts[priority.value] = count
        return counts

    def get_summary_statistics(
        self, filters: IssuanceFilters | None = None
    ) -> SummaryStatistics:
        by_status = self.get_status_counts(filters)
        return SummaryStatistics(
            total=sum(by_status.values()),
            draft=by_status[IssuanceStatus.DRAFT.value],
            pending=by_status[IssuanceStatus.PENDING.value],
            under_review=by_status[IssuanceStatus.UNDER_REVIEW.value],
            approved=by_status[IssuanceStatus.APPROVED.value],
            rejected=by_status[IssuanceStatus.REJECTED.value],
            published=by_status[IssuanceStatus.PUBLISHED.value],
            by_priority=self.get_priority_counts(filters),
        )

    def get_department_breakdown(
        self, filters: IssuanceFilters | None = None
    ) -> list[DepartmentBreakdown]:
        """Per-department outcome counts, busiest department first."""
        rows = self.db.execute(
            select(Issuance.department, *_OUTCOME_COLUMNS)
            .where(*issuance_conditions(filters))
            .group_by(Issuance.department)
        ).all()

        breakdown = [
            DepartmentBreakdown(
                department=row.department or UNASSIGNED,
                count=row.total,
                approved=row.approved or 0,
                rejected=row.rejected or 0,
                pending=row.pending or 0,
                high_priority=row.high_priority or 0,
            )
            for row in rows
        ]
        breakdown.sort(key=lambda b: (-b.count, b.department))
        return breakdown

    def get_trend_analysis(
        self,
        period: str = "monthly",
        filters: IssuanceFilters | None = None,
    ) -> list[TrendPoint]:
        """
        Issuance counts over time, bucketed by created_at.

        Monthly buckets come straight from SQL; quarterly ones are
        folded from the monthly rows.
        """
        if period not in TREND_PERIODS:
            raise ValueError(f"Unknown trend period '{period}'")

        year = extract("year", Issuance.created_at)
        month = extract("month", Issuance.created_at)
        rows = self.db.execute(
            select(year.label("year"), month.label("month"), *_OUTCOME_COLUMNS)
            .where(*issuance_conditions(filters))
            .group_by(year, month)
            .order_by(year, month)
        ).all()

        buckets: dict[tuple[int, int], dict[str, int]] = {}
        for row in rows:
            row_year, row_month = int(row.year), int(row.month)
            key = (
                (row_year, row_month) if period == "monthly"
                else (row_year, (row_month - 1) // 3 + 1)
            )
            bucket = buckets.setdefault(key, {
                "total": 0, "approved": 0, "rejected": 0,
                "pending": 0, "high_priority": 0,
            })
            for name in bucket:
                bucket[name] += getattr(row, name) or 0

        points = []
        for (bucket_year, unit), counts in sorted(buckets.items()):
            if period == "monthly":
                points.append(TrendPoint(
                    year=bucket_year, month=unit,
                    label=f"{bucket_year}-{unit:02d}", **counts,
                ))
            else:
                points.append(TrendPoint(
                    year=bucket_year, quarter=unit,
                    label=f"{bucket_year}-Q{unit}", **counts,
                ))
        return points

    def get_average_resolution_time(
        self, filters: IssuanceFilters | None = None
    ) -> ResolutionTime:
        """Mean days from creation to approval over approved or published issuances."""
        rows = self.db.execute(
            select(Issuance.created_at, Issuance.approved_at).where(
                *issuance_conditions(filters),
                Issuance.status.in_(
                    [IssuanceStatus.APPROVED, IssuanceStatus.PUBLISHED]
                ),
                Issuance.approved_at.is_not(None),
            )
        ).all()

        if not rows:
            return ResolutionTime(average_days=None, resolved_count=0)

        total_days = sum(
            (approved_at - created_at).total_seconds() / 86400
            for created_at, approved_at in rows
        )
        return ResolutionTime(
            average_days=round(total_days / len(rows), 2),
            resolved_count=len(rows),
        )

    def search_issuances(self, query: str, page: int = 1, limit: int = 10):
        """Case-insensitive substring search. Returns (items, Pagination)."""
        pattern = f"%{escape_like(query.strip())}%"
        stmt = (
            select(Issuance)
            .where(
                *issuance_conditions(None),
                or_(*(
                    column.ilike(pattern, escape="\\")
                    for column in (
                        Issuance.title,
                        Issuance.description,
                        Issuance.department,
                        Issuance.category,
                        Issuance.issued_by,
                    )
                )),
            )
            .order_by(Issuance.issued_date.desc(), Issuance.id.desc())
        )
        return paginate(self.db, stmt, page, limit)

    def get_dashboard_analytics(
        self, filters: IssuanceFilters | None = None
    ) -> DashboardAnalytics:
        summary = self.get_summary_statistics(filters)
        return DashboardAnalytics(
            summary=summary,
            status_breakdown=self.get_status_counts(filters),
            priority_breakdown=summary.by_priority,
            monthly_trends=self.get_trend_analysis("monthly", filters),
            resolution_time=self.get_average_resolution_time(filters),
            recent_activity=[
                AuditLogResponse.model_validate(log)
                for log in AuditService(self.db).get_recent_activity(10)
            ],
        )
