"""
Saved report model.

A saved report is a named report configuration: which rollup to
run and the issuance filters to run it with. A schedule can be
attached as data (frequency, cron expression, next run); nothing
in this service executes it.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import (
    String, Boolean, DateTime, ForeignKey, JSON, Index,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from usg_portal.models.base import Base
from usg_portal.models.enums import ExportFormat, ReportFrequency, ReportType


class SavedReport(Base):
    __tablename__ = "saved_reports"
    __table_args__ = (
        Index("ix_saved_reports_type_created_by", "type", "created_by_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    type: Mapped[ReportType] = mapped_column(
        SAEnum(ReportType, name="report_type_enum", create_constraint=True),
        nullable=False,
    )
    # {"filters": {...IssuanceFilters}, "period": "monthly" | "quarterly"}
    config: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=dict
    )
    export_format: Mapped[ExportFormat] = mapped_column(
        SAEnum(ExportFormat, name="export_format_enum", create_constraint=True),
        nullable=False,
        default=ExportFormat.JSON,
    )

    # Schedule
    schedule_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    schedule_frequency: Mapped[ReportFrequency | None] = mapped_column(
        SAEnum(
            ReportFrequency,
            name="report_frequency_enum",
            create_constraint=True,
        ),
        nullable=True,
    )
    cron_expression: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_run_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    next_run_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, index=True
    )

    is_system_report: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    created_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    created_by: Mapped["User | None"] = relationship()

    def __repr__(self) -> str:
        return f"<SavedReport {self.id} {self.type.value} {self.name}>"
