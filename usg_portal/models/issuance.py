"""
Issuance model and its history tables.

An issuance is an official document (resolution, memorandum,
report, circular) moving through a review workflow. Its status
history and field-level version history are append-only child
tables; rows are never rewritten, and deleting an issuance only
sets a tombstone flag.

The state machine is defined here. Enforcement lives in
IssuanceService.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import (
    String, Text, Integer, Boolean, DateTime, ForeignKey, JSON, Index,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from usg_portal.models.base import Base
from usg_portal.models.enums import (
    IssuanceStatus,
    IssuanceType,
    IssuancePriority,
    AttachmentFileType,
)


# Valid state transitions. Every status may move to any other
# status; only a transition to the current status is rejected.
VALID_TRANSITIONS: dict[IssuanceStatus, list[IssuanceStatus]] = {
    current: [target for target in IssuanceStatus if target != current]
    for current in IssuanceStatus
}


class Issuance(Base):
    __tablename__ = "issuances"
    __table_args__ = (
        Index("ix_issuances_status_type_priority", "status", "type", "priority"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    type: Mapped[IssuanceType] = mapped_column(
        SAEnum(IssuanceType, name="issuance_type_enum", create_constraint=True),
        nullable=False,
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    document_url: Mapped[str] = mapped_column(String(1000), nullable=False)
    issued_by: Mapped[str | None] = mapped_column(String(200), nullable=True)
    issued_date: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, index=True
    )
    category: Mapped[str | None] = mapped_column(
        String(100), nullable=True, index=True
    )
    department: Mapped[str | None] = mapped_column(
        String(100), nullable=True, index=True
    )
    priority: Mapped[IssuancePriority] = mapped_column(
        SAEnum(
            IssuancePriority,
            name="issuance_priority_enum",
            create_constraint=True,
        ),
        nullable=False,
        default=IssuancePriority.MEDIUM,
    )
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    internal_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Workflow
    status: Mapped[IssuanceStatus] = mapped_column(
        SAEnum(
            IssuanceStatus,
            name="issuance_status_enum",
            create_constraint=True,
        ),
        nullable=False,
        default=IssuanceStatus.DRAFT,
    )
    approved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    approved_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id"), nullable=True
    )
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    rejected_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id"), nullable=True
    )

    # Soft delete
    is_deleted: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, index=True
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    deleted_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id"), nullable=True
    )

    created_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id"), nullable=True
    )
    last_modified_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Optimistic concurrency: every UPDATE checks and bumps this counter
    revision: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": revision}

    # Relationships
    attachments: Mapped[list["Attachment"]] = relationship(
        back_populates="issuance",
        cascade="all, delete-orphan",
        order_by="Attachment.id",
    )
    status_history: Mapped[list["StatusHistoryEntry"]] = relationship(
        cascade="all, delete-orphan",
        order_by="StatusHistoryEntry.id",
    )
    version_history: Mapped[list["VersionHistoryEntry"]] = relationship(
        cascade="all, delete-orphan",
        order_by="VersionHistoryEntry.id",
    )
    created_by: Mapped["User | None"] = relationship(foreign_keys=[created_by_id])
    last_modified_by: Mapped["User | None"] = relationship(
        foreign_keys=[last_modified_by_id]
    )
    approved_by: Mapped["User | None"] = relationship(foreign_keys=[approved_by_id])
    rejected_by: Mapped["User | None"] = relationship(foreign_keys=[rejected_by_id])
    deleted_by: Mapped["User | None"] = relationship(foreign_keys=[deleted_by_id])

    def __repr__(self) -> str:
        return f"<Issuance {self.id} {self.type.value} ({self.status.value})>"


class Attachment(Base):
    """File metadata linked to an issuance. The file itself lives elsewhere."""

    __tablename__ = "issuance_attachments"

    id: Mapped[int] = mapped_column(primary_key=True)
    issuance_id: Mapped[int] = mapped_column(
        ForeignKey("issuances.id"), nullable=False, index=True
    )
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str] = mapped_column(String(1000), nullable=False)
    file_type: Mapped[AttachmentFileType] = mapped_column(
        SAEnum(AttachmentFileType, name="attachment_file_type_enum"),
        nullable=False,
        default=AttachmentFileType.DOCUMENT,
    )
    mime_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    uploaded_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id"), nullable=True
    )
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    issuance: Mapped["Issuance"] = relationship(back_populates="attachments")
    uploaded_by: Mapped["User | None"] = relationship()

    def __repr__(self) -> str:
        return f"<Attachment {self.filename}>"


class StatusHistoryEntry(Base):
    """One workflow transition. from_status is None for the creation entry."""

    __tablename__ = "issuance_status_history"

    id: Mapped[int] = mapped_column(primary_key=True)
    issuance_id: Mapped[int] = mapped_column(
        ForeignKey("issuances.id"), nullable=False, index=True
    )
    from_status: Mapped[IssuanceStatus | None] = mapped_column(
        SAEnum(IssuanceStatus, name="issuance_status_enum"),
        nullable=True,
    )
    to_status: Mapped[IssuanceStatus] = mapped_column(
        SAEnum(IssuanceStatus, name="issuance_status_enum"),
        nullable=False,
    )
    changed_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id"), nullable=True
    )
    changed_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    changed_by: Mapped["User | None"] = relationship()


class VersionHistoryEntry(Base):
    """
    One field-level change.

    Values are stored in their JSON form (enums as their value,
    datetimes as ISO strings) so any field fits one column.
    """

    __tablename__ = "issuance_version_history"

    id: Mapped[int] = mapped_column(primary_key=True)
    issuance_id: Mapped[int] = mapped_column(
        ForeignKey("issuances.id"), nullable=False, index=True
    )
    field: Mapped[str] = mapped_column(String(50), nullable=False)
    old_value: Mapped[Any] = mapped_column(JSON, nullable=True)
    new_value: Mapped[Any] = mapped_column(JSON, nullable=True)
    changed_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id"), nullable=True
    )
    changed_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    changed_by: Mapped["User | None"] = relationship()
