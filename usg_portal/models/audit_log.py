"""
Audit log model.

Records every administrative mutation: who did what to which
entity, and the field-level diff.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import (
    Text, Integer, DateTime, ForeignKey, JSON, Index,
    Enum as SAEnum, event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from usg_portal.models.base import Base
from usg_portal.models.enums import AuditAction, AuditEntityType


class AuditLog(Base):
    """
    Immutable record of an administrative action.

    Audit logs are append-only. The mapper events below make any
    attempt to update or delete a persisted row fail at flush time.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_entity", "entity_type", "entity_id", "timestamp"),
        Index("ix_audit_logs_performer", "performed_by_id", "timestamp"),
        Index("ix_audit_logs_action", "action", "timestamp"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    performed_by_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"), nullable=False
    )
    action: Mapped[AuditAction] = mapped_column(
        SAEnum(AuditAction, name="audit_action_enum", create_constraint=True),
        nullable=False,
    )
    entity_type: Mapped[AuditEntityType] = mapped_column(
        SAEnum(
            AuditEntityType,
            name="audit_entity_type_enum",
            create_constraint=True,
        ),
        nullable=False,
    )
    entity_id: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    # List of {"field", "old_value", "new_value"}
    changes: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )
    # "metadata" is reserved on declarative classes
    extra_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )
    timestamp: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    performed_by: Mapped["User"] = relationship()

    def __repr__(self) -> str:
        return (
            f"<AuditLog {self.action.value} "
            f"{self.entity_type.value}:{self.entity_id}>"
        )


@event.listens_for(AuditLog, "before_update")
def _reject_audit_update(mapper, connection, target):
    raise ValueError("AuditLog entries are append-only. Updates are not allowed.")


@event.listens_for(AuditLog, "before_delete")
def _reject_audit_delete(mapper, connection, target):
    raise ValueError("AuditLog entries are append-only. Deletions are not allowed.")
