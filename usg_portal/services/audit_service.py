"""
Audit service: the append-only trail of administrative actions.

Other services call log() inside their own unit of work, so an
audit row is committed together with the mutation it describes.
Entries are never modified; see the mapper events on AuditLog.
"""

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from usg_portal.models.audit_log import AuditLog
from usg_portal.models.enums import AuditAction, AuditEntityType
from usg_portal.schemas.audit_log import AuditLogFilters
from usg_portal.services.query import order_by_column, paginate

logger = logging.getLogger(__name__)

AUDIT_SORT_FIELDS = {
    "timestamp": AuditLog.timestamp,
    "action": AuditLog.action,
    "entity_type": AuditLog.entity_type,
}


class AuditService:

    def __init__(self, db: Session):
        self.db = db

    def log(
        self,
        performed_by_id: int,
        action: AuditAction,
        entity_type: AuditEntityType,
        entity_id: int,
        description: str,
        changes: list[dict[str, Any]] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AuditLog:
        """Append one audit record."""
        entry = AuditLog(
            performed_by_id=performed_by_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            changes=changes or [],
            extra_metadata=metadata or {},
        )
        self.db.add(entry)
        self.db.flush()

        logger.info(
            "Audit %s on %s %s by user %s",
            action.value, entity_type.value, entity_id, performed_by_id,
        )
        return entry

    def get_logs(
        self,
        filters: AuditLogFilters | None = None,
        page: int = 1,
        limit: int = 20,
        sort_by: str = "timestamp",
        sort_order: str = "desc",
    ):
        """Filtered, paginated audit log listing. Newest first by default."""
        stmt = select(AuditLog)
        if filters is not None:
            if filters.performed_by_id is not None:
                stmt = stmt.where(AuditLog.performed_by_id == filters.performed_by_id)
            if filters.action is not None:
                stmt = stmt.where(AuditLog.action == filters.action)
            if filters.entity_type is not None:
                stmt = stmt.where(AuditLog.entity_type == filters.entity_type)
            if filters.entity_id is not None:
                stmt = stmt.where(AuditLog.entity_id == filters.entity_id)
            if filters.start_date is not None:
                stmt = stmt.where(AuditLog.timestamp >= filters.start_date)
            if filters.end_date is not None:
                stmt = stmt.where(AuditLog.timestamp <= filters.end_date)

        stmt = stmt.order_by(
            order_by_column(AUDIT_SORT_FIELDS, sort_by, sort_order, "timestamp"),
            AuditLog.id.desc() if sort_order != "asc" else AuditLog.id.asc(),
        )
        return paginate(self.db, stmt, page, limit)

    def get_logs_for_entity(
        self, entity_type: AuditEntityType, entity_id: int
    ) -> list[AuditLog]:
        """Full history of one entity, newest first."""
        logs = self.db.execute(
            select(AuditLog)
            .where(
                AuditLog.entity_type == entity_type,
                AuditLog.entity_id == entity_id,
            )
            .order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
        ).scalars().all()
        return list(logs)

    def get_logs_by_admin(
        self, user_id: int, page: int = 1, limit: int = 20
    ):
        """Everything one administrator did, newest first."""
        return self.get_logs(
            AuditLogFilters(performed_by_id=user_id), page=page, limit=limit
        )

    def get_recent_activity(self, limit: int = 10) -> list[AuditLog]:
        logs = self.db.execute(
            select(AuditLog)
            .order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
            .limit(limit)
        ).scalars().all()
        return list(logs)
