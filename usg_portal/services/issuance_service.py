"""
Issuance service: the issuance lifecycle.

Owns every mutation of an issuance: creation, field updates,
workflow transitions, attachments, department assignment and
soft delete. Each mutation appends to the issuance's version
history (and status history for transitions) and, when the
actor is known, writes exactly one audit entry in the same
unit of work.

Like every service, this one flushes but never commits. The
API layer owns the transaction.
"""

import enum
import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from usg_portal.exceptions import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
)
from usg_portal.models.enums import (
    AuditAction,
    AuditEntityType,
    IssuanceStatus,
)
from usg_portal.models.issuance import (
    Issuance,
    Attachment,
    StatusHistoryEntry,
    VersionHistoryEntry,
    VALID_TRANSITIONS,
)
from usg_portal.schemas.issuance import (
    AttachmentCreate,
    IssuanceCreate,
    IssuanceFilters,
    IssuanceUpdate,
)
from usg_portal.services.audit_service import AuditService
from usg_portal.services.department_service import DepartmentService
from usg_portal.services.query import (
    ISSUANCE_SORT_FIELDS,
    build_filter_query,
    order_by_column,
    paginate,
)

logger = logging.getLogger(__name__)

# Fields update() may change. Each change is recorded in version history.
TRACKED_FIELDS = (
    "title",
    "type",
    "description",
    "document_url",
    "issued_by",
    "issued_date",
    "category",
    "priority",
    "department",
    "tags",
    "internal_notes",
)


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Timestamps are stored as naive UTC."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def serialize_value(value: Any) -> Any:
    """
    JSON form of a field value, as stored in version history.

    Also used for change detection: two values are equal when
    their serialized forms are equal.
    """
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, datetime):
        return to_naive_utc(value).isoformat()
    if isinstance(value, (list, tuple)):
        return [serialize_value(v) for v in value]
    return value


def is_valid_transition(current: IssuanceStatus, target: IssuanceStatus) -> bool:
    return target in VALID_TRANSITIONS.get(current, [])


def get_valid_next_statuses(current: IssuanceStatus) -> list[IssuanceStatus]:
    """Statuses reachable from current, in declaration order."""
    return list(VALID_TRANSITIONS.get(current, []))


class IssuanceService:

    def __init__(self, db: Session):
        self.db = db
        self.audit_service = AuditService(db)
        self.department_service = DepartmentService(db)

    # --- Mutations ---

    def create(self, request: IssuanceCreate, actor_id: int | None) -> Issuance:
        """
        Create an issuance.

        The status history starts with a synthetic entry from
        None to the initial status.
        """
        department = None
        if request.department:
            department = self.department_service.validate_department(
                request.department
            ).name

        issuance = Issuance(
            title=request.title,
            type=request.type,
            description=request.description,
            document_url=request.document_url,
            issued_by=request.issued_by,
            issued_date=to_naive_utc(request.issued_date),
            category=request.category,
            department=department,
            priority=request.priority,
            tags=list(request.tags),
            internal_notes=request.internal_notes,
            status=request.status,
            created_by_id=actor_id,
            last_modified_by_id=actor_id,
        )
        for attachment in request.attachments:
            issuance.attachments.append(
                Attachment(**attachment.model_dump(), uploaded_by_id=actor_id)
            )
        issuance.status_history.append(StatusHistoryEntry(
            from_status=None,
            to_status=request.status,
            changed_by_id=actor_id,
            reason="Initial creation",
        ))

        self.db.add(issuance)
        self._flush()

        self._audit(
            actor_id,
            AuditAction.CREATE,
            issuance,
            f'Created issuance "{issuance.title}"',
            changes=[
                {"field": field, "old_value": None,
                 "new_value": serialize_value(getattr(issuance, field))}
                for field in ("title", "status", "type", "priority")
            ],
        )
        logger.info("Created issuance %s by user %s", issuance.id, actor_id)
        return issuance

    def update(
        self, issuance_id: int, request: IssuanceUpdate, actor_id: int | None
    ) -> Issuance:
        """
        Apply a partial update.

        Only fields present in the request are compared. A request
        that changes nothing is a no-op: no history, no audit and
        last_modified_by is left alone.
        """
        issuance = self._get_active(issuance_id)
        data = request.model_dump(exclude_unset=True)
        new_attachments = data.pop("attachments", None) or []

        if "department" in data:
            # Resending the current department keeps it even if since deactivated
            if (
                data["department"]
                and issuance.department
                and data["department"].lower() == issuance.department.lower()
            ):
                data["department"] = issuance.department
            elif data["department"]:
                data["department"] = self.department_service.validate_department(
                    data["department"]
                ).name
            else:
                data["department"] = None
        if "issued_date" in data:
            data["issued_date"] = to_naive_utc(data["issued_date"])
        if "tags" in data and data["tags"] is None:
            data["tags"] = []

        changes = []
        for field in TRACKED_FIELDS:
            if field not in data:
                continue
            old_value = serialize_value(getattr(issuance, field))
            new_value = serialize_value(data[field])
            if old_value == new_value:
                continue
            changes.append(
                {"field": field, "old_value": old_value, "new_value": new_value}
            )
            setattr(issuance, field, data[field])

        # Attachments merge by URL; existing ones are never replaced
        known_urls = {a.url for a in issuance.attachments}
        old_count = len(issuance.attachments)
        for attachment in new_attachments:
            if attachment["url"] in known_urls:
                continue
            known_urls.add(attachment["url"])
            issuance.attachments.append(
                Attachment(**attachment, uploaded_by_id=actor_id)
            )
        if len(issuance.attachments) != old_count:
            changes.append({
                "field": "attachments",
                "old_value": old_count,
                "new_value": len(issuance.attachments),
            })

        if not changes:
            return issuance

        for change in changes:
            self._record_version(issuance, actor_id, **change)
        self._touch(issuance, actor_id)
        self._flush()

        self._audit(
            actor_id,
            AuditAction.UPDATE,
            issuance,
            f'Updated issuance "{issuance.title}"',
            changes=changes,
        )
        logger.info(
            "Updated issuance %s by user %s (%s)",
            issuance.id, actor_id, ", ".join(c["field"] for c in changes),
        )
        return issuance

    def update_status(
        self,
        issuance_id: int,
        new_status: IssuanceStatus,
        actor_id: int | None,
        reason: str | None = None,
    ) -> Issuance:
        """
        Move an issuance through the workflow.

        The transition is checked before anything is touched, so a
        rejected transition leaves the issuance and its history
        exactly as they were.
        """
        issuance = self._get_active(issuance_id)
        old_status = issuance.status

        if not is_valid_transition(old_status, new_status):
            logger.warning(
                "Rejected transition of issuance %s from %s to %s",
                issuance.id, old_status.value, new_status.value,
            )
            raise InvalidTransitionError(old_status.value, new_status.value)

        now = datetime.utcnow()
        issuance.status = new_status
        if new_status == IssuanceStatus.APPROVED:
            issuance.approved_at = now
            issuance.approved_by_id = actor_id
        elif new_status == IssuanceStatus.REJECTED:
            issuance.rejected_at = now
            issuance.rejected_by_id = actor_id

        issuance.status_history.append(StatusHistoryEntry(
            from_status=old_status,
            to_status=new_status,
            changed_by_id=actor_id,
            changed_at=now,
            reason=reason,
        ))
        self._record_version(
            issuance, actor_id, "status", old_status.value, new_status.value
        )
        self._touch(issuance, actor_id)
        self._flush()

        self._audit(
            actor_id,
            AuditAction.STATUS_CHANGE,
            issuance,
            f'Changed status of "{issuance.title}" '
            f"from {old_status.value} to {new_status.value}",
            changes=[{
                "field": "status",
                "old_value": old_status.value,
                "new_value": new_status.value,
            }],
            metadata={"reason": reason} if reason else None,
        )
        logger.info(
            "Issuance %s moved from %s to %s by user %s",
            issuance.id, old_status.value, new_status.value, actor_id,
        )
        return issuance

    def add_attachment(
        self, issuance_id: int, request: AttachmentCreate, actor_id: int | None
    ) -> Issuance:
        issuance = self._get_active(issuance_id)
        old_count = len(issuance.attachments)

        attachment = Attachment(**request.model_dump(), uploaded_by_id=actor_id)
        issuance.attachments.append(attachment)
        self._record_version(
            issuance, actor_id, "attachments", old_count, old_count + 1
        )
        self._touch(issuance, actor_id)
        self._flush()

        self._audit(
            actor_id,
            AuditAction.ATTACHMENT_ADD,
            issuance,
            f'Added attachment "{attachment.filename}" to "{issuance.title}"',
            changes=[{
                "field": "attachments",
                "old_value": old_count,
                "new_value": old_count + 1,
            }],
            metadata={"attachment_id": attachment.id, "filename": attachment.filename},
        )
        logger.info(
            "Added attachment %s to issuance %s", attachment.id, issuance.id
        )
        return issuance

    def remove_attachment(
        self, issuance_id: int, attachment_id: int, actor_id: int | None
    ) -> Issuance:
        issuance = self._get_active(issuance_id)
        attachment = next(
            (a for a in issuance.attachments if a.id == attachment_id), None
        )
        if attachment is None:
            raise NotFoundError("Attachment", attachment_id)

        filename = attachment.filename
        issuance.attachments.remove(attachment)
        remaining = len(issuance.attachments)
        self._record_version(
            issuance, actor_id, "attachments", filename, f"{remaining} remaining"
        )
        self._touch(issuance, actor_id)
        self._flush()

        self._audit(
            actor_id,
            AuditAction.ATTACHMENT_REMOVE,
            issuance,
            f'Removed attachment "{filename}" from "{issuance.title}"',
            changes=[{
                "field": "attachments",
                "old_value": filename,
                "new_value": f"{remaining} remaining",
            }],
            metadata={"attachment_id": attachment_id, "filename": filename},
        )
        logger.info(
            "Removed attachment %s from issuance %s", attachment_id, issuance.id
        )
        return issuance

    def delete(self, issuance_id: int, actor_id: int | None) -> Issuance:
        """Soft delete. History, comments and attachments are kept."""
        issuance = self._get_active(issuance_id)

        issuance.is_deleted = True
        issuance.deleted_at = datetime.utcnow()
        issuance.deleted_by_id = actor_id
        self._record_version(issuance, actor_id, "is_deleted", False, True)
        self._touch(issuance, actor_id)
        self._flush()

        self._audit(
            actor_id,
            AuditAction.DELETE,
            issuance,
            f'Deleted issuance "{issuance.title}"',
            changes=[{"field": "is_deleted", "old_value": False, "new_value": True}],
        )
        logger.info("Deleted issuance %s by user %s", issuance.id, actor_id)
        return issuance

    def assign_department(
        self,
        issuance_id: int,
        department: str | int,
        actor_id: int | None,
        reason: str | None = None,
    ) -> Issuance:
        """Route an issuance to a department. Same department is a no-op."""
        issuance = self._get_active(issuance_id)
        new_department = self.department_service.validate_department(department).name
        old_department = issuance.department

        if old_department == new_department:
            return issuance

        issuance.department = new_department
        self._record_version(
            issuance, actor_id, "department", old_department, new_department
        )
        self._touch(issuance, actor_id)
        self._flush()

        if old_department is None:
            description = f'Assigned "{issuance.title}" to {new_department}'
        else:
            description = (
                f'Reassigned "{issuance.title}" to {new_department} '
                f"from {old_department}"
            )
        self._audit(
            actor_id,
            AuditAction.DEPARTMENT_ASSIGN,
            issuance,
            description,
            changes=[{
                "field": "department",
                "old_value": old_department,
                "new_value": new_department,
            }],
            metadata={"reason": reason} if reason else None,
        )
        logger.info(
            "Assigned issuance %s to department %s", issuance.id, new_department
        )
        return issuance

    # --- Queries ---

    def get_by_id(self, issuance_id: int) -> Issuance:
        """Any status, soft-deleted included."""
        issuance = self.db.get(Issuance, issuance_id)
        if not issuance:
            raise NotFoundError("Issuance", issuance_id)
        return issuance

    def get_published_by_id(self, issuance_id: int) -> Issuance:
        issuance = self.db.get(Issuance, issuance_id)
        if (
            not issuance
            or issuance.is_deleted
            or issuance.status != IssuanceStatus.PUBLISHED
        ):
            raise NotFoundError("Issuance", issuance_id)
        return issuance

    def get_all(
        self,
        filters: IssuanceFilters | None = None,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "issued_date",
        sort_order: str = "desc",
    ):
        """Paginated admin listing. Returns (items, Pagination)."""
        stmt = build_filter_query(filters).order_by(
            order_by_column(ISSUANCE_SORT_FIELDS, sort_by, sort_order, "issued_date"),
            Issuance.id.desc(),
        )
        return paginate(self.db, stmt, page, limit)

    def get_all_published(
        self, filters: IssuanceFilters | None = None
    ) -> list[Issuance]:
        """Every published issuance, newest issued_date first."""
        filters = (filters or IssuanceFilters()).model_copy(
            update={"status": IssuanceStatus.PUBLISHED}
        )
        stmt = build_filter_query(filters).order_by(
            Issuance.issued_date.desc(), Issuance.id.desc()
        )
        return list(self.db.execute(stmt).scalars().all())

    def get_status_history(self, issuance_id: int) -> list[StatusHistoryEntry]:
        self.get_by_id(issuance_id)
        entries = self.db.execute(
            select(StatusHistoryEntry)
            .where(StatusHistoryEntry.issuance_id == issuance_id)
            .order_by(StatusHistoryEntry.id)
        ).scalars().all()
        return list(entries)

    def get_version_history(self, issuance_id: int) -> list[VersionHistoryEntry]:
        self.get_by_id(issuance_id)
        entries = self.db.execute(
            select(VersionHistoryEntry)
            .where(VersionHistoryEntry.issuance_id == issuance_id)
            .order_by(VersionHistoryEntry.id)
        ).scalars().all()
        return list(entries)

    # --- Helpers ---

    def _get_active(self, issuance_id: int) -> Issuance:
        """Issuances can only be mutated while not soft-deleted."""
        issuance = self.db.get(Issuance, issuance_id)
        if not issuance or issuance.is_deleted:
            raise NotFoundError("Issuance", issuance_id)
        return issuance

    def _record_version(
        self,
        issuance: Issuance,
        actor_id: int | None,
        field: str,
        old_value: Any,
        new_value: Any,
    ) -> None:
        issuance.version_history.append(VersionHistoryEntry(
            field=field,
            old_value=old_value,
            new_value=new_value,
            changed_by_id=actor_id,
        ))

    def _touch(self, issuance: Issuance, actor_id: int | None) -> None:
        # Always dirties the row so the revision check runs on flush
        issuance.updated_at = datetime.utcnow()
        if actor_id is not None:
            issuance.last_modified_by_id = actor_id

    def _flush(self) -> None:
        try:
            self.db.flush()
        except StaleDataError as e:
            raise ConflictError(
                "Issuance was modified by another request. Reload and retry.",
                code="CONCURRENT_MODIFICATION",
            ) from e

    def _audit(
        self,
        actor_id: int | None,
        action: AuditAction,
        issuance: Issuance,
        description: str,
        changes: list[dict[str, Any]] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Audit entries need a performer; anonymous mutations are not logged."""
        if actor_id is None:
            return
        self.audit_service.log(
            performed_by_id=actor_id,
            action=action,
            entity_type=AuditEntityType.ISSUANCE,
            entity_id=issuance.id,
            description=description,
            changes=changes,
            metadata=metadata,
        )
