"""
Audit log endpoints. Read-only; entries are never modified.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from usg_portal.api.deps import require_admin
from usg_portal.config import get_settings
from usg_portal.models.base import get_db
from usg_portal.models.enums import AuditAction, AuditEntityType
from usg_portal.models.user import User
from usg_portal.schemas.audit_log import AuditLogFilters, AuditLogResponse
from usg_portal.schemas.common import ApiResponse, Page
from usg_portal.services.audit_service import AuditService

settings = get_settings()

router = APIRouter(prefix="/api/admin/audit-logs", tags=["Audit Logs"])


@router.get("", response_model=ApiResponse[Page[AuditLogResponse]])
def list_audit_logs(
    performed_by_id: int | None = None,
    action: AuditAction | None = None,
    entity_type: AuditEntityType | None = None,
    entity_id: int | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=settings.MAX_PAGE_LIMIT),
    sort_by: str = "timestamp",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    filters = AuditLogFilters(
        performed_by_id=performed_by_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        start_date=start_date,
        end_date=end_date,
    )
    logs, pagination = AuditService(db).get_logs(
        filters, page=page, limit=limit, sort_by=sort_by, sort_order=sort_order
    )
    return ApiResponse(data=Page(
        items=[AuditLogResponse.model_validate(log) for log in logs],
        pagination=pagination,
    ))


@router.get("/recent", response_model=ApiResponse[list[AuditLogResponse]])
def recent_activity(
    limit: int = Query(10, ge=1, le=settings.MAX_PAGE_LIMIT),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    logs = AuditService(db).get_recent_activity(limit)
    return ApiResponse(data=[AuditLogResponse.model_validate(log) for log in logs])


@router.get(
    "/entity/{entity_type}/{entity_id}",
    response_model=ApiResponse[list[AuditLogResponse]],
)
def entity_audit_logs(
    entity_type: AuditEntityType,
    entity_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    logs = AuditService(db).get_logs_for_entity(entity_type, entity_id)
    return ApiResponse(data=[AuditLogResponse.model_validate(log) for log in logs])


@router.get(
    "/admin/{user_id}",
    response_model=ApiResponse[Page[AuditLogResponse]],
)
def admin_audit_logs(
    user_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=settings.MAX_PAGE_LIMIT),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    logs, pagination = AuditService(db).get_logs_by_admin(
        user_id, page=page, limit=limit
    )
    return ApiResponse(data=Page(
        items=[AuditLogResponse.model_validate(log) for log in logs],
        pagination=pagination,
    ))
