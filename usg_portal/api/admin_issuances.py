"""
Admin issuance endpoints.

Full lifecycle management: any status, internal notes, workflow
transitions, attachments, department routing and history. Every
mutation is committed here, after the service has written the
history and audit rows in the same transaction.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from usg_portal.api.deps import get_issuance_filters, require_admin
from usg_portal.config import get_settings
from usg_portal.exceptions import PortalError
from usg_portal.models.base import get_db
from usg_portal.models.user import User
from usg_portal.schemas.comment import (
    CommentCountResponse,
    CommentCreate,
    CommentResponse,
)
from usg_portal.schemas.common import ApiResponse, Page
from usg_portal.schemas.issuance import (
    AttachmentCreate,
    DepartmentAssign,
    IssuanceCreate,
    IssuanceFilters,
    IssuanceResponse,
    IssuanceStatusUpdate,
    IssuanceUpdate,
    StatusHistoryResponse,
    ValidStatusesResponse,
    VersionHistoryResponse,
)
from usg_portal.services.comment_service import CommentService
from usg_portal.services.issuance_service import (
    IssuanceService,
    get_valid_next_statuses,
)

settings = get_settings()

router = APIRouter(prefix="/api/admin/issuances", tags=["Admin Issuances"])


# --- Issuance Endpoints ---

@router.get("", response_model=ApiResponse[Page[IssuanceResponse]])
def list_issuances(
    filters: IssuanceFilters = Depends(get_issuance_filters),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
    sort_by: str = "issued_date",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """List issuances in any status. Soft-deleted ones are hidden."""
    service = IssuanceService(db)
    issuances, pagination = service.get_all(
        filters, page=page, limit=limit, sort_by=sort_by, sort_order=sort_order
    )
    return ApiResponse(data=Page(
        items=[IssuanceResponse.model_validate(i) for i in issuances],
        pagination=pagination,
    ))


@router.post("", response_model=ApiResponse[IssuanceResponse], status_code=201)
def create_issuance(
    request: IssuanceCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    service = IssuanceService(db)
    try:
        issuance = service.create(request, admin.id)
        db.commit()
    except PortalError:
        db.rollback()
        raise
    return ApiResponse(
        message="Issuance created successfully",
        data=IssuanceResponse.model_validate(issuance),
    )


@router.get("/{issuance_id}", response_model=ApiResponse[IssuanceResponse])
def get_issuance(
    issuance_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    service = IssuanceService(db)
    issuance = service.get_by_id(issuance_id)
    return ApiResponse(data=IssuanceResponse.model_validate(issuance))


@router.put("/{issuance_id}", response_model=ApiResponse[IssuanceResponse])
def update_issuance(
    issuance_id: int,
    request: IssuanceUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Partial update. Fields left out of the body are untouched."""
    service = IssuanceService(db)
    try:
        issuance = service.update(issuance_id, request, admin.id)
        db.commit()
    except PortalError:
        db.rollback()
        raise
    return ApiResponse(
        message="Issuance updated successfully",
        data=IssuanceResponse.model_validate(issuance),
    )


@router.delete("/{issuance_id}", response_model=ApiResponse)
def delete_issuance(
    issuance_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Soft delete. History stays available through the history endpoints."""
    service = IssuanceService(db)
    try:
        service.delete(issuance_id, admin.id)
        db.commit()
    except PortalError:
        db.rollback()
        raise
    return ApiResponse(message="Issuance deleted successfully")


# --- Workflow Endpoints ---

@router.patch("/{issuance_id}/status", response_model=ApiResponse[IssuanceResponse])
def update_issuance_status(
    issuance_id: int,
    request: IssuanceStatusUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Move an issuance to a new status.

    Rejected transitions answer 400 and change nothing.
    """
    service = IssuanceService(db)
    try:
        issuance = service.update_status(
            issuance_id, request.status, admin.id, request.reason
        )
        db.commit()
    except PortalError:
        db.rollback()
        raise
    return ApiResponse(
        message=f"Status updated to {request.status.value}",
        data=IssuanceResponse.model_validate(issuance),
    )


@router.get(
    "/{issuance_id}/valid-statuses",
    response_model=ApiResponse[ValidStatusesResponse],
)
def get_valid_statuses(
    issuance_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    issuance = IssuanceService(db).get_by_id(issuance_id)
    return ApiResponse(data=ValidStatusesResponse(
        current_status=issuance.status,
        valid_next_statuses=get_valid_next_statuses(issuance.status),
    ))


@router.patch(
    "/{issuance_id}/department",
    response_model=ApiResponse[IssuanceResponse],
)
def assign_department(
    issuance_id: int,
    request: DepartmentAssign,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    service = IssuanceService(db)
    try:
        issuance = service.assign_department(
            issuance_id, request.department, admin.id, request.reason
        )
        db.commit()
    except PortalError:
        db.rollback()
        raise
    return ApiResponse(
        message="Department assigned successfully",
        data=IssuanceResponse.model_validate(issuance),
    )


# --- Attachment Endpoints ---

@router.post(
    "/{issuance_id}/attachments",
    response_model=ApiResponse[IssuanceResponse],
    status_code=201,
)
def add_attachment(
    issuance_id: int,
    request: AttachmentCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    service = IssuanceService(db)
    try:
        issuance = service.add_attachment(issuance_id, request, admin.id)
        db.commit()
    except PortalError:
        db.rollback()
        raise
    return ApiResponse(
        message="Attachment added successfully",
        data=IssuanceResponse.model_validate(issuance),
    )


@router.delete(
    "/{issuance_id}/attachments/{attachment_id}",
    response_model=ApiResponse[IssuanceResponse],
)
def remove_attachment(
    issuance_id: int,
    attachment_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    service = IssuanceService(db)
    try:
        issuance = service.remove_attachment(issuance_id, attachment_id, admin.id)
        db.commit()
    except PortalError:
        db.rollback()
        raise
    return ApiResponse(
        message="Attachment removed successfully",
        data=IssuanceResponse.model_validate(issuance),
    )


# --- History Endpoints ---

@router.get(
    "/{issuance_id}/status-history",
    response_model=ApiResponse[list[StatusHistoryResponse]],
)
def get_status_history(
    issuance_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    entries = IssuanceService(db).get_status_history(issuance_id)
    return ApiResponse(
        data=[StatusHistoryResponse.model_validate(e) for e in entries]
    )


@router.get(
    "/{issuance_id}/version-history",
    response_model=ApiResponse[list[VersionHistoryResponse]],
)
def get_version_history(
    issuance_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    entries = IssuanceService(db).get_version_history(issuance_id)
    return ApiResponse(
        data=[VersionHistoryResponse.model_validate(e) for e in entries]
    )


# --- Comment Endpoints ---

@router.get(
    "/{issuance_id}/comments",
    response_model=ApiResponse[Page[CommentResponse]],
)
def list_issuance_comments(
    issuance_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=settings.MAX_PAGE_LIMIT),
    sort_order: str = Query("asc", pattern="^(asc|desc)$"),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """All comments on any issuance, INTERNAL included."""
    comments, pagination = CommentService(db).get_by_issuance(
        issuance_id,
        page=page,
        limit=limit,
        sort_order=sort_order,
        include_internal=True,
    )
    return ApiResponse(data=Page(
        items=[CommentResponse.model_validate(c) for c in comments],
        pagination=pagination,
    ))


@router.post(
    "/{issuance_id}/comments",
    response_model=ApiResponse[CommentResponse],
    status_code=201,
)
def create_issuance_comment(
    issuance_id: int,
    request: CommentCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    service = CommentService(db)
    try:
        comment = service.create(
            issuance_id,
            admin.id,
            request.content,
            parent_comment_id=request.parent_comment_id,
            visibility=request.visibility,
            is_admin=True,
        )
        db.commit()
    except PortalError:
        db.rollback()
        raise
    return ApiResponse(
        message="Comment added successfully",
        data=CommentResponse.model_validate(comment),
    )


@router.get(
    "/{issuance_id}/comments/count",
    response_model=ApiResponse[CommentCountResponse],
)
def count_issuance_comments(
    issuance_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    count = CommentService(db).get_count_by_issuance(
        issuance_id, include_internal=True
    )
    return ApiResponse(
        data=CommentCountResponse(issuance_id=issuance_id, count=count)
    )
