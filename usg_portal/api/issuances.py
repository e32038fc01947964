"""
Public issuance endpoints.

Anonymous readers see published issuances only. Comments are
open to any signed-in user; INTERNAL comments are only listed
for administrators.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from usg_portal.api.deps import get_current_user, get_optional_user
from usg_portal.config import get_settings
from usg_portal.exceptions import PortalError
from usg_portal.models.base import get_db
from usg_portal.models.enums import IssuancePriority, IssuanceType
from usg_portal.models.user import User
from usg_portal.schemas.comment import (
    CommentCountResponse,
    CommentCreate,
    CommentResponse,
)
from usg_portal.schemas.common import ApiResponse, Page
from usg_portal.schemas.issuance import IssuanceFilters, PublicIssuanceResponse
from usg_portal.services.comment_service import CommentService
from usg_portal.services.issuance_service import IssuanceService

settings = get_settings()

router = APIRouter(prefix="/api/issuances", tags=["Issuances"])


@router.get("", response_model=ApiResponse[list[PublicIssuanceResponse]])
def list_published_issuances(
    type: IssuanceType | None = None,
    category: str | None = None,
    priority: IssuancePriority | None = None,
    department: str | None = None,
    db: Session = Depends(get_db),
):
    """List published issuances, newest issued_date first."""
    service = IssuanceService(db)
    issuances = service.get_all_published(IssuanceFilters(
        type=type, category=category, priority=priority, department=department,
    ))
    return ApiResponse(
        data=[PublicIssuanceResponse.model_validate(i) for i in issuances]
    )


@router.get("/{issuance_id}", response_model=ApiResponse[PublicIssuanceResponse])
def get_published_issuance(
    issuance_id: int,
    db: Session = Depends(get_db),
):
    service = IssuanceService(db)
    issuance = service.get_published_by_id(issuance_id)
    return ApiResponse(data=PublicIssuanceResponse.model_validate(issuance))


@router.get(
    "/{issuance_id}/comments",
    response_model=ApiResponse[Page[CommentResponse]],
)
def list_comments(
    issuance_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=settings.MAX_PAGE_LIMIT),
    sort_order: str = Query("asc", pattern="^(asc|desc)$"),
    user: User | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """
    List comments on an issuance.

    Non-admins can only read comments on published issuances,
    and never see INTERNAL ones.
    """
    is_admin = user is not None and user.is_admin
    if not is_admin:
        IssuanceService(db).get_published_by_id(issuance_id)

    comments, pagination = CommentService(db).get_by_issuance(
        issuance_id,
        page=page,
        limit=limit,
        sort_order=sort_order,
        include_internal=is_admin,
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
def create_comment(
    issuance_id: int,
    request: CommentCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    service = CommentService(db)
    try:
        if not user.is_admin:
            IssuanceService(db).get_published_by_id(issuance_id)
        comment = service.create(
            issuance_id,
            user.id,
            request.content,
            parent_comment_id=request.parent_comment_id,
            visibility=request.visibility,
            is_admin=user.is_admin,
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
def count_comments(
    issuance_id: int,
    user: User | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    is_admin = user is not None and user.is_admin
    if not is_admin:
        IssuanceService(db).get_published_by_id(issuance_id)

    count = CommentService(db).get_count_by_issuance(
        issuance_id, include_internal=is_admin
    )
    return ApiResponse(
        data=CommentCountResponse(issuance_id=issuance_id, count=count)
    )
