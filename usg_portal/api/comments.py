"""
Comment endpoints. Authors manage their own comments; admins
can edit or remove any.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from usg_portal.api.deps import get_current_user
from usg_portal.exceptions import PortalError
from usg_portal.models.base import get_db
from usg_portal.models.user import User
from usg_portal.schemas.comment import CommentResponse, CommentUpdate
from usg_portal.schemas.common import ApiResponse
from usg_portal.services.comment_service import CommentService
from usg_portal.services.issuance_service import IssuanceService

router = APIRouter(prefix="/api/comments", tags=["Comments"])


@router.get("/{comment_id}", response_model=ApiResponse[CommentResponse])
def get_comment(
    comment_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Non-admins can only read comments on published issuances."""
    service = CommentService(db)
    comment = service.get_by_id(comment_id, include_internal=user.is_admin)
    if not user.is_admin:
        IssuanceService(db).get_published_by_id(comment.issuance_id)
    return ApiResponse(data=CommentResponse.model_validate(comment))


@router.put("/{comment_id}", response_model=ApiResponse[CommentResponse])
def update_comment(
    comment_id: int,
    request: CommentUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    service = CommentService(db)
    try:
        comment = service.update(
            comment_id, user.id, request.content, is_admin=user.is_admin
        )
        db.commit()
    except PortalError:
        db.rollback()
        raise
    return ApiResponse(
        message="Comment updated successfully",
        data=CommentResponse.model_validate(comment),
    )


@router.delete("/{comment_id}", response_model=ApiResponse)
def delete_comment(
    comment_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    service = CommentService(db)
    try:
        service.delete(comment_id, user.id, is_admin=user.is_admin)
        db.commit()
    except PortalError:
        db.rollback()
        raise
    return ApiResponse(message="Comment deleted successfully")
