"""
Comment service: discussion threads on issuances.

Threads are one level deep: a reply to a reply is attached to
the top-level comment. INTERNAL comments are admin-only and are
filtered out unless the caller asks for them.
"""

import logging
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from usg_portal.exceptions import ForbiddenError, NotFoundError
from usg_portal.models.comment import Comment
from usg_portal.models.enums import (
    AuditAction,
    AuditEntityType,
    CommentVisibility,
)
from usg_portal.models.issuance import Issuance
from usg_portal.services.audit_service import AuditService
from usg_portal.services.query import paginate

logger = logging.getLogger(__name__)


class CommentService:

    def __init__(self, db: Session):
        self.db = db
        self.audit_service = AuditService(db)

    def get_by_issuance(
        self,
        issuance_id: int,
        page: int = 1,
        limit: int = 20,
        sort_order: str = "asc",
        include_internal: bool = False,
    ):
        """
        Comments on an issuance, oldest first by default.

        A soft-deleted issuance keeps its thread readable.
        """
        self._require_issuance(issuance_id, include_deleted=True)

        stmt = select(Comment).where(Comment.issuance_id == issuance_id)
        if not include_internal:
            stmt = stmt.where(Comment.visibility == CommentVisibility.PUBLIC)

        if sort_order == "desc":
            stmt = stmt.order_by(Comment.created_at.desc(), Comment.id.desc())
        else:
            stmt = stmt.order_by(Comment.created_at.asc(), Comment.id.asc())

        return paginate(self.db, stmt, page, limit)

    def get_by_id(self, comment_id: int, include_internal: bool = False) -> Comment:
        comment = self.db.get(Comment, comment_id)
        if not comment:
            raise NotFoundError("Comment", comment_id)
        if comment.visibility == CommentVisibility.INTERNAL and not include_internal:
            raise NotFoundError("Comment", comment_id)
        return comment

    def create(
        self,
        issuance_id: int,
        author_id: int,
        content: str,
        parent_comment_id: int | None = None,
        visibility: CommentVisibility = CommentVisibility.PUBLIC,
        is_admin: bool = False,
    ) -> Comment:
        """
        Post a comment.

        The parent, when given, must belong to the same issuance.
        Only admins may post INTERNAL comments.
        """
        self._require_issuance(issuance_id)

        if visibility == CommentVisibility.INTERNAL and not is_admin:
            raise ForbiddenError("Only administrators can post internal comments")

        if parent_comment_id is not None:
            parent = self.db.get(Comment, parent_comment_id)
            if not parent or parent.issuance_id != issuance_id:
                raise NotFoundError("Parent comment", parent_comment_id)
            # Keep threads one level deep
            if parent.parent_comment_id is not None:
                parent_comment_id = parent.parent_comment_id

        comment = Comment(
            issuance_id=issuance_id,
            author_id=author_id,
            content=content.strip(),
            parent_comment_id=parent_comment_id,
            visibility=visibility,
        )
        self.db.add(comment)
        self.db.flush()

        self.audit_service.log(
            performed_by_id=author_id,
            action=AuditAction.COMMENT_CREATE,
            entity_type=AuditEntityType.COMMENT,
            entity_id=comment.id,
            description=f"Commented on issuance {issuance_id}",
            changes=[{"field": "content", "old_value": None, "new_value": comment.content}],
            metadata={
                "issuance_id": issuance_id,
                "parent_comment_id": parent_comment_id,
                "visibility": visibility.value,
            },
        )
        logger.info(
            "Comment %s posted on issuance %s by user %s",
            comment.id, issuance_id, author_id,
        )
        return comment

    def update(
        self,
        comment_id: int,
        actor_id: int,
        content: str,
        is_admin: bool = False,
    ) -> Comment:
        comment = self.db.get(Comment, comment_id)
        if not comment:
            raise NotFoundError("Comment", comment_id)
        if comment.author_id != actor_id and not is_admin:
            raise ForbiddenError("Not authorized to edit this comment")

        old_content = comment.content
        comment.content = content.strip()
        comment.is_edited = True
        comment.edited_at = datetime.utcnow()
        self.db.flush()

        self.audit_service.log(
            performed_by_id=actor_id,
            action=AuditAction.COMMENT_UPDATE,
            entity_type=AuditEntityType.COMMENT,
            entity_id=comment.id,
            description=f"Edited comment {comment.id}",
            changes=[{
                "field": "content",
                "old_value": old_content,
                "new_value": comment.content,
            }],
            metadata={"issuance_id": comment.issuance_id},
        )
        logger.info("Comment %s edited by user %s", comment.id, actor_id)
        return comment

    def delete(self, comment_id: int, actor_id: int, is_admin: bool = False) -> None:
        """Hard delete. Replies are kept and detached from the parent."""
        comment = self.db.get(Comment, comment_id)
        if not comment:
            raise NotFoundError("Comment", comment_id)
        if comment.author_id != actor_id and not is_admin:
            raise ForbiddenError("Not authorized to delete this comment")

        issuance_id = comment.issuance_id
        content = comment.content

        self.db.execute(
            update(Comment)
            .where(Comment.parent_comment_id == comment_id)
            .values(parent_comment_id=None)
            .execution_options(synchronize_session="fetch")
        )
        self.db.delete(comment)
        self.db.flush()

        self.audit_service.log(
            performed_by_id=actor_id,
            action=AuditAction.COMMENT_DELETE,
            entity_type=AuditEntityType.COMMENT,
            entity_id=comment_id,
            description=f"Deleted comment {comment_id}",
            changes=[{"field": "content", "old_value": content, "new_value": None}],
            metadata={"issuance_id": issuance_id},
        )
        logger.info("Comment %s deleted by user %s", comment_id, actor_id)

    def get_count_by_issuance(
        self, issuance_id: int, include_internal: bool = False
    ) -> int:
        stmt = select(func.count(Comment.id)).where(
            Comment.issuance_id == issuance_id
        )
        if not include_internal:
            stmt = stmt.where(Comment.visibility == CommentVisibility.PUBLIC)
        return self.db.execute(stmt).scalar_one()

    def _require_issuance(
        self, issuance_id: int, include_deleted: bool = False
    ) -> None:
        issuance = self.db.get(Issuance, issuance_id)
        if not issuance or (issuance.is_deleted and not include_deleted):
            raise NotFoundError("Issuance", issuance_id)
