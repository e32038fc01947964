"""
Tests for the CommentService.
"""

import pytest
from sqlalchemy import select

from usg_portal.exceptions import ForbiddenError, NotFoundError
from usg_portal.models import AuditLog, AuditAction, CommentVisibility, IssuanceType
from usg_portal.schemas.issuance import IssuanceCreate
from usg_portal.services.comment_service import CommentService
from usg_portal.services.issuance_service import IssuanceService


def make_issuance(db, actor_id, title="Budget resolution"):
    issuance = IssuanceService(db).create(IssuanceCreate(
        title=title, type=IssuanceType.RESOLUTION, document_url="u",
    ), actor_id)
    db.commit()
    return issuance


def comment_audits(db, action):
    return db.execute(
        select(AuditLog).where(AuditLog.action == action)
    ).scalars().all()


class TestCreate:

    def test_create_comment(self, db_session, admin_user, student_user):
        issuance = make_issuance(db_session, admin_user.id)
        service = CommentService(db_session)

        comment = service.create(issuance.id, student_user.id, "  Great work  ")
        db_session.commit()

        assert comment.content == "Great work"
        assert comment.visibility == CommentVisibility.PUBLIC
        assert comment.author.name == "Student"
        assert len(comment_audits(db_session, AuditAction.COMMENT_CREATE)) == 1

    def test_missing_issuance(self, db_session, student_user):
        with pytest.raises(NotFoundError, match="Issuance not found"):
            CommentService(db_session).create(999, student_user.id, "hello")

    def test_parent_must_belong_to_same_issuance(
        self, db_session, admin_user, student_user
    ):
        first = make_issuance(db_session, admin_user.id)
        second = make_issuance(db_session, admin_user.id, title="Other")
        service = CommentService(db_session)
        parent = service.create(first.id, student_user.id, "on first")
        db_session.commit()

        with pytest.raises(NotFoundError, match="Parent comment not found"):
            service.create(second.id, student_user.id, "reply", parent.id)

    def test_reply_to_reply_attaches_to_top_level(
        self, db_session, admin_user, student_user
    ):
        issuance = make_issuance(db_session, admin_user.id)
        service = CommentService(db_session)
        top = service.create(issuance.id, student_user.id, "top")
        reply = service.create(issuance.id, admin_user.id, "reply", top.id)
        nested = service.create(issuance.id, student_user.id, "nested", reply.id)
        db_session.commit()

        assert nested.parent_comment_id == top.id

    def test_student_cannot_post_internal(self, db_session, admin_user, student_user):
        issuance = make_issuance(db_session, admin_user.id)
        with pytest.raises(ForbiddenError):
            CommentService(db_session).create(
                issuance.id, student_user.id, "secret",
                visibility=CommentVisibility.INTERNAL,
            )


class TestVisibility:

    def test_internal_comments_filtered(self, db_session, admin_user, student_user):
        issuance = make_issuance(db_session, admin_user.id)
        service = CommentService(db_session)
        service.create(issuance.id, student_user.id, "public")
        internal = service.create(
            issuance.id, admin_user.id, "internal",
            visibility=CommentVisibility.INTERNAL, is_admin=True,
        )
        db_session.commit()

        public_only, pagination = service.get_by_issuance(issuance.id)
        assert [c.content for c in public_only] == ["public"]
        assert pagination.total == 1

        everything, _ = service.get_by_issuance(issuance.id, include_internal=True)
        assert [c.content for c in everything] == ["public", "internal"]

        assert service.get_count_by_issuance(issuance.id) == 1
        assert service.get_count_by_issuance(issuance.id, include_internal=True) == 2

        with pytest.raises(NotFoundError):
            service.get_by_id(internal.id)
        assert service.get_by_id(internal.id, include_internal=True).id == internal.id

    def test_descending_order(self, db_session, admin_user, student_user):
        issuance = make_issuance(db_session, admin_user.id)
        service = CommentService(db_session)
        for text in ("one", "two", "three"):
            service.create(issuance.id, student_user.id, text)
        db_session.commit()

        comments, _ = service.get_by_issuance(issuance.id, sort_order="desc")
        assert [c.content for c in comments] == ["three", "two", "one"]

    def test_thread_survives_soft_delete(self, db_session, admin_user, student_user):
        issuance = make_issuance(db_session, admin_user.id)
        service = CommentService(db_session)
        service.create(issuance.id, student_user.id, "before removal")
        db_session.commit()

        IssuanceService(db_session).delete(issuance.id, admin_user.id)
        db_session.commit()

        comments, pagination = service.get_by_issuance(
            issuance.id, include_internal=True
        )
        assert [c.content for c in comments] == ["before removal"]
        assert pagination.total == 1

    def test_cannot_comment_on_deleted_issuance(
        self, db_session, admin_user, student_user
    ):
        issuance = make_issuance(db_session, admin_user.id)
        IssuanceService(db_session).delete(issuance.id, admin_user.id)
        db_session.commit()

        with pytest.raises(NotFoundError, match="Issuance not found"):
            CommentService(db_session).create(issuance.id, student_user.id, "late")


class TestUpdateDelete:

    def test_author_can_edit(self, db_session, admin_user, student_user):
        issuance = make_issuance(db_session, admin_user.id)
        service = CommentService(db_session)
        comment = service.create(issuance.id, student_user.id, "draft")
        db_session.commit()

        service.update(comment.id, student_user.id, "final")
        db_session.commit()

        assert comment.content == "final"
        assert comment.is_edited is True
        assert comment.edited_at is not None
        updates = comment_audits(db_session, AuditAction.COMMENT_UPDATE)
        assert updates[0].changes == [
            {"field": "content", "old_value": "draft", "new_value": "final"}
        ]

    def test_other_user_cannot_edit(self, db_session, admin_user, student_user):
        issuance = make_issuance(db_session, admin_user.id)
        service = CommentService(db_session)
        comment = service.create(issuance.id, admin_user.id, "admin note")
        db_session.commit()

        with pytest.raises(ForbiddenError):
            service.update(comment.id, student_user.id, "hijack")

    def test_admin_can_delete_any(self, db_session, admin_user, student_user):
        issuance = make_issuance(db_session, admin_user.id)
        service = CommentService(db_session)
        comment = service.create(issuance.id, student_user.id, "spam")
        db_session.commit()
        comment_id = comment.id

        service.delete(comment_id, admin_user.id, is_admin=True)
        db_session.commit()

        with pytest.raises(NotFoundError):
            service.get_by_id(comment_id)
        deleted = comment_audits(db_session, AuditAction.COMMENT_DELETE)
        assert deleted[0].changes[0]["old_value"] == "spam"

    def test_delete_detaches_replies(self, db_session, admin_user, student_user):
        issuance = make_issuance(db_session, admin_user.id)
        service = CommentService(db_session)
        top = service.create(issuance.id, student_user.id, "top")
        reply = service.create(issuance.id, admin_user.id, "reply", top.id)
        db_session.commit()

        service.delete(top.id, student_user.id)
        db_session.commit()

        assert service.get_by_id(reply.id).parent_comment_id is None

    def test_student_cannot_delete_others(self, db_session, admin_user, student_user):
        issuance = make_issuance(db_session, admin_user.id)
        service = CommentService(db_session)
        comment = service.create(issuance.id, admin_user.id, "keep")
        db_session.commit()

        with pytest.raises(ForbiddenError):
            service.delete(comment.id, student_user.id)
