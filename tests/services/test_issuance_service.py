"""
Tests for the IssuanceService: lifecycle, history and audit.
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy import Text, select

from usg_portal.exceptions import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from usg_portal.models import (
    AuditLog,
    AuditAction,
    Department,
    IssuancePriority,
    IssuanceStatus,
    IssuanceType,
)
from usg_portal.schemas.issuance import (
    AttachmentCreate,
    IssuanceCreate,
    IssuanceFilters,
    IssuanceUpdate,
)
from usg_portal.services.issuance_service import (
    IssuanceService,
    get_valid_next_statuses,
    is_valid_transition,
    serialize_value,
)


def make_issuance(service, actor_id, title="T", **overrides):
    fields = {
        "title": title,
        "type": IssuanceType.RESOLUTION,
        "document_url": "u",
    }
    fields.update(overrides)
    return service.create(IssuanceCreate(**fields), actor_id)


def make_department(db, name="Academic Affairs", code="ACAD", is_active=True):
    department = Department(name=name, code=code, is_active=is_active)
    db.add(department)
    db.commit()
    return department


def audit_entries(db, issuance_id, action=None):
    stmt = select(AuditLog).where(AuditLog.entity_id == issuance_id)
    if action is not None:
        stmt = stmt.where(AuditLog.action == action)
    return db.execute(stmt.order_by(AuditLog.id)).scalars().all()


def pdf(name="minutes.pdf"):
    return AttachmentCreate(filename=name, url=f"https://files.usg.test/{name}")


# --- State Machine Tests ---

class TestTransitionTable:

    @pytest.mark.parametrize("current", list(IssuanceStatus))
    def test_every_other_status_is_reachable(self, current):
        for target in IssuanceStatus:
            assert is_valid_transition(current, target) is (target != current)

    @pytest.mark.parametrize("current", list(IssuanceStatus))
    def test_next_statuses_never_include_current(self, current):
        next_statuses = get_valid_next_statuses(current)
        assert current not in next_statuses
        assert len(next_statuses) == len(IssuanceStatus) - 1

    def test_next_statuses_keep_declaration_order(self):
        assert get_valid_next_statuses(IssuanceStatus.APPROVED) == [
            IssuanceStatus.DRAFT,
            IssuanceStatus.PENDING,
            IssuanceStatus.UNDER_REVIEW,
            IssuanceStatus.REJECTED,
            IssuanceStatus.PUBLISHED,
        ]


class TestSerializeValue:

    def test_enum_becomes_value(self):
        assert serialize_value(IssuancePriority.HIGH) == "HIGH"

    def test_aware_datetime_normalized_to_utc(self):
        aware = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)
        assert serialize_value(aware) == "2026-03-01T08:00:00"

    def test_list_serialized_elementwise(self):
        assert serialize_value([IssuanceType.REPORT, "x"]) == ["REPORT", "x"]


# --- Create Tests ---

class TestCreate:

    def test_create_starts_in_draft(self, db_session, admin_user):
        service = IssuanceService(db_session)
        issuance = make_issuance(service, admin_user.id)
        db_session.commit()

        assert issuance.id is not None
        assert issuance.status == IssuanceStatus.DRAFT
        assert issuance.priority == IssuancePriority.MEDIUM
        assert issuance.created_by_id == admin_user.id

    def test_create_records_initial_status_entry(self, db_session, admin_user):
        service = IssuanceService(db_session)
        issuance = make_issuance(service, admin_user.id)
        db_session.commit()

        history = service.get_status_history(issuance.id)
        assert len(history) == 1
        assert history[0].from_status is None
        assert history[0].to_status == IssuanceStatus.DRAFT
        assert history[0].reason == "Initial creation"

    def test_create_writes_one_audit_entry(self, db_session, admin_user):
        service = IssuanceService(db_session)
        issuance = make_issuance(service, admin_user.id)
        db_session.commit()

        entries = audit_entries(db_session, issuance.id)
        assert len(entries) == 1
        assert entries[0].action == AuditAction.CREATE
        assert {c["field"] for c in entries[0].changes} == {
            "title", "status", "type", "priority",
        }

    def test_create_without_actor_is_not_audited(self, db_session):
        service = IssuanceService(db_session)
        issuance = make_issuance(service, None)
        db_session.commit()

        assert audit_entries(db_session, issuance.id) == []

    def test_create_stores_attachments(self, db_session, admin_user):
        service = IssuanceService(db_session)
        issuance = make_issuance(
            service, admin_user.id, attachments=[pdf("a.pdf"), pdf("b.pdf")]
        )
        db_session.commit()

        assert [a.filename for a in issuance.attachments] == ["a.pdf", "b.pdf"]
        assert issuance.attachments[0].uploaded_by_id == admin_user.id

    def test_create_canonicalizes_department(self, db_session, admin_user):
        make_department(db_session)
        service = IssuanceService(db_session)
        issuance = make_issuance(
            service, admin_user.id, department="academic affairs"
        )
        assert issuance.department == "Academic Affairs"

    def test_create_with_unknown_department_rejected(self, db_session, admin_user):
        service = IssuanceService(db_session)
        with pytest.raises(ValidationError, match="Nowhere"):
            make_issuance(service, admin_user.id, department="Nowhere")


# --- Update Tests ---

class TestUpdate:

    def test_update_records_each_changed_field(self, db_session, admin_user):
        service = IssuanceService(db_session)
        issuance = make_issuance(service, admin_user.id)
        db_session.commit()

        service.update(issuance.id, IssuanceUpdate(
            title="New title", priority=IssuancePriority.HIGH,
        ), admin_user.id)
        db_session.commit()

        versions = service.get_version_history(issuance.id)
        assert [(v.field, v.old_value, v.new_value) for v in versions] == [
            ("title", "T", "New title"),
            ("priority", "MEDIUM", "HIGH"),
        ]
        updates = audit_entries(db_session, issuance.id, AuditAction.UPDATE)
        assert len(updates) == 1
        assert [c["field"] for c in updates[0].changes] == ["title", "priority"]

    def test_same_value_update_is_noop(self, db_session, admin_user, student_user):
        service = IssuanceService(db_session)
        issuance = make_issuance(service, admin_user.id, title="same-title")
        db_session.commit()

        service.update(
            issuance.id, IssuanceUpdate(title="same-title"), student_user.id
        )
        db_session.commit()

        assert service.get_version_history(issuance.id) == []
        assert len(audit_entries(db_session, issuance.id)) == 1
        assert issuance.last_modified_by_id == admin_user.id

    def test_only_fields_in_request_are_compared(self, db_session, admin_user):
        service = IssuanceService(db_session)
        issuance = make_issuance(service, admin_user.id, description="keep me")
        db_session.commit()

        service.update(issuance.id, IssuanceUpdate(category="Finance"), admin_user.id)
        db_session.commit()

        assert issuance.description == "keep me"
        assert [v.field for v in service.get_version_history(issuance.id)] == [
            "category"
        ]

    def test_attachments_merge_by_url(self, db_session, admin_user):
        service = IssuanceService(db_session)
        issuance = make_issuance(service, admin_user.id, attachments=[pdf("a.pdf")])
        db_session.commit()

        service.update(issuance.id, IssuanceUpdate(
            attachments=[pdf("a.pdf"), pdf("b.pdf")],
        ), admin_user.id)
        db_session.commit()

        assert [a.filename for a in issuance.attachments] == ["a.pdf", "b.pdf"]
        versions = service.get_version_history(issuance.id)
        assert [(v.field, v.old_value, v.new_value) for v in versions] == [
            ("attachments", 1, 2)
        ]

    def test_update_with_inactive_department_changes_nothing(
        self, db_session, admin_user
    ):
        make_department(db_session, name="Old Office", code="OLD", is_active=False)
        service = IssuanceService(db_session)
        issuance = make_issuance(service, admin_user.id)
        db_session.commit()

        with pytest.raises(ValidationError, match="inactive"):
            service.update(issuance.id, IssuanceUpdate(
                title="Changed", department="Old Office",
            ), admin_user.id)
        db_session.rollback()

        assert service.get_by_id(issuance.id).title == "T"
        assert service.get_version_history(issuance.id) == []

    def test_resending_deactivated_department_keeps_it(self, db_session, admin_user):
        finance = make_department(db_session, name="Finance", code="FIN")
        service = IssuanceService(db_session)
        issuance = make_issuance(service, admin_user.id, department="Finance")
        db_session.commit()
        finance.is_active = False
        db_session.commit()

        service.update(issuance.id, IssuanceUpdate(
            title="New", department="finance",
        ), admin_user.id)
        db_session.commit()

        assert issuance.title == "New"
        assert issuance.department == "Finance"
        assert [v.field for v in service.get_version_history(issuance.id)] == [
            "title"
        ]

    def test_update_missing_issuance_raises(self, db_session, admin_user):
        service = IssuanceService(db_session)
        with pytest.raises(NotFoundError):
            service.update(999, IssuanceUpdate(title="x"), admin_user.id)

    def test_null_required_field_rejected_by_schema(self):
        with pytest.raises(ValueError, match="title cannot be null"):
            IssuanceUpdate(title=None)


# --- Status Tests ---

class TestUpdateStatus:

    def test_approve_sets_approval_fields(self, db_session, admin_user):
        service = IssuanceService(db_session)
        issuance = make_issuance(service, admin_user.id)
        db_session.commit()

        service.update_status(
            issuance.id, IssuanceStatus.APPROVED, admin_user.id, "looks good"
        )
        db_session.commit()

        assert issuance.status == IssuanceStatus.APPROVED
        assert issuance.approved_at is not None
        assert issuance.approved_by_id == admin_user.id

        history = service.get_status_history(issuance.id)
        assert len(history) == 2
        assert history[-1].from_status == IssuanceStatus.DRAFT
        assert history[-1].to_status == IssuanceStatus.APPROVED
        assert history[-1].reason == "looks good"

        changes = audit_entries(db_session, issuance.id, AuditAction.STATUS_CHANGE)
        assert len(changes) == 1
        assert changes[0].extra_metadata == {"reason": "looks good"}

    def test_status_change_also_recorded_as_version(self, db_session, admin_user):
        service = IssuanceService(db_session)
        issuance = make_issuance(service, admin_user.id)
        db_session.commit()

        service.update_status(issuance.id, IssuanceStatus.REJECTED, admin_user.id)
        db_session.commit()

        versions = service.get_version_history(issuance.id)
        assert [(v.field, v.old_value, v.new_value) for v in versions] == [
            ("status", "DRAFT", "REJECTED")
        ]
        assert issuance.rejected_by_id == admin_user.id

    def test_same_status_rejected_without_mutation(self, db_session, admin_user):
        service = IssuanceService(db_session)
        issuance = make_issuance(service, admin_user.id)
        db_session.commit()

        with pytest.raises(InvalidTransitionError, match="from DRAFT to DRAFT"):
            service.update_status(issuance.id, IssuanceStatus.DRAFT, admin_user.id)
        db_session.rollback()

        assert issuance.status == IssuanceStatus.DRAFT
        assert len(service.get_status_history(issuance.id)) == 1
        assert service.get_version_history(issuance.id) == []
        assert audit_entries(db_session, issuance.id, AuditAction.STATUS_CHANGE) == []

    def test_full_review_workflow(self, db_session, admin_user):
        service = IssuanceService(db_session)
        issuance = make_issuance(service, admin_user.id)
        db_session.commit()

        for status in (
            IssuanceStatus.PENDING,
            IssuanceStatus.UNDER_REVIEW,
            IssuanceStatus.APPROVED,
        ):
            service.update_status(issuance.id, status, admin_user.id)
            db_session.commit()

        assert len(service.get_status_history(issuance.id)) == 4
        actions = [e.action for e in audit_entries(db_session, issuance.id)]
        assert actions == [
            AuditAction.CREATE,
            AuditAction.STATUS_CHANGE,
            AuditAction.STATUS_CHANGE,
            AuditAction.STATUS_CHANGE,
        ]


# --- Attachment Tests ---

class TestAttachments:

    def test_add_attachment_is_versioned_and_audited(self, db_session, admin_user):
        service = IssuanceService(db_session)
        issuance = make_issuance(service, admin_user.id)
        db_session.commit()

        service.add_attachment(issuance.id, pdf(), admin_user.id)
        db_session.commit()

        assert len(issuance.attachments) == 1
        versions = service.get_version_history(issuance.id)
        assert [(v.old_value, v.new_value) for v in versions] == [(0, 1)]
        assert len(audit_entries(db_session, issuance.id, AuditAction.ATTACHMENT_ADD)) == 1

    def test_remove_attachment(self, db_session, admin_user):
        service = IssuanceService(db_session)
        issuance = make_issuance(
            service, admin_user.id, attachments=[pdf("a.pdf"), pdf("b.pdf")]
        )
        db_session.commit()

        service.remove_attachment(issuance.id, issuance.attachments[0].id, admin_user.id)
        db_session.commit()

        assert [a.filename for a in issuance.attachments] == ["b.pdf"]
        versions = service.get_version_history(issuance.id)
        assert [(v.field, v.old_value, v.new_value) for v in versions] == [
            ("attachments", "a.pdf", "1 remaining")
        ]
        removed = audit_entries(db_session, issuance.id, AuditAction.ATTACHMENT_REMOVE)
        assert len(removed) == 1
        assert "a.pdf" in removed[0].description

    def test_remove_unknown_attachment_appends_nothing(self, db_session, admin_user):
        service = IssuanceService(db_session)
        issuance = make_issuance(service, admin_user.id)
        db_session.commit()

        with pytest.raises(NotFoundError, match="Attachment not found"):
            service.remove_attachment(issuance.id, 12345, admin_user.id)
        db_session.rollback()

        assert service.get_version_history(issuance.id) == []


# --- Delete Tests ---

class TestDelete:

    def test_soft_delete_preserves_history(self, db_session, admin_user):
        service = IssuanceService(db_session)
        issuance = make_issuance(service, admin_user.id)
        db_session.commit()
        service.update_status(issuance.id, IssuanceStatus.PENDING, admin_user.id)
        db_session.commit()

        service.delete(issuance.id, admin_user.id)
        db_session.commit()

        assert issuance.is_deleted is True
        assert issuance.deleted_by_id == admin_user.id
        assert len(service.get_status_history(issuance.id)) == 2
        versions = service.get_version_history(issuance.id)
        assert [v.field for v in versions] == ["status", "is_deleted"]
        assert len(audit_entries(db_session, issuance.id, AuditAction.DELETE)) == 1

    def test_deleted_issuance_hidden_from_lists(self, db_session, admin_user):
        service = IssuanceService(db_session)
        kept = make_issuance(service, admin_user.id, title="kept")
        gone = make_issuance(service, admin_user.id, title="gone")
        db_session.commit()
        service.delete(gone.id, admin_user.id)
        db_session.commit()

        items, pagination = service.get_all()
        assert [i.id for i in items] == [kept.id]
        assert pagination.total == 1

    def test_deleted_issuance_cannot_be_mutated(self, db_session, admin_user):
        service = IssuanceService(db_session)
        issuance = make_issuance(service, admin_user.id)
        db_session.commit()
        service.delete(issuance.id, admin_user.id)
        db_session.commit()

        with pytest.raises(NotFoundError):
            service.delete(issuance.id, admin_user.id)
        with pytest.raises(NotFoundError):
            service.update_status(issuance.id, IssuanceStatus.PENDING, admin_user.id)


# --- Department Assignment Tests ---

class TestAssignDepartment:

    def test_first_assignment(self, db_session, admin_user):
        department = make_department(db_session)
        service = IssuanceService(db_session)
        issuance = make_issuance(service, admin_user.id)
        db_session.commit()

        service.assign_department(issuance.id, str(department.id), admin_user.id)
        db_session.commit()

        assert issuance.department == "Academic Affairs"
        assigned = audit_entries(db_session, issuance.id, AuditAction.DEPARTMENT_ASSIGN)
        assert assigned[0].description.startswith("Assigned")

    def test_reassignment_names_previous_department(self, db_session, admin_user):
        make_department(db_session)
        make_department(db_session, name="Finance", code="FIN")
        service = IssuanceService(db_session)
        issuance = make_issuance(service, admin_user.id, department="Academic Affairs")
        db_session.commit()

        service.assign_department(issuance.id, "finance", admin_user.id, "budget item")
        db_session.commit()

        assigned = audit_entries(db_session, issuance.id, AuditAction.DEPARTMENT_ASSIGN)
        assert len(assigned) == 1
        assert assigned[0].description.startswith("Reassigned")
        assert "from Academic Affairs" in assigned[0].description

    def test_reassignment_description_fits_longest_names(
        self, db_session, admin_user
    ):
        first = "A" * 100
        second = "B" * 100
        make_department(db_session, name=first, code="AAA")
        make_department(db_session, name=second, code="BBB")
        service = IssuanceService(db_session)
        issuance = make_issuance(
            service, admin_user.id, title="T" * 300, department=first
        )
        db_session.commit()

        service.assign_department(issuance.id, second, admin_user.id)
        db_session.commit()

        assigned = audit_entries(db_session, issuance.id, AuditAction.DEPARTMENT_ASSIGN)
        assert len(assigned[0].description) > 500
        assert isinstance(AuditLog.__table__.c.description.type, Text)

    def test_same_department_is_noop(self, db_session, admin_user):
        make_department(db_session)
        service = IssuanceService(db_session)
        issuance = make_issuance(service, admin_user.id, department="Academic Affairs")
        db_session.commit()

        service.assign_department(issuance.id, "Academic Affairs", admin_user.id)
        db_session.commit()

        assert service.get_version_history(issuance.id) == []


# --- Query Tests ---

class TestQueries:

    def test_get_all_filters_and_paginates(self, db_session, admin_user):
        service = IssuanceService(db_session)
        for n in range(3):
            make_issuance(service, admin_user.id, title=f"memo {n}",
                          type=IssuanceType.MEMORANDUM)
        make_issuance(service, admin_user.id, title="circular",
                      type=IssuanceType.CIRCULAR)
        db_session.commit()

        items, pagination = service.get_all(
            IssuanceFilters(type=IssuanceType.MEMORANDUM), page=1, limit=2,
            sort_by="title", sort_order="asc",
        )
        assert [i.title for i in items] == ["memo 0", "memo 1"]
        assert pagination.total == 3
        assert pagination.total_pages == 2

    def test_unknown_sort_field_falls_back(self, db_session, admin_user):
        service = IssuanceService(db_session)
        make_issuance(service, admin_user.id)
        db_session.commit()

        items, _ = service.get_all(sort_by="internal_notes; DROP TABLE")
        assert len(items) == 1

    def test_published_queries_only_see_published(self, db_session, admin_user):
        service = IssuanceService(db_session)
        draft = make_issuance(service, admin_user.id, title="draft")
        published = make_issuance(
            service, admin_user.id, title="out", status=IssuanceStatus.PUBLISHED
        )
        db_session.commit()

        assert [i.id for i in service.get_all_published()] == [published.id]
        assert service.get_published_by_id(published.id).id == published.id
        with pytest.raises(NotFoundError):
            service.get_published_by_id(draft.id)


# --- Concurrency Tests ---

class TestOptimisticConcurrency:

    def test_stale_writer_gets_conflict(self, session_factory, admin_user):
        first = session_factory()
        second = session_factory()
        try:
            issuance = make_issuance(IssuanceService(first), admin_user.id)
            first.commit()
            issuance_id = issuance.id

            stale_service = IssuanceService(second)
            # Holding the instance keeps the old revision in the identity map
            stale = stale_service.get_by_id(issuance_id)
            assert stale.revision == 1

            IssuanceService(first).update(
                issuance_id, IssuanceUpdate(title="first writer"), admin_user.id
            )
            first.commit()

            with pytest.raises(ConflictError):
                stale_service.update(
                    issuance_id, IssuanceUpdate(title="second writer"), admin_user.id
                )
        finally:
            second.rollback()
            second.close()
            first.close()
