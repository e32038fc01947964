"""
Database models package.

All models must be imported here so that Alembic can discover
them through Base.metadata when generating migrations.
"""

from usg_portal.models.base import Base
from usg_portal.models.enums import (
    IssuanceStatus,
    IssuanceType,
    IssuancePriority,
    AttachmentFileType,
    CommentVisibility,
    UserRole,
    AuditAction,
    AuditEntityType,
    ReportType,
    ExportFormat,
    ReportFrequency,
)
from usg_portal.models.user import User
from usg_portal.models.department import Department
from usg_portal.models.issuance import (
    Issuance,
    Attachment,
    StatusHistoryEntry,
    VersionHistoryEntry,
    VALID_TRANSITIONS,
)
from usg_portal.models.comment import Comment
from usg_portal.models.audit_log import AuditLog
from usg_portal.models.report import SavedReport

__all__ = [
    "Base",
    "IssuanceStatus",
    "IssuanceType",
    "IssuancePriority",
    "AttachmentFileType",
    "CommentVisibility",
    "UserRole",
    "AuditAction",
    "AuditEntityType",
    "ReportType",
    "ExportFormat",
    "ReportFrequency",
    "User",
    "Department",
    "Issuance",
    "Attachment",
    "StatusHistoryEntry",
    "VersionHistoryEntry",
    "VALID_TRANSITIONS",
    "Comment",
    "AuditLog",
    "SavedReport",
]
