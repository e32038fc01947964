"""
Shared enumerations for database models.

Mapped to database enums so an unknown status or action is
rejected by the database, not just by request validation.
"""

import enum


class IssuanceStatus(str, enum.Enum):
    """Workflow states of an issuance."""
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    PUBLISHED = "PUBLISHED"


class IssuanceType(str, enum.Enum):
    RESOLUTION = "RESOLUTION"
    MEMORANDUM = "MEMORANDUM"
    REPORT = "REPORT"
    CIRCULAR = "CIRCULAR"


class IssuancePriority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class AttachmentFileType(str, enum.Enum):
    DOCUMENT = "document"
    IMAGE = "image"
    OTHER = "other"


class CommentVisibility(str, enum.Enum):
    """INTERNAL comments are only shown to admins."""
    PUBLIC = "PUBLIC"
    INTERNAL = "INTERNAL"


class UserRole(str, enum.Enum):
    STUDENT = "STUDENT"
    OFFICER = "OFFICER"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


class AuditAction(str, enum.Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    STATUS_CHANGE = "STATUS_CHANGE"
    DEPARTMENT_ASSIGN = "DEPARTMENT_ASSIGN"
    ATTACHMENT_ADD = "ATTACHMENT_ADD"
    ATTACHMENT_REMOVE = "ATTACHMENT_REMOVE"
    COMMENT_CREATE = "COMMENT_CREATE"
    COMMENT_UPDATE = "COMMENT_UPDATE"
    COMMENT_DELETE = "COMMENT_DELETE"
    REPORT_CREATE = "REPORT_CREATE"
    REPORT_SCHEDULE = "REPORT_SCHEDULE"


class AuditEntityType(str, enum.Enum):
    ISSUANCE = "Issuance"
    COMMENT = "Comment"
    ATTACHMENT = "Attachment"
    REPORT = "Report"


class ReportType(str, enum.Enum):
    ISSUANCE_SUMMARY = "ISSUANCE_SUMMARY"
    STATUS_BREAKDOWN = "STATUS_BREAKDOWN"
    DEPARTMENT_ANALYSIS = "DEPARTMENT_ANALYSIS"
    PRIORITY_DISTRIBUTION = "PRIORITY_DISTRIBUTION"
    TREND_ANALYSIS = "TREND_ANALYSIS"
    CUSTOM = "CUSTOM"


class ExportFormat(str, enum.Enum):
    """Stored as a preference only; no file is rendered."""
    PDF = "pdf"
    EXCEL = "excel"
    CSV = "csv"
    JSON = "json"


class ReportFrequency(str, enum.Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
