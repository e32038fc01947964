"""Business logic services."""

from usg_portal.services.audit_service import AuditService
from usg_portal.services.department_service import DepartmentService
from usg_portal.services.comment_service import CommentService
from usg_portal.services.issuance_service import IssuanceService
from usg_portal.services.report_service import ReportService
from usg_portal.services.saved_report_service import SavedReportService

__all__ = [
    "AuditService",
    "DepartmentService",
    "CommentService",
    "IssuanceService",
    "ReportService",
    "SavedReportService",
]
