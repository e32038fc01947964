"""
Pydantic schemas for audit log queries.
"""

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, Field

from usg_portal.models.enums import AuditAction, AuditEntityType
from usg_portal.schemas.common import UserSummary


class AuditLogFilters(BaseModel):
    performed_by_id: int | None = None
    action: AuditAction | None = None
    entity_type: AuditEntityType | None = None
    entity_id: int | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None


class AuditChange(BaseModel):
    field: str
    old_value: Any = None
    new_value: Any = None


class AuditLogResponse(BaseModel):
    id: int
    performed_by: UserSummary
    action: AuditAction
    entity_type: AuditEntityType
    entity_id: int
    description: str
    changes: list[AuditChange]
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("extra_metadata", "metadata"),
    )
    timestamp: datetime

    model_config = {"from_attributes": True}
