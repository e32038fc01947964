"""
Pydantic schemas for issuance operations.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from usg_portal.models.enums import (
    IssuanceStatus,
    IssuanceType,
    IssuancePriority,
    AttachmentFileType,
)
from usg_portal.schemas.common import UserSummary


def _dedupe_tags(tags: list[str] | None) -> list[str] | None:
    if tags is None:
        return None
    seen: list[str] = []
    for tag in tags:
        tag = tag.strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


# --- Attachment Schemas ---

class AttachmentCreate(BaseModel):
    filename: str = Field(min_length=1, max_length=255)
    url: str = Field(min_length=1, max_length=1000)
    file_type: AttachmentFileType = AttachmentFileType.DOCUMENT
    mime_type: str | None = Field(default=None, max_length=100)
    size: int | None = Field(default=None, ge=0)

    model_config = {"str_strip_whitespace": True}


class AttachmentResponse(BaseModel):
    id: int
    filename: str
    url: str
    file_type: AttachmentFileType
    mime_type: str | None
    size: int | None
    uploaded_by: UserSummary | None
    uploaded_at: datetime

    model_config = {"from_attributes": True}


# --- Issuance Request Schemas ---

class IssuanceCreate(BaseModel):
    """Request to create an issuance. Status defaults to DRAFT."""
    title: str = Field(min_length=1, max_length=300)
    type: IssuanceType
    document_url: str = Field(min_length=1, max_length=1000)
    description: str | None = None
    issued_by: str | None = Field(default=None, max_length=200)
    issued_date: datetime | None = None
    category: str | None = Field(default=None, max_length=100)
    department: str | None = Field(default=None, max_length=100)
    priority: IssuancePriority = IssuancePriority.MEDIUM
    status: IssuanceStatus = IssuanceStatus.DRAFT
    tags: list[str] = Field(default_factory=list)
    internal_notes: str | None = None
    attachments: list[AttachmentCreate] = Field(default_factory=list)

    model_config = {"str_strip_whitespace": True}

    @field_validator("tags")
    @classmethod
    def dedupe_tags(cls, v):
        return _dedupe_tags(v)


class IssuanceUpdate(BaseModel):
    """
    Partial update. Only fields present in the request body are
    considered; status is changed through the status endpoint.
    """
    title: str | None = Field(default=None, min_length=1, max_length=300)
    type: IssuanceType | None = None
    description: str | None = None
    document_url: str | None = Field(default=None, min_length=1, max_length=1000)
    issued_by: str | None = Field(default=None, max_length=200)
    issued_date: datetime | None = None
    category: str | None = Field(default=None, max_length=100)
    department: str | None = Field(default=None, max_length=100)
    priority: IssuancePriority | None = None
    tags: list[str] | None = None
    internal_notes: str | None = None
    attachments: list[AttachmentCreate] | None = None

    model_config = {"str_strip_whitespace": True}

    @field_validator("tags")
    @classmethod
    def dedupe_tags(cls, v):
        return _dedupe_tags(v)

    @model_validator(mode="after")
    def required_fields_not_null(self):
        for name in ("title", "type", "document_url", "priority"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class IssuanceStatusUpdate(BaseModel):
    status: IssuanceStatus
    reason: str | None = Field(default=None, max_length=500)


class DepartmentAssign(BaseModel):
    department: str = Field(min_length=1, max_length=100)
    reason: str | None = Field(default=None, max_length=500)


class IssuanceFilters(BaseModel):
    """Shared filter set for admin lists and reports."""
    status: IssuanceStatus | None = None
    type: IssuanceType | None = None
    priority: IssuancePriority | None = None
    department: str | None = None
    category: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None


# --- Issuance Response Schemas ---

class PublicIssuanceResponse(BaseModel):
    """What anonymous readers see. No internal notes, no workflow actors."""
    id: int
    title: str
    type: IssuanceType
    description: str | None
    document_url: str
    issued_by: str | None
    issued_date: datetime | None
    category: str | None
    department: str | None
    priority: IssuancePriority
    tags: list[str]
    status: IssuanceStatus
    attachments: list[AttachmentResponse]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class IssuanceResponse(PublicIssuanceResponse):
    internal_notes: str | None
    approved_at: datetime | None
    approved_by: UserSummary | None
    rejected_at: datetime | None
    rejected_by: UserSummary | None
    is_deleted: bool
    deleted_at: datetime | None
    created_by: UserSummary | None
    last_modified_by: UserSummary | None
    revision: int


class StatusHistoryResponse(BaseModel):
    id: int
    from_status: IssuanceStatus | None
    to_status: IssuanceStatus
    changed_by: UserSummary | None
    changed_at: datetime
    reason: str | None

    model_config = {"from_attributes": True}


class VersionHistoryResponse(BaseModel):
    id: int
    field: str
    old_value: Any
    new_value: Any
    changed_by: UserSummary | None
    changed_at: datetime

    model_config = {"from_attributes": True}


class ValidStatusesResponse(BaseModel):
    current_status: IssuanceStatus
    valid_next_statuses: list[IssuanceStatus]
