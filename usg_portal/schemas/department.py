"""
Pydantic schemas for departments.
"""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from usg_portal.schemas.common import UserSummary


def _normalize_code(code: str | None) -> str | None:
    if code is None:
        return None
    if not code.isalnum():
        raise ValueError("code must be alphanumeric")
    return code.upper()


class DepartmentCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    code: str = Field(min_length=1, max_length=20)
    description: str | None = Field(default=None, max_length=500)
    head_id: int | None = None

    model_config = {"str_strip_whitespace": True}

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v):
        return _normalize_code(v)


class DepartmentUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    code: str | None = Field(default=None, min_length=1, max_length=20)
    description: str | None = Field(default=None, max_length=500)
    head_id: int | None = None
    is_active: bool | None = None

    model_config = {"str_strip_whitespace": True}

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v):
        return _normalize_code(v)


class DepartmentResponse(BaseModel):
    id: int
    name: str
    code: str
    description: str | None
    head: UserSummary | None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
