"""
Pydantic schemas for comments.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from usg_portal.models.comment import MAX_COMMENT_LENGTH
from usg_portal.models.enums import CommentVisibility
from usg_portal.schemas.common import UserSummary


class CommentCreate(BaseModel):
    content: str = Field(min_length=1, max_length=MAX_COMMENT_LENGTH)
    parent_comment_id: int | None = None
    visibility: CommentVisibility = CommentVisibility.PUBLIC

    model_config = {"str_strip_whitespace": True}


class CommentUpdate(BaseModel):
    content: str = Field(min_length=1, max_length=MAX_COMMENT_LENGTH)

    model_config = {"str_strip_whitespace": True}


class CommentResponse(BaseModel):
    id: int
    issuance_id: int
    author: UserSummary
    content: str
    parent_comment_id: int | None
    visibility: CommentVisibility
    is_edited: bool
    edited_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CommentCountResponse(BaseModel):
    issuance_id: int
    count: int
