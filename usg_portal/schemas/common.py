"""
Response envelope and shared schemas.

Every endpoint answers {success, message?, data?}; list endpoints
put a Page (items + pagination) in data.
"""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    message: str | None = None
    data: T | None = None


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class Page(BaseModel, Generic[T]):
    items: list[T]
    pagination: Pagination


class UserSummary(BaseModel):
    """An actor reference resolved for display."""
    id: int
    name: str
    email: str

    model_config = {"from_attributes": True}
