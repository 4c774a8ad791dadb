"""Common schemas for the change queue API."""

from typing import Generic, TypeVar, List
from pydantic import BaseModel

T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    """One page of a listing, with the counters of the whole result."""
    items: List[T]
    total: int
    page: int
    per_page: int
    pages: int

    @classmethod
    def from_page(cls, result, items: List[T]):
        """Wrap a service page whose rows were already converted to ``items``."""
        return cls(
            items=items,
            total=result.total,
            page=result.page,
            per_page=result.per_page,
            pages=result.pages,
        )


class IssueResponse(BaseModel):
    """One offending item of a rejected payload."""
    index: int
    field_path: str
    rule: str
    message: str


class ErrorResponse(BaseModel):
    """Body of every change queue error: ``code`` is stable, ``detail`` is for humans."""
    error: str
    detail: str
    code: str
    issues: List[IssueResponse] = []
