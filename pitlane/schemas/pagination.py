"""
Page-based pagination for list endpoints.
Annotations stay evaluated so FastAPI can read the PageParams signature.
"""
import math
from typing import Generic, TypeVar

from fastapi import Query
from pydantic import BaseModel, computed_field

T = TypeVar("T")


class PageParams:
    """Query parameters shared by paginated routes; use as ``Depends(PageParams)``."""

    def __init__(
        self,
        page: int = Query(default=1, ge=1),
        size: int = Query(default=20, ge=1, le=100),
    ) -> None:
        self.page = page
        self.size = size

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.size


class PaginatedResponse(BaseModel, Generic[T]):
    items: list[T]
    total: int
    page: int
    size: int

    @computed_field  # type: ignore[misc]
    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.size) if self.size else 0

    @classmethod
    def build(
        cls, items: list[T], *, total: int, params: PageParams
    ) -> "PaginatedResponse[T]":
        return cls(items=items, total=total, page=params.page, size=params.size)
