"""
Shared domain types: paging, filtering and bulk deletion
"""
from math import ceil
from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class PagedParams(BaseModel):
    """Paging and ordering requested by a client"""
    page_number: int = Field(1, ge=1, description="1-based page number")
    page_size: Optional[int] = Field(None, ge=1, description="Elements per page (CMS default if empty)")
    order_by: Optional[str] = Field(None, description="Column to order by")
    order: str = Field("DESC", pattern="^(ASC|DESC|asc|desc)$")


class PagedMeta(BaseModel):
    page_number: int
    page_size: int
    total_pages: int
    total_elements: int

    @classmethod
    def build(cls, page_number: int, page_size: int, total_elements: int) -> "PagedMeta":
        return cls(
            page_number=page_number,
            page_size=page_size,
            total_pages=ceil(total_elements / page_size) if page_size else 0,
            total_elements=total_elements,
        )


class PagedList(BaseModel, Generic[T]):
    elements: List[T] = []
    paged_meta: Optional[PagedMeta] = None

    def to_dict(self) -> dict:
        """Convert to dict for API responses"""
        return {
            "elements": [
                element.to_dict() if hasattr(element, "to_dict") else element.model_dump(mode="json")
                for element in self.elements
            ],
            "paged_meta": self.paged_meta.model_dump() if self.paged_meta else None,
        }


class DeleteManyInput(BaseModel):
    """
    Bulk deletion selector

    all=False: delete exactly `ids` (required)
    all=True: delete everything except `ids`
    """
    ids: List[Any] = []
    all: bool = False


class FilterItem(BaseModel):
    """
    Column filter

    exact: equality on value
    from_/to: range bounds
    otherwise: case-insensitive substring match on value
    """
    key: str
    value: Optional[Any] = None
    exact: bool = False
    from_: Optional[Any] = Field(None, alias="from")
    to: Optional[Any] = None

    model_config = {"populate_by_name": True}


class BaseFilter(BaseModel):
    filters: List[FilterItem] = []
