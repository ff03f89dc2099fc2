"""
Product Review Domain Models
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from cromwell.domain.common import BaseFilter


class ProductReview(BaseModel):
    """Customer review of a product. Only approved reviews are public."""

    id: int = Field(..., description="Review ID")
    slug: Optional[str] = None
    product_id: int = Field(..., description="Reviewed product")
    title: Optional[str] = None
    description: Optional[str] = None
    rating: Optional[float] = Field(None, ge=0, le=5)
    user_name: Optional[str] = None
    user_id: Optional[int] = None
    approved: Optional[bool] = None
    is_enabled: bool = True
    create_date: Optional[datetime] = None
    update_date: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ProductReviewInput(BaseModel):
    slug: Optional[str] = None
    product_id: Optional[int] = None
    title: Optional[str] = None
    description: Optional[str] = None
    rating: Optional[float] = Field(None, ge=0, le=5)
    user_name: Optional[str] = None
    user_id: Optional[int] = None
    approved: Optional[bool] = None


class ProductReviewFilter(BaseFilter):
    approved: Optional[bool] = None
    product_id: Optional[int] = None
    user_id: Optional[int] = None
    user_name: Optional[str] = None
