"""
Product Domain Model

Represents a product entity of the store catalog.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Product(BaseModel):
    """
    Product domain model - represents a product in the store catalog

    Fields:
        id: Internal product ID (primary key)
        slug: URL slug (unique, defaults to the id)
        name: Product name
        sku: Stock Keeping Unit
        price: Current price
        old_price: Previous price (shown crossed out)
        description: HTML description
        main_image: Path or URL of the main image
        average_rating: Average of approved review ratings
        reviews_count: Number of approved reviews
        is_enabled: Whether the product is published
    """

    id: int = Field(..., description="Internal product ID")
    slug: Optional[str] = Field(None, description="URL slug")
    name: Optional[str] = Field(None, description="Product name")
    sku: Optional[str] = Field(None, description="Stock Keeping Unit")

    price: Optional[Decimal] = Field(None, description="Price", ge=0)
    old_price: Optional[Decimal] = Field(None, description="Previous price", ge=0)

    description: Optional[str] = Field(None, description="Product description")
    main_image: Optional[str] = Field(None, description="Main image")

    average_rating: Optional[float] = Field(None, description="Average approved rating")
    reviews_count: int = Field(0, description="Approved reviews count")

    is_enabled: bool = Field(True, description="Published flag")
    create_date: Optional[datetime] = None
    update_date: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def has_discount(self) -> bool:
        return bool(self.old_price and self.price is not None and self.old_price > self.price)

    def to_dict(self) -> dict:
        """Convert to dictionary with Decimal to float conversion"""
        data = self.model_dump()
        data['has_discount'] = self.has_discount

        for field in ['price', 'old_price']:
            if data.get(field) is not None:
                data[field] = float(data[field])

        return data


class ProductInput(BaseModel):
    """Schema for creating or updating a product"""
    slug: Optional[str] = None
    name: Optional[str] = None
    sku: Optional[str] = None
    price: Optional[Decimal] = None
    old_price: Optional[Decimal] = None
    description: Optional[str] = None
    main_image: Optional[str] = None
    is_enabled: Optional[bool] = None
