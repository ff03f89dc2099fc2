"""
Order Domain Models

Represents orders and coupons of the store.
"""
import json
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from cromwell.domain.common import BaseFilter


class Coupon(BaseModel):
    """Discount coupon that can be applied to orders"""

    id: int = Field(..., description="Coupon ID")
    slug: Optional[str] = None
    code: str = Field(..., description="Code entered by the customer")
    discount_type: Optional[str] = Field(None, description="'fixed' or 'percentage'")
    value: Optional[Decimal] = Field(None, description="Discount value")
    description: Optional[str] = None
    expiry_date: Optional[datetime] = None
    usage_limit: Optional[int] = None
    is_enabled: bool = True
    create_date: Optional[datetime] = None
    update_date: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class Order(BaseModel):
    """
    Order domain model - represents a customer order

    The cart is stored as a JSON encoded string; `cart_items` decodes it.
    """

    id: int = Field(..., description="Order ID")
    slug: Optional[str] = None
    status: Optional[str] = Field(None, description="Order status (Pending, Shipped, ...)")
    cart: Optional[str] = Field(None, description="JSON encoded cart")

    order_total_price: Optional[Decimal] = None
    cart_total_price: Optional[Decimal] = None
    cart_old_total_price: Optional[Decimal] = None
    shipping_price: Optional[Decimal] = None
    total_qnt: Optional[int] = None

    user_id: Optional[int] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    customer_address: Optional[str] = None
    customer_comment: Optional[str] = None

    shipping_method: Optional[str] = None
    payment_method: Optional[str] = None
    currency: Optional[str] = None

    is_enabled: bool = True
    create_date: Optional[datetime] = None
    update_date: Optional[datetime] = None

    coupons: List[Coupon] = []

    model_config = ConfigDict(from_attributes=True)

    @property
    def cart_items(self) -> List[dict]:
        if not self.cart:
            return []
        try:
            items = json.loads(self.cart)
        except ValueError:
            return []
        return items if isinstance(items, list) else []

    def to_dict(self) -> dict:
        """Convert to dictionary with Decimal to float conversion"""
        data = self.model_dump()

        for field in ['order_total_price', 'cart_total_price', 'cart_old_total_price', 'shipping_price']:
            if data.get(field) is not None:
                data[field] = float(data[field])

        data['cart'] = self.cart_items
        return data


class OrderInput(BaseModel):
    """Schema for creating or updating an order"""
    status: Optional[str] = None
    cart: Optional[Union[str, List[Any]]] = None
    order_total_price: Optional[Decimal] = None
    cart_total_price: Optional[Decimal] = None
    cart_old_total_price: Optional[Decimal] = None
    shipping_price: Optional[Decimal] = None
    total_qnt: Optional[int] = None
    user_id: Optional[int] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[Union[str, int]] = None
    customer_email: Optional[str] = None
    customer_address: Optional[str] = None
    customer_comment: Optional[str] = None
    shipping_method: Optional[str] = None
    payment_method: Optional[str] = None
    currency: Optional[str] = None
    coupon_codes: Optional[List[str]] = None


class OrderFilter(BaseFilter):
    user_id: Optional[int] = None
    status: Optional[str] = None
    order_id: Optional[int] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None
