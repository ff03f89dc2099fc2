"""
Database models (schema definition)
"""
from .entities import (
    Cms,
    Coupon,
    DashboardLayout,
    Order,
    PageStats,
    Plugin,
    Product,
    ProductReview,
    order_coupons,
)

__all__ = [
    "Cms",
    "Coupon",
    "DashboardLayout",
    "Order",
    "PageStats",
    "Plugin",
    "Product",
    "ProductReview",
    "order_coupons",
]
