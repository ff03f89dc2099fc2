"""
Repository Layer - Data Access

This layer handles all database queries and returns domain models.
Repositories abstract away SQL details from business logic.
"""
from cromwell.repositories.base_repository import BaseRepository
from cromwell.repositories.product_repository import ProductRepository
from cromwell.repositories.order_repository import OrderRepository
from cromwell.repositories.product_review_repository import ProductReviewRepository
from cromwell.repositories.coupon_repository import CouponRepository
from cromwell.repositories.cms_repository import CmsRepository
from cromwell.repositories.plugin_repository import PluginRepository

__all__ = [
    'BaseRepository',
    'ProductRepository',
    'OrderRepository',
    'ProductReviewRepository',
    'CouponRepository',
    'CmsRepository',
    'PluginRepository',
]
