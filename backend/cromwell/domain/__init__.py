"""
Domain Layer - Business Entities

Pydantic models representing CMS entities. Repositories return these,
routers serialize them.
"""
from cromwell.domain.common import BaseFilter, DeleteManyInput, FilterItem, PagedList, PagedMeta, PagedParams
from cromwell.domain.product import Product, ProductInput
from cromwell.domain.order import Coupon, Order, OrderFilter, OrderInput
from cromwell.domain.product_review import ProductReview, ProductReviewFilter, ProductReviewInput
from cromwell.domain.cms import CmsEntity, CmsSettings

__all__ = [
    'BaseFilter', 'DeleteManyInput', 'FilterItem', 'PagedList', 'PagedMeta', 'PagedParams',
    'Product', 'ProductInput',
    'Coupon', 'Order', 'OrderFilter', 'OrderInput',
    'ProductReview', 'ProductReviewFilter', 'ProductReviewInput',
    'CmsEntity', 'CmsSettings',
]
