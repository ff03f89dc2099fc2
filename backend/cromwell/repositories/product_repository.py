"""
Product Repository - Data Access Layer for Products

Handles all database queries for products and returns Product domain models.
"""
import logging
from typing import Any, Dict, List, Optional, Union

from cromwell.domain.common import BaseFilter, DeleteManyInput, PagedList, PagedParams
from cromwell.domain.product import Product, ProductInput
from cromwell.repositories.base_repository import BaseRepository
from cromwell.services.cache_strategy import CACHE_STRATEGIES, cache_invalidate, cacheable
from cromwell.services.database_optimizer import query_cache

logger = logging.getLogger(__name__)


class ProductRepository(BaseRepository):
    """
    Repository for Product data access

    All SQL queries for products are centralized here.
    Returns Product domain models, not raw dictionaries.
    Single-product reads are cached under `product_data`, lists under
    `db_query`; every write fires the matching `product.*` event.
    """

    table = "products"
    model = Product
    entity_type = "product"
    columns = (
        "slug", "name", "sku", "price", "old_price", "description",
        "main_image", "average_rating", "reviews_count", "is_enabled",
    )
    server_defaults = ("is_enabled", "reviews_count")

    @cacheable(CACHE_STRATEGIES["product_data"], key_generator=lambda product_id: f"id:{product_id}", model=Product)
    def get_product_by_id(self, product_id: int) -> Product:
        return self.get_by_id(product_id)

    @cacheable(CACHE_STRATEGIES["product_data"], key_generator=lambda slug: f"slug:{slug}", model=Product)
    def get_product_by_slug(self, slug: str) -> Product:
        return self.get_by_slug(slug)

    @query_cache(model=PagedList[Product])
    def get_products(self, params: Optional[PagedParams] = None) -> PagedList:
        return self.get_paged(params)

    @query_cache(model=PagedList[Product])
    def get_filtered_products(
        self,
        paged_params: Optional[PagedParams] = None,
        filter: Optional[BaseFilter] = None,
        name_search: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
    ) -> PagedList:
        """
        Find products with filters

        Args:
            paged_params: Paging and ordering
            filter: Generic column filters
            name_search: Search in name or SKU
            min_price: Lower price bound
            max_price: Upper price bound

        Returns:
            PagedList of products
        """
        conditions: List[str] = []
        params: List[Any] = []
        self.apply_base_filter(conditions, params, filter)

        if name_search:
            conditions.append("(products.name ILIKE %s OR products.sku ILIKE %s)")
            search_term = f"%{name_search}%"
            params.extend([search_term, search_term])

        if min_price is not None:
            conditions.append("products.price >= %s")
            params.append(min_price)

        if max_price is not None:
            conditions.append("products.price <= %s")
            params.append(max_price)

        return self._paged_query(conditions, params, paged_params)

    @cache_invalidate("product.update")
    def update_rating(self, product_id: int) -> Optional[Product]:
        """Recompute average_rating and reviews_count from approved reviews"""
        with self._cursor() as cursor:
            cursor.execute("""
                UPDATE products
                SET
                    average_rating = stats.average_rating,
                    reviews_count = stats.reviews_count
                FROM (
                    SELECT
                        AVG(rating) AS average_rating,
                        COUNT(*) AS reviews_count
                    FROM product_reviews
                    WHERE product_id = %s AND approved = true
                ) AS stats
                WHERE products.id = %s
                RETURNING products.*
            """, (product_id, product_id))
            row = cursor.fetchone()

        if not row:
            return None
        return self._map_row({key: row[key] for key in self.all_columns if key in row})

    @cache_invalidate("product.create")
    def create_product(
        self,
        input: Union[ProductInput, dict],
        product_id: Optional[int] = None,
    ) -> Product:
        return self.create_entity(input, product_id)

    @cache_invalidate("product.update")
    def update_product(self, product_id: int, input: Union[ProductInput, dict]) -> Product:
        return self.update_entity(product_id, input)

    @cache_invalidate("product.delete")
    def delete_product(self, product_id: int) -> bool:
        return self.delete_entity(product_id)

    @cache_invalidate("product.delete")
    def delete_many_products(self, input: DeleteManyInput) -> List[int]:
        """Bulk delete; returns the ids of the deleted products"""
        conditions: List[str] = []
        params: List[Any] = []
        self.apply_delete_many(conditions, params, input)

        with self._cursor() as cursor:
            cursor.execute(
                f"DELETE FROM products WHERE {self._where(conditions)} RETURNING id",
                params
            )
            deleted_ids = [row["id"] for row in cursor.fetchall()]

        logger.info(f"Deleted {len(deleted_ids)} rows from products")
        return deleted_ids

    def get_cache_warm_up_data(self) -> Dict[str, Product]:
        """Every product keyed the way get_product_by_id caches it"""
        return {f"id:{product.id}": product for product in self.get_all()}

    def get_enabled_slugs(self) -> List[dict]:
        """Slugs and dates of published products (for the sitemap)"""
        with self._cursor() as cursor:
            cursor.execute("""
                SELECT id, slug, create_date, update_date
                FROM products
                WHERE is_enabled = true
                ORDER BY id
            """)
            return cursor.fetchall()
