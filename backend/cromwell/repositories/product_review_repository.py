"""
Product Review Repository - Data Access Layer for Product Reviews

Reviews always reference an existing product. After every write the
product's average_rating and reviews_count are recomputed.
"""
import logging
from typing import Any, Dict, List, Optional

from cromwell.core.exceptions import NotFoundError
from cromwell.core.html import strip_tags
from cromwell.domain.common import DeleteManyInput, PagedList, PagedParams
from cromwell.domain.product_review import ProductReview, ProductReviewFilter, ProductReviewInput
from cromwell.repositories.base_repository import BaseRepository
from cromwell.repositories.product_repository import ProductRepository
from cromwell.services.cache_strategy import cache_invalidate

logger = logging.getLogger(__name__)


class ProductReviewRepository(BaseRepository):
    """Repository for ProductReview data access"""

    table = "product_reviews"
    model = ProductReview
    columns = (
        "slug", "product_id", "title", "description", "rating",
        "user_name", "user_id", "approved", "is_enabled",
    )

    def __init__(self, product_repository: Optional[ProductRepository] = None, **kwargs):
        super().__init__(**kwargs)
        self.product_repository = product_repository or ProductRepository(**kwargs)

    def get_product_reviews(self, params: Optional[PagedParams] = None) -> PagedList:
        return self.get_paged(params)

    def get_product_review(self, review_id: int) -> ProductReview:
        return self.get_by_id(review_id)

    def _handle_product_review_input(self, input: ProductReviewInput) -> Dict[str, Any]:
        """
        Normalize review input into column values

        Raises:
            NotFoundError if the referenced product does not exist
        """
        if input.product_id is None:
            raise NotFoundError("Product None not found!")
        # Raises NotFoundError if missing
        self.product_repository.get_product_by_id(input.product_id)

        return {
            "slug": input.slug,
            "product_id": input.product_id,
            "title": strip_tags(input.title) if input.title else input.title,
            "description": strip_tags(input.description) if input.description else input.description,
            "rating": input.rating,
            "user_name": strip_tags(input.user_name) if input.user_name else input.user_name,
            "user_id": input.user_id,
            "approved": input.approved,
        }

    def _refresh_rating(self, product_id: Optional[int]):
        if product_id is None:
            return
        self.product_repository.update_rating(product_id)

    def create_product_review(self, input: ProductReviewInput, review_id: Optional[int] = None) -> ProductReview:
        data = self._handle_product_review_input(input)

        with self._cursor() as cursor:
            row = self._insert(cursor, data, review_id)

        review = self._map_row(row)
        self._refresh_rating(review.product_id)
        return review

    def update_product_review(self, review_id: int, input: ProductReviewInput) -> ProductReview:
        data = self._handle_product_review_input(input)
        # An emptied slug falls back to the id, as on create
        data["slug"] = input.slug or str(review_id)
        previous = self.get_product_review(review_id)

        with self._cursor() as cursor:
            row = self._update(cursor, review_id, data)

        review = self._map_row(row)
        self._refresh_rating(review.product_id)
        if previous.product_id != review.product_id:
            self._refresh_rating(previous.product_id)
        return review

    def delete_product_review(self, review_id: int) -> bool:
        try:
            review = self.get_product_review(review_id)
        except NotFoundError:
            logger.warning(f"ProductReviewRepository::delete_product_review failed to find review {review_id} by id")
            return False

        with self._cursor() as cursor:
            cursor.execute("DELETE FROM product_reviews WHERE id = %s", (review_id,))

        self._refresh_rating(review.product_id)
        return True

    def apply_product_review_filter(
        self,
        conditions: List[str],
        params: List[Any],
        filter: Optional[ProductReviewFilter]
    ):
        self.apply_base_filter(conditions, params, filter)
        if not filter:
            return

        if filter.approved is True:
            conditions.append("product_reviews.approved = true")
        elif filter.approved is False:
            conditions.append("(product_reviews.approved = false OR product_reviews.approved IS NULL)")

        if filter.product_id:
            conditions.append("product_reviews.product_id = %s")
            params.append(filter.product_id)

        if filter.user_id:
            conditions.append("product_reviews.user_id = %s")
            params.append(filter.user_id)

        if filter.user_name:
            conditions.append("product_reviews.user_name ILIKE %s")
            params.append(f"%{filter.user_name}%")

    def get_filtered_product_reviews(
        self,
        paged_params: Optional[PagedParams] = None,
        filter: Optional[ProductReviewFilter] = None
    ) -> PagedList:
        conditions: List[str] = []
        params: List[Any] = []
        self.apply_product_review_filter(conditions, params, filter)
        return self._paged_query(conditions, params, paged_params)

    @cache_invalidate("product.update")
    def delete_many_filtered_product_reviews(
        self,
        input: DeleteManyInput,
        filter: Optional[ProductReviewFilter] = None
    ) -> bool:
        if not filter:
            return self.delete_many(input)

        conditions: List[str] = []
        params: List[Any] = []
        self.apply_product_review_filter(conditions, params, filter)
        self.apply_delete_many(conditions, params, input)
        self._delete_where(conditions, params)
        return True
