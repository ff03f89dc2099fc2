"""
Order Repository - Data Access Layer for Orders

Handles all database queries for orders and returns Order domain models.
Order input is normalized here: e-mail validation, JSON cart, digits-only
phone, tag-free comment and coupon links.
"""
import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from dateutil import parser as date_parser

from cromwell.core.exceptions import BadRequestError, NotFoundError
from cromwell.core.html import strip_non_word, strip_tags, validate_email
from cromwell.domain.common import DeleteManyInput, PagedList, PagedParams
from cromwell.domain.order import Coupon, Order, OrderFilter, OrderInput
from cromwell.repositories.base_repository import BaseRepository
from cromwell.services.cache_strategy import CACHE_STRATEGIES, cache_invalidate, cacheable
from cromwell.repositories.coupon_repository import CouponRepository

logger = logging.getLogger(__name__)


class OrderRepository(BaseRepository):
    """
    Repository for Order data access

    All SQL queries for orders are centralized here.
    """

    table = "orders"
    model = Order
    columns = (
        "slug", "status", "cart", "order_total_price", "cart_total_price",
        "cart_old_total_price", "shipping_price", "total_qnt", "user_id",
        "customer_name", "customer_phone", "customer_email", "customer_address",
        "customer_comment", "shipping_method", "payment_method", "currency",
        "is_enabled",
    )

    def __init__(self, coupon_repository: Optional[CouponRepository] = None, **kwargs):
        super().__init__(**kwargs)
        self.coupon_repository = coupon_repository or CouponRepository()

    def get_orders(self, params: Optional[PagedParams] = None) -> PagedList:
        return self.get_paged(params)

    @cacheable(CACHE_STRATEGIES["order_data"], key_generator=lambda order_id: f"id:{order_id}", model=Order)
    def get_order_by_id(self, order_id: int) -> Order:
        return self.get_by_id(order_id)

    def get_order_by_slug(self, slug: str) -> Order:
        return self.get_by_slug(slug)

    def _handle_base_order_input(self, input: OrderInput) -> Tuple[Dict[str, Any], Optional[List[Coupon]]]:
        """
        Normalize order input into column values

        Returns:
            Tuple of (column values, coupons to link or None to keep links unchanged)

        Raises:
            BadRequestError if customer_email is not a valid e-mail
        """
        if input.customer_email and not validate_email(input.customer_email):
            raise BadRequestError("Provided e-mail is not valid")

        cart = input.cart
        if isinstance(cart, list):
            cart = json.dumps(cart)

        customer_phone = input.customer_phone
        if customer_phone is not None and customer_phone != "":
            customer_phone = strip_non_word(customer_phone)

        data = {
            "status": input.status,
            "cart": cart,
            "order_total_price": input.order_total_price,
            "cart_total_price": input.cart_total_price,
            "cart_old_total_price": input.cart_old_total_price,
            "shipping_price": input.shipping_price,
            "total_qnt": input.total_qnt,
            "user_id": input.user_id,
            "customer_name": input.customer_name,
            "customer_phone": customer_phone,
            "customer_email": input.customer_email,
            "customer_address": input.customer_address,
            "customer_comment": strip_tags(input.customer_comment) if input.customer_comment else None,
            "shipping_method": input.shipping_method,
            "payment_method": input.payment_method,
            "currency": input.currency,
        }

        coupons = None
        if input.coupon_codes:
            coupons = self.coupon_repository.get_coupons_by_codes(input.coupon_codes)

        return data, coupons

    def _set_order_coupons(self, cursor, order_id: int, coupons: List[Coupon]):
        cursor.execute("DELETE FROM order_coupons WHERE order_id = %s", (order_id,))
        for coupon in coupons:
            cursor.execute(
                "INSERT INTO order_coupons (order_id, coupon_id) VALUES (%s, %s)",
                (order_id, coupon.id)
            )

    @cache_invalidate("order.create")
    def create_order(self, input: OrderInput, order_id: Optional[int] = None) -> Order:
        data, coupons = self._handle_base_order_input(input)

        with self._cursor() as cursor:
            row = self._insert(cursor, data, order_id)
            if coupons is not None:
                self._set_order_coupons(cursor, row['id'], coupons)

        order = self._map_row(row)
        if coupons:
            order.coupons = coupons
        return order

    @cache_invalidate("order.update")
    def update_order(self, order_id: int, input: OrderInput) -> Order:
        data, coupons = self._handle_base_order_input(input)

        with self._cursor() as cursor:
            row = self._update(cursor, order_id, data)
            if coupons is not None:
                self._set_order_coupons(cursor, order_id, coupons)

        order = self._map_row(row)
        if coupons:
            order.coupons = coupons
        return order

    @cache_invalidate("order.delete")
    def delete_order(self, order_id: int) -> bool:
        try:
            self.get_order_by_id(order_id)
        except NotFoundError:
            logger.warning(f"OrderRepository::delete_order failed to find Order {order_id} by id")
            return False

        with self._cursor() as cursor:
            cursor.execute("DELETE FROM orders WHERE id = %s", (order_id,))
        return True

    def apply_order_filter(self, conditions: List[str], params: List[Any], filter: Optional[OrderFilter]):
        self.apply_base_filter(conditions, params, filter)
        if not filter:
            return

        # Search by user_id
        if filter.user_id:
            conditions.append("orders.user_id = %s")
            params.append(filter.user_id)

        # Search by status
        if filter.status:
            conditions.append("orders.status = %s")
            params.append(filter.status)

        # Search by order id
        if filter.order_id:
            conditions.append("orders.id = %s")
            params.append(filter.order_id)

        # Search by customer_name
        if filter.customer_name:
            conditions.append("orders.customer_name ILIKE %s")
            params.append(f"%{filter.customer_name}%")

        # Search by customer_phone (digits only, as stored)
        if filter.customer_phone:
            conditions.append("orders.customer_phone ILIKE %s")
            params.append(f"%{strip_non_word(filter.customer_phone)}%")

        # Search by customer_email
        if filter.customer_email:
            conditions.append("orders.customer_email ILIKE %s")
            params.append(f"%{filter.customer_email}%")

        # Search by create date
        if filter.date_from:
            date_from = date_parser.parse(filter.date_from)
            date_to = date_parser.parse(filter.date_to) if filter.date_to else datetime.now()
            conditions.append("orders.create_date BETWEEN %s AND %s")
            params.extend([date_from, date_to])

    def get_filtered_orders(
        self,
        paged_params: Optional[PagedParams] = None,
        filter: Optional[OrderFilter] = None
    ) -> PagedList:
        conditions: List[str] = []
        params: List[Any] = []
        self.apply_order_filter(conditions, params, filter)
        return self._paged_query(conditions, params, paged_params)

    @cache_invalidate("order.delete")
    def delete_many_filtered_orders(self, input: DeleteManyInput, filter: Optional[OrderFilter] = None) -> bool:
        if not filter:
            return self.delete_many(input)

        conditions: List[str] = []
        params: List[Any] = []
        self.apply_order_filter(conditions, params, filter)
        self.apply_delete_many(conditions, params, input)
        self._delete_where(conditions, params)
        return True

    def get_orders_of_user(self, user_id: int, paged_params: Optional[PagedParams] = None) -> PagedList:
        return self._paged_query(["orders.user_id = %s"], [user_id], paged_params)

    def get_coupons_of_order(self, order_id: int) -> List[Coupon]:
        with self._cursor() as cursor:
            cursor.execute(f"""
                SELECT {self.coupon_repository.select_columns}
                FROM coupons
                JOIN order_coupons oc ON oc.coupon_id = coupons.id
                WHERE oc.order_id = %s
                ORDER BY coupons.id
            """, (order_id,))
            rows = cursor.fetchall()

        return [Coupon(**row) for row in rows]
