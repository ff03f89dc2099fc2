"""
Coupon Repository
"""
from typing import List

from cromwell.domain.order import Coupon
from cromwell.repositories.base_repository import BaseRepository


class CouponRepository(BaseRepository):
    table = "coupons"
    model = Coupon
    columns = (
        "slug", "code", "discount_type", "value", "description",
        "expiry_date", "usage_limit", "is_enabled",
    )

    def get_coupons_by_codes(self, codes: List[str]) -> List[Coupon]:
        """Find enabled coupons matching any of the codes"""
        if not codes:
            return []

        with self._cursor() as cursor:
            cursor.execute(f"""
                SELECT {self.select_columns}
                FROM coupons
                WHERE coupons.code = ANY(%s) AND coupons.is_enabled = true
                ORDER BY coupons.id
            """, (list(codes),))
            rows = cursor.fetchall()

        return [self._map_row(row) for row in rows]
