"""
API tests for /api/v1/orders

Repositories are mocked; authentication is overridden per test.
"""
from unittest.mock import patch

import pytest

from cromwell.core.exceptions import BadRequestError, NotFoundError
from cromwell.domain.common import PagedList, PagedMeta
from cromwell.domain.order import Coupon, Order


@pytest.fixture
def order_repo():
    with patch("cromwell.api.orders.OrderRepository") as repo_cls:
        yield repo_cls.return_value


class TestOrdersAdmin:

    def test_list_requires_authentication(self, api_client, order_repo):
        response = api_client.get("/api/v1/orders/")

        assert response.status_code == 401
        order_repo.get_orders.assert_not_called()

    def test_list_requires_admin(self, api_client, as_user, customer_user, order_repo):
        as_user(customer_user)

        assert api_client.get("/api/v1/orders/").status_code == 403

    def test_list_orders(self, api_client, as_user, admin_user, order_repo, order_row):
        as_user(admin_user)
        order_repo.get_orders.return_value = PagedList(
            elements=[Order(**order_row)],
            paged_meta=PagedMeta.build(1, 15, 1),
        )

        response = api_client.get("/api/v1/orders/?page_size=15")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["paged_meta"]["total_elements"] == 1
        assert data["elements"][0]["cart"] == [{"product_id": 3, "amount": 2}]
        assert data["elements"][0]["order_total_price"] == 30.0

    def test_get_order_with_coupons(self, api_client, as_user, admin_user, order_repo, order_row):
        as_user(admin_user)
        order_repo.get_order_by_id.return_value = Order(**order_row)
        order_repo.get_coupons_of_order.return_value = [Coupon(id=2, code="SALE10")]

        response = api_client.get("/api/v1/orders/1")

        assert response.json()["data"]["coupons"][0]["code"] == "SALE10"

    def test_missing_order_is_404(self, api_client, as_user, admin_user, order_repo):
        as_user(admin_user)
        order_repo.get_order_by_id.side_effect = NotFoundError("orders 9 not found!")

        response = api_client.get("/api/v1/orders/9")

        assert response.status_code == 404
        assert response.json() == {"status": "error", "detail": "orders 9 not found!", "status_code": 404}

    def test_delete_many_with_filter(self, api_client, as_user, admin_user, order_repo):
        as_user(admin_user)
        order_repo.delete_many_filtered_orders.return_value = True

        response = api_client.post("/api/v1/orders/delete-many", json={
            "input": {"ids": [1, 2], "all": False},
            "filter": {"status": "Cancelled"},
        })

        assert response.json()["data"] is True
        delete_input, order_filter = order_repo.delete_many_filtered_orders.call_args[0]
        assert delete_input.ids == [1, 2]
        assert order_filter.status == "Cancelled"


class TestOrdersPublic:

    def test_place_order(self, api_client, order_repo, order_row):
        order_repo.create_order.return_value = Order(**order_row)

        response = api_client.post("/api/v1/orders/", json={
            "customer_email": "jane@example.com",
            "cart": [{"product_id": 3, "amount": 2}],
        })

        assert response.status_code == 200
        assert response.json()["data"]["id"] == 1

    def test_invalid_order_is_400(self, api_client, order_repo):
        order_repo.create_order.side_effect = BadRequestError("Provided e-mail is not valid")

        response = api_client.post("/api/v1/orders/", json={"customer_email": "nope"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Provided e-mail is not valid"

    def test_user_sees_own_orders(self, api_client, as_user, customer_user, order_repo, order_row):
        as_user(customer_user)
        order_repo.get_orders_of_user.return_value = PagedList(
            elements=[Order(**order_row)], paged_meta=PagedMeta.build(1, 15, 1)
        )

        response = api_client.get("/api/v1/orders/user/7")

        assert response.status_code == 200
        assert order_repo.get_orders_of_user.call_args[0][0] == 7

    def test_user_cannot_see_other_orders(self, api_client, as_user, customer_user, order_repo):
        as_user(customer_user)

        assert api_client.get("/api/v1/orders/user/8").status_code == 403
        order_repo.get_orders_of_user.assert_not_called()
