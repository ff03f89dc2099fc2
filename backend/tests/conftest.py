"""
Pytest fixtures and configuration for Cromwell CMS backend tests

No test needs a live database or Redis: repositories get a mocked
psycopg2 connection and the cache runs on its in-memory tier.
"""
from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest

from cromwell.core.auth import AuthUserInfo


@pytest.fixture
def mock_db():
    """
    Patch the connection factory used by every repository

    Yields:
        (connection, cursor) mocks; set cursor.fetchone / fetchall per test
    """
    with patch("cromwell.repositories.base_repository.get_db_connection_dict") as mock_get_conn:
        mock_conn = MagicMock()
        mock_cursor = MagicMock()
        mock_get_conn.return_value = mock_conn
        mock_conn.cursor.return_value = mock_cursor
        yield mock_conn, mock_cursor


@pytest.fixture
def admin_user():
    return AuthUserInfo(id=1, username="admin", roles=["administrator"])


@pytest.fixture
def customer_user():
    return AuthUserInfo(id=7, username="jane", roles=["customer"])


@pytest.fixture
def order_row():
    return {
        "id": 1,
        "slug": "1",
        "status": "Pending",
        "cart": '[{"product_id": 3, "amount": 2}]',
        "order_total_price": 30,
        "cart_total_price": 25,
        "cart_old_total_price": None,
        "shipping_price": 5,
        "total_qnt": 2,
        "user_id": 7,
        "customer_name": "Jane Doe",
        "customer_phone": "15551234567",
        "customer_email": "jane@example.com",
        "customer_address": "1 Main St",
        "customer_comment": "Leave at the door",
        "shipping_method": "courier",
        "payment_method": "card",
        "currency": "USD",
        "is_enabled": True,
        "create_date": datetime(2024, 1, 10, 12, 0),
        "update_date": None,
    }


@pytest.fixture
def product_row():
    return {
        "id": 3,
        "slug": "blue-shirt",
        "name": "Blue shirt",
        "sku": "SH-BLUE",
        "price": 25,
        "old_price": 30,
        "description": "<p>Cotton</p>",
        "main_image": "/images/blue.png",
        "average_rating": 4.5,
        "reviews_count": 2,
        "is_enabled": True,
        "create_date": datetime(2024, 1, 1),
        "update_date": None,
    }


@pytest.fixture
def review_row():
    return {
        "id": 11,
        "slug": "11",
        "product_id": 3,
        "title": "Great",
        "description": "Fits well",
        "rating": 5,
        "user_name": "Jane",
        "user_id": 7,
        "approved": True,
        "is_enabled": True,
        "create_date": datetime(2024, 1, 2),
        "update_date": None,
    }


@pytest.fixture
def app():
    from cromwell.main import app as fastapi_app
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def api_client(app):
    from fastapi.testclient import TestClient
    return TestClient(app)


@pytest.fixture
def as_user(app):
    """Authenticate requests as the given user: as_user(admin_user)"""
    from cromwell.core.auth import get_current_user, get_optional_user, require_admin

    def authenticate(user):
        app.dependency_overrides[get_current_user] = lambda: user
        app.dependency_overrides[get_optional_user] = lambda: user
        if "administrator" in user.roles:
            app.dependency_overrides[require_admin] = lambda: user
    return authenticate
