"""
Unit tests for cache strategies, event invalidation and the cache decorators
"""
from decimal import Decimal
from typing import Optional
from unittest.mock import MagicMock

import pytest
from pydantic import BaseModel

from cromwell.services.cache_manager import CacheManager
from cromwell.services.cache_strategy import (
    CACHE_STRATEGIES,
    CacheStrategy,
    CacheStrategyManager,
    cache_invalidate,
    cacheable,
    from_cache_value,
    to_cache_value,
)


@pytest.fixture
def cache_manager():
    return CacheManager(redis_url="", key_prefix="test:", memory_max=100, default_ttl=60)


@pytest.fixture
def strategy_manager(cache_manager):
    return CacheStrategyManager(cache_manager=cache_manager)


class TestEventInvalidation:

    @pytest.mark.parametrize("event,pattern,expected", [
        ("product.update", "*.update", True),
        ("product.updated", "*.update", False),
        ("product.update", "product.update", True),
        ("order.create", "product.*", False),
    ])
    def test_match_pattern(self, event, pattern, expected):
        assert CacheStrategyManager.match_pattern(event, pattern) is expected

    def test_product_update_invalidates_listeners(self, strategy_manager, cache_manager):
        strategy_manager.set("1", {"id": 1}, CACHE_STRATEGIES["product_data"])
        strategy_manager.set("list", [1], CACHE_STRATEGIES["api_response"])
        strategy_manager.set("1", {"id": 1}, CACHE_STRATEGIES["order_data"])

        affected = strategy_manager.handle_event("product.update")

        assert set(affected) == {"product_data", "api_response", "db_query"}
        assert strategy_manager.get("1", CACHE_STRATEGIES["product_data"]) is None
        assert strategy_manager.get("list", CACHE_STRATEGIES["api_response"]) is None
        assert strategy_manager.get("1", CACHE_STRATEGIES["order_data"]) == {"id": 1}

    def test_unknown_event_invalidates_nothing(self, strategy_manager):
        assert strategy_manager.handle_event("user.login") == []

    def test_theme_change_invalidates_theme_and_settings(self, strategy_manager):
        assert set(strategy_manager.handle_event("theme.change")) == {"theme_config", "cms_settings"}


class TestWarmUp:

    def test_warm_up_requires_flag(self, strategy_manager):
        data = {"a": 1}
        assert strategy_manager.warm_up_strategy(CACHE_STRATEGIES["order_data"], data) == 0
        assert strategy_manager.warm_up_strategy(CACHE_STRATEGIES["product_data"], data) == 1
        assert strategy_manager.get("a", CACHE_STRATEGIES["product_data"]) == 1

    def test_warm_up_all_continues_after_provider_error(self, strategy_manager):
        strategy_manager.register_warm_up_provider("product_data", MagicMock(side_effect=RuntimeError("db down")))
        strategy_manager.register_warm_up_provider("category_data", lambda: {"root": [1, 2]})

        strategy_manager.warm_up_all()

        assert strategy_manager.get("root", CACHE_STRATEGIES["category_data"]) == [1, 2]


class Item(BaseModel):
    id: int
    price: Optional[Decimal] = None


class Catalog:
    """Service double using the decorators"""

    def __init__(self, cache_strategy_manager=None):
        self.cache_strategy_manager = cache_strategy_manager
        self.loads = 0

    @cacheable(CACHE_STRATEGIES["product_data"])
    def get_product(self, product_id):
        self.loads += 1
        return {"id": product_id} if product_id else None

    @cacheable(CACHE_STRATEGIES["product_data"], key_generator=lambda item_id: f"item:{item_id}", model=Item)
    def get_item(self, item_id):
        self.loads += 1
        return Item(id=item_id, price=Decimal("9.90"))

    @cache_invalidate("product.update")
    def update_product(self, product_id):
        return True


class TestDecorators:

    def test_cacheable_caches_by_arguments(self, strategy_manager):
        catalog = Catalog(strategy_manager)

        assert catalog.get_product(1) == {"id": 1}
        assert catalog.get_product(1) == {"id": 1}
        assert catalog.get_product(2) == {"id": 2}
        assert catalog.loads == 2

    def test_cacheable_skips_none(self, strategy_manager):
        catalog = Catalog(strategy_manager)

        catalog.get_product(0)
        catalog.get_product(0)

        assert catalog.loads == 2

    def test_cacheable_without_manager_calls_through(self):
        catalog = Catalog()

        catalog.get_product(1)
        catalog.get_product(1)

        assert catalog.loads == 2

    def test_cache_invalidate_fires_event(self, strategy_manager):
        catalog = Catalog(strategy_manager)
        catalog.get_product(1)

        assert catalog.update_product(1) is True
        catalog.get_product(1)

        assert catalog.loads == 2

    def test_cacheable_model_hit_returns_same_type(self, strategy_manager, cache_manager):
        catalog = Catalog(strategy_manager)

        first = catalog.get_item(5)
        second = catalog.get_item(5)

        assert catalog.loads == 1
        assert isinstance(second, Item)
        assert second == first
        assert cache_manager.get("item:5", namespace="product") == {"id": 5, "price": "9.90"}

    def test_get_or_set_does_not_cache_none(self, strategy_manager):
        callback = MagicMock(return_value=None)
        strategy = CACHE_STRATEGIES["db_query"]

        assert strategy_manager.get_or_set("missing", callback, strategy) is None
        assert strategy_manager.get_or_set("missing", callback, strategy) is None
        assert callback.call_count == 2

    def test_custom_strategies(self, cache_manager):
        strategy = CacheStrategy(name="stock", ttl=5, namespace="stock", invalidate_on=["stock.*"])
        manager = CacheStrategyManager(cache_manager=cache_manager, strategies={"stock": strategy})

        assert manager.handle_event("stock.sync") == ["stock"]


class TestCacheValues:

    def test_models_are_dumped_recursively(self):
        value = {"items": [Item(id=1, price=Decimal("2.50"))], "total": 1}

        assert to_cache_value(value) == {"items": [{"id": 1, "price": "2.50"}], "total": 1}

    def test_lists_are_rebuilt_per_element(self):
        items = from_cache_value([{"id": 1}, {"id": 2, "price": "3"}], Item)

        assert [item.id for item in items] == [1, 2]
        assert items[1].price == Decimal("3")

    def test_without_model_value_is_unchanged(self):
        assert from_cache_value({"id": 1}) == {"id": 1}
