"""
Application-level cache strategies

A strategy fixes the namespace, TTL and compression of a family of cached
values and the events that invalidate them. Services write through
`CacheStrategyManager` or the `cacheable` / `cache_invalidate` decorators.
"""
import fnmatch
import functools
import json
import logging
from typing import Any, Callable, Dict, List, Optional, Type

from pydantic import BaseModel

from cromwell.services.cache_manager import CacheManager, get_cache_manager

logger = logging.getLogger(__name__)


class CacheStrategy(BaseModel):
    name: str
    ttl: int
    namespace: str
    invalidate_on: List[str] = []
    warm_up: bool = False
    compress: bool = False


CACHE_STRATEGIES: Dict[str, CacheStrategy] = {
    # Static content - long lived
    "static_content": CacheStrategy(
        name="static_content", ttl=86400, namespace="static", compress=True,
    ),
    "user_session": CacheStrategy(
        name="user_session", ttl=1800, namespace="session",
        invalidate_on=["user.logout", "user.update"],
    ),
    # API responses - short lived
    "api_response": CacheStrategy(
        name="api_response", ttl=300, namespace="api",
        invalidate_on=["*.create", "*.update", "*.delete"],
    ),
    "db_query": CacheStrategy(
        name="db_query", ttl=600, namespace="db",
        invalidate_on=["*.create", "*.update", "*.delete"],
    ),
    "product_data": CacheStrategy(
        name="product_data", ttl=1800, namespace="product",
        invalidate_on=["product.create", "product.update", "product.delete"],
        warm_up=True,
    ),
    "category_data": CacheStrategy(
        name="category_data", ttl=3600, namespace="category",
        invalidate_on=["category.create", "category.update", "category.delete"],
        warm_up=True,
    ),
    "user_data": CacheStrategy(
        name="user_data", ttl=1800, namespace="user",
        invalidate_on=["user.update", "user.delete"],
    ),
    "order_data": CacheStrategy(
        name="order_data", ttl=600, namespace="order",
        invalidate_on=["order.create", "order.update", "order.delete"],
    ),
    "content_data": CacheStrategy(
        name="content_data", ttl=1800, namespace="content",
        invalidate_on=["post.create", "post.update", "post.delete"],
    ),
    "theme_config": CacheStrategy(
        name="theme_config", ttl=7200, namespace="theme",
        invalidate_on=["theme.update", "theme.change"],
    ),
    "plugin_data": CacheStrategy(
        name="plugin_data", ttl=3600, namespace="plugin",
        invalidate_on=["plugin.activate", "plugin.deactivate", "plugin.update"],
    ),
    # Merged CMS settings, read on every request and by the service watchers
    "cms_settings": CacheStrategy(
        name="cms_settings", ttl=600, namespace="cms",
        invalidate_on=["cms.update", "theme.update", "theme.change"],
    ),
}


def to_cache_value(value: Any) -> Any:
    """JSON-ready form of a value: pydantic models are dumped in JSON mode"""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (list, tuple)):
        return [to_cache_value(item) for item in value]
    if isinstance(value, dict):
        return {key: to_cache_value(item) for key, item in value.items()}
    return value


def from_cache_value(value: Any, model: Optional[Type[BaseModel]] = None) -> Any:
    """Rebuild cached JSON into `model` (each element when the value is a list)"""
    if model is None or value is None:
        return value
    if isinstance(value, list):
        return [model.model_validate(item) for item in value]
    return model.model_validate(value)


class CacheStrategyManager:
    """
    Reads and writes the cache by strategy and invalidates strategies on events

    Event patterns use `*` as a wildcard and must match the whole event
    name: `*.update` matches `product.update` but not `product.updated`.
    """

    def __init__(
        self,
        cache_manager: Optional[CacheManager] = None,
        strategies: Optional[Dict[str, CacheStrategy]] = None,
    ):
        self.cache_manager = cache_manager or get_cache_manager()
        self.strategies = strategies if strategies is not None else CACHE_STRATEGIES
        self._warm_up_providers: Dict[str, Callable[[], Dict[str, Any]]] = {}

        # {event pattern: [strategy, ...]}
        self._event_listeners: Dict[str, List[CacheStrategy]] = {}
        for strategy in self.strategies.values():
            for event in strategy.invalidate_on:
                self._event_listeners.setdefault(event, []).append(strategy)

    def get(self, key: str, strategy: CacheStrategy, model: Optional[Type[BaseModel]] = None) -> Any:
        cached = self.cache_manager.get(key, namespace=strategy.namespace, ttl=strategy.ttl)
        return from_cache_value(cached, model)

    def set(self, key: str, value: Any, strategy: CacheStrategy):
        self.cache_manager.set(
            key, to_cache_value(value),
            namespace=strategy.namespace,
            ttl=strategy.ttl,
            compress=strategy.compress,
        )

    def get_or_set(
        self,
        key: str,
        callback: Callable[[], Any],
        strategy: CacheStrategy,
        model: Optional[Type[BaseModel]] = None,
    ) -> Any:
        """
        Cached value, or the callback's result (then cached)

        None results are not cached. With `model`, cached JSON is rebuilt
        into model instances so hits and misses return the same type.
        """
        cached = self.get(key, strategy, model=model)
        if cached is not None:
            return cached

        value = callback()
        if value is not None:
            self.set(key, value, strategy)
        return value

    def invalidate_strategy(self, strategy: CacheStrategy):
        self.cache_manager.delete_pattern(f"{strategy.namespace}:*")
        logger.info(f"Invalidated cache strategy: {strategy.name}")

    @staticmethod
    def match_pattern(event_name: str, pattern: str) -> bool:
        return fnmatch.fnmatchcase(event_name, pattern)

    def handle_event(self, event_name: str) -> List[str]:
        """
        Invalidate every strategy listening to an event

        Returns:
            Names of the invalidated strategies
        """
        affected: Dict[str, CacheStrategy] = {}
        for pattern, strategies in self._event_listeners.items():
            if self.match_pattern(event_name, pattern):
                for strategy in strategies:
                    affected[strategy.name] = strategy

        if affected:
            logger.info(f"Event {event_name} triggered cache invalidation for {len(affected)} strategies")
            for strategy in affected.values():
                self.invalidate_strategy(strategy)

        return list(affected.keys())

    def register_warm_up_provider(self, strategy_name: str, provider: Callable[[], Dict[str, Any]]):
        """Provider returns {key: value} to preload for a strategy"""
        self._warm_up_providers[strategy_name] = provider

    def warm_up_strategy(self, strategy: CacheStrategy, data: Dict[str, Any]) -> int:
        if not strategy.warm_up:
            return 0

        logger.info(f"Warming up cache strategy: {strategy.name}")
        for key, value in data.items():
            self.set(key, value, strategy)

        logger.info(f"Cache strategy {strategy.name} warmed up with {len(data)} items")
        return len(data)

    def warm_up_all(self):
        for strategy in self.strategies.values():
            if not strategy.warm_up:
                continue

            provider = self._warm_up_providers.get(strategy.name)
            if provider is None:
                continue

            try:
                self.warm_up_strategy(strategy, provider())
            except Exception as e:
                logger.error(f"Failed to warm up strategy {strategy.name}: {e}")


def default_cache_key(instance: Any, method: Callable, args: tuple, kwargs: dict) -> str:
    arguments = list(args)
    if kwargs:
        arguments.append(kwargs)
    serialized = json.dumps(to_cache_value(arguments), default=str, sort_keys=True)
    return f"{type(instance).__name__}.{method.__name__}:{serialized}"


def cacheable(
    strategy: CacheStrategy,
    key_generator: Optional[Callable[..., str]] = None,
    model: Optional[Type[BaseModel]] = None,
):
    """
    Cache a method's result by strategy

    Uses `self.cache_strategy_manager`; without one the method is called
    directly. None results are not cached. Pass `model` when the method
    returns pydantic models so cache hits are rebuilt into that type.
    """
    def decorator(method):
        @functools.wraps(method)
        def wrapper(self, *args, **kwargs):
            manager: Optional[CacheStrategyManager] = getattr(self, "cache_strategy_manager", None)
            if manager is None:
                return method(self, *args, **kwargs)

            cache_key = (
                key_generator(*args, **kwargs) if key_generator
                else default_cache_key(self, method, args, kwargs)
            )

            return manager.get_or_set(
                cache_key, lambda: method(self, *args, **kwargs), strategy, model=model,
            )
        return wrapper
    return decorator


def cache_invalidate(event_name: str):
    """Fire a cache event after the method returns"""
    def decorator(method):
        @functools.wraps(method)
        def wrapper(self, *args, **kwargs):
            result = method(self, *args, **kwargs)

            manager: Optional[CacheStrategyManager] = getattr(self, "cache_strategy_manager", None)
            if manager is not None:
                manager.handle_event(event_name)
            return result
        return wrapper
    return decorator


# Global strategy manager
_cache_strategy_manager: Optional[CacheStrategyManager] = None


def get_cache_strategy_manager() -> CacheStrategyManager:
    global _cache_strategy_manager
    if _cache_strategy_manager is None:
        _cache_strategy_manager = CacheStrategyManager()
    return _cache_strategy_manager
