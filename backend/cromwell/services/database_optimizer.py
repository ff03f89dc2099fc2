"""
Database query optimizer

Times repository queries, keeps per-query metrics and serves repeated reads
from the `db_query` cache strategy. Repositories opt in through the
`monitored_query` and `query_cache` decorators, which use `self.db_optimizer`.
"""
import functools
import logging
import time
from typing import Any, Callable, Dict, Optional, Type

from pydantic import BaseModel

from cromwell.core.config import settings
from cromwell.services.cache_strategy import (
    CACHE_STRATEGIES,
    CacheStrategyManager,
    default_cache_key,
    get_cache_strategy_manager,
)

logger = logging.getLogger(__name__)


class DatabaseOptimizer:
    def __init__(
        self,
        cache_strategy_manager: Optional[CacheStrategyManager] = None,
        slow_query_threshold: Optional[int] = None,
        enable_query_cache: Optional[bool] = None,
    ):
        self._cache_strategy_manager = cache_strategy_manager
        self.slow_query_threshold = slow_query_threshold or settings.DB_SLOW_QUERY_THRESHOLD
        self.enable_query_cache = (
            settings.DB_QUERY_CACHE if enable_query_cache is None else enable_query_cache
        )

        # {query name: {count, total_time, average_time, slow_queries}}
        self.query_metrics: Dict[str, Dict[str, float]] = {}

    @property
    def cache_strategy_manager(self) -> CacheStrategyManager:
        if self._cache_strategy_manager is None:
            self._cache_strategy_manager = get_cache_strategy_manager()
        return self._cache_strategy_manager

    def execute_with_cache(
        self,
        query_key: str,
        executor: Callable[[], Any],
        model: Optional[Type[BaseModel]] = None,
    ) -> Any:
        """Run a query through the db_query cache (directly when the query cache is off)"""
        if not self.enable_query_cache:
            return executor()

        return self.cache_strategy_manager.get_or_set(
            f"query:{query_key}", executor, CACHE_STRATEGIES["db_query"], model=model,
        )

    def monitor_query(self, query_name: str, executor: Callable[[], Any]) -> Any:
        """
        Run a query and record its execution time

        Slow queries are logged as warnings; failures are logged and re-raised.
        """
        start = time.perf_counter()
        try:
            result = executor()
        except Exception as e:
            elapsed = (time.perf_counter() - start) * 1000
            logger.error(f"Query failed: {query_name} after {elapsed:.0f}ms: {e}")
            raise

        elapsed = (time.perf_counter() - start) * 1000
        self._update_query_metrics(query_name, elapsed)
        if elapsed > self.slow_query_threshold:
            logger.warning(f"Slow query detected: {query_name} took {elapsed:.0f}ms")
        return result

    def _update_query_metrics(self, query_name: str, elapsed: float):
        current = self.query_metrics.setdefault(
            query_name, {"count": 0, "total_time": 0.0, "average_time": 0.0, "slow_queries": 0},
        )
        current["count"] += 1
        current["total_time"] += elapsed
        current["average_time"] = current["total_time"] / current["count"]
        if elapsed > self.slow_query_threshold:
            current["slow_queries"] += 1

    def get_query_metrics(self) -> Dict[str, Any]:
        queries = [
            {
                "query_name": name,
                "count": stats["count"],
                "total_time": round(stats["total_time"], 2),
                "average_time": round(stats["average_time"]),
                "slow_queries": stats["slow_queries"],
            }
            for name, stats in self.query_metrics.items()
        ]

        return {
            "queries": queries,
            "summary": {
                "total_queries": sum(query["count"] for query in queries),
                "total_slow_queries": sum(query["slow_queries"] for query in queries),
                "average_response_time": (
                    round(sum(query["average_time"] for query in queries) / len(queries))
                    if queries else 0
                ),
            },
        }

    def clear_metrics(self):
        self.query_metrics.clear()
        logger.info("Query metrics cleared")


def monitored_query(method):
    """Time a repository method as `<Class>.<method>` when it has a db_optimizer"""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        optimizer: Optional[DatabaseOptimizer] = getattr(self, "db_optimizer", None)
        if optimizer is None:
            return method(self, *args, **kwargs)

        query_name = f"{type(self).__name__}.{method.__name__}"
        return optimizer.monitor_query(query_name, lambda: method(self, *args, **kwargs))
    return wrapper


def query_cache(
    key_generator: Optional[Callable[..., str]] = None,
    model: Optional[Type[BaseModel]] = None,
):
    """Serve a repository read from the db_query cache when it has a db_optimizer"""
    def decorator(method):
        @functools.wraps(method)
        def wrapper(self, *args, **kwargs):
            optimizer: Optional[DatabaseOptimizer] = getattr(self, "db_optimizer", None)
            if optimizer is None:
                return method(self, *args, **kwargs)

            query_key = (
                key_generator(*args, **kwargs) if key_generator
                else default_cache_key(self, method, args, kwargs)
            )
            return optimizer.execute_with_cache(
                query_key, lambda: method(self, *args, **kwargs), model=model,
            )
        return wrapper
    return decorator


# Global optimizer
_database_optimizer: Optional[DatabaseOptimizer] = None


def get_database_optimizer() -> DatabaseOptimizer:
    global _database_optimizer
    if _database_optimizer is None:
        _database_optimizer = DatabaseOptimizer()
    return _database_optimizer
