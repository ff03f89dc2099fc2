"""
Request and system performance monitor

Keeps a bounded history of served requests and of periodic metric
snapshots. `PerformanceMiddleware` feeds it from every HTTP request.
"""
import logging
import os
import time
from collections import deque
from typing import Any, Deque, Dict, List, Optional

from fastapi import Request
from pydantic import BaseModel
from starlette.middleware.base import BaseHTTPMiddleware

from cromwell.core.config import settings
from cromwell.services.cache_manager import CacheManager, get_cache_manager

logger = logging.getLogger(__name__)

# Window used for requests-per-second and recent averages
RECENT_WINDOW_SECONDS = 60


class RequestMetrics(BaseModel):
    method: str
    url: str
    status_code: int
    response_time: float  # ms
    timestamp: float
    user_agent: Optional[str] = None
    ip: Optional[str] = None


def _memory_metrics() -> Dict[str, Optional[int]]:
    """Process RSS and system memory in bytes (None where the platform can't tell)"""
    rss = None
    try:
        with open("/proc/self/statm") as statm:
            rss = int(statm.read().split()[1]) * os.sysconf("SC_PAGE_SIZE")
    except (OSError, ValueError, IndexError):
        try:
            import resource
            rss = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss * 1024
        except ImportError:
            pass

    total = free = None
    try:
        page_size = os.sysconf("SC_PAGE_SIZE")
        total = os.sysconf("SC_PHYS_PAGES") * page_size
        free = os.sysconf("SC_AVPHYS_PAGES") * page_size
    except (AttributeError, ValueError, OSError):
        pass

    return {"used": rss, "free": free, "total": total}


def _load_average() -> List[float]:
    try:
        return list(os.getloadavg())
    except (AttributeError, OSError):
        return []


class PerformanceMonitor:
    def __init__(
        self,
        slow_request_threshold: Optional[float] = None,
        max_history_size: Optional[int] = None,
        cache_manager: Optional[CacheManager] = None,
    ):
        self.slow_request_threshold = slow_request_threshold or settings.PERFORMANCE_SLOW_REQUEST_THRESHOLD
        self.max_history_size = max_history_size or settings.PERFORMANCE_HISTORY_SIZE
        self._cache_manager = cache_manager

        self.request_metrics: Deque[RequestMetrics] = deque(maxlen=self.max_history_size)
        self.metrics_history: Deque[Dict[str, Any]] = deque(maxlen=self.max_history_size)
        self.request_count = 0

    @property
    def cache_manager(self) -> CacheManager:
        if self._cache_manager is None:
            self._cache_manager = get_cache_manager()
        return self._cache_manager

    def record_request(
        self,
        method: str,
        url: str,
        status_code: int,
        response_time: float,
        user_agent: Optional[str] = None,
        ip: Optional[str] = None,
    ):
        self.request_metrics.append(RequestMetrics(
            method=method,
            url=url,
            status_code=status_code,
            response_time=response_time,
            timestamp=time.time(),
            user_agent=user_agent,
            ip=ip,
        ))
        self.request_count += 1

        if response_time > self.slow_request_threshold:
            logger.warning(f"Slow request detected: {method} {url} took {response_time:.0f}ms")

    def _recent_requests(self, window_seconds: int = RECENT_WINDOW_SECONDS) -> List[RequestMetrics]:
        since = time.time() - window_seconds
        return [r for r in self.request_metrics if r.timestamp >= since]

    @staticmethod
    def _average_response_time(requests: List[RequestMetrics]) -> float:
        if not requests:
            return 0.0
        return sum(r.response_time for r in requests) / len(requests)

    def _count_slow(self, requests: List[RequestMetrics]) -> int:
        return sum(1 for r in requests if r.response_time > self.slow_request_threshold)

    def get_current_metrics(self) -> Dict[str, Any]:
        recent = self._recent_requests()
        cache_stats = self.cache_manager.get_stats()
        redis_stats = cache_stats.get("redis")

        return {
            "timestamp": time.time(),
            "memory": _memory_metrics(),
            "cpu": {"load": _load_average()},
            "requests": {
                "total": self.request_count,
                "rps": len(recent) / RECENT_WINDOW_SECONDS,
                "average_response_time": self._average_response_time(recent),
                "slow_requests": self._count_slow(recent),
            },
            "cache": {
                "hit_rate": cache_stats["memory"]["hit_rate"],
                "memory_entries": cache_stats["memory"]["size"],
                "redis_connected": bool(redis_stats and redis_stats.get("connected")),
            },
        }

    def get_request_statistics(
        self,
        time_from: Optional[float] = None,
        time_to: Optional[float] = None,
    ) -> Dict[str, Any]:
        requests = [
            r for r in self.request_metrics
            if (time_from is None or r.timestamp >= time_from)
            and (time_to is None or r.timestamp <= time_to)
        ]

        status_codes: Dict[int, int] = {}
        endpoints: Dict[str, Dict[str, Any]] = {}
        for request in requests:
            status_codes[request.status_code] = status_codes.get(request.status_code, 0) + 1

            endpoint = f"{request.method} {request.url}"
            current = endpoints.setdefault(endpoint, {
                "count": 0,
                "total_time": 0.0,
                "average_time": 0.0,
                "slow_requests": 0,
            })
            current["count"] += 1
            current["total_time"] += request.response_time
            current["average_time"] = current["total_time"] / current["count"]
            if request.response_time > self.slow_request_threshold:
                current["slow_requests"] += 1

        total = len(requests)
        return {
            "total_requests": total,
            "status_codes": [
                {"status_code": code, "count": count, "percentage": count / total * 100}
                for code, count in sorted(status_codes.items())
            ],
            "endpoints": sorted(
                ({"endpoint": endpoint, **stats} for endpoint, stats in endpoints.items()),
                key=lambda item: item["average_time"],
                reverse=True,
            ),
            "average_response_time": self._average_response_time(requests),
            "slow_requests": self._count_slow(requests),
        }

    def take_snapshot(self) -> Dict[str, Any]:
        metrics = self.get_current_metrics()
        self.metrics_history.append(metrics)
        return metrics

    def get_historical_metrics(self, time_from: float, time_to: float) -> List[Dict[str, Any]]:
        return [m for m in self.metrics_history if time_from <= m["timestamp"] <= time_to]


# Global monitor instance
performance_monitor = PerformanceMonitor()


class PerformanceMiddleware(BaseHTTPMiddleware):
    """Records method, path, status and duration of every request"""

    def __init__(self, app, monitor: Optional[PerformanceMonitor] = None):
        super().__init__(app)
        self.monitor = monitor or performance_monitor

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000
            self.monitor.record_request(
                method=request.method,
                url=request.url.path,
                status_code=status_code,
                response_time=elapsed_ms,
                user_agent=request.headers.get("user-agent"),
                ip=request.client.host if request.client else None,
            )
