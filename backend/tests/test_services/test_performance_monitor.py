"""
Unit tests for PerformanceMonitor and PerformanceMiddleware
"""
import time

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from cromwell.services.cache_manager import CacheManager
from cromwell.services.performance_monitor import PerformanceMiddleware, PerformanceMonitor


@pytest.fixture
def monitor():
    cache = CacheManager(redis_url="", key_prefix="test:")
    return PerformanceMonitor(slow_request_threshold=100, max_history_size=5, cache_manager=cache)


class TestPerformanceMonitor:

    def test_history_is_bounded(self, monitor):
        for i in range(8):
            monitor.record_request("GET", f"/api/v1/products/{i}", 200, 10)

        assert len(monitor.request_metrics) == 5
        assert monitor.request_count == 8

    def test_request_statistics(self, monitor):
        monitor.record_request("GET", "/api/v1/products", 200, 50)
        monitor.record_request("GET", "/api/v1/products", 200, 150)
        monitor.record_request("POST", "/api/v1/orders", 400, 300)
        monitor.record_request("GET", "/health", 200, 5)

        stats = monitor.get_request_statistics()

        assert stats["total_requests"] == 4
        assert stats["slow_requests"] == 2
        assert stats["status_codes"] == [
            {"status_code": 200, "count": 3, "percentage": 75.0},
            {"status_code": 400, "count": 1, "percentage": 25.0},
        ]
        # Slowest endpoints first
        assert [e["endpoint"] for e in stats["endpoints"]] == [
            "POST /api/v1/orders",
            "GET /api/v1/products",
            "GET /health",
        ]
        assert stats["endpoints"][1]["average_time"] == 100
        assert stats["endpoints"][1]["slow_requests"] == 1

    def test_statistics_time_window(self, monitor):
        monitor.record_request("GET", "/old", 200, 10)
        monitor.request_metrics[0].timestamp = time.time() - 3600
        monitor.record_request("GET", "/new", 200, 10)

        stats = monitor.get_request_statistics(time_from=time.time() - 60)

        assert stats["total_requests"] == 1
        assert stats["endpoints"][0]["endpoint"] == "GET /new"

    def test_empty_statistics(self, monitor):
        stats = monitor.get_request_statistics()

        assert stats["total_requests"] == 0
        assert stats["average_response_time"] == 0.0
        assert stats["status_codes"] == []

    def test_current_metrics(self, monitor):
        monitor.record_request("GET", "/api/v1/products", 200, 30)

        metrics = monitor.get_current_metrics()

        assert metrics["requests"]["total"] == 1
        assert metrics["requests"]["average_response_time"] == 30
        assert metrics["cache"]["redis_connected"] is False
        assert set(metrics["memory"]) == {"used", "free", "total"}

    def test_historical_metrics(self, monitor):
        started = time.time()
        monitor.take_snapshot()

        assert len(monitor.get_historical_metrics(started - 1, time.time() + 1)) == 1
        assert monitor.get_historical_metrics(0, started - 10) == []


class TestPerformanceMiddleware:

    def test_records_every_request(self, monitor):
        app = FastAPI()
        app.add_middleware(PerformanceMiddleware, monitor=monitor)

        @app.get("/ping")
        def ping():
            return {"ok": True}

        client = TestClient(app)
        client.get("/ping")
        client.get("/missing")

        recorded = [(r.url, r.status_code) for r in monitor.request_metrics]
        assert recorded == [("/ping", 200), ("/missing", 404)]
