"""
Inventory Sync Service Health Check Utilities
=============================================

Runs named health checks and folds them into a single report.
"""

import inspect
import time
from typing import Any, Awaitable, Callable, Dict, Union

CheckResult = Dict[str, Any]
HealthCheck = Callable[[], Union[CheckResult, Awaitable[CheckResult]]]


class InventoryHealthChecker:
    """Inventory Sync Service health checker"""

    def __init__(self, service_name: str = "inventory_sync_service") -> None:
        self.service_name = service_name
        self.checks: Dict[str, HealthCheck] = {}
        self.start_time = time.time()

    def add_check(self, name: str, check_func: HealthCheck) -> None:
        """Add a health check function"""
        self.checks[name] = check_func

    async def run_checks(self) -> Dict[str, Any]:
        """Run all health checks"""
        results: Dict[str, CheckResult] = {}
        check_start_time = time.time()

        for name, check_func in self.checks.items():
            individual_start = time.time()
            try:
                result = check_func()
                if inspect.isawaitable(result):
                    result = await result
                result["duration_ms"] = round(
                    (time.time() - individual_start) * 1000, 2
                )
                results[name] = result
            except Exception as e:
                results[name] = {
                    "status": "error",
                    "error": str(e),
                    "duration_ms": round((time.time() - individual_start) * 1000, 2),
                }

        return {
            "service": self.service_name,
            "status": "healthy"
            if all(r.get("status") == "healthy" for r in results.values())
            else "unhealthy",
            "checks": results,
            "total_duration_ms": round((time.time() - check_start_time) * 1000, 2),
            "uptime_seconds": round(time.time() - self.start_time, 2),
            "timestamp": time.time(),
        }


def create_inventory_health_checker(container: Any) -> InventoryHealthChecker:
    """Health checker wired to a running service container"""
    checker = InventoryHealthChecker()

    async def channel_check() -> CheckResult:
        healthy = await container.channel.health_check()
        return {
            "status": "healthy" if healthy else "unhealthy",
            "component": "distribution_channel",
            "channel": container.channel.name,
        }

    def event_bus_check() -> CheckResult:
        stats = container.event_bus.get_event_stats()
        return {
            "status": "healthy" if container.started else "unhealthy",
            "component": "event_bus",
            "subscribers": stats["subscriber_count"],
            "pending": stats["pending"],
        }

    def cache_check() -> CheckResult:
        stats = container.cache.get_stats()
        return {
            "status": "healthy",
            "component": "search_cache",
            "entries": stats["total_entries"],
            "max_entries": stats["max_entries"],
        }

    checker.add_check("distribution_channel", channel_check)
    checker.add_check("event_bus", event_bus_check)
    checker.add_check("search_cache", cache_check)
    return checker
