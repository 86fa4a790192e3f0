from __future__ import annotations

import asyncio
import os
import resource
import sys
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Tuple

from staffapi.logging import get_logger
from staffapi.storage.memory import MemoryStore

logger = get_logger(__name__)


class HealthStatus(str, Enum):
    HEALTHY = "Healthy"
    DEGRADED = "Degraded"
    UNHEALTHY = "Unhealthy"


_SEVERITY = {HealthStatus.HEALTHY: 0, HealthStatus.DEGRADED: 1, HealthStatus.UNHEALTHY: 2}

# A check returns its status, a description and optional data
CheckOutcome = Tuple[HealthStatus, str, Dict[str, Any]]
HealthCheck = Callable[[], CheckOutcome]


@dataclass
class CheckResult:
    name: str
    status: HealthStatus
    description: str
    duration_ms: float
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class HealthReport:
    status: HealthStatus
    checks: List[CheckResult]
    total_duration_ms: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "checks": [
                {
                    "name": c.name,
                    "status": c.status.value,
                    "description": c.description,
                    "duration": c.duration_ms,
                    "data": c.data,
                }
                for c in self.checks
            ],
            "totalDuration": self.total_duration_ms,
        }


def self_check() -> CheckOutcome:
    return HealthStatus.HEALTHY, "Service is running", {}


def _peak_rss_bytes() -> int:
    usage = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # ru_maxrss is bytes on macOS and kilobytes on Linux
    return usage if sys.platform == "darwin" else usage * 1024


def _current_rss_bytes() -> int:
    """Resident set size at the time of the call."""
    try:
        with open("/proc/self/statm", encoding="ascii") as statm:
            resident_pages = int(statm.read().split()[1])
    except (OSError, IndexError, ValueError):
        # No procfs (macOS); the peak is the closest figure available
        return _peak_rss_bytes()
    return resident_pages * os.sysconf("SC_PAGE_SIZE")


def memory_check(threshold_bytes: int) -> HealthCheck:
    def _check() -> CheckOutcome:
        current = _current_rss_bytes()
        usage_mb = round(current / 1024 / 1024, 2)
        data = {
            "currentMemoryUsage": current,
            "thresholdMemory": threshold_bytes,
            "memoryUsageMB": usage_mb,
        }
        status = HealthStatus.DEGRADED if current > threshold_bytes else HealthStatus.HEALTHY
        return status, f"Memory usage: {usage_mb} MB", data

    return _check


def repository_check(store: MemoryStore) -> HealthCheck:
    def _check() -> CheckOutcome:
        count = store.count()
        return HealthStatus.HEALTHY, f"Repository holds {count} employees", {"employees": count}

    return _check


async def run_health_checks(checks: Dict[str, HealthCheck], timeout: float) -> HealthReport:
    """Run each check in a worker thread, bounded by ``timeout`` seconds."""
    started = time.perf_counter()
    results: List[CheckResult] = []
    for name, check in checks.items():
        check_started = time.perf_counter()
        try:
            status, description, data = await asyncio.wait_for(
                asyncio.to_thread(check), timeout
            )
        except asyncio.TimeoutError:
            logger.error("health_check_timeout", component=name, timeout=timeout)
            status, description, data = HealthStatus.UNHEALTHY, "Check timed out", {}
        except Exception as exc:
            logger.error("health_check_failed", component=name, error=str(exc))
            status, description, data = HealthStatus.UNHEALTHY, f"{name} check failed", {}
        results.append(
            CheckResult(
                name=name,
                status=status,
                description=description,
                duration_ms=round((time.perf_counter() - check_started) * 1000, 3),
                data=data,
            )
        )
    overall = max(
        (r.status for r in results),
        key=lambda s: _SEVERITY[s],
        default=HealthStatus.HEALTHY,
    )
    return HealthReport(
        status=overall,
        checks=results,
        total_duration_ms=round((time.perf_counter() - started) * 1000, 3),
    )
