"""
Metric category sources.

Real instrumentation:
- PerformanceMetricsSource: request statistics recorded into a RequestTracker
- ResourceMetricsSource: host memory via psutil plus injected counters
- BusinessMetricsSource: domain counters over a trailing window

Simulated sources generate plausible random values for demos and local runs.
"""

import asyncio
import random
import threading
import time
from collections import deque
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import NamedTuple, Protocol

import psutil
import structlog

from healthwatch.domain.models import (
    BusinessMetrics,
    PerformanceMetrics,
    ResourceMetrics,
    utc_now,
)
from healthwatch.services.health_probes import CacheStatsSource
from healthwatch.services.metrics_collector import Result

logger = structlog.get_logger(__name__)

CounterFn = Callable[[], Awaitable[int]]


class _RequestRecord(NamedTuple):
    at: float
    duration_ms: float
    status_code: int


class RequestTracker:
    """
    Thread-safe recorder of completed requests over a trailing window.

    Status >= 400 counts as an error; status >= 500 also counts against
    availability. Pass status_code=599 for requests that failed without a
    response.
    """

    def __init__(
        self,
        window_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.window_seconds = window_seconds
        self._clock = clock
        self._records: deque[_RequestRecord] = deque()
        self._lock = threading.Lock()

    def record(self, duration_ms: float, status_code: int = 200) -> None:
        with self._lock:
            now = self._clock()
            self._records.append(_RequestRecord(now, max(0.0, duration_ms), status_code))
            self._trim(now)

    def summarize(self) -> PerformanceMetrics:
        with self._lock:
            self._trim(self._clock())
            records = list(self._records)

        if not records:
            return PerformanceMetrics()

        count = len(records)
        errors = sum(1 for r in records if r.status_code >= 400)
        unavailable = sum(1 for r in records if r.status_code >= 500)
        return PerformanceMetrics(
            response_time=sum(r.duration_ms for r in records) / count,
            throughput=count / self.window_seconds,
            error_rate=errors / count,
            availability=1.0 - unavailable / count,
        )

    def _trim(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self._records and self._records[0].at < cutoff:
            self._records.popleft()


class BusinessCountersSource(Protocol):
    async def counts_since(self, since: datetime) -> BusinessMetrics: ...


class PerformanceMetricsSource:
    category = "performance"

    def __init__(self, tracker: RequestTracker) -> None:
        self.tracker = tracker

    async def collect_metrics(self) -> Result[PerformanceMetrics, Exception]:
        try:
            return Result.ok(self.tracker.summarize())
        except Exception as e:
            logger.error("performance_metrics_failed", error=str(e))
            return Result.err(e)


class ResourceMetricsSource:
    """
    Memory usage of the host from psutil; cache hit rate, database connections
    and active users from optional collaborators (0 when not wired).
    """

    category = "resources"

    def __init__(
        self,
        cache: CacheStatsSource | None = None,
        database_connections: CounterFn | None = None,
        active_users: CounterFn | None = None,
    ) -> None:
        self.cache = cache
        self.database_connections = database_connections
        self.active_users = active_users
        self.logger = logger.bind(source=self.category)

    async def collect_metrics(self) -> Result[ResourceMetrics, Exception]:
        try:
            memory = psutil.virtual_memory()
            cache_hit_rate = (await self.cache.cache_stats()).hit_rate if self.cache else 0.0
            connections = await self.database_connections() if self.database_connections else 0
            users = await self.active_users() if self.active_users else 0

            return Result.ok(
                ResourceMetrics(
                    memory_usage=memory.percent / 100.0,
                    cache_hit_rate=cache_hit_rate,
                    database_connections=connections,
                    active_users=users,
                )
            )
        except Exception as e:
            self.logger.error("resource_metrics_failed", error=str(e))
            return Result.err(e)


class BusinessMetricsSource:
    category = "business"

    def __init__(
        self, counters: BusinessCountersSource, window: timedelta = timedelta(hours=24)
    ) -> None:
        self.counters = counters
        self.window = window

    async def collect_metrics(self) -> Result[BusinessMetrics, Exception]:
        try:
            return Result.ok(await self.counters.counts_since(utc_now() - self.window))
        except Exception as e:
            logger.error("business_metrics_failed", error=str(e))
            return Result.err(e)


class _SimulatedSource:
    """Shared behaviour: short random delay and an occasional connection failure."""

    category = "simulated"

    def __init__(self, failure_rate: float = 0.05, max_delay_seconds: float = 0.2) -> None:
        self.failure_rate = failure_rate
        self.max_delay_seconds = max_delay_seconds
        self.logger = logger.bind(source=f"simulated_{self.category}")

    async def _simulate_io(self) -> None:
        if self.max_delay_seconds > 0:
            await asyncio.sleep(random.uniform(0, self.max_delay_seconds))
        if random.random() < self.failure_rate:
            raise ConnectionError(f"Simulated {self.category} source unavailable")


class SimulatedPerformanceSource(_SimulatedSource):
    category = "performance"

    async def collect_metrics(self) -> Result[PerformanceMetrics, Exception]:
        try:
            await self._simulate_io()
            return Result.ok(
                PerformanceMetrics(
                    response_time=random.uniform(0, 1000),
                    throughput=random.uniform(0, 100),
                    error_rate=random.uniform(0, 0.02),
                    availability=min(1.0, 0.999 + random.uniform(0, 0.001)),
                )
            )
        except Exception as e:
            self.logger.warning("simulated_collection_failed", error=str(e))
            return Result.err(e)


class SimulatedResourceSource(_SimulatedSource):
    category = "resources"

    async def collect_metrics(self) -> Result[ResourceMetrics, Exception]:
        try:
            await self._simulate_io()
            return Result.ok(
                ResourceMetrics(
                    memory_usage=random.uniform(0, 0.7),
                    cache_hit_rate=random.uniform(0.8, 1.0),
                    database_connections=random.randint(0, 49),
                    active_users=random.randint(0, 99),
                )
            )
        except Exception as e:
            self.logger.warning("simulated_collection_failed", error=str(e))
            return Result.err(e)


class SimulatedBusinessSource(_SimulatedSource):
    category = "business"

    async def collect_metrics(self) -> Result[BusinessMetrics, Exception]:
        try:
            await self._simulate_io()
            return Result.ok(
                BusinessMetrics(
                    documents_created=random.randint(0, 99),
                    documents_succeeded=random.randint(0, 49),
                    documents_failed=random.randint(0, 49),
                    revenue=random.uniform(0, 10000),
                )
            )
        except Exception as e:
            self.logger.warning("simulated_collection_failed", error=str(e))
            return Result.err(e)
