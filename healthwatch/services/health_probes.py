"""
Dependency health probes.

Each probe checks one dependency through a narrow collaborator protocol and
classifies it as healthy, degraded or down. Probes may raise; the orchestrator
turns exceptions and timeouts into `down` results.
"""

import asyncio
import time
from collections.abc import Callable, Iterator, Mapping
from typing import Any, Protocol

import aiohttp
import structlog

from healthwatch.domain.models import CacheStats, HealthCheckResult, HealthStatus, PoolMember

logger = structlog.get_logger(__name__)


class HealthProbe(Protocol):
    """A bounded-time check of one dependency."""

    name: str

    async def run(self, timeout: float) -> HealthCheckResult: ...


# Collaborator contracts


class PersistenceClient(Protocol):
    async def ping(self) -> None:
        """Round-trip to the persistence layer; raise on any error."""
        ...


class ServicePoolSource(Protocol):
    async def member_status(self) -> list[PoolMember]: ...


class CacheStatsSource(Protocol):
    async def cache_stats(self) -> CacheStats: ...


class ReachabilityChecker(Protocol):
    async def is_reachable(self, url: str, timeout: float) -> bool: ...


def _elapsed_ms(start: float, clock: Callable[[], float]) -> float:
    return max(0.0, (clock() - start) * 1000)


class DatabaseProbe:
    """Degraded above the latency threshold, down on any error."""

    def __init__(
        self,
        client: PersistenceClient,
        name: str = "database",
        latency_threshold_ms: float = 1000.0,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.name = name
        self.client = client
        self.latency_threshold_ms = latency_threshold_ms
        self._clock = clock

    async def run(self, timeout: float) -> HealthCheckResult:
        start = self._clock()
        try:
            await self.client.ping()
        except Exception as e:
            return HealthCheckResult(
                service=self.name,
                status=HealthStatus.DOWN,
                response_time=_elapsed_ms(start, self._clock),
                details={"error": str(e) or type(e).__name__},
            )

        response_time = _elapsed_ms(start, self._clock)
        status = (
            HealthStatus.DEGRADED
            if response_time > self.latency_threshold_ms
            else HealthStatus.HEALTHY
        )
        return HealthCheckResult(
            service=self.name,
            status=status,
            response_time=response_time,
            details={"query_success": True},
        )


class ServicePoolProbe:
    """
    Health of a pool of interchangeable external providers.

    Down when no member is healthy, degraded when at most half of the active
    members are healthy.
    """

    def __init__(
        self,
        source: ServicePoolSource,
        name: str = "service_pool",
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.name = name
        self.source = source
        self._clock = clock

    async def run(self, timeout: float) -> HealthCheckResult:
        start = self._clock()
        members = await self.source.member_status()

        active = [m for m in members if m.active]
        healthy = [m for m in active if m.health_status == HealthStatus.HEALTHY]

        if not healthy:
            status = HealthStatus.DOWN
        elif len(healthy) * 2 <= len(active):
            status = HealthStatus.DEGRADED
        else:
            status = HealthStatus.HEALTHY

        return HealthCheckResult(
            service=self.name,
            status=status,
            response_time=_elapsed_ms(start, self._clock),
            details={
                "total_members": len(members),
                "active_members": len(active),
                "healthy_members": len(healthy),
                "members": [
                    {
                        "name": m.name,
                        "status": m.health_status.value,
                        "success_rate": m.success_rate,
                    }
                    for m in members
                ],
            },
        )


class CacheProbe:
    def __init__(
        self,
        source: CacheStatsSource,
        name: str = "cache",
        hit_rate_threshold: float = 0.5,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.name = name
        self.source = source
        self.hit_rate_threshold = hit_rate_threshold
        self._clock = clock

    async def run(self, timeout: float) -> HealthCheckResult:
        start = self._clock()
        stats = await self.source.cache_stats()
        status = (
            HealthStatus.DEGRADED
            if stats.hit_rate < self.hit_rate_threshold
            else HealthStatus.HEALTHY
        )
        return HealthCheckResult(
            service=self.name,
            status=status,
            response_time=_elapsed_ms(start, self._clock),
            details={
                "hit_rate": stats.hit_rate,
                "total_items": stats.total_items,
                "memory_usage": stats.memory_usage,
            },
        )


class HttpReachabilityChecker:
    """HEAD request with a total timeout; any status below 400 counts as reachable."""

    async def is_reachable(self, url: str, timeout: float) -> bool:
        try:
            async with aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=timeout)
            ) as session:
                async with session.head(url, allow_redirects=True) as response:
                    return response.status < 400
        except (aiohttp.ClientError, TimeoutError) as e:
            logger.debug("endpoint_unreachable", url=url, error=str(e) or type(e).__name__)
            return False


class ReachabilityProbe:
    """
    Down when no endpoint responds, degraded when only some do.

    Each endpoint gets `endpoint_timeout_ratio` of the probe budget, so a hung
    endpoint is counted unreachable before the probe itself times out.
    """

    def __init__(
        self,
        endpoints: Mapping[str, str],
        checker: ReachabilityChecker | None = None,
        name: str = "external_apis",
        endpoint_timeout_ratio: float = 0.8,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        if not endpoints:
            raise ValueError("ReachabilityProbe needs at least one endpoint")
        if not 0 < endpoint_timeout_ratio < 1:
            raise ValueError("endpoint_timeout_ratio must be between 0 and 1")
        self.endpoint_timeout_ratio = endpoint_timeout_ratio
        self.name = name
        self.endpoints = dict(endpoints)
        self.checker = checker or HttpReachabilityChecker()
        self._clock = clock

    async def run(self, timeout: float) -> HealthCheckResult:
        start = self._clock()
        endpoint_timeout = timeout * self.endpoint_timeout_ratio
        outcomes = await asyncio.gather(
            *(self._check(url, endpoint_timeout) for url in self.endpoints.values()),
            return_exceptions=True,
        )

        checks: list[dict[str, Any]] = []
        for endpoint_name, outcome in zip(self.endpoints, outcomes, strict=True):
            check: dict[str, Any] = {"service": endpoint_name, "reachable": outcome is True}
            if isinstance(outcome, BaseException):
                check["error"] = str(outcome) or type(outcome).__name__
            checks.append(check)

        reachable = sum(1 for c in checks if c["reachable"])
        total = len(checks)
        if reachable == 0:
            status = HealthStatus.DOWN
        elif reachable < total:
            status = HealthStatus.DEGRADED
        else:
            status = HealthStatus.HEALTHY

        return HealthCheckResult(
            service=self.name,
            status=status,
            response_time=_elapsed_ms(start, self._clock),
            details={
                "total_services": total,
                "healthy_services": reachable,
                "checks": checks,
            },
        )

    async def _check(self, url: str, timeout: float) -> bool:
        try:
            return await asyncio.wait_for(self.checker.is_reachable(url, timeout), timeout)
        except TimeoutError:
            raise TimeoutError(f"No response within {timeout:.2f}s") from None


class ProbeRegistry:
    """Named probes; adding or removing one needs no change elsewhere."""

    def __init__(self, probes: list[HealthProbe] | None = None) -> None:
        self._probes: dict[str, HealthProbe] = {}
        for probe in probes or []:
            self.register(probe)

    def register(self, probe: HealthProbe) -> None:
        if not hasattr(probe, "run") or not getattr(probe, "name", None):
            raise TypeError(f"Probe {probe!r} must implement the HealthProbe protocol")
        if probe.name in self._probes:
            raise ValueError(f"A probe named {probe.name!r} is already registered")
        self._probes[probe.name] = probe
        logger.info("probe_registered", probe=probe.name, probe_type=type(probe).__name__)

    def unregister(self, name: str) -> bool:
        removed = self._probes.pop(name, None) is not None
        if removed:
            logger.info("probe_unregistered", probe=name)
        return removed

    def get(self, name: str) -> HealthProbe | None:
        return self._probes.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._probes

    def __len__(self) -> int:
        return len(self._probes)

    def __iter__(self) -> Iterator[HealthProbe]:
        return iter(list(self._probes.values()))
