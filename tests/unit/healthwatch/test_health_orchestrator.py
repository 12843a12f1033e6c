"""
Tests for concurrent probe execution, snapshot replacement and health alerts.
"""

import asyncio
import time
from typing import Any

import pytest

from healthwatch.domain.models import (
    AlertType,
    EventType,
    HealthCheckResult,
    HealthStatus,
    Severity,
)
from healthwatch.services.alert_engine import AlertEngine
from healthwatch.services.event_bus import EventBus, MonitoringEvent
from healthwatch.services.health_orchestrator import (
    HealthOrchestratorConfig,
    HealthProbeOrchestrator,
)
from healthwatch.services.health_probes import ProbeRegistry, ReachabilityProbe


class StubProbe:
    def __init__(
        self,
        name: str,
        status: HealthStatus = HealthStatus.HEALTHY,
        delay: float = 0.0,
        error: Exception | None = None,
        details: dict[str, Any] | None = None,
        reported_name: str | None = None,
    ) -> None:
        self.name = name
        self.status = status
        self.delay = delay
        self.error = error
        self.details = details or {}
        self.reported_name = reported_name or name
        self.runs = 0

    async def run(self, timeout: float) -> HealthCheckResult:
        self.runs += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return HealthCheckResult(
            service=self.reported_name, status=self.status, details=self.details
        )


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def engine(bus: EventBus) -> AlertEngine:
    return AlertEngine(bus)


@pytest.fixture
def registry() -> ProbeRegistry:
    return ProbeRegistry()


@pytest.fixture
def orchestrator(
    registry: ProbeRegistry, engine: AlertEngine, bus: EventBus
) -> HealthProbeOrchestrator:
    return HealthProbeOrchestrator(
        HealthOrchestratorConfig(probe_timeout_seconds=0.1), registry, engine, bus
    )


class TestFaultIsolation:
    async def test_failing_and_hanging_probes_do_not_affect_siblings(
        self, orchestrator: HealthProbeOrchestrator, registry: ProbeRegistry
    ) -> None:
        registry.register(StubProbe("database"))
        registry.register(StubProbe("cache", error=ConnectionError("cache refused")))
        registry.register(StubProbe("external_apis", delay=10.0))

        start = time.perf_counter()
        results = await orchestrator.run_cycle()
        elapsed = time.perf_counter() - start

        by_name = {r.service: r for r in results}
        assert set(by_name) == {"database", "cache", "external_apis"}
        assert by_name["database"].status == HealthStatus.HEALTHY
        assert by_name["cache"].status == HealthStatus.DOWN
        assert by_name["cache"].details == {"error": "cache refused"}
        assert by_name["external_apis"].status == HealthStatus.DOWN
        assert "Timed out" in by_name["external_apis"].details["error"]
        assert elapsed < 2.0

        assert {r.service for r in orchestrator.get_health_checks()} == set(by_name)

    async def test_hung_endpoint_degrades_reachability_instead_of_timing_out(
        self, orchestrator: HealthProbeOrchestrator, registry: ProbeRegistry
    ) -> None:
        class SlowForOneEndpoint:
            async def is_reachable(self, url: str, timeout: float) -> bool:
                if url == "https://slow.test":
                    await asyncio.sleep(10.0)
                return True

        registry.register(
            ReachabilityProbe(
                {"fast": "https://fast.test", "slow": "https://slow.test"},
                checker=SlowForOneEndpoint(),
            )
        )

        (result,) = await orchestrator.run_cycle()

        assert result.status == HealthStatus.DEGRADED
        assert result.details["checks"][0] == {"service": "fast", "reachable": True}
        slow = result.details["checks"][1]
        assert slow["service"] == "slow"
        assert slow["reachable"] is False
        assert "error" in slow

    async def test_exception_without_message_uses_type_name(
        self, orchestrator: HealthProbeOrchestrator, registry: ProbeRegistry
    ) -> None:
        registry.register(StubProbe("database", error=ConnectionResetError()))

        (result,) = await orchestrator.run_cycle()

        assert result.details == {"error": "ConnectionResetError"}

    async def test_probes_run_concurrently(
        self, registry: ProbeRegistry, engine: AlertEngine, bus: EventBus
    ) -> None:
        orchestrator = HealthProbeOrchestrator(
            HealthOrchestratorConfig(probe_timeout_seconds=5.0), registry, engine, bus
        )
        for name in ["a", "b", "c", "d"]:
            registry.register(StubProbe(name, delay=0.2))

        start = time.perf_counter()
        await orchestrator.run_cycle()

        assert time.perf_counter() - start < 0.6


class TestAlerts:
    async def test_down_probe_raises_critical_alert(
        self,
        orchestrator: HealthProbeOrchestrator,
        registry: ProbeRegistry,
        engine: AlertEngine,
    ) -> None:
        registry.register(
            StubProbe("database", HealthStatus.DOWN, details={"error": "connection refused"})
        )

        await orchestrator.run_cycle()

        (alert,) = engine.get_alerts()
        assert alert.type == AlertType.ERROR
        assert alert.severity == Severity.CRITICAL
        assert alert.title == "database Service Down"
        assert alert.message == "database is not responding"
        assert alert.source == "database"
        assert alert.metadata == {"error": "connection refused"}

    async def test_degraded_probe_raises_medium_warning(
        self,
        orchestrator: HealthProbeOrchestrator,
        registry: ProbeRegistry,
        engine: AlertEngine,
    ) -> None:
        registry.register(StubProbe("cache", HealthStatus.DEGRADED))

        await orchestrator.run_cycle()

        (alert,) = engine.get_alerts()
        assert alert.type == AlertType.WARNING
        assert alert.severity == Severity.MEDIUM
        assert alert.title == "cache Service Degraded"
        assert alert.message == "cache is experiencing issues"

    async def test_healthy_probe_raises_nothing(
        self,
        orchestrator: HealthProbeOrchestrator,
        registry: ProbeRegistry,
        engine: AlertEngine,
    ) -> None:
        registry.register(StubProbe("database"))
        await orchestrator.run_cycle()
        assert engine.get_alerts() == []

    async def test_unhealthy_probe_alerts_every_cycle(
        self,
        orchestrator: HealthProbeOrchestrator,
        registry: ProbeRegistry,
        engine: AlertEngine,
    ) -> None:
        registry.register(StubProbe("cache", HealthStatus.DEGRADED))

        await orchestrator.run_cycle()
        await orchestrator.run_cycle()

        assert len(engine.get_alerts()) == 2


class TestSnapshot:
    async def test_cycle_publishes_results(
        self, orchestrator: HealthProbeOrchestrator, registry: ProbeRegistry, bus: EventBus
    ) -> None:
        events: list[MonitoringEvent] = []
        bus.subscribe(events.append)
        registry.register(StubProbe("database"))

        results = await orchestrator.run_cycle()

        health_events = [e for e in events if e.type == EventType.HEALTH]
        assert len(health_events) == 1
        assert health_events[0].data == results

    async def test_snapshot_is_replaced_each_cycle(
        self, orchestrator: HealthProbeOrchestrator, registry: ProbeRegistry
    ) -> None:
        database = StubProbe("database")
        registry.register(database)
        registry.register(StubProbe("cache"))
        await orchestrator.run_cycle()

        registry.unregister("cache")
        database.status = HealthStatus.DEGRADED
        await orchestrator.run_cycle()

        (only,) = orchestrator.get_health_checks()
        assert only.service == "database"
        assert only.status == HealthStatus.DEGRADED

    async def test_result_is_keyed_by_probe_name(
        self, orchestrator: HealthProbeOrchestrator, registry: ProbeRegistry
    ) -> None:
        registry.register(StubProbe("replica", reported_name="database"))

        (result,) = await orchestrator.run_cycle()

        assert result.service == "replica"

    async def test_empty_registry_gives_empty_snapshot(
        self, orchestrator: HealthProbeOrchestrator, bus: EventBus
    ) -> None:
        events: list[MonitoringEvent] = []
        bus.subscribe(events.append)

        assert await orchestrator.run_cycle() == []
        assert orchestrator.get_health_checks() == []
        assert [e.data for e in events] == [[]]

    async def test_clear(
        self, orchestrator: HealthProbeOrchestrator, registry: ProbeRegistry
    ) -> None:
        registry.register(StubProbe("database"))
        await orchestrator.run_cycle()

        orchestrator.clear()

        assert orchestrator.get_health_checks() == []
