"""
Concurrent execution of the probe registry.

All probes of a cycle run side by side, each under its own timeout. A probe that
raises or times out is recorded as `down` for that cycle and never affects its
siblings.
"""

import asyncio
import threading
import time

import structlog
from pydantic import BaseModel, Field

from healthwatch.domain.models import (
    AlertType,
    EventType,
    HealthCheckResult,
    HealthStatus,
    Severity,
)
from healthwatch.services.alert_engine import AlertEngine
from healthwatch.services.event_bus import EventBus
from healthwatch.services.health_probes import HealthProbe, ProbeRegistry

logger = structlog.get_logger(__name__)


class HealthOrchestratorConfig(BaseModel):
    check_interval_seconds: float = Field(
        default=60.0, gt=0.0, description="Interval between health cycles in seconds"
    )
    probe_timeout_seconds: float = Field(
        default=5.0, gt=0.0, description="Upper bound for a single probe run"
    )


class HealthProbeOrchestrator:
    """Runs every registered probe, keeps the latest result per probe, raises alerts."""

    def __init__(
        self,
        config: HealthOrchestratorConfig,
        registry: ProbeRegistry,
        alert_engine: AlertEngine,
        event_bus: EventBus,
    ) -> None:
        self.config = config
        self.registry = registry
        self.alert_engine = alert_engine
        self.event_bus = event_bus
        self._snapshot: dict[str, HealthCheckResult] = {}
        self._lock = threading.Lock()
        self.logger = logger.bind(component="health_orchestrator")

    async def run_cycle(self) -> list[HealthCheckResult]:
        """Run all probes concurrently, then swap in the new snapshot and publish it."""
        start_time = time.perf_counter()
        probes = list(self.registry)

        async with asyncio.TaskGroup() as task_group:
            tasks = [task_group.create_task(self._run_probe(probe)) for probe in probes]

        results = [task.result() for task in tasks]

        for result in results:
            self._alert_on(result)

        with self._lock:
            self._snapshot = {result.service: result for result in results}

        self.event_bus.publish(EventType.HEALTH, results)

        self.logger.info(
            "health_cycle_completed",
            probes=len(results),
            healthy=sum(1 for r in results if r.status == HealthStatus.HEALTHY),
            degraded=sum(1 for r in results if r.status == HealthStatus.DEGRADED),
            down=sum(1 for r in results if r.status == HealthStatus.DOWN),
            duration_seconds=round(time.perf_counter() - start_time, 3),
        )
        return results

    def get_health_checks(self) -> list[HealthCheckResult]:
        with self._lock:
            return list(self._snapshot.values())

    def clear(self) -> None:
        with self._lock:
            self._snapshot = {}

    async def _run_probe(self, probe: HealthProbe) -> HealthCheckResult:
        """Never raises (apart from cancellation); failures become `down` results."""
        timeout = self.config.probe_timeout_seconds
        start = time.perf_counter()

        try:
            result = await asyncio.wait_for(probe.run(timeout), timeout=timeout)
        except TimeoutError:
            self.logger.warning("probe_timed_out", probe=probe.name, timeout_seconds=timeout)
            return self._down(probe.name, start, f"Timed out after {timeout}s")
        except Exception as e:
            self.logger.exception("probe_failed", probe=probe.name, error=str(e))
            return self._down(probe.name, start, str(e) or type(e).__name__)

        if result.service != probe.name:
            # The registry key is the identity of the snapshot entry
            result = result.model_copy(update={"service": probe.name})
        return result

    def _down(self, name: str, start: float, error: str) -> HealthCheckResult:
        return HealthCheckResult(
            service=name,
            status=HealthStatus.DOWN,
            response_time=(time.perf_counter() - start) * 1000,
            details={"error": error},
        )

    def _alert_on(self, result: HealthCheckResult) -> None:
        if result.status == HealthStatus.DOWN:
            self.alert_engine.raise_alert(
                AlertType.ERROR,
                Severity.CRITICAL,
                f"{result.service} Service Down",
                f"{result.service} is not responding",
                result.service,
                result.details,
            )
        elif result.status == HealthStatus.DEGRADED:
            self.alert_engine.raise_alert(
                AlertType.WARNING,
                Severity.MEDIUM,
                f"{result.service} Service Degraded",
                f"{result.service} is experiencing issues",
                result.service,
                result.details,
            )
