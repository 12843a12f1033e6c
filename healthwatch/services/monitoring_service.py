"""
The observability engine as one explicitly constructed service.

Wires the event bus, alert engine, metrics collector and health orchestrator,
owns their two background schedules, and exposes the query and alert
operations used by the surrounding application.

Lifecycle:
    service = MonitoringService(config, probes=[...])
    await service.start()        # or: async with service.session(): ...
    ...
    await service.shutdown()
"""

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

import structlog

from healthwatch.config import AppConfig, ProbeConfig, get_config
from healthwatch.domain.models import (
    Alert,
    AlertType,
    BusinessMetrics,
    HealthCheckResult,
    MetricSample,
    PerformanceMetrics,
    ResourceMetrics,
    Severity,
    SystemOverview,
)
from healthwatch.services.alert_engine import AlertEngine, AlertEngineConfig
from healthwatch.services.event_bus import EventBus, Subscriber
from healthwatch.services.health_orchestrator import (
    HealthOrchestratorConfig,
    HealthProbeOrchestrator,
)
from healthwatch.services.health_probes import (
    CacheProbe,
    CacheStatsSource,
    DatabaseProbe,
    HealthProbe,
    PersistenceClient,
    ProbeRegistry,
    ReachabilityChecker,
    ReachabilityProbe,
    ServicePoolProbe,
    ServicePoolSource,
)
from healthwatch.services.metrics_collector import (
    MetricsCollector,
    MetricsCollectorConfig,
    MetricsSource,
)
from healthwatch.services.metrics_sources import (
    PerformanceMetricsSource,
    RequestTracker,
    ResourceMetricsSource,
)
from healthwatch.services.overview import build_system_overview
from healthwatch.services.scheduler import PeriodicTask

logger = structlog.get_logger(__name__)


def build_probes(
    config: ProbeConfig,
    *,
    database: PersistenceClient | None = None,
    service_pool: ServicePoolSource | None = None,
    cache: CacheStatsSource | None = None,
    reachability_checker: ReachabilityChecker | None = None,
) -> list[HealthProbe]:
    """Standard probe set for whichever collaborators are available."""
    probes: list[HealthProbe] = []
    if database is not None:
        probes.append(
            DatabaseProbe(database, latency_threshold_ms=config.database_latency_threshold_ms)
        )
    if service_pool is not None:
        probes.append(ServicePoolProbe(service_pool))
    if cache is not None:
        probes.append(CacheProbe(cache, hit_rate_threshold=config.cache_hit_rate_threshold))
    if config.reachability_endpoints:
        probes.append(
            ReachabilityProbe(config.reachability_endpoints, checker=reachability_checker)
        )
    return probes


class MonitoringService:
    """
    Metrics sampling, health probing, alerting and live events in one object.

    Construction does not start anything; start() launches the metrics and
    health schedules on the running event loop and shutdown() stops them and
    clears all state.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        performance_source: MetricsSource[PerformanceMetrics] | None = None,
        resource_source: MetricsSource[ResourceMetrics] | None = None,
        business_source: MetricsSource[BusinessMetrics] | None = None,
        probes: list[HealthProbe] | None = None,
    ) -> None:
        self.config = config or get_config()
        self.logger = logger.bind(component="monitoring_service")

        self.event_bus = EventBus()
        self.alert_engine = AlertEngine(
            self.event_bus,
            AlertEngineConfig(
                max_alerts=self.config.monitoring.alert_history_size,
                cooldown_seconds=self.config.alerts.cooldown_seconds,
            ),
        )

        # Request statistics feed the default performance source
        self.request_tracker = RequestTracker()

        self._init_metrics_collection(performance_source, resource_source, business_source)
        self._init_health_checks(probes)

        self._metrics_schedule = PeriodicTask(
            "metrics",
            self.metrics_collector.config.collection_interval_seconds,
            self.metrics_collector.collect_once,
            run_immediately=self.config.monitoring.run_immediately,
        )
        self._health_schedule = PeriodicTask(
            "health",
            self.health_orchestrator.config.check_interval_seconds,
            self.health_orchestrator.run_cycle,
            run_immediately=self.config.monitoring.run_immediately,
        )
        self._shut_down = False

    def _init_metrics_collection(
        self,
        performance_source: MetricsSource[PerformanceMetrics] | None,
        resource_source: MetricsSource[ResourceMetrics] | None,
        business_source: MetricsSource[BusinessMetrics] | None,
    ) -> None:
        collector_config = MetricsCollectorConfig(
            collection_interval_seconds=self.config.monitoring.metrics_interval_seconds,
            history_size=self.config.monitoring.metrics_history_size,
            category_timeout_seconds=self.config.monitoring.category_timeout_seconds,
        )

        self.metrics_collector = MetricsCollector(
            collector_config,
            self.alert_engine,
            self.event_bus,
            performance_source=performance_source
            or PerformanceMetricsSource(self.request_tracker),
            resource_source=resource_source or ResourceMetricsSource(),
            business_source=business_source,
        )
        self.logger.info("metrics_collection_initialized")

    def _init_health_checks(self, probes: list[HealthProbe] | None) -> None:
        if probes is None:
            probes = build_probes(self.config.probes)

        self.probe_registry = ProbeRegistry(probes)
        self.health_orchestrator = HealthProbeOrchestrator(
            HealthOrchestratorConfig(
                check_interval_seconds=self.config.monitoring.health_interval_seconds,
                probe_timeout_seconds=self.config.probes.timeout_seconds,
            ),
            self.probe_registry,
            self.alert_engine,
            self.event_bus,
        )
        self.logger.info("health_checks_initialized", probes=len(self.probe_registry))

    # Lifecycle

    @property
    def is_running(self) -> bool:
        return self._metrics_schedule.is_running or self._health_schedule.is_running

    async def start(self) -> None:
        """
        Start both schedules. Idempotent while running.

        Raises RuntimeError once the service has been shut down.
        """
        self._ensure_open()

        self._metrics_schedule.start()
        self._health_schedule.start()
        self.logger.info(
            "monitoring_service_started",
            metrics_interval_seconds=self._metrics_schedule.interval_seconds,
            health_interval_seconds=self._health_schedule.interval_seconds,
        )

    async def shutdown(self) -> None:
        """Stop both schedules, abandon in-flight probes, clear stores and subscribers."""
        if self._shut_down:
            return
        self._shut_down = True

        await asyncio.gather(self._metrics_schedule.stop(), self._health_schedule.stop())

        self.metrics_collector.clear()
        self.alert_engine.clear()
        self.health_orchestrator.clear()
        self.event_bus.clear()
        self.logger.info("monitoring_service_stopped")

    def _ensure_open(self) -> None:
        if self._shut_down:
            raise RuntimeError("MonitoringService has been shut down")

    @asynccontextmanager
    async def session(self) -> AsyncIterator["MonitoringService"]:
        await self.start()
        try:
            yield self
        finally:
            await self.shutdown()

    # Operations exposed to the application
    # Reads stay available after shutdown and return empty results; writes raise
    # RuntimeError.

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        return self.event_bus.subscribe(callback)

    def get_metrics(self, limit: int = 100) -> list[MetricSample]:
        return self.metrics_collector.get_metrics(limit)

    def get_alerts(self, include_resolved: bool = False) -> list[Alert]:
        return self.alert_engine.get_alerts(include_resolved)

    def get_health_checks(self) -> list[HealthCheckResult]:
        return self.health_orchestrator.get_health_checks()

    def get_system_overview(self) -> SystemOverview:
        return build_system_overview(
            self.metrics_collector.latest(),
            self.alert_engine.get_alerts(include_resolved=False),
            self.health_orchestrator.get_health_checks(),
        )

    def create_alert(
        self,
        alert_type: AlertType,
        severity: Severity,
        title: str,
        message: str,
        source: str,
        metadata: dict[str, Any] | None = None,
    ) -> Alert:
        self._ensure_open()
        return self.alert_engine.create_alert(alert_type, severity, title, message, source, metadata)

    def resolve_alert(self, alert_id: str) -> bool:
        return self.alert_engine.resolve_alert(alert_id)

    async def collect_metrics_now(self) -> MetricSample | None:
        """Run one metrics cycle outside the schedule."""
        self._ensure_open()
        return await self.metrics_collector.collect_once()

    async def run_health_checks_now(self) -> list[HealthCheckResult]:
        """Run one health cycle outside the schedule."""
        self._ensure_open()
        return await self.health_orchestrator.run_cycle()
