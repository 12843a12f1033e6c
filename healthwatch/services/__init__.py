"""
Core services for the observability engine.

This package contains the event bus, alert engine, metrics collector, health
probe orchestration and the MonitoringService that ties them together.
"""

from .alert_engine import THRESHOLD_RULES, AlertEngine, AlertEngineConfig
from .event_bus import EventBus, MonitoringEvent
from .health_orchestrator import HealthOrchestratorConfig, HealthProbeOrchestrator
from .health_probes import (
    CacheProbe,
    DatabaseProbe,
    HealthProbe,
    HttpReachabilityChecker,
    ProbeRegistry,
    ReachabilityProbe,
    ServicePoolProbe,
)
from .metrics_collector import MetricsCollector, MetricsCollectorConfig, MetricsSource, Result
from .metrics_sources import (
    BusinessMetricsSource,
    PerformanceMetricsSource,
    RequestTracker,
    ResourceMetricsSource,
)
from .monitoring_service import MonitoringService, build_probes
from .overview import build_system_overview, derive_overall_status

__all__ = [
    "THRESHOLD_RULES",
    "AlertEngine",
    "AlertEngineConfig",
    "BusinessMetricsSource",
    "CacheProbe",
    "DatabaseProbe",
    "EventBus",
    "HealthOrchestratorConfig",
    "HealthProbe",
    "HealthProbeOrchestrator",
    "HttpReachabilityChecker",
    "MetricsCollector",
    "MetricsCollectorConfig",
    "MetricsSource",
    "MonitoringEvent",
    "MonitoringService",
    "PerformanceMetricsSource",
    "ProbeRegistry",
    "ReachabilityProbe",
    "RequestTracker",
    "ResourceMetricsSource",
    "Result",
    "ServicePoolProbe",
    "build_probes",
    "build_system_overview",
    "derive_overall_status",
]
