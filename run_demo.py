"""
End-to-end demonstration of the observability engine.

This script exercises:
1. Metric sampling from simulated sources and threshold alerts
2. Health probes for a database, a provider pool, a cache and external endpoints
3. Alert creation and resolution
4. The live service with both schedules running on short intervals

Run with: uv run python run_demo.py
"""

import asyncio
import random

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from healthwatch.config import AppConfig, MonitoringConfig, ProbeConfig, get_config
from healthwatch.domain.models import (
    AlertType,
    CacheStats,
    HealthStatus,
    PoolMember,
    Severity,
    SystemOverview,
)
from healthwatch.logs import configure_logging
from healthwatch.services.event_bus import MonitoringEvent
from healthwatch.services.metrics_sources import (
    SimulatedBusinessSource,
    SimulatedPerformanceSource,
    SimulatedResourceSource,
)
from healthwatch.services.monitoring_service import MonitoringService, build_probes

console = Console()


class DemoDatabase:
    """Persistence stand-in with configurable latency and outage."""

    def __init__(self, latency_seconds: float = 0.05, fail: bool = False) -> None:
        self.latency_seconds = latency_seconds
        self.fail = fail

    async def ping(self) -> None:
        await asyncio.sleep(self.latency_seconds)
        if self.fail:
            raise ConnectionError("database unavailable")


class DemoProviderPool:
    def __init__(self, healthy: int, total: int) -> None:
        self.healthy = healthy
        self.total = total

    async def member_status(self) -> list[PoolMember]:
        return [
            PoolMember(
                name=f"provider-{i + 1}",
                health_status=HealthStatus.HEALTHY if i < self.healthy else HealthStatus.DOWN,
                success_rate=round(random.uniform(0.9, 1.0), 3) if i < self.healthy else 0.0,
            )
            for i in range(self.total)
        ]


class DemoCache:
    def __init__(self, hit_rate: float) -> None:
        self.hit_rate = hit_rate

    async def cache_stats(self) -> CacheStats:
        return CacheStats(hit_rate=self.hit_rate, total_items=1200, memory_usage=48.5)


class DemoReachability:
    """Pretends every endpoint except the listed ones responds."""

    def __init__(self, unreachable: set[str]) -> None:
        self.unreachable = unreachable

    async def is_reachable(self, url: str, timeout: float) -> bool:
        await asyncio.sleep(0.01)
        return url not in self.unreachable


def demo_config() -> AppConfig:
    base = get_config()
    return base.model_copy(
        update={
            "monitoring": MonitoringConfig(
                metrics_interval_seconds=1.0,
                health_interval_seconds=1.5,
                run_immediately=True,
            ),
            "probes": ProbeConfig(
                timeout_seconds=2.0,
                reachability_endpoints={
                    "maps": "https://maps.example.com",
                    "tax-authority": "https://tax.example.gov",
                },
            ),
        }
    )


def build_service(config: AppConfig, scenario: str = "normal") -> MonitoringService:
    if scenario == "normal":
        database, pool, cache = DemoDatabase(), DemoProviderPool(3, 3), DemoCache(0.92)
        unreachable: set[str] = set()
    else:
        database = DemoDatabase(latency_seconds=1.2)
        pool, cache = DemoProviderPool(1, 4), DemoCache(0.31)
        unreachable = {"https://tax.example.gov"}

    probes = build_probes(
        config.probes,
        database=database,
        service_pool=pool,
        cache=cache,
        reachability_checker=DemoReachability(unreachable),
    )
    return MonitoringService(
        config,
        performance_source=SimulatedPerformanceSource(failure_rate=0.1),
        resource_source=SimulatedResourceSource(failure_rate=0.1),
        business_source=SimulatedBusinessSource(failure_rate=0.1),
        probes=probes,
    )


def render_overview(overview: SystemOverview) -> None:
    style = {"healthy": "green", "degraded": "yellow", "down": "red"}[overview.status.value]
    console.print(f"Overall Status: {overview.status.value.upper()}", style=style)

    services = Table(title="Services")
    services.add_column("Service", style="cyan")
    services.add_column("Status", style="white")
    for name, status in sorted(overview.services.items()):
        services.add_row(name, status.value)
    console.print(services)

    summary = Table(title="Open Alerts")
    summary.add_column("Total", style="white")
    summary.add_column("Critical", style="red")
    summary.add_column("High", style="yellow")
    summary.add_row(
        str(overview.alerts.total), str(overview.alerts.critical), str(overview.alerts.high)
    )
    console.print(summary)

    if overview.metrics:
        perf = overview.metrics.performance
        console.print(
            f"Latest sample: {perf.response_time:.0f}ms, {perf.throughput:.1f} req/s, "
            f"errors {perf.error_rate:.2%}, availability {perf.availability:.3%}"
        )


async def demo_metrics_and_thresholds(config: AppConfig) -> bool:
    console.print(Panel("Metrics Sampling", style="blue"))
    service = build_service(config)

    for _ in range(3):
        await service.collect_metrics_now()

    table = Table(title="Recent Samples")
    table.add_column("Time", style="cyan")
    table.add_column("Response (ms)", style="green")
    table.add_column("Memory", style="magenta")
    table.add_column("Documents", style="yellow")
    for sample in service.get_metrics(5):
        table.add_row(
            sample.timestamp.strftime("%H:%M:%S"),
            f"{sample.performance.response_time:.0f}",
            f"{sample.resources.memory_usage:.1%}",
            str(sample.business.documents_created),
        )
    console.print(table)
    return len(service.get_metrics()) == 3


async def demo_health_probes(config: AppConfig) -> bool:
    console.print(Panel("Health Probes (degraded scenario)", style="blue"))
    service = build_service(config, scenario="degraded")

    results = await service.run_health_checks_now()
    for result in results:
        console.print(f"  {result.service}: {result.status.value} ({result.response_time:.0f}ms)")

    render_overview(service.get_system_overview())
    return any(r.status != HealthStatus.HEALTHY for r in results)


async def demo_alert_lifecycle(config: AppConfig) -> bool:
    console.print(Panel("Alert Lifecycle", style="blue"))
    service = build_service(config)

    alert = service.create_alert(
        AlertType.WARNING,
        Severity.MEDIUM,
        "Manual maintenance window",
        "Provider rotation in progress",
        "operations",
    )
    console.print(f"Created alert {alert.id}")
    console.print(f"Resolve unknown id -> {service.resolve_alert('missing')}")
    console.print(f"Resolve {alert.id[:8]} -> {service.resolve_alert(alert.id)}")
    console.print(f"Resolve again -> {service.resolve_alert(alert.id)}")
    return not service.get_alerts() and len(service.get_alerts(include_resolved=True)) == 1


async def demo_live_service(config: AppConfig) -> bool:
    console.print(Panel("Live Service", style="blue"))
    service = build_service(config)
    received: list[MonitoringEvent] = []

    def on_event(event: MonitoringEvent) -> None:
        received.append(event)
        console.print(f"  event: {event.type.value}", style="dim")

    service.subscribe(on_event)
    async with service.session():
        await asyncio.sleep(3.5)
        render_overview(service.get_system_overview())

    console.print(f"Received {len(received)} events", style="green")
    return bool(received)


async def run_all_demos() -> None:
    config = demo_config()
    configure_logging(config.logging)

    console.print(Panel("healthwatch - Observability Engine Demo", style="bold blue"))

    demos = [
        ("Metrics Sampling", demo_metrics_and_thresholds),
        ("Health Probes", demo_health_probes),
        ("Alert Lifecycle", demo_alert_lifecycle),
        ("Live Service", demo_live_service),
    ]

    results = []
    for name, demo in demos:
        console.print(f"\n{'=' * 60}")
        try:
            results.append((name, await demo(config)))
        except Exception as e:
            console.print(f"{name} failed with exception: {e}", style="red")
            results.append((name, False))

    console.print(f"\n{'=' * 60}")
    summary = Table(title="Demo Summary")
    summary.add_column("Demo", style="cyan")
    summary.add_column("Result", style="white")
    for name, ok in results:
        summary.add_row(name, "PASSED" if ok else "FAILED")
    console.print(summary)


if __name__ == "__main__":
    try:
        asyncio.run(run_all_demos())
    except KeyboardInterrupt:
        console.print("\nDemo stopped by user", style="yellow")
