"""
System overview aggregation.

Pure functions over snapshots; nothing here reads or writes shared state.
"""

from collections.abc import Iterable, Sequence

from healthwatch.domain.models import (
    Alert,
    AlertCounts,
    HealthCheckResult,
    HealthStatus,
    MetricSample,
    Severity,
    SystemOverview,
)


def derive_overall_status(
    unresolved_alerts: Iterable[Alert], health_checks: Iterable[HealthCheckResult]
) -> HealthStatus:
    """
    Down on any open critical alert or any down service, degraded on any
    degraded service, healthy otherwise (including when nothing has run yet).
    """
    statuses = {check.status for check in health_checks}
    has_critical = any(
        alert.severity == Severity.CRITICAL and not alert.resolved for alert in unresolved_alerts
    )

    if has_critical or HealthStatus.DOWN in statuses:
        return HealthStatus.DOWN
    if HealthStatus.DEGRADED in statuses:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY


def build_system_overview(
    latest_sample: MetricSample | None,
    unresolved_alerts: Sequence[Alert],
    health_checks: Sequence[HealthCheckResult],
) -> SystemOverview:
    open_alerts = [alert for alert in unresolved_alerts if not alert.resolved]

    return SystemOverview(
        status=derive_overall_status(open_alerts, health_checks),
        metrics=latest_sample,
        alerts=AlertCounts(
            total=len(open_alerts),
            critical=sum(1 for a in open_alerts if a.severity == Severity.CRITICAL),
            high=sum(1 for a in open_alerts if a.severity == Severity.HIGH),
        ),
        services={check.service: check.status for check in health_checks},
    )
