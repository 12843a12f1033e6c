"""
Alert creation, resolution and the fixed metric threshold rules.

The engine is the only writer of the alert list. Alerts are kept newest-first in
a bounded store; once it is full the oldest alert is evicted whether or not it
has been resolved.
"""

import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

import structlog
from pydantic import BaseModel, Field

from healthwatch.domain.models import (
    Alert,
    AlertType,
    EventType,
    MetricSample,
    Severity,
    utc_now,
)
from healthwatch.services.bounded_store import BoundedStore
from healthwatch.services.event_bus import EventBus

logger = structlog.get_logger(__name__)


class AlertEngineConfig(BaseModel):
    max_alerts: int = Field(default=100, gt=0, description="Alerts retained, newest first")
    cooldown_seconds: float = Field(
        default=0.0,
        ge=0.0,
        description="Suppress repeats of an unresolved (source, title) raised within this window",
    )


@dataclass(frozen=True)
class ThresholdRule:
    """One hard threshold evaluated against every metric sample."""

    title: str
    alert_type: AlertType
    severity: Severity
    source: str
    metadata_key: str
    extract: Callable[[MetricSample], float]
    breached: Callable[[float], bool]
    describe: Callable[[float], str]


THRESHOLD_RULES: tuple[ThresholdRule, ...] = (
    ThresholdRule(
        title="High Error Rate",
        alert_type=AlertType.ERROR,
        severity=Severity.HIGH,
        source="performance",
        metadata_key="error_rate",
        extract=lambda s: s.performance.error_rate,
        breached=lambda v: v > 0.05,
        describe=lambda v: f"Error rate is {v * 100:.1f}%",
    ),
    ThresholdRule(
        title="Slow Response Time",
        alert_type=AlertType.WARNING,
        severity=Severity.MEDIUM,
        source="performance",
        metadata_key="response_time",
        extract=lambda s: s.performance.response_time,
        breached=lambda v: v > 5000,
        describe=lambda v: f"Average response time is {v:.0f}ms",
    ),
    ThresholdRule(
        title="Low Availability",
        alert_type=AlertType.ERROR,
        severity=Severity.CRITICAL,
        source="availability",
        metadata_key="availability",
        extract=lambda s: s.performance.availability,
        breached=lambda v: v < 0.99,
        describe=lambda v: f"System availability is {v * 100:.2f}%",
    ),
    ThresholdRule(
        title="High Memory Usage",
        alert_type=AlertType.WARNING,
        severity=Severity.MEDIUM,
        source="resources",
        metadata_key="memory_usage",
        extract=lambda s: s.resources.memory_usage,
        breached=lambda v: v > 0.8,
        describe=lambda v: f"Memory usage is {v * 100:.1f}%",
    ),
)


class AlertEngine:
    """
    Single authority for the alert lifecycle.

    create_alert() always produces a new record. raise_alert() is the entry
    point for automated producers and honours the optional cool-down.
    """

    def __init__(self, event_bus: EventBus, config: AlertEngineConfig | None = None) -> None:
        self.config = config or AlertEngineConfig()
        self.event_bus = event_bus
        self._alerts: BoundedStore[Alert] = BoundedStore(self.config.max_alerts)
        self.logger = logger.bind(component="alert_engine")

    def create_alert(
        self,
        alert_type: AlertType,
        severity: Severity,
        title: str,
        message: str,
        source: str,
        metadata: dict[str, Any] | None = None,
    ) -> Alert:
        severity = Severity(severity)
        alert = Alert(
            id=str(uuid.uuid4()),
            type=AlertType(alert_type),
            severity=severity,
            title=title,
            message=message,
            source=source,
            metadata=dict(metadata or {}),
        )
        self._alerts.push_front(alert)

        self.logger.info(
            "alert_created",
            alert_id=alert.id,
            severity=severity.value,
            title=title,
            source=source,
        )
        self.event_bus.publish(EventType.ALERT, alert)
        return alert

    def raise_alert(
        self,
        alert_type: AlertType,
        severity: Severity,
        title: str,
        message: str,
        source: str,
        metadata: dict[str, Any] | None = None,
    ) -> Alert:
        """Create an alert unless an identical one is still open inside the cool-down."""
        if self.config.cooldown_seconds > 0:
            cutoff = utc_now() - timedelta(seconds=self.config.cooldown_seconds)
            existing = self._alerts.find(
                lambda a: (
                    not a.resolved
                    and a.source == source
                    and a.title == title
                    and a.timestamp >= cutoff
                )
            )
            if existing is not None:
                self.logger.debug("alert_suppressed", alert_id=existing.id, title=title)
                return existing

        return self.create_alert(alert_type, severity, title, message, source, metadata)

    def resolve_alert(self, alert_id: str) -> bool:
        """Mark an unresolved alert as resolved. Unknown or already-resolved ids return False."""
        resolved = self._alerts.replace_first(
            lambda a: a.id == alert_id and not a.resolved,
            lambda a: a.model_copy(update={"resolved": True, "resolved_at": utc_now()}),
        )
        if resolved is None:
            self.logger.debug("alert_resolve_ignored", alert_id=alert_id)
            return False

        self.logger.info("alert_resolved", alert_id=alert_id, title=resolved.title)
        self.event_bus.publish(EventType.ALERT_RESOLVED, resolved)
        return True

    def get_alerts(self, include_resolved: bool = False) -> list[Alert]:
        alerts = self._alerts.snapshot()
        if include_resolved:
            return alerts
        return [a for a in alerts if not a.resolved]

    def evaluate_sample(self, sample: MetricSample) -> list[Alert]:
        """Run every threshold rule against `sample`; each breach raises its own alert."""
        raised = []
        for rule in THRESHOLD_RULES:
            value = rule.extract(sample)
            if rule.breached(value):
                raised.append(
                    self.raise_alert(
                        rule.alert_type,
                        rule.severity,
                        rule.title,
                        rule.describe(value),
                        rule.source,
                        {rule.metadata_key: value},
                    )
                )
        return raised

    def clear(self) -> None:
        self._alerts.clear()
