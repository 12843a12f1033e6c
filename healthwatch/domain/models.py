"""
Domain models for the observability engine.

These models represent the core monitoring concepts and are framework-agnostic.
They use Pydantic for validation; everything that is shared between threads or
handed to subscribers is frozen.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Severity(str, Enum):
    """Alert severity levels following standard SRE practices."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AlertType(str, Enum):
    """Kind of condition an alert reports."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class HealthStatus(str, Enum):
    """Tri-state health, in increasing severity."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    DOWN = "down"


class EventType(str, Enum):
    """Event kinds fanned out to subscribers."""

    METRICS = "metrics"
    HEALTH = "health"
    ALERT = "alert"
    ALERT_RESOLVED = "alert_resolved"


def utc_now() -> datetime:
    return datetime.now(UTC)


class PerformanceMetrics(BaseModel):
    """Request-level performance over the sampling window."""

    model_config = ConfigDict(frozen=True)

    response_time: float = Field(default=0.0, ge=0.0, description="Average response time (ms)")
    throughput: float = Field(default=0.0, ge=0.0, description="Requests per second")
    error_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    availability: float = Field(default=1.0, ge=0.0, le=1.0)


class ResourceMetrics(BaseModel):
    """Resource usage of the host process and its shared dependencies."""

    model_config = ConfigDict(frozen=True)

    memory_usage: float = Field(default=0.0, ge=0.0, le=1.0)
    cache_hit_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    database_connections: int = Field(default=0, ge=0)
    active_users: int = Field(default=0, ge=0)


class BusinessMetrics(BaseModel):
    """Domain document counters over a trailing window."""

    model_config = ConfigDict(frozen=True)

    documents_created: int = Field(default=0, ge=0)
    documents_succeeded: int = Field(default=0, ge=0)
    documents_failed: int = Field(default=0, ge=0)
    revenue: float = 0.0


class MetricSample(BaseModel):
    """One point-in-time sample of all metric categories."""

    model_config = ConfigDict(frozen=True)  # Immutable once recorded

    timestamp: datetime = Field(default_factory=utc_now)
    performance: PerformanceMetrics = Field(default_factory=PerformanceMetrics)
    resources: ResourceMetrics = Field(default_factory=ResourceMetrics)
    business: BusinessMetrics = Field(default_factory=BusinessMetrics)


class Alert(BaseModel):
    """
    Record of a detected abnormal condition.

    Frozen: the only transition (unresolved -> resolved) is applied by the
    alert engine, which swaps in a resolved copy.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    type: AlertType
    severity: Severity
    title: str
    message: str
    timestamp: datetime = Field(default_factory=utc_now)
    source: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    resolved: bool = False
    resolved_at: datetime | None = None


class HealthCheckResult(BaseModel):
    """Outcome of one probe run."""

    model_config = ConfigDict(frozen=True)

    service: str
    status: HealthStatus
    response_time: float = Field(default=0.0, ge=0.0, description="Probe duration (ms)")
    last_check: datetime = Field(default_factory=utc_now)
    details: dict[str, Any] = Field(default_factory=dict)


class AlertCounts(BaseModel):
    total: int = 0
    critical: int = 0
    high: int = 0


class SystemOverview(BaseModel):
    """Single status summary combining metrics, alerts and health."""

    status: HealthStatus
    metrics: MetricSample | None = None
    alerts: AlertCounts = Field(default_factory=AlertCounts)
    services: dict[str, HealthStatus] = Field(default_factory=dict)
    generated_at: datetime = Field(default_factory=utc_now)


class PoolMember(BaseModel):
    """Status of one member of a dependent-service pool."""

    model_config = ConfigDict(frozen=True)

    name: str
    active: bool = True
    health_status: HealthStatus = HealthStatus.HEALTHY
    success_rate: float = Field(default=1.0, ge=0.0, le=1.0)


class CacheStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    hit_rate: float = Field(ge=0.0, le=1.0)
    total_items: int = Field(default=0, ge=0)
    memory_usage: float = Field(default=0.0, ge=0.0)
