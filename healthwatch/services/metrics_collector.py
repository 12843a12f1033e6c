"""
Periodic metric sampling with per-category fault isolation.

Key patterns:
- Protocol-based metric sources, one per category
- Result type for expected collection failures
- Structured concurrency with asyncio.TaskGroup
- Bounded, lock-protected history
"""

import asyncio
import time
from typing import Generic, Protocol, TypeVar

import structlog
from pydantic import BaseModel, Field

from healthwatch.domain.models import (
    AlertType,
    BusinessMetrics,
    EventType,
    MetricSample,
    PerformanceMetrics,
    ResourceMetrics,
    Severity,
)
from healthwatch.services.alert_engine import AlertEngine
from healthwatch.services.bounded_store import BoundedStore
from healthwatch.services.event_bus import EventBus

logger = structlog.get_logger(__name__)

# Generic Result type for explicit error handling
ValueT = TypeVar("ValueT")
ErrorT = TypeVar("ErrorT", bound=BaseException)
CategoryT = TypeVar("CategoryT", covariant=True)


class Result(Generic[ValueT, ErrorT]):
    """
    Explicit error handling without exceptions for expected failures.

    Why: Makes error paths visible in type system, forces handling decisions.
    When to use: When failure is expected business logic, not exceptional.
    """

    def __init__(self, value: ValueT | None = None, error: ErrorT | None = None) -> None:
        if value is not None and error is not None:
            raise ValueError("Result cannot have both value and error")
        if value is None and error is None:
            raise ValueError("Result must have either value or error")
        self._value: ValueT | None = value
        self._error: ErrorT | None = error

    @classmethod
    def ok(cls, value: ValueT) -> "Result[ValueT, ErrorT]":
        return cls(value=value)

    @classmethod
    def err(cls, error: ErrorT) -> "Result[ValueT, ErrorT]":
        return cls(error=error)

    def is_ok(self) -> bool:
        return self._error is None

    def is_err(self) -> bool:
        return self._error is not None

    def unwrap(self) -> ValueT:
        if self._error is not None:
            raise self._error
        return self._value  # type: ignore

    def unwrap_or(self, default: ValueT) -> ValueT:
        return self._value if self._error is None else default  # type: ignore

    def unwrap_err(self) -> ErrorT:
        if self._error is None:
            raise ValueError("Called unwrap_err() on an Ok value")
        return self._error


class MetricsSource(Protocol[CategoryT]):
    """
    Protocol for collecting one metric category.

    Implementations return Result.err() for expected failures instead of
    raising; the collector treats a raised exception the same way.
    """

    category: str

    async def collect_metrics(self) -> Result[CategoryT, Exception]: ...


class MetricsCollectorConfig(BaseModel):
    """
    Configuration with validation and smart defaults.
    """

    collection_interval_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="Interval between metric samples in seconds.",
    )
    history_size: int = Field(
        default=1000,
        gt=0,
        description="Number of samples retained (about 8 hours at 30s).",
    )
    category_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        description="Timeout for collecting one metric category in seconds.",
    )


class MetricsCollector:
    """
    Samples every metric category into a bounded history.

    Design principles:
    - A failing category falls back to its last-known value (or defaults)
    - A failing cycle raises an alert instead of an exception
    - Every recorded sample is checked against the threshold rules and published
    """

    def __init__(
        self,
        config: MetricsCollectorConfig,
        alert_engine: AlertEngine,
        event_bus: EventBus,
        performance_source: MetricsSource[PerformanceMetrics] | None = None,
        resource_source: MetricsSource[ResourceMetrics] | None = None,
        business_source: MetricsSource[BusinessMetrics] | None = None,
    ) -> None:
        self.config = config
        self.alert_engine = alert_engine
        self.event_bus = event_bus
        self.performance_source = performance_source
        self.resource_source = resource_source
        self.business_source = business_source
        self._history: BoundedStore[MetricSample] = BoundedStore(config.history_size)
        self.logger = logger.bind(component="metrics_collector")

    async def collect_once(self) -> MetricSample | None:
        """
        Run one sampling cycle.

        Never raises: a failure of the whole cycle becomes a high-severity
        alert and None is returned.
        """
        start_time = time.perf_counter()

        try:
            sample = await self._gather_sample()
            self.record_sample(sample)
        except Exception as e:
            self.logger.exception("metrics_collection_failed", error=str(e))
            self.alert_engine.raise_alert(
                AlertType.ERROR,
                Severity.HIGH,
                "Metrics Collection Failed",
                "Failed to collect system metrics",
                "monitoring",
                {"error": str(e)},
            )
            return None

        self.logger.info(
            "metrics_collected",
            history_size=len(self._history),
            duration_seconds=round(time.perf_counter() - start_time, 3),
        )
        return sample

    def record_sample(self, sample: MetricSample) -> None:
        """Append to history, evaluate thresholds, publish."""
        self._history.append(sample)
        self.alert_engine.evaluate_sample(sample)
        self.event_bus.publish(EventType.METRICS, sample)

    def get_metrics(self, limit: int = 100) -> list[MetricSample]:
        """Most recent `limit` samples, oldest first."""
        return self._history.tail(limit)

    def latest(self) -> MetricSample | None:
        return self._history.last()

    def clear(self) -> None:
        self._history.clear()

    async def _gather_sample(self) -> MetricSample:
        previous = self._history.last()

        # Structured concurrency; _collect_category never raises into the group
        async with asyncio.TaskGroup() as task_group:
            performance_task = task_group.create_task(
                self._collect_category("performance", self.performance_source)
            )
            resource_task = task_group.create_task(
                self._collect_category("resources", self.resource_source)
            )
            business_task = task_group.create_task(
                self._collect_category("business", self.business_source)
            )

        return MetricSample(
            performance=performance_task.result().unwrap_or(
                previous.performance if previous else PerformanceMetrics()
            ),
            resources=resource_task.result().unwrap_or(
                previous.resources if previous else ResourceMetrics()
            ),
            business=business_task.result().unwrap_or(
                previous.business if previous else BusinessMetrics()
            ),
        )

    async def _collect_category(
        self, category: str, source: MetricsSource[CategoryT] | None
    ) -> Result[CategoryT, Exception]:
        if source is None:
            return Result.err(LookupError(f"No source configured for {category}"))

        try:
            result = await asyncio.wait_for(
                source.collect_metrics(), timeout=self.config.category_timeout_seconds
            )
        except TimeoutError:
            self.logger.warning(
                "metrics_category_timeout",
                category=category,
                timeout_seconds=self.config.category_timeout_seconds,
            )
            return Result.err(TimeoutError(f"{category} collection timed out"))
        except Exception as e:
            self.logger.exception("unexpected_metrics_category_error", category=category)
            return Result.err(e)

        if result.is_err():
            self.logger.warning(
                "metrics_category_failed",
                category=category,
                error=str(result.unwrap_err()),
                fallback="last_known" if self._history.last() else "default",
            )
        return result
