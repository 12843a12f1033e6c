"""
Configuration management with environment variable support and validation.

Design principles:
- Environment-specific configs (dev, staging, prod)
- Validation at startup (fail fast)
- Type safety with Pydantic
- Defaults match the documented schedule (30s metrics, 60s health)
"""

import os
from functools import lru_cache
from typing import Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

# Load environment variables from .env file
load_dotenv()


class MonitoringConfig(BaseModel):
    """Schedules and bounded-store sizes."""

    metrics_interval_seconds: float = Field(
        default=30.0, gt=0.0, description="Interval between metric samples"
    )
    health_interval_seconds: float = Field(
        default=60.0, gt=0.0, description="Interval between health probe cycles"
    )
    metrics_history_size: int = Field(default=1000, gt=0, description="Samples retained")
    alert_history_size: int = Field(default=100, gt=0, description="Alerts retained")
    category_timeout_seconds: float = Field(
        default=10.0, gt=0.0, description="Timeout for collecting one metric category"
    )
    run_immediately: bool = Field(
        default=False, description="Run the first cycles at start instead of after one interval"
    )


class ProbeConfig(BaseModel):
    """Health probe thresholds and external endpoints."""

    timeout_seconds: float = Field(default=5.0, gt=0.0, description="Per-probe timeout")
    database_latency_threshold_ms: float = Field(
        default=1000.0, gt=0.0, description="Database latency above which it is degraded"
    )
    cache_hit_rate_threshold: float = Field(
        default=0.5, ge=0.0, le=1.0, description="Cache hit rate below which it is degraded"
    )
    reachability_endpoints: dict[str, str] = Field(
        default_factory=dict, description="External endpoints checked by name"
    )

    @field_validator("reachability_endpoints")
    def validate_endpoints(cls, v: dict[str, str]) -> dict[str, str]:
        for name, url in v.items():
            if not url.startswith(("http://", "https://")):
                raise ValueError(f"Endpoint {name!r} must be an http(s) URL, got {url!r}")
        return v


class AlertConfig(BaseModel):
    cooldown_seconds: float = Field(
        default=0.0,
        ge=0.0,
        description="Suppress repeated automated alerts per (source, title); 0 disables",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    format: Literal["json", "console"] = Field(default="json", description="Logging format")


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    probes: ProbeConfig = Field(default_factory=ProbeConfig)
    alerts: AlertConfig = Field(default_factory=AlertConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


def parse_endpoints(raw: str) -> dict[str, str]:
    """Parse `name=url,name=url`; entries without a name use the URL as name."""
    endpoints: dict[str, str] = {}
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        name, sep, url = entry.partition("=")
        if sep:
            endpoints[name.strip()] = url.strip()
        else:
            endpoints[entry] = entry
    return endpoints


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
        v = val.strip().lower()
        if v in {"dev", "development"}:
            return "development"
        if v in {"stage", "staging"}:
            return "staging"
        return "production"

    def _level_to_literal(val: str) -> Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
        v = val.strip().upper()
        return cast(
            Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO",
        )

    def _parse_bool(val: str | None, default: bool) -> bool:
        if val is None:
            return default
        return val.strip().lower() in {"1", "true", "yes", "on"}

    # Detect environment
    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    monitoring_config = MonitoringConfig(
        metrics_interval_seconds=float(os.getenv("METRICS_INTERVAL_SECONDS", "30.0")),
        health_interval_seconds=float(os.getenv("HEALTH_INTERVAL_SECONDS", "60.0")),
        metrics_history_size=int(os.getenv("METRICS_HISTORY_SIZE", "1000")),
        alert_history_size=int(os.getenv("ALERT_HISTORY_SIZE", "100")),
        category_timeout_seconds=float(os.getenv("CATEGORY_TIMEOUT_SECONDS", "10.0")),
        run_immediately=_parse_bool(os.getenv("RUN_IMMEDIATELY"), False),
    )

    probe_config = ProbeConfig(
        timeout_seconds=float(os.getenv("PROBE_TIMEOUT_SECONDS", "5.0")),
        database_latency_threshold_ms=float(os.getenv("DATABASE_LATENCY_THRESHOLD_MS", "1000")),
        cache_hit_rate_threshold=float(os.getenv("CACHE_HIT_RATE_THRESHOLD", "0.5")),
        reachability_endpoints=parse_endpoints(os.getenv("REACHABILITY_ENDPOINTS", "")),
    )

    alert_config = AlertConfig(
        cooldown_seconds=float(os.getenv("ALERT_COOLDOWN_SECONDS", "0")),
    )

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        monitoring=monitoring_config,
        probes=probe_config,
        alerts=alert_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()
