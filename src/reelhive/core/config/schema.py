from __future__ import annotations

from pydantic import BaseModel, Field


class InstanceConfig(BaseModel):
    name: str = "reelhive"


class TelemetryConfig(BaseModel):
    log_level: str = "INFO"
    json_logs: bool = True


class ProviderConfig(BaseModel):
    enabled: bool = True
    api_key_env: str | None = None
    base_url: str | None = None
    timeout_seconds: float = 30.0

    def credential_env(self, provider: str) -> str:
        return self.api_key_env or f"{provider.upper()}_API_KEY"


class ProvidersConfig(BaseModel):
    runway: ProviderConfig = Field(default_factory=ProviderConfig)
    pika: ProviderConfig = Field(default_factory=ProviderConfig)
    kling: ProviderConfig = Field(default_factory=ProviderConfig)
    luma: ProviderConfig = Field(default_factory=ProviderConfig)

    def items(self) -> list[tuple[str, ProviderConfig]]:
        return [(name, getattr(self, name)) for name in ("runway", "pika", "kling", "luma")]


class RoutingConfig(BaseModel):
    fallback_order: list[str] = Field(default_factory=lambda: ["runway", "pika", "luma", "kling"])
    cost_optimization: bool = False
    quality_priority: bool = False


class CacheConfig(BaseModel):
    enabled: bool = True
    ttl_hours: float = Field(default=24, gt=0)
    max_entries: int = Field(default=1000, ge=1)
    evict_margin: int = Field(default=100, ge=0)


class MonitoringConfig(BaseModel):
    enabled: bool = True
    interval_seconds: float = Field(default=300, gt=0)
    probe_timeout_seconds: float = Field(default=10, gt=0)
    uptime_threshold: float = 95.0
    response_time_threshold_ms: float = 30_000.0


class AppConfig(BaseModel):
    instance: InstanceConfig = Field(default_factory=InstanceConfig)
    environment: str = "dev"
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    routing: RoutingConfig = Field(default_factory=RoutingConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
