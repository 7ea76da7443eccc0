from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from time import perf_counter

import httpx

from reelhive.core.cache.response_cache import CacheEntry, CacheStats, ResponseCache
from reelhive.core.config.schema import AppConfig
from reelhive.core.providers.base import (
    GenerationRequest,
    GenerationResult,
    GenerationStatus,
    ProviderCapabilities,
    ResultMetadata,
    VideoOutput,
)
from reelhive.core.providers.factory import build_adapters
from reelhive.core.providers.health import AlertConfig, HealthCheckResult, HealthMonitor, UptimeReport
from reelhive.core.providers.rate_limit import Quota
from reelhive.core.providers.router import ProviderMetrics, ProviderRouter
from reelhive.core.runtime.errors import InvalidRequest
from reelhive.core.telemetry.logging import get_logger, log_context


@dataclass(frozen=True, slots=True)
class CostOption:
    cost: float
    available: bool


@dataclass(frozen=True, slots=True)
class CostEstimate:
    providers: dict[str, CostOption] = field(default_factory=dict)
    recommended_provider: str | None = None
    recommended_cost: float | None = None
    reason: str = ""


class VideoGenerationService:
    """Front door for video generation: cache, routing and health in one place."""

    def __init__(
        self,
        *,
        router: ProviderRouter,
        cache: ResponseCache | None = None,
        monitor: HealthMonitor | None = None,
    ) -> None:
        self.router = router
        self.cache = cache
        self.monitor = monitor
        self.logger = get_logger("reelhive.generation_service")

    def generate(self, request: GenerationRequest, preferred_provider: str | None = None) -> GenerationResult:
        user_id = request.user_id
        if not user_id:
            raise InvalidRequest("User ID is required for video generation")

        project_id = request.metadata.project_id if request.metadata else None
        with log_context(user_id=user_id, project_id=project_id):
            started = perf_counter()
            entry = self._cache_get(request)
            if entry is not None:
                result = self._from_cache(entry)
                self._track_usage(request, result, cached=True, elapsed_ms=(perf_counter() - started) * 1000)
                return result

            result = self.router.generate(request, preferred_provider, user_id)
            if result.status == GenerationStatus.COMPLETED:
                self._cache_set(request, result)
            self._track_usage(request, result, cached=False, elapsed_ms=(perf_counter() - started) * 1000)
            return result

    def _cache_get(self, request: GenerationRequest) -> CacheEntry | None:
        if self.cache is None:
            return None
        try:
            return self.cache.get(request)
        except Exception as exc:  # noqa: BLE001
            self.logger.warning("cache_get_failed", error=str(exc))
            return None

    def _cache_set(self, request: GenerationRequest, result: GenerationResult) -> None:
        if self.cache is None:
            return
        try:
            self.cache.set(request, result)
        except Exception as exc:  # noqa: BLE001
            self.logger.warning("cache_set_failed", provider=result.provider, error=str(exc))

    @staticmethod
    def _from_cache(entry: CacheEntry) -> GenerationResult:
        now = datetime.now(timezone.utc)
        return GenerationResult(
            id=f"cached_{entry.id}",
            provider=entry.provider,
            status=GenerationStatus.COMPLETED,
            progress=100,
            result=VideoOutput(
                video_url=entry.video_url,
                thumbnail_url=entry.thumbnail_url,
                metadata=ResultMetadata(
                    duration=entry.duration,
                    resolution="1920x1080",
                    fps=30,
                    file_size=entry.file_size,
                    generation_time=0.0,
                    cost=0.0,
                ),
            ),
            created_at=now,
            completed_at=now,
        )

    def _track_usage(self, request: GenerationRequest, result: GenerationResult, *, cached: bool, elapsed_ms: float) -> None:
        meta = result.result.metadata if result.result else None
        self.logger.info(
            "video_generation_usage",
            provider=result.provider,
            generation_id=result.id,
            status=result.status.value,
            cached=cached,
            duration=request.settings.duration,
            quality=request.settings.quality,
            cost=meta.cost if meta else 0.0,
            generation_time=meta.generation_time if meta else 0.0,
            latency_ms=round(elapsed_ms, 3),
        )

    def handle_alert(self, provider: str, issue: str) -> None:
        self.logger.warning("provider_alert", provider=provider, issue=issue, component="health_monitor")

    def get_video_status(self, generation_id: str, provider: str) -> GenerationResult:
        return self.router.get_video_status(generation_id, provider)

    def cancel_video_generation(self, generation_id: str, provider: str) -> bool:
        return self.router.cancel_video_generation(generation_id, provider)

    def get_available_providers(self) -> list[str]:
        return self.router.get_available_providers()

    def get_provider_quota(self, provider: str, user_id: str) -> Quota:
        return self.router.get_provider_quota(provider, user_id)

    def get_provider_capabilities(self, provider: str) -> ProviderCapabilities:
        return self.router.get_provider_capabilities(provider)

    def get_provider_metrics(self, provider: str | None = None) -> ProviderMetrics | list[ProviderMetrics]:
        return self.router.get_provider_metrics(provider)

    def get_health_status(self, provider: str | None = None) -> HealthCheckResult | list[HealthCheckResult] | None:
        if self.monitor is None:
            return None
        return self.monitor.get_health_status(provider)

    def generate_uptime_report(self, period_hours: float = 24) -> UptimeReport | None:
        if self.monitor is None:
            return None
        return self.monitor.generate_uptime_report(period_hours)

    def get_cache_stats(self) -> CacheStats | None:
        return self.cache.get_stats() if self.cache is not None else None

    def clear_cache(self, provider: str | None = None) -> None:
        if self.cache is not None:
            self.cache.clear(provider)

    def estimate_cost(self, request: GenerationRequest) -> CostEstimate:
        duration = request.settings.duration
        options: dict[str, CostOption] = {}
        for provider in self.router.get_available_providers():
            caps = self.router.get_provider_capabilities(provider)
            compatible = (
                duration <= caps.max_duration_seconds
                and request.settings.aspect_ratio in caps.supported_aspect_ratios
            )
            options[provider] = CostOption(
                cost=caps.cost_per_second * duration if compatible else 0.0,
                available=compatible,
            )

        best: tuple[str, float] | None = None
        for provider, option in options.items():
            if option.available and (best is None or option.cost < best[1]):
                best = (provider, option.cost)

        if best is None:
            return CostEstimate(providers=options, reason=f"No provider supports a {duration:g}s {request.settings.aspect_ratio} video")
        return CostEstimate(
            providers=options,
            recommended_provider=best[0],
            recommended_cost=best[1],
            reason=f"Lowest cost option for {duration:g}s video",
        )

    def close(self) -> None:
        if self.monitor is not None:
            self.monitor.stop_monitoring()


def build_generation_service(
    cfg: AppConfig,
    *,
    environ: Mapping[str, str] | None = None,
    transport: httpx.BaseTransport | None = None,
    start_monitoring: bool = True,
) -> VideoGenerationService:
    adapters = build_adapters(cfg, environ=os.environ if environ is None else environ, transport=transport)
    router = ProviderRouter(
        adapters,
        fallback_order=cfg.routing.fallback_order,
        cost_optimization=cfg.routing.cost_optimization,
        quality_priority=cfg.routing.quality_priority,
    )

    cache = None
    if cfg.cache.enabled:
        cache = ResponseCache(
            ttl_hours=cfg.cache.ttl_hours,
            max_entries=cfg.cache.max_entries,
            evict_margin=cfg.cache.evict_margin,
        )

    service = VideoGenerationService(router=router, cache=cache)
    if cfg.monitoring.enabled:
        service.monitor = HealthMonitor(
            AlertConfig(
                on_alert=service.handle_alert,
                uptime_threshold=cfg.monitoring.uptime_threshold,
                response_time_threshold_ms=cfg.monitoring.response_time_threshold_ms,
            ),
            interval_seconds=cfg.monitoring.interval_seconds,
            probe_timeout_seconds=cfg.monitoring.probe_timeout_seconds,
            transport=transport,
        )
        if start_monitoring:
            service.monitor.start_monitoring(router.get_available_providers())
    return service
