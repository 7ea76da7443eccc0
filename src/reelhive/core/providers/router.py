from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from time import perf_counter

from reelhive.core.providers.base import GenerationRequest, GenerationResult, ProviderAdapter, ProviderCapabilities
from reelhive.core.providers.rate_limit import Quota
from reelhive.core.runtime.errors import (
    AllProvidersExhausted,
    InvalidRequest,
    ProviderError,
    ProviderNotFound,
    RateLimited,
    ReelhiveError,
    ServiceUnavailable,
    compact_error_summary,
)
from reelhive.core.runtime.locks import KeyedLockManager
from reelhive.core.telemetry.logging import get_logger

DEFAULT_FALLBACK_ORDER = ["runway", "pika", "luma", "kling"]
QUALITY_ORDER = ["runway", "luma", "pika", "kling"]


@dataclass(slots=True)
class ProviderMetrics:
    provider: str
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    average_generation_time_ms: float = 0.0
    uptime: float = 0.0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def reliability(self) -> float:
        return self.successful_requests / max(1, self.total_requests)


class ProviderRouter:
    def __init__(
        self,
        adapters: Iterable[ProviderAdapter] = (),
        *,
        fallback_order: list[str] | None = None,
        cost_optimization: bool = False,
        quality_priority: bool = False,
    ) -> None:
        self._adapters: dict[str, ProviderAdapter] = {}
        self._metrics: dict[str, ProviderMetrics] = {}
        self._locks = KeyedLockManager()
        self.fallback_order = list(fallback_order or DEFAULT_FALLBACK_ORDER)
        self.cost_optimization = cost_optimization
        self.quality_priority = quality_priority
        self.logger = get_logger("reelhive.router")
        for adapter in adapters:
            self.register(adapter)

    def register(self, adapter: ProviderAdapter) -> None:
        self._adapters[adapter.name] = adapter
        self._metrics.setdefault(adapter.name, ProviderMetrics(provider=adapter.name))

    def configured(self) -> list[str]:
        ordered = [n for n in self.fallback_order if n in self._adapters]
        ordered.extend(n for n in self._adapters if n not in ordered)
        return ordered

    def _adapter(self, provider: str) -> ProviderAdapter:
        adapter = self._adapters.get(provider)
        if adapter is None:
            raise ProviderNotFound(provider)
        return adapter

    def is_provider_available(self, provider: str) -> bool:
        adapter = self._adapters.get(provider)
        return adapter.is_available() if adapter else False

    def get_available_providers(self) -> list[str]:
        return [n for n in self.configured() if self._adapters[n].is_available()]

    def is_provider_compatible(self, provider: str, request: GenerationRequest) -> bool:
        adapter = self._adapters.get(provider)
        if adapter is None:
            return False
        if request.settings.duration > adapter.get_max_duration():
            return False
        return request.settings.aspect_ratio in adapter.get_supported_aspect_ratios()

    def provider_order(self, request: GenerationRequest, preferred_provider: str | None = None) -> list[str]:
        if preferred_provider and self.is_provider_available(preferred_provider):
            return [preferred_provider, *[p for p in self.configured() if p != preferred_provider]]

        if self.cost_optimization:
            compatible = [p for p in self.get_available_providers() if self.is_provider_compatible(p, request)]
            return sorted(
                compatible,
                key=lambda p: self._adapters[p].get_cost_per_second() * request.settings.duration,
            )

        if self.quality_priority:
            return [
                p for p in QUALITY_ORDER if self.is_provider_available(p) and self.is_provider_compatible(p, request)
            ]

        # stable sort keeps configured order among equally reliable providers
        available = self.get_available_providers()
        return sorted(available, key=lambda p: self._metrics[p].reliability, reverse=True)

    def generate(
        self,
        request: GenerationRequest,
        preferred_provider: str | None = None,
        user_id: str | None = None,
    ) -> GenerationResult:
        failures: list[ReelhiveError] = []

        for provider in self.provider_order(request, preferred_provider):
            adapter = self._adapters.get(provider)
            if adapter is None or not adapter.is_available():
                if adapter is not None:
                    self._record_failure(provider, ServiceUnavailable.code)
                failures.append(ServiceUnavailable(provider))
                self.logger.info("provider_skipped", provider=provider, reason=ServiceUnavailable.code)
                continue

            if not self.is_provider_compatible(provider, request):
                self.logger.info("provider_skipped", provider=provider, reason="INCOMPATIBLE")
                continue

            if user_id and not adapter.check_rate_limit(user_id):
                self._record_failure(provider, RateLimited.code)
                failures.append(RateLimited(provider, user_id))
                self.logger.info("provider_skipped", provider=provider, reason=RateLimited.code, user_id=user_id)
                continue

            started = perf_counter()
            try:
                result = adapter.generate(request)
            except InvalidRequest:
                raise
            except Exception as exc:  # noqa: BLE001
                self._record_failure(provider, compact_error_summary(exc))
                failures.append(ProviderError(provider, compact_error_summary(exc)))
                self.logger.error("provider_dispatch_failed", provider=provider, error=compact_error_summary(exc))
                continue

            elapsed_ms = (perf_counter() - started) * 1000
            if not result.succeeded:
                message = result.error.message if result.error else "generation failed"
                retryable = result.error.retryable if result.error else True
                self._record_failure(provider, message)
                failures.append(ProviderError(provider, message, retryable=retryable))
                self.logger.warning(
                    "provider_dispatch_failed",
                    provider=provider,
                    error=message,
                    retryable=retryable,
                    latency_ms=round(elapsed_ms, 3),
                )
                continue

            self._record_success(provider, elapsed_ms)
            self.logger.info(
                "provider_dispatch_ok",
                provider=provider,
                generation_id=result.id,
                status=result.status.value,
                latency_ms=round(elapsed_ms, 3),
            )
            return result

        self.logger.error("providers_exhausted", attempts=[f"{getattr(f, 'provider', '?')}:{f.code}" for f in failures])
        raise AllProvidersExhausted(failures)

    def get_video_status(self, generation_id: str, provider: str) -> GenerationResult:
        adapter = self._adapter(provider)
        if not adapter.is_available():
            raise ServiceUnavailable(provider)
        return adapter.get_status(generation_id)

    def cancel_video_generation(self, generation_id: str, provider: str) -> bool:
        adapter = self._adapter(provider)
        if not adapter.is_available():
            return False
        return adapter.cancel(generation_id)

    def get_provider_quota(self, provider: str, user_id: str) -> Quota:
        return self._adapter(provider).get_remaining_quota(user_id)

    def get_provider_capabilities(self, provider: str) -> ProviderCapabilities:
        return self._adapter(provider).capabilities()

    def get_provider_metrics(self, provider: str | None = None) -> ProviderMetrics | list[ProviderMetrics]:
        if provider is not None:
            metrics = self._metrics.get(provider)
            if metrics is None:
                return ProviderMetrics(provider=provider)
            with self._locks.get_lock(provider):
                return replace(metrics)
        out: list[ProviderMetrics] = []
        for name in self.configured():
            with self._locks.get_lock(name):
                out.append(replace(self._metrics[name]))
        return out

    def _record_success(self, provider: str, elapsed_ms: float) -> None:
        with self._locks.get_lock(provider):
            m = self._metrics[provider]
            m.total_requests += 1
            m.successful_requests += 1
            m.average_generation_time_ms += (elapsed_ms - m.average_generation_time_ms) / m.successful_requests
            m.uptime = m.successful_requests / m.total_requests
            m.timestamp = datetime.now(timezone.utc)

    def _record_failure(self, provider: str, reason: str) -> None:
        with self._locks.get_lock(provider):
            m = self._metrics[provider]
            m.total_requests += 1
            m.failed_requests += 1
            m.uptime = m.successful_requests / m.total_requests
            m.timestamp = datetime.now(timezone.utc)
        self.logger.debug("provider_failure_recorded", provider=provider, reason=reason)
