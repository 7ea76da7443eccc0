from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from time import perf_counter

import httpx
from pydantic import BaseModel, Field

from reelhive.core.providers.router import ProviderMetrics
from reelhive.core.telemetry.logging import get_logger

HEALTH_ENDPOINTS: dict[str, str] = {
    "runway": "https://api.runwayml.com/health",
    "pika": "https://api.pika.art/health",
    "kling": "https://api.klingai.com/health",
    "luma": "https://api.lumalabs.ai/health",
}

DEFAULT_INTERVAL_SECONDS = 5 * 60
DEFAULT_PROBE_TIMEOUT_SECONDS = 10.0

LOW_UPTIME_PERCENT = 95.0
HIGH_RESPONSE_TIME_MS = 30_000.0
TARGET_OVERALL_UPTIME_PERCENT = 99.0


class HealthCheckResult(BaseModel):
    provider: str
    is_healthy: bool
    response_time_ms: float = 0.0
    error: str | None = None
    uptime: float = 0.0
    last_check: datetime | None = None


class SlaReport(BaseModel):
    provider: str
    period_hours: float
    uptime: float
    availability: float
    mtbf_minutes: float
    mttr_minutes: float


class ProviderUptime(BaseModel):
    uptime: float
    avg_response_time_ms: float
    is_healthy: bool


class UptimeReport(BaseModel):
    period_hours: float
    overall_uptime: float
    providers: dict[str, ProviderUptime] = Field(default_factory=dict)
    recommendations: list[str] = Field(default_factory=list)


@dataclass(slots=True)
class AlertConfig:
    on_alert: Callable[[str, str], None]
    uptime_threshold: float = LOW_UPTIME_PERCENT
    response_time_threshold_ms: float = HIGH_RESPONSE_TIME_MS


def smoothed_uptime(previous: float | None, is_healthy: bool) -> float:
    sample = 100.0 if is_healthy else 0.0
    if previous is None:
        return sample
    return previous * 0.9 + sample * 0.1


def calculate_sla(provider: str, metrics: ProviderMetrics, period_hours: float = 24) -> SlaReport:
    total = metrics.total_requests
    uptime = (metrics.successful_requests / total) * 100 if total > 0 else 0.0
    period_minutes = period_hours * 60
    failures = metrics.failed_requests
    return SlaReport(
        provider=provider,
        period_hours=period_hours,
        uptime=uptime,
        availability=metrics.uptime * 100,
        mtbf_minutes=period_minutes / failures if failures > 0 else period_minutes,
        mttr_minutes=metrics.average_generation_time_ms / 1000 / 60,
    )


class HealthMonitor:
    """Probes provider health endpoints on a background timer.

    The monitor never gates traffic; it only keeps the latest result per
    provider, a smoothed uptime score, and raises alerts.
    """

    def __init__(
        self,
        alert_config: AlertConfig | None = None,
        *,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        probe_timeout_seconds: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
        endpoints: dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.alert_config = alert_config
        self.interval_seconds = interval_seconds
        self.probe_timeout_seconds = probe_timeout_seconds
        self.endpoints = {**HEALTH_ENDPOINTS, **(endpoints or {})}
        self._transport = transport
        self._health_checks: dict[str, HealthCheckResult] = {}
        self._results_lock = threading.Lock()
        self._timer_lock = threading.Lock()
        self._stop_event: threading.Event | None = None
        self._thread: threading.Thread | None = None
        self.logger = get_logger("reelhive.health")

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def start_monitoring(self, providers: Iterable[str]) -> None:
        self.stop_monitoring()
        stop_event = threading.Event()
        thread = threading.Thread(
            target=self._run,
            args=(list(providers), stop_event),
            name="reelhive-health-monitor",
            daemon=True,
        )
        with self._timer_lock:
            self._stop_event = stop_event
            self._thread = thread
        thread.start()
        self.logger.info("health_monitor_started", interval_seconds=self.interval_seconds)

    def stop_monitoring(self) -> None:
        with self._timer_lock:
            stop_event, thread = self._stop_event, self._thread
            self._stop_event = None
            self._thread = None
        if stop_event is None:
            return
        stop_event.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.probe_timeout_seconds + 1)
        self.logger.info("health_monitor_stopped")

    def _run(self, providers: list[str], stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            self.perform_health_checks(providers, stop_event=stop_event)
            if stop_event.wait(self.interval_seconds):
                break

    def perform_health_checks(
        self,
        providers: Iterable[str],
        *,
        stop_event: threading.Event | None = None,
    ) -> list[HealthCheckResult]:
        results: list[HealthCheckResult] = []
        for provider in providers:
            # a stopped cycle finishes at most the probe already in flight
            if stop_event is not None and stop_event.is_set():
                break
            result = self.check_provider_health(provider)
            results.append(result)
            if self.alert_config is not None:
                self._check_for_alerts(result)
        return results

    def check_provider_health(self, provider: str) -> HealthCheckResult:
        started = perf_counter()
        is_healthy, error = self._ping(provider)
        response_time_ms = round((perf_counter() - started) * 1000, 2)

        with self._results_lock:
            existing = self._health_checks.get(provider)
            result = HealthCheckResult(
                provider=provider,
                is_healthy=is_healthy,
                response_time_ms=response_time_ms,
                error=error,
                uptime=smoothed_uptime(existing.uptime if existing else None, is_healthy),
                last_check=datetime.now(timezone.utc),
            )
            self._health_checks[provider] = result

        self.logger.debug(
            "health_probe",
            provider=provider,
            healthy=is_healthy,
            latency_ms=response_time_ms,
            uptime=round(result.uptime, 3),
        )
        return result

    def _ping(self, provider: str) -> tuple[bool, str | None]:
        endpoint = self.endpoints.get(provider)
        if not endpoint:
            return False, "No health endpoint configured"
        try:
            with httpx.Client(timeout=self.probe_timeout_seconds, transport=self._transport) as client:
                resp = client.head(endpoint)
        except httpx.TimeoutException:
            return False, f"Probe timed out after {self.probe_timeout_seconds}s"
        except httpx.HTTPError as exc:
            return False, str(exc) or exc.__class__.__name__
        if resp.is_success or resp.is_redirect:
            return True, None
        return False, f"Provider ping failed: HTTP {resp.status_code}"

    def _check_for_alerts(self, result: HealthCheckResult) -> None:
        cfg = self.alert_config
        if cfg is None:
            return
        if result.uptime < cfg.uptime_threshold:
            self._alert(result.provider, f"Uptime below threshold: {result.uptime:.1f}%")
        if result.response_time_ms > cfg.response_time_threshold_ms:
            self._alert(result.provider, f"Response time above threshold: {result.response_time_ms}ms")
        if not result.is_healthy:
            self._alert(result.provider, f"Health check failed: {result.error}")

    def _alert(self, provider: str, issue: str) -> None:
        try:
            self.alert_config.on_alert(provider, issue)
        except Exception as exc:  # noqa: BLE001
            self.logger.error("health_alert_callback_failed", provider=provider, issue=issue, error=str(exc))

    def get_health_status(self, provider: str | None = None) -> HealthCheckResult | list[HealthCheckResult]:
        with self._results_lock:
            if provider is None:
                return list(self._health_checks.values())
            result = self._health_checks.get(provider)
        if result is not None:
            return result
        return HealthCheckResult(provider=provider, is_healthy=False, error="No health check performed")

    def calculate_sla(self, provider: str, metrics: ProviderMetrics, period_hours: float = 24) -> SlaReport:
        return calculate_sla(provider, metrics, period_hours)

    def generate_uptime_report(self, period_hours: float = 24) -> UptimeReport:
        with self._results_lock:
            checks = list(self._health_checks.values())

        overall = sum(c.uptime for c in checks) / len(checks) if checks else 0.0
        providers: dict[str, ProviderUptime] = {}
        recommendations: list[str] = []

        for check in checks:
            providers[check.provider] = ProviderUptime(
                uptime=check.uptime,
                avg_response_time_ms=check.response_time_ms,
                is_healthy=check.is_healthy,
            )
            if check.uptime < LOW_UPTIME_PERCENT:
                recommendations.append(
                    f"Consider reducing priority for {check.provider} due to low uptime ({check.uptime:.1f}%)"
                )
            if check.response_time_ms > HIGH_RESPONSE_TIME_MS:
                recommendations.append(
                    f"{check.provider} has high response times ({check.response_time_ms}ms), consider alternative providers"
                )
            if not check.is_healthy:
                recommendations.append(f"{check.provider} is currently unhealthy: {check.error}")

        if overall < TARGET_OVERALL_UPTIME_PERCENT:
            recommendations.append(
                "Overall system uptime is below 99%. Consider adding more providers or improving fallback mechanisms."
            )

        return UptimeReport(
            period_hours=period_hours,
            overall_uptime=overall,
            providers=providers,
            recommendations=recommendations,
        )
