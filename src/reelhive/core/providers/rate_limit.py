from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field

from reelhive.core.runtime.locks import KeyedLockManager

MINUTE_SECONDS = 60.0
HOUR_SECONDS = 60.0 * 60.0
DAY_SECONDS = 24.0 * 60.0 * 60.0


@dataclass(frozen=True, slots=True)
class RateLimits:
    requests_per_minute: int = 10
    requests_per_hour: int = 100
    requests_per_day: int = 500
    cost_per_request: float = 0.5
    max_cost_per_user: float = 50.0
    max_concurrent_jobs: int = 3


DEFAULT_LIMITS = RateLimits()

PROVIDER_LIMITS: dict[str, RateLimits] = {
    "runway": RateLimits(
        requests_per_minute=15,
        requests_per_hour=120,
        requests_per_day=600,
        cost_per_request=1.0,
        max_cost_per_user=100.0,
    ),
    "pika": RateLimits(
        requests_per_minute=12,
        requests_per_hour=100,
        requests_per_day=500,
        cost_per_request=0.8,
        max_cost_per_user=75.0,
    ),
    "kling": RateLimits(
        requests_per_minute=8,
        requests_per_hour=80,
        requests_per_day=400,
        cost_per_request=0.6,
        max_cost_per_user=60.0,
    ),
    "luma": RateLimits(
        requests_per_minute=10,
        requests_per_hour=90,
        requests_per_day=450,
        cost_per_request=0.7,
        max_cost_per_user=70.0,
    ),
}


def limits_for(provider: str) -> RateLimits:
    return PROVIDER_LIMITS.get(provider, DEFAULT_LIMITS)


@dataclass(slots=True)
class RateLimitWindow:
    count: int = 0
    cost: float = 0.0
    timestamps: list[float] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class Quota:
    requests: int
    cost: float


class RateLimiter:
    """Sliding-window admission control for one provider, keyed by user.

    Windows are created lazily on a user's first request and pruned to a 24h
    lookback on every admission check.
    """

    def __init__(
        self,
        provider: str,
        limits: RateLimits | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.provider = provider
        self.limits = limits or limits_for(provider)
        self._clock = clock
        self._windows: dict[str, RateLimitWindow] = {}
        self._locks = KeyedLockManager()

    def _window(self, user_id: str) -> RateLimitWindow:
        window = self._windows.get(user_id)
        if window is None:
            window = self._windows.setdefault(user_id, RateLimitWindow())
        return window

    def check_rate_limit(self, user_id: str) -> bool:
        with self._locks.get_lock(user_id):
            now = self._clock()
            window = self._window(user_id)
            window.timestamps = [ts for ts in window.timestamps if ts > now - DAY_SECONDS]

            minute_count = sum(1 for ts in window.timestamps if ts > now - MINUTE_SECONDS)
            hour_count = sum(1 for ts in window.timestamps if ts > now - HOUR_SECONDS)
            day_count = len(window.timestamps)

            if (
                minute_count >= self.limits.requests_per_minute
                or hour_count >= self.limits.requests_per_hour
                or day_count >= self.limits.requests_per_day
                or window.cost >= self.limits.max_cost_per_user
            ):
                window.count = day_count
                return False

            window.timestamps.append(now)
            window.count = len(window.timestamps)
            return True

    def add_cost(self, user_id: str, cost: float) -> None:
        with self._locks.get_lock(user_id):
            self._window(user_id).cost += cost

    def get_remaining_quota(self, user_id: str) -> Quota:
        with self._locks.get_lock(user_id):
            now = self._clock()
            window = self._windows.get(user_id) or RateLimitWindow()
            day_count = sum(1 for ts in window.timestamps if ts > now - DAY_SECONDS)
            return Quota(
                requests=max(0, self.limits.requests_per_day - day_count),
                cost=max(0.0, self.limits.max_cost_per_user - window.cost),
            )

    def snapshot(self, user_id: str) -> RateLimitWindow:
        with self._locks.get_lock(user_id):
            window = self._windows.get(user_id) or RateLimitWindow()
            return RateLimitWindow(count=window.count, cost=window.cost, timestamps=list(window.timestamps))
