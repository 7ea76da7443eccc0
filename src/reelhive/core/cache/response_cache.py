"""In-process cache of completed generations.

Entries are keyed by a fingerprint over the request fields that change the
produced video. Nothing here survives a restart.
"""

from __future__ import annotations

import hashlib
import json
import secrets
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from reelhive.core.providers.base import GenerationRequest, GenerationResult, GenerationStatus, VideoSettings
from reelhive.core.telemetry.logging import get_logger

DEFAULT_TTL_HOURS = 24
DEFAULT_MAX_ENTRIES = 1000
DEFAULT_EVICT_MARGIN = 100


@dataclass(slots=True)
class CacheEntry:
    id: str
    prompt_hash: str
    provider: str
    settings: VideoSettings
    video_url: str
    thumbnail_url: str | None
    duration: float
    file_size: int
    quality: str
    usage_count: int
    last_accessed: float
    expires_at: float
    created_at: float


@dataclass(frozen=True, slots=True)
class CacheStats:
    total_entries: int
    total_size: int
    hits: int
    misses: int
    hit_rate: float
    providers: dict[str, int]


def request_fingerprint(request: GenerationRequest) -> str:
    s = request.settings
    key_data: dict[str, Any] = {
        "prompt": request.prompt,
        "duration": float(s.duration),
        "aspect_ratio": s.aspect_ratio,
        "quality": s.quality,
        "style": s.style,
        "reference_images": list(request.reference_images),
    }
    raw = json.dumps(key_data, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:32]


def prompt_hash(prompt: str) -> str:
    return hashlib.sha256(prompt.encode("utf-8")).hexdigest()[:16]


class ResponseCache:
    def __init__(
        self,
        *,
        ttl_hours: float = DEFAULT_TTL_HOURS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        evict_margin: int = DEFAULT_EVICT_MARGIN,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._ttl_seconds = ttl_hours * 3600
        self._max_entries = max(1, max_entries)
        self._evict_margin = max(0, evict_margin)
        self._clock = clock
        self._store: dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self.logger = get_logger("reelhive.cache")

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now > entry.expires_at

    def get(self, request: GenerationRequest) -> CacheEntry | None:
        key = request_fingerprint(request)
        with self._lock:
            now = self._clock()
            entry = self._store.get(key)
            if entry is None:
                self._misses += 1
                return None
            if self._is_expired(entry, now):
                del self._store[key]
                self._misses += 1
                self.logger.debug("cache_expired", key=key, provider=entry.provider)
                return None
            if entry.settings != request.settings:
                self._misses += 1
                return None

            entry.usage_count += 1
            entry.last_accessed = now
            self._hits += 1
            return entry

    def set(self, request: GenerationRequest, result: GenerationResult) -> None:
        if result.status != GenerationStatus.COMPLETED or result.result is None:
            return

        key = request_fingerprint(request)
        with self._lock:
            now = self._clock()
            self._store[key] = CacheEntry(
                id=f"cache_{int(now * 1000)}_{secrets.token_hex(5)}",
                prompt_hash=prompt_hash(request.prompt),
                provider=result.provider,
                settings=request.settings,
                video_url=result.result.video_url,
                thumbnail_url=result.result.thumbnail_url,
                duration=result.result.metadata.duration,
                file_size=result.result.metadata.file_size,
                quality=request.settings.quality,
                usage_count=1,
                last_accessed=now,
                expires_at=now + self._ttl_seconds,
                created_at=now,
            )
            self._cleanup(now, keep=key)

    def clear(self, provider: str | None = None) -> None:
        with self._lock:
            if provider is None:
                self._store.clear()
                return
            for key in [k for k, e in self._store.items() if e.provider == provider]:
                del self._store[key]

    def get_stats(self) -> CacheStats:
        with self._lock:
            entries = list(self._store.values())
            hits, misses = self._hits, self._misses
        providers: dict[str, int] = {}
        for entry in entries:
            providers[entry.provider] = providers.get(entry.provider, 0) + 1
        lookups = hits + misses
        return CacheStats(
            total_entries=len(entries),
            total_size=sum(e.file_size for e in entries),
            hits=hits,
            misses=misses,
            hit_rate=hits / lookups if lookups else 0.0,
            providers=providers,
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def _cleanup(self, now: float, *, keep: str) -> None:
        if len(self._store) <= self._max_entries:
            return

        # expired entries first, then least recently accessed
        ranked = sorted(
            ((k, e) for k, e in self._store.items() if k != keep),
            key=lambda kv: (not self._is_expired(kv[1], now), kv[1].last_accessed),
        )
        # at most half the ceiling goes in one batch
        margin = min(self._evict_margin, self._max_entries // 2)
        target = max(1, self._max_entries - margin)
        to_remove = ranked[: len(self._store) - target]
        for key, _ in to_remove:
            del self._store[key]
        self.logger.info("cache_evicted", removed=len(to_remove), remaining=len(self._store))
