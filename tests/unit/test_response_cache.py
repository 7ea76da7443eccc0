from __future__ import annotations

from reelhive.core.cache.response_cache import ResponseCache, request_fingerprint
from reelhive.core.providers.base import (
    GenerationRequest,
    GenerationResult,
    GenerationStatus,
    RequestMetadata,
    ResultMetadata,
    VideoOutput,
    VideoSettings,
)


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_request(prompt: str = "A lighthouse in a storm", **settings) -> GenerationRequest:
    settings.setdefault("duration", 5)
    return GenerationRequest(
        prompt=prompt,
        settings=VideoSettings(**settings),
        metadata=RequestMetadata(user_id="u1"),
    )


def completed(provider: str = "runway", file_size: int = 100) -> GenerationResult:
    return GenerationResult(
        id="gen_1",
        provider=provider,
        status=GenerationStatus.COMPLETED,
        progress=100,
        result=VideoOutput(
            video_url=f"https://{provider}/v.mp4",
            thumbnail_url=f"https://{provider}/t.jpg",
            metadata=ResultMetadata(duration=5, resolution="1920x1080", fps=30, file_size=file_size),
        ),
    )


def test_fingerprint_depends_on_output_affecting_fields():
    base = request_fingerprint(make_request())
    assert base == request_fingerprint(make_request())
    assert len(base) == 32
    assert base != request_fingerprint(make_request("Another prompt"))
    assert base != request_fingerprint(make_request(quality="high"))
    assert base == request_fingerprint(make_request(seed=7))


def test_hit_returns_entry_and_counts_usage():
    cache = ResponseCache(clock=FakeClock())
    cache.set(make_request(), completed())

    entry = cache.get(make_request())

    assert entry is not None
    assert entry.provider == "runway"
    assert entry.video_url == "https://runway/v.mp4"
    assert entry.usage_count == 2
    stats = cache.get_stats()
    assert stats.hits == 1
    assert stats.misses == 0
    assert stats.hit_rate == 1.0


def test_only_completed_results_are_stored():
    cache = ResponseCache(clock=FakeClock())
    processing = GenerationResult(id="g", provider="pika", status=GenerationStatus.PROCESSING)
    cache.set(make_request(), processing)
    assert len(cache) == 0
    assert cache.get(make_request()) is None


def test_expired_entries_are_misses_and_removed():
    clock = FakeClock()
    cache = ResponseCache(ttl_hours=24, clock=clock)
    cache.set(make_request(), completed())

    clock.now += 24 * 3600 + 1
    assert cache.get(make_request()) is None
    assert len(cache) == 0
    assert cache.get_stats().misses == 1


def test_settings_outside_fingerprint_must_still_match():
    cache = ResponseCache(clock=FakeClock())
    cache.set(make_request(seed=1), completed())

    assert cache.get(make_request(seed=2)) is None
    assert cache.get(make_request(seed=1)) is not None
    assert cache.get_stats().hit_rate == 0.5


def test_eviction_drops_least_recently_used_down_to_margin():
    clock = FakeClock(0)
    cache = ResponseCache(max_entries=5, evict_margin=2, clock=clock)
    for i in range(1, 6):
        clock.now = i
        cache.set(make_request(f"prompt {i}"), completed())

    clock.now = 6
    assert cache.get(make_request("prompt 1")) is not None

    clock.now = 7
    cache.set(make_request("prompt 6"), completed())

    assert len(cache) == 3
    assert cache.get(make_request("prompt 1")) is not None
    assert cache.get(make_request("prompt 5")) is not None
    assert cache.get(make_request("prompt 6")) is not None
    assert cache.get(make_request("prompt 2")) is None


def test_clear_by_provider_and_stats():
    cache = ResponseCache(clock=FakeClock())
    cache.set(make_request("one"), completed("runway", file_size=100))
    cache.set(make_request("two"), completed("pika", file_size=50))
    cache.set(make_request("three"), completed("pika", file_size=25))

    stats = cache.get_stats()
    assert stats.total_entries == 3
    assert stats.total_size == 175
    assert stats.providers == {"runway": 1, "pika": 2}

    cache.clear("pika")
    assert cache.get_stats().providers == {"runway": 1}

    cache.clear()
    assert len(cache) == 0


def test_margin_wider_than_ceiling_keeps_cache_populated():
    clock = FakeClock(0)
    cache = ResponseCache(max_entries=50, evict_margin=100, clock=clock)
    for i in range(51):
        clock.now = i
        cache.set(make_request(f"prompt {i}"), completed())

    assert len(cache) == 25
    assert cache.get(make_request("prompt 50")) is not None
    assert cache.get(make_request("prompt 0")) is None


def test_single_entry_cache_keeps_latest_write():
    cache = ResponseCache(max_entries=1, evict_margin=100, clock=FakeClock(0))
    cache.set(make_request("first"), completed())
    cache.set(make_request("second"), completed())

    assert len(cache) == 1
    assert cache.get(make_request("second")) is not None
