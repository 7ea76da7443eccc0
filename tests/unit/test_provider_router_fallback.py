from __future__ import annotations

import threading

import pytest

from reelhive.core.providers.base import GenerationRequest, GenerationStatus, RequestMetadata, VideoSettings
from reelhive.core.providers.rate_limit import RateLimits
from reelhive.core.providers.router import ProviderMetrics, ProviderRouter
from reelhive.core.runtime.errors import (
    AllProvidersExhausted,
    InvalidRequest,
    ProviderNotFound,
    ServiceUnavailable,
)

from tests.fakes import FakeAdapter


def make_request(duration: float = 5, aspect_ratio: str = "16:9", user_id: str = "u1") -> GenerationRequest:
    return GenerationRequest(
        prompt="A fox running through snow",
        settings=VideoSettings(duration=duration, aspect_ratio=aspect_ratio),
        metadata=RequestMetadata(user_id=user_id),
    )


def test_router_falls_back_after_failed_result():
    a = FakeAdapter("a", outcomes=["fail"])
    b = FakeAdapter("b")
    router = ProviderRouter([a, b], fallback_order=["a", "b"])

    result = router.generate(make_request(), user_id="u1")

    assert result.provider == "b"
    assert len(a.calls) == 1
    metrics_a = router.get_provider_metrics("a")
    assert metrics_a.failed_requests == 1
    assert metrics_a.uptime == 0.0
    assert router.get_provider_metrics("b").successful_requests == 1


def test_router_falls_back_after_adapter_exception():
    router = ProviderRouter([FakeAdapter("a", outcomes=["raise"]), FakeAdapter("b")], fallback_order=["a", "b"])
    assert router.generate(make_request()).provider == "b"
    assert router.get_provider_metrics("a").failed_requests == 1


def test_router_raises_when_all_fail():
    router = ProviderRouter(
        [FakeAdapter("a", outcomes=["fail"]), FakeAdapter("b", outcomes=["raise"])],
        fallback_order=["a", "b"],
    )
    with pytest.raises(AllProvidersExhausted) as excinfo:
        router.generate(make_request())

    assert [f.provider for f in excinfo.value.failures] == ["a", "b"]
    assert all(f.code == "PROVIDER_ERROR" for f in excinfo.value.failures)
    assert "All video generation services are unavailable" in str(excinfo.value)


def test_invalid_request_propagates_without_fallback():
    a = FakeAdapter("a", outcomes=["invalid"])
    b = FakeAdapter("b")
    router = ProviderRouter([a, b], fallback_order=["a", "b"])

    with pytest.raises(InvalidRequest):
        router.generate(make_request())
    assert b.calls == []


def test_duration_compatibility_scenario():
    a = FakeAdapter("a", max_duration=120)
    b = FakeAdapter("b", max_duration=60)
    router = ProviderRouter([a, b], fallback_order=["a", "b"])

    assert router.generate(make_request(duration=90)).provider == "a"

    with pytest.raises(AllProvidersExhausted):
        router.generate(make_request(duration=150))
    assert len(b.calls) == 0


def test_incompatible_provider_never_selected_even_when_only_fallback():
    a = FakeAdapter("a", max_duration=120, outcomes=["fail"])
    b = FakeAdapter("b", max_duration=60)
    router = ProviderRouter([a, b], fallback_order=["a", "b"])

    with pytest.raises(AllProvidersExhausted):
        router.generate(make_request(duration=90))
    assert b.calls == []


def test_incompatible_preferred_provider_is_skipped():
    a = FakeAdapter("a", max_duration=120)
    b = FakeAdapter("b", max_duration=60)
    router = ProviderRouter([a, b], fallback_order=["a", "b"])

    result = router.generate(make_request(duration=90), preferred_provider="b")

    assert result.provider == "a"
    assert b.calls == []


def test_aspect_ratio_compatibility():
    a = FakeAdapter("a", ratios=("16:9",))
    b = FakeAdapter("b", ratios=("16:9", "4:3"))
    router = ProviderRouter([a, b], fallback_order=["a", "b"])
    assert router.generate(make_request(aspect_ratio="4:3")).provider == "b"


def test_rate_limited_provider_is_skipped_then_exhausted():
    limits = RateLimits(requests_per_minute=1)
    a = FakeAdapter("a", rate_limits=limits)
    b = FakeAdapter("b", rate_limits=limits)
    router = ProviderRouter([a, b], fallback_order=["a", "b"])

    assert router.generate(make_request(), user_id="u1").provider == "a"
    assert router.generate(make_request(), user_id="u1").provider == "b"
    with pytest.raises(AllProvidersExhausted) as excinfo:
        router.generate(make_request(), user_id="u1")

    assert [f.code for f in excinfo.value.failures] == ["RATE_LIMITED", "RATE_LIMITED"]
    assert router.generate(make_request(user_id="u2"), user_id="u2").status == GenerationStatus.COMPLETED


def test_unavailable_provider_is_skipped():
    a = FakeAdapter("a")
    a.api_key = ""
    b = FakeAdapter("b")
    router = ProviderRouter([a, b], fallback_order=["a", "b"])

    assert router.get_available_providers() == ["b"]
    assert router.generate(make_request(), preferred_provider="a").provider == "b"
    assert a.calls == []


def test_uptime_after_successes_and_failures():
    a = FakeAdapter("a", outcomes=["ok", "ok", "ok", "fail", "fail"])
    router = ProviderRouter([a], fallback_order=["a"])

    for _ in range(3):
        router.generate(make_request())
    for _ in range(2):
        with pytest.raises(AllProvidersExhausted):
            router.generate(make_request())

    metrics = router.get_provider_metrics("a")
    assert metrics.total_requests == 5
    assert metrics.successful_requests == 3
    assert metrics.failed_requests == 2
    assert metrics.uptime == pytest.approx(0.6)
    assert metrics.average_generation_time_ms >= 0


def test_metrics_queries():
    router = ProviderRouter([FakeAdapter("b"), FakeAdapter("a")], fallback_order=["a", "b"])

    unknown = router.get_provider_metrics("nope")
    assert isinstance(unknown, ProviderMetrics)
    assert unknown.total_requests == 0

    listed = router.get_provider_metrics()
    assert [m.provider for m in listed] == ["a", "b"]

    snapshot = router.get_provider_metrics("a")
    snapshot.total_requests = 99
    assert router.get_provider_metrics("a").total_requests == 0


def test_status_cancel_and_lookups():
    a = FakeAdapter("a")
    router = ProviderRouter([a], fallback_order=["a"])

    assert router.get_video_status("g1", "a").status == GenerationStatus.PROCESSING
    assert router.cancel_video_generation("g1", "a") is True
    assert router.get_provider_quota("a", "u1").requests == 500
    assert router.get_provider_capabilities("a").max_duration_seconds == 120

    with pytest.raises(ProviderNotFound):
        router.get_video_status("g1", "missing")
    with pytest.raises(ProviderNotFound):
        router.get_provider_capabilities("missing")

    a.api_key = ""
    with pytest.raises(ServiceUnavailable):
        router.get_video_status("g1", "a")
    assert router.cancel_video_generation("g1", "a") is False


def test_concurrent_dispatch_keeps_metrics_consistent():
    router = ProviderRouter([FakeAdapter("a")], fallback_order=["a"])

    def worker() -> None:
        for _ in range(10):
            router.generate(make_request())

    threads = [threading.Thread(target=worker) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    metrics = router.get_provider_metrics("a")
    assert metrics.total_requests == 50
    assert metrics.successful_requests == 50
