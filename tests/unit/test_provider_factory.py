from __future__ import annotations

from reelhive.core.config.schema import AppConfig
from reelhive.core.providers.factory import build_adapters
from reelhive.core.providers.kling_adapter import KlingAdapter
from reelhive.core.providers.runway_adapter import RunwayAdapter


def test_only_providers_with_credentials_are_built():
    environ = {"RUNWAY_API_KEY": "rw-" + "a" * 32, "KLING_API_KEY": "kl_" + "c" * 24, "PIKA_API_KEY": "  "}

    adapters = build_adapters(AppConfig(), environ=environ)

    assert [a.name for a in adapters] == ["runway", "kling"]
    assert isinstance(adapters[0], RunwayAdapter)
    assert isinstance(adapters[1], KlingAdapter)


def test_disabled_provider_and_overrides():
    cfg = AppConfig.model_validate(
        {
            "providers": {
                "runway": {"enabled": False},
                "luma": {"api_key_env": "MY_LUMA", "base_url": "http://localhost:9000/", "timeout_seconds": 5},
            }
        }
    )
    environ = {"RUNWAY_API_KEY": "rw-" + "a" * 32, "MY_LUMA": "luma_" + "d" * 28}

    adapters = build_adapters(cfg, environ=environ)

    assert [a.name for a in adapters] == ["luma"]
    assert adapters[0].base_url == "http://localhost:9000"
    assert adapters[0].timeout_seconds == 5
