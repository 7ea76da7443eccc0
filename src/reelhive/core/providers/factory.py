from __future__ import annotations

import os
from collections.abc import Mapping

import httpx

from reelhive.core.config.schema import AppConfig
from reelhive.core.providers.base import ProviderAdapter
from reelhive.core.providers.http_adapter import HttpProviderAdapter
from reelhive.core.providers.kling_adapter import KlingAdapter
from reelhive.core.providers.luma_adapter import LumaAdapter
from reelhive.core.providers.pika_adapter import PikaAdapter
from reelhive.core.providers.runway_adapter import RunwayAdapter
from reelhive.core.runtime.errors import InvalidCredential
from reelhive.core.telemetry.logging import get_logger

ADAPTER_TYPES: dict[str, type[HttpProviderAdapter]] = {
    "runway": RunwayAdapter,
    "pika": PikaAdapter,
    "kling": KlingAdapter,
    "luma": LumaAdapter,
}


def build_adapters(
    cfg: AppConfig,
    *,
    environ: Mapping[str, str] | None = None,
    transport: httpx.BaseTransport | None = None,
) -> list[ProviderAdapter]:
    """Instantiate every enabled provider whose credential is present."""
    env = os.environ if environ is None else environ
    logger = get_logger("reelhive.providers.factory")
    adapters: list[ProviderAdapter] = []

    for name, pcfg in cfg.providers.items():
        if not pcfg.enabled:
            logger.info("provider_disabled", provider=name)
            continue
        api_key = env.get(pcfg.credential_env(name), "")
        if not api_key.strip():
            logger.info("provider_not_configured", provider=name, api_key_env=pcfg.credential_env(name))
            continue
        try:
            adapter = ADAPTER_TYPES[name](
                api_key,
                base_url=pcfg.base_url,
                timeout_seconds=pcfg.timeout_seconds,
                transport=transport,
            )
        except InvalidCredential as exc:
            logger.warning("provider_credential_rejected", provider=name, error=str(exc))
            continue
        adapters.append(adapter)

    return adapters
