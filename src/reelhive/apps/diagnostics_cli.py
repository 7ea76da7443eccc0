from __future__ import annotations

import os

from reelhive.cli import base_parser
from reelhive.core.config.loader import load_app_config
from reelhive.core.providers.factory import ADAPTER_TYPES, build_adapters
from reelhive.core.providers.health import HealthMonitor
from reelhive.core.telemetry.logging import configure_logging


def main() -> int:
    parser = base_parser("reelhive-diag", "reelhive diagnostics CLI")
    parser.add_argument("--validate-config", action="store_true")
    parser.add_argument("--providers", action="store_true", help="List provider credentials and capabilities")
    parser.add_argument("--check-providers", action="store_true", help="Probe provider health endpoints")
    args = parser.parse_args()

    if not (args.validate_config or args.providers or args.check_providers):
        print("diag-ready (use --validate-config/--providers/--check-providers)")
        return 0

    try:
        cfg = load_app_config(instance_path=args.config)
    except Exception as exc:  # noqa: BLE001
        print(f"config-invalid error={exc}")
        return 1
    configure_logging(args.log_level or cfg.telemetry.log_level, cfg.telemetry.json_logs)

    if args.validate_config:
        print(
            f"config-valid instance={cfg.instance.name} env={cfg.environment} "
            f"cache={cfg.cache.enabled} monitoring={cfg.monitoring.enabled}"
        )

    if args.providers:
        registered = {a.name for a in build_adapters(cfg)}
        print("providers:")
        for name, pcfg in cfg.providers.items():
            adapter_type = ADAPTER_TYPES[name]
            ratios = ",".join(sorted(adapter_type.supported_aspect_ratios))
            print(
                f"- {name}: enabled={pcfg.enabled} credential={bool(os.getenv(pcfg.credential_env(name), '').strip())} "
                f"registered={name in registered} max_duration={adapter_type.max_duration_seconds}s "
                f"cost_per_second={adapter_type.cost_per_second} aspect_ratios={ratios}"
            )

    if args.check_providers:
        monitor = HealthMonitor(probe_timeout_seconds=cfg.monitoring.probe_timeout_seconds)
        names = [name for name, pcfg in cfg.providers.items() if pcfg.enabled]
        print("provider-checks:")
        for item in monitor.perform_health_checks(names):
            print(
                f"- {item.provider}: healthy={item.is_healthy} "
                f"latency_ms={item.response_time_ms} error={item.error}"
            )

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
