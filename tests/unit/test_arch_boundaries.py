from __future__ import annotations

from pathlib import Path


ROOT = Path(__file__).resolve().parents[2]
PROVIDERS = ROOT / "src/reelhive/core/providers"
CONCRETE_ADAPTERS = ("runway_adapter", "pika_adapter", "kling_adapter", "luma_adapter")


def test_router_depends_only_on_adapter_contract():
    content = (PROVIDERS / "router.py").read_text(encoding="utf-8")
    imported = [name for name in CONCRETE_ADAPTERS if name in content]
    assert imported == [], f"Router imported concrete adapters: {imported}"
    assert "httpx" not in content


def test_cache_and_service_do_not_import_concrete_adapters():
    disallowed: list[str] = []
    for py_file in [
        *(ROOT / "src/reelhive/core/cache").rglob("*.py"),
        *(ROOT / "src/reelhive/core/orchestrator").rglob("*.py"),
    ]:
        content = py_file.read_text(encoding="utf-8")
        if any(name in content for name in CONCRETE_ADAPTERS):
            disallowed.append(str(py_file))
    assert disallowed == [], f"Module bypassed the adapter factory: {disallowed}"


def test_adapters_do_not_depend_on_router():
    disallowed: list[str] = []
    for name in CONCRETE_ADAPTERS:
        content = (PROVIDERS / f"{name}.py").read_text(encoding="utf-8")
        if "providers.router" in content or "providers.health" in content:
            disallowed.append(name)
    assert disallowed == [], f"Adapter imported orchestration code: {disallowed}"
