"""Shared CLI helpers."""

from __future__ import annotations

import argparse


def base_parser(name: str, description: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=name, description=description)
    parser.add_argument("--config", default=None, help="Instance config file (falls back to $REELHIVE_CONFIG_FILE)")
    parser.add_argument("--log-level", default=None, help="Override telemetry.log_level")
    return parser
