"""Built-in platform defaults and override merging."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from clickstream_ingest.config.models import PlatformConfig

DEFAULTS_DIR = Path(__file__).parent / "defaults"


def load_defaults(name: str = "platform") -> dict[str, Any]:
    """Read ``defaults/<name>.yaml`` without resolving ``${VAR}`` references."""
    path = DEFAULTS_DIR / f"{name}.yaml"
    if not path.exists():
        msg = f"Defaults file '{name}' not found at {path}"
        raise FileNotFoundError(msg)
    with path.open() as f:
        return yaml.safe_load(f) or {}


def merge_configs(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge *overrides* over *base*, returning a new dict.

    Mappings merge key by key; any other value replaces the base value.  A
    ``None`` override (a section left blank in YAML, e.g. ``dlq:``) keeps the
    base value instead of erasing the section.
    """
    merged = dict(base)
    for key, value in overrides.items():
        current = merged.get(key)
        if value is None and key in merged:
            continue
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = merge_configs(current, value)
        else:
            merged[key] = value
    return merged


def build_platform_config(
    defaults: dict[str, Any],
    overrides: dict[str, Any] | None = None,
) -> PlatformConfig:
    """Validate *defaults* with *overrides* merged on top."""
    data = merge_configs(defaults, overrides) if overrides else defaults
    return PlatformConfig.model_validate(data)
