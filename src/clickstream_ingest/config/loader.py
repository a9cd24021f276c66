"""Platform config loading: YAML files with ``${VAR}`` environment references.

Values may reference the environment as ``${VAR}`` (required) or
``${VAR:-default}``; a ``}`` inside a default is escaped as ``\\}``.  The
built-in defaults are resolved the same way, which is how the Lambda's
``DELIVERY_STREAM_NAME`` / ``AWS_REGION`` / ``SCHEMA_REGISTRY_URL`` settings
reach the config without any override file.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from clickstream_ingest.config.defaults import build_platform_config, load_defaults
from clickstream_ingest.config.models import PlatformConfig

CONFIG_ENV_VAR = "CLICKSTREAM_CONFIG"

_ENV_REF = re.compile(r"\$\{(?P<name>[^}:]+)(?::-(?P<default>(?:[^}\\]|\\.)*))?}")


def _substitute(text: str) -> str:
    def _lookup(match: re.Match[str]) -> str:
        name = match.group("name")
        if name in os.environ:
            return os.environ[name]
        default = match.group("default")
        if default is None:
            msg = f"Environment variable '{name}' is not set and no default provided"
            raise ValueError(msg)
        return default.replace("\\}", "}")

    return _ENV_REF.sub(_lookup, text)


def resolve_env_vars(data: Any) -> Any:
    """Resolve environment references in every string of parsed YAML *data*."""
    if isinstance(data, str):
        return _substitute(data)
    if isinstance(data, dict):
        return {key: resolve_env_vars(value) for key, value in data.items()}
    if isinstance(data, list):
        return [resolve_env_vars(item) for item in data]
    return data


def load_yaml(path: str | Path) -> dict[str, Any]:
    """Parse an override file; an empty file yields ``{}``."""
    p = Path(path)
    if not p.exists():
        msg = f"Config file not found: {p}"
        raise FileNotFoundError(msg)
    try:
        data = yaml.safe_load(p.read_text())
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        where = f" at line {mark.line + 1}, column {mark.column + 1}" if mark else ""
        msg = f"Failed to parse YAML in {p}{where}: {exc}"
        raise ValueError(msg) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"Expected a YAML mapping at top level in {p}, got {type(data).__name__}"
        raise TypeError(msg)
    return resolve_env_vars(data)  # type: ignore[no-any-return]


def load_platform_config(path: str | Path | None = None) -> PlatformConfig:
    """Build the platform config from the defaults plus an optional override file.

    Without *path*, ``$CLICKSTREAM_CONFIG`` names the override file, if set.
    """
    if path is None:
        path = os.environ.get(CONFIG_ENV_VAR) or None
    defaults = resolve_env_vars(load_defaults("platform"))
    overrides = load_yaml(path) if path is not None else None
    try:
        return build_platform_config(defaults, overrides)
    except ValidationError as exc:
        msg = f"Invalid platform config ({path or 'built-in defaults'}):\n{exc}"
        raise ValueError(msg) from exc
