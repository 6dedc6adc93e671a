"""
YAML configuration loader for the billing pipeline.

A YAML file supplies the base values and `${VAR}` / `${VAR:-default}`
references inside it are expanded from the environment. Programmatic
overrides are merged on top, and pydantic-settings fills anything still
unset from `INSURANCE_BILLING_*` environment variables.
"""

import os
import re
from pathlib import Path
from typing import Any

import yaml

from insurance_billing.config.models import BillingServiceConfig

DEFAULT_CONFIG_PATHS = [
    Path("config/billing.yaml"),
    Path("billing.yaml"),
    Path.home() / ".insurance_billing" / "billing.yaml",
]

_ENV_REFERENCE = re.compile(r"\$\{(?P<name>[^}:]+)(?::-(?P<default>[^}]*))?\}")


def _expand_env(node: Any) -> Any:
    """Expand environment references in every string of a parsed YAML tree."""
    if isinstance(node, dict):
        return {key: _expand_env(item) for key, item in node.items()}
    if isinstance(node, list):
        return [_expand_env(item) for item in node]
    if isinstance(node, str):
        return _ENV_REFERENCE.sub(
            lambda m: os.environ.get(m.group("name"), m.group("default") or ""),
            node,
        )
    return node


def load_yaml(path: Path) -> dict[str, Any]:
    """
    Read a YAML configuration file and expand environment references.

    An empty file yields an empty mapping.

    Args:
        path: Location of the YAML file

    Returns:
        The expanded configuration mapping

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the document is not a mapping at the top level
        yaml.YAMLError: If the YAML cannot be parsed
    """
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    document = yaml.safe_load(path.read_text()) or {}
    if not isinstance(document, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping, got {type(document).__name__}")

    return _expand_env(document)


def _find_default_config() -> Path | None:
    return next((path for path in DEFAULT_CONFIG_PATHS if path.exists()), None)


def load_config(
    config_path: str | Path | None = None,
    override_values: dict[str, Any] | None = None,
    allow_missing: bool = False,
) -> BillingServiceConfig:
    """
    Build the service configuration.

    Args:
        config_path: Explicit YAML file. When omitted, DEFAULT_CONFIG_PATHS
                    are tried in order.
        override_values: Nested values merged over the file contents
        allow_missing: When no file is given or found, use the model defaults
                      instead of failing

    Returns:
        Validated BillingServiceConfig

    Raises:
        FileNotFoundError: If an explicit file is missing, or none of the
            default locations exist and allow_missing is False
        ValidationError: If the merged values are invalid
    """
    path = Path(config_path) if config_path is not None else _find_default_config()

    if path is None and not allow_missing:
        searched = ", ".join(str(p) for p in DEFAULT_CONFIG_PATHS)
        raise FileNotFoundError(f"No configuration file found. Searched: {searched}")

    values = load_yaml(path) if path is not None else {}
    if override_values:
        values = _deep_merge(values, override_values)

    return BillingServiceConfig(**values)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge nested mappings, with override winning on conflicting leaves."""
    merged = dict(base)
    for key, value in override.items():
        existing = merged.get(key)
        if isinstance(existing, dict) and isinstance(value, dict):
            merged[key] = _deep_merge(existing, value)
        else:
            merged[key] = value
    return merged
