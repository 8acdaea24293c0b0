"""
Configuration Loader (``budget_config.loader``).

Responsibility
--------------
Loads a YAML file and parses it into a frozen ``EngineConfig``.  Callers
use ``budget_config.get_active_config()``; the functions here are the
building blocks and test tooling.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or out-of-range values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from budget_config.schema import LOG_LEVELS, EngineConfig
from budget_kernel.domain.currency import CurrencyRegistry

_KNOWN_KEYS = frozenset({
    "config_id",
    "version",
    "base_currency",
    "allow_account_overdraft",
    "distribution_rounding_places",
    "overdue_grace_days",
    "log_level",
})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _parse_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    raise ValueError(f"{name} must be true or false, got {value!r}")


def _parse_int(name: str, value: Any, minimum: int = 0) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def parse_engine_config(data: dict[str, Any]) -> EngineConfig:
    """
    Build an ``EngineConfig`` from a parsed YAML mapping.

    Missing keys take the dataclass defaults.  The checksum covers the
    mapping exactly as given.
    """
    if not isinstance(data, dict):
        raise ValueError(f"Engine configuration must be a mapping, got {type(data).__name__}")

    unknown = set(data) - _KNOWN_KEYS
    if unknown:
        raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")

    defaults = EngineConfig()

    base_currency = str(data.get("base_currency", defaults.base_currency)).upper()
    if not CurrencyRegistry.is_valid(base_currency):
        raise ValueError(f"base_currency is not a known ISO 4217 code: {base_currency!r}")

    places = data.get("distribution_rounding_places")
    if places is not None:
        places = _parse_int("distribution_rounding_places", places)

    log_level = str(data.get("log_level", defaults.log_level)).upper()
    if log_level not in LOG_LEVELS:
        raise ValueError(f"log_level must be one of {LOG_LEVELS}, got {log_level!r}")

    return EngineConfig(
        base_currency=base_currency,
        allow_account_overdraft=_parse_bool(
            "allow_account_overdraft",
            data.get("allow_account_overdraft", defaults.allow_account_overdraft),
        ),
        distribution_rounding_places=places,
        overdue_grace_days=_parse_int(
            "overdue_grace_days", data.get("overdue_grace_days", defaults.overdue_grace_days)
        ),
        log_level=log_level,
        config_id=str(data.get("config_id", defaults.config_id)),
        version=_parse_int("version", data.get("version", defaults.version), minimum=1),
        checksum=compute_checksum(data),
    )
