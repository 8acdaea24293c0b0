"""
budget_config -- single public entrypoint for engine configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Returns a frozen ``EngineConfig``.

Architecture position:
    Configuration.  This package sits above ``budget_kernel``; the kernel
    MUST NEVER import from ``budget_config``.  ``bridges`` translates the
    config into ``EngineSettings`` for services and selectors.

Failure modes:
    - ``FileNotFoundError`` -- the requested file does not exist.
    - ``ValueError`` -- unknown keys or invalid values.

Every successful ``get_active_config()`` call emits a
``BUDGET_CONFIG_TRACE`` log entry with the config id, version and checksum.
"""

from __future__ import annotations

from pathlib import Path

from budget_config.bridges import build_engine_settings, configure_engine_logging
from budget_config.loader import load_yaml_file, parse_engine_config
from budget_config.schema import EngineConfig
from budget_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | str | None = None) -> EngineConfig:
    """
    Load and validate the engine configuration.

    Args:
        path: YAML file to read.  Defaults to the packaged defaults.yaml.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If validation fails.
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    config = parse_engine_config(load_yaml_file(config_path))

    _logger.info(
        "BUDGET_CONFIG_TRACE",
        extra={
            "trace_type": "BUDGET_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "base_currency": config.base_currency,
            "source": str(config_path),
        },
    )
    return config


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "EngineConfig",
    "build_engine_settings",
    "configure_engine_logging",
    "get_active_config",
]
