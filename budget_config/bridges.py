"""
Config -> Kernel Bridges.

Functions that convert an ``EngineConfig`` into kernel-compatible inputs.
They live in budget_config (the producer) because the kernel must never
import budget_config.

Usage:
    from budget_config import get_active_config
    from budget_config.bridges import build_engine_settings, configure_engine_logging

    config = get_active_config()
    configure_engine_logging(config)
    settings = build_engine_settings(config)
    service = DistributionService(session, settings=settings)
"""

from __future__ import annotations

from budget_config.schema import EngineConfig
from budget_kernel.domain.settings import EngineSettings
from budget_kernel.logging_config import configure_logging


def build_engine_settings(config: EngineConfig) -> EngineSettings:
    """Kernel settings carrying the configured knobs."""
    return EngineSettings(
        base_currency=config.base_currency,
        allow_account_overdraft=config.allow_account_overdraft,
        distribution_rounding_places=config.distribution_rounding_places,
        overdue_grace_days=config.overdue_grace_days,
    )


def configure_engine_logging(config: EngineConfig, stream=None, force: bool = False):
    """Configure kernel logging at the configured level (no-op if already configured, unless forced)."""
    return configure_logging(level=config.log_level, stream=stream, force=force)
