"""
EngineSettings -- the kernel-side view of runtime configuration.

The kernel never reads configuration files.  ``budget_config.bridges``
builds an ``EngineSettings`` from the active ``EngineConfig``; services fall
back to the defaults below when constructed without one (tests, scripts).
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class EngineSettings:
    """Knobs consumed by services and selectors."""

    base_currency: str = "RUB"
    # Non-credit accounts refuse debits below zero unless this is set
    allow_account_overdraft: bool = False
    # None means "use the income currency's precision"
    distribution_rounding_places: int | None = None
    overdue_grace_days: int = 0


DEFAULT_SETTINGS = EngineSettings()
