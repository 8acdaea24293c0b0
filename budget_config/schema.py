"""
Configuration Schema (``budget_config.schema``).

Frozen dataclasses describing the engine configuration.  They carry no
behaviour; ``loader`` fills them from YAML and ``bridges`` turns them into
kernel inputs.
"""

from __future__ import annotations

from dataclasses import dataclass

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class EngineConfig:
    """
    Runtime knobs for one deployment.

    base_currency:
        Reporting currency every summary is expressed in.
    allow_account_overdraft:
        Whether non-credit accounts may be debited below zero.
    distribution_rounding_places:
        Decimal places for rule-proposed distributions; None follows the
        income currency.
    overdue_grace_days:
        Days after planned_date before a pending payment counts as overdue.
    log_level:
        Level passed to ``configure_logging``.
    """

    base_currency: str = "RUB"
    allow_account_overdraft: bool = False
    distribution_rounding_places: int | None = None
    overdue_grace_days: int = 0
    log_level: str = "INFO"
    config_id: str = "default"
    version: int = 1
    checksum: str = ""
