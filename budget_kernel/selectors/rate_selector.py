"""
Module: budget_kernel.selectors.rate_selector
Responsibility: Read exchange rates from the database and expose them as a
    ``RateProvider`` for the currency converter.

Lookup rule:
    For each (from, to) pair the newest rate with effective_at <= as_of
    wins; ties on effective_at are broken by the later created row id so
    the answer is deterministic.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import select

from budget_kernel.domain.conversion import StaticRateProvider
from budget_kernel.models.exchange_rate import ExchangeRate
from budget_kernel.selectors.base import BaseSelector


class RateSelector(BaseSelector[ExchangeRate]):
    """Database-backed rate provider."""

    def __init__(self, session, settings=None, as_of: datetime | None = None):
        super().__init__(session, settings)
        self._as_of = as_of

    def get_rate(self, from_currency: str, to_currency: str, as_of: datetime | None = None) -> Decimal | None:
        """Newest rate for the pair effective at ``as_of``; None if there is none."""
        as_of = as_of or self._as_of
        stmt = select(ExchangeRate.rate).where(
            ExchangeRate.from_currency == from_currency.upper(),
            ExchangeRate.to_currency == to_currency.upper(),
        )
        if as_of is not None:
            stmt = stmt.where(ExchangeRate.effective_at <= as_of)
        stmt = stmt.order_by(ExchangeRate.effective_at.desc(), ExchangeRate.id.desc()).limit(1)
        return self.session.scalar(stmt)

    def rate_table(self, as_of: datetime | None = None) -> StaticRateProvider:
        """
        Every pair's rate effective at ``as_of``, frozen into memory.

        The aggregator works against this table so one summary never mixes
        rates read at different moments.
        """
        as_of = as_of or self._as_of
        stmt = select(ExchangeRate)
        if as_of is not None:
            stmt = stmt.where(ExchangeRate.effective_at <= as_of)
        stmt = stmt.order_by(ExchangeRate.effective_at.desc(), ExchangeRate.id.desc())

        latest: dict[tuple[str, str], Decimal] = {}
        for row in self.session.scalars(stmt):
            latest.setdefault((row.from_currency, row.to_currency), row.rate)
        return StaticRateProvider(latest)
