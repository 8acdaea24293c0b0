"""
Module: budget_kernel.models.exchange_rate
Responsibility: ORM persistence for currency exchange rates consulted by the
    budget aggregator.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - rate > 0 (ck_exchange_rate_positive).
    - Rates are stored at 18 decimal places.

Failure modes:
    - A missing pair is not an error here; the converter degrades to rate 1
      and flags RATE_UNAVAILABLE.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from budget_kernel.db.base import TrackedBase


class ExchangeRate(TrackedBase):
    """
    One observed rate: 1 unit of from_currency = rate units of to_currency.
    """

    __tablename__ = "exchange_rates"

    __table_args__ = (
        Index("idx_rate_lookup", "from_currency", "to_currency", "effective_at"),
        CheckConstraint("rate > 0", name="ck_exchange_rate_positive"),
    )

    from_currency: Mapped[str] = mapped_column(String(3), nullable=False)

    to_currency: Mapped[str] = mapped_column(String(3), nullable=False)

    rate: Mapped[Decimal] = mapped_column(Numeric(38, 18), nullable=False)

    effective_at: Mapped[datetime] = mapped_column(nullable=False)

    source: Mapped[str | None] = mapped_column(String(50), nullable=True)

    def __repr__(self) -> str:
        return f"<ExchangeRate {self.from_currency}/{self.to_currency}: {self.rate}>"
