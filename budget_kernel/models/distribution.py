"""
Module: budget_kernel.models.distribution
Responsibility: ORM persistence for income distributions into funds and the
    standing rules that propose them.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - For one income, the sum of planned_amount never exceeds income.amount
      (enforced by DistributionService on plan/update).
    - actual_amount and source_account_id are set iff is_completed.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from budget_kernel.db.base import TrackedBase, UUIDString, Versioned


class IncomeDistribution(Versioned, TrackedBase):
    """The share of one income allocated to one fund."""

    __tablename__ = "income_distributions"

    __table_args__ = (
        Index("idx_distribution_income", "income_id"),
        Index("idx_distribution_fund", "fund_id"),
    )

    income_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("incomes.id", ondelete="CASCADE"),
        nullable=False,
    )

    fund_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("funds.id"),
        nullable=False,
    )

    planned_amount: Mapped[Decimal] = mapped_column(nullable=False)

    actual_amount: Mapped[Decimal | None] = mapped_column(nullable=True)

    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Account debited at confirmation; cancel credits it back
    source_account_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        state = "completed" if self.is_completed else "pending"
        return f"<IncomeDistribution {self.planned_amount} -> {self.fund_id} ({state})>"


class DistributionRuleType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class DistributionRule(TrackedBase):
    """
    Standing instruction: send a percentage or fixed amount of every income
    to a fund.  Lower priority numbers are applied first.
    """

    __tablename__ = "distribution_rules"

    __table_args__ = (
        Index("idx_distribution_rule_priority", "priority"),
    )

    fund_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("funds.id", ondelete="CASCADE"),
        nullable=False,
    )

    rule_type: Mapped[DistributionRuleType] = mapped_column(String(20), nullable=False)

    # Percent (0..100] for percentage rules, an amount in the income's
    # currency for fixed rules
    value: Mapped[Decimal] = mapped_column(nullable=False)

    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
