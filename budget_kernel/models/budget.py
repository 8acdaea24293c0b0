"""
Module: budget_kernel.models.budget
Responsibility: ORM persistence for monthly budgets and their category items.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One Budget per calendar month (uq_budget_period).
    - One BudgetItem per category within a budget (uq_budget_item_category).
    - Budget rows are created lazily by BudgetService.get_or_create.
"""

from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from budget_kernel.db.base import TrackedBase, UUIDString


class BudgetStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    CLOSED = "closed"


class Budget(TrackedBase):
    """The plan for one calendar month."""

    __tablename__ = "budgets"

    __table_args__ = (
        UniqueConstraint("year", "month", name="uq_budget_period"),
    )

    year: Mapped[int] = mapped_column(Integer, nullable=False)

    month: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[BudgetStatus] = mapped_column(
        String(10),
        nullable=False,
        default=BudgetStatus.DRAFT.value,
    )

    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    def __repr__(self) -> str:
        return f"<Budget {self.year}-{self.month:02d} ({self.status})>"


class BudgetItem(TrackedBase):
    """
    Planned spending for one category in one month, in the base currency.

    Contract:
        fund_allocation (when fund_id is set) is the part of planned_amount
        the user intends to finance from that fund.
    """

    __tablename__ = "budget_items"

    __table_args__ = (
        UniqueConstraint("budget_id", "category_id", name="uq_budget_item_category"),
        Index("idx_budget_item_budget", "budget_id"),
    )

    budget_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("budgets.id", ondelete="CASCADE"),
        nullable=False,
    )

    category_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    planned_amount: Mapped[Decimal] = mapped_column(nullable=False)

    fund_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("funds.id", ondelete="SET NULL"),
        nullable=True,
    )

    fund_allocation: Mapped[Decimal | None] = mapped_column(nullable=True)

    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)
