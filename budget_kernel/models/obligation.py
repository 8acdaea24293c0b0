"""
Module: budget_kernel.models.obligation
Responsibility: ORM persistence for scheduled obligations: planned expenses
    and planned incomes.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - status follows pending -> confirmed | skipped; confirmed and skipped are
      terminal (enforced by ObligationService).
    - funded_amount <= planned_amount and at most one funding fund.
    - occurrence_date records the date a template produced the row and is
      never edited.  (recurring_template_id, occurrence_date) is unique, so
      expanding a template twice cannot duplicate an occurrence even after
      planned_date was moved.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from budget_kernel.db.base import TrackedBase, UUIDString, Versioned


class ObligationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SKIPPED = "skipped"


class PlannedExpense(Versioned, TrackedBase):
    """A scheduled payment awaiting confirmation or skip."""

    __tablename__ = "planned_expenses"

    __table_args__ = (
        UniqueConstraint(
            "recurring_template_id", "occurrence_date",
            name="uq_planned_expense_occurrence",
        ),
        Index("idx_planned_expense_budget", "budget_id"),
        Index("idx_planned_expense_status", "status"),
    )

    budget_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("budgets.id", ondelete="CASCADE"),
        nullable=False,
    )

    recurring_template_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("recurring_templates.id", ondelete="SET NULL"),
        nullable=True,
    )

    category_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    planned_amount: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    planned_date: Mapped[date] = mapped_column(nullable=False)

    # Set once by generation; null for manual obligations
    occurrence_date: Mapped[date | None] = mapped_column(nullable=True)

    status: Mapped[ObligationStatus] = mapped_column(
        String(10),
        nullable=False,
        default=ObligationStatus.PENDING.value,
    )

    account_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    fund_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    funded_amount: Mapped[Decimal | None] = mapped_column(nullable=True)

    actual_amount: Mapped[Decimal | None] = mapped_column(nullable=True)

    actual_expense_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("expenses.id", ondelete="SET NULL"),
        nullable=True,
    )

    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    def __repr__(self) -> str:
        return f"<PlannedExpense {self.name} {self.planned_date} ({self.status})>"


class PlannedIncome(Versioned, TrackedBase):
    """A scheduled income awaiting receipt or skip."""

    __tablename__ = "planned_incomes"

    __table_args__ = (
        UniqueConstraint(
            "recurring_template_id", "occurrence_date",
            name="uq_planned_income_occurrence",
        ),
        Index("idx_planned_income_budget", "budget_id"),
        Index("idx_planned_income_status", "status"),
    )

    budget_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("budgets.id", ondelete="CASCADE"),
        nullable=False,
    )

    recurring_template_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("recurring_templates.id", ondelete="SET NULL"),
        nullable=True,
    )

    source: Mapped[str] = mapped_column(String(255), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    expected_amount: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    planned_date: Mapped[date] = mapped_column(nullable=False)

    # Set once by generation; null for manual obligations
    occurrence_date: Mapped[date | None] = mapped_column(nullable=True)

    status: Mapped[ObligationStatus] = mapped_column(
        String(10),
        nullable=False,
        default=ObligationStatus.PENDING.value,
    )

    account_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    actual_amount: Mapped[Decimal | None] = mapped_column(nullable=True)

    actual_income_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("incomes.id", ondelete="SET NULL"),
        nullable=True,
    )

    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    def __repr__(self) -> str:
        return f"<PlannedIncome {self.name} {self.planned_date} ({self.status})>"
