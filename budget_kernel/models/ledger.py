"""
Module: budget_kernel.models.ledger
Responsibility: ORM persistence for actual money movements: expenses, incomes,
    transfers between accounts and manual balance adjustments.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Rows are written and deleted only by LedgerService (and ReserveService
      for repayment transfers), which applies and reverses the matching
      balance effects through BalanceService.
    - Expense.charged_amount records exactly what was debited from the
      account, so deletion reverses the same amount.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from budget_kernel.db.base import TrackedBase, UUIDString


class Expense(TrackedBase):
    """
    Money spent from an account, optionally financed in part by a fund.

    Guarantees:
        - 0 <= funded_amount <= amount.
        - charged_amount == amount on credit cards (the card carries the full
          debt), amount - funded_amount otherwise.
    """

    __tablename__ = "expenses"

    __table_args__ = (
        Index("idx_expense_date", "expense_date"),
        Index("idx_expense_account", "account_id"),
        Index("idx_expense_category", "category_id"),
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    category_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    expense_date: Mapped[date] = mapped_column(nullable=False)

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    fund_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("funds.id"),
        nullable=True,
    )

    funded_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    charged_amount: Mapped[Decimal] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<Expense {self.amount} {self.currency} on {self.expense_date}>"


class Income(TrackedBase):
    """Money received into an account."""

    __tablename__ = "incomes"

    __table_args__ = (
        Index("idx_income_date", "income_date"),
        Index("idx_income_account", "account_id"),
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    source: Mapped[str] = mapped_column(String(255), nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    income_date: Mapped[date] = mapped_column(nullable=False)

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def __repr__(self) -> str:
        return f"<Income {self.source}: {self.amount} {self.currency}>"


class Transfer(TrackedBase):
    """Same-currency movement between two accounts."""

    __tablename__ = "transfers"

    __table_args__ = (
        Index("idx_transfer_date", "transfer_date"),
        Index("idx_transfer_from", "from_account_id"),
        Index("idx_transfer_to", "to_account_id"),
    )

    from_account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    to_account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    transfer_date: Mapped[date] = mapped_column(nullable=False)

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def __repr__(self) -> str:
        return f"<Transfer {self.amount} {self.currency} on {self.transfer_date}>"


class BalanceAdjustment(TrackedBase):
    """
    Manual correction of an account balance.

    ``amount`` is signed: positive adds to the balance, negative takes away.
    Deleting the row applies the opposite amount.
    """

    __tablename__ = "balance_adjustments"

    __table_args__ = (
        Index("idx_adjustment_account", "account_id"),
        Index("idx_adjustment_date", "adjustment_date"),
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    reason: Mapped[str] = mapped_column(String(500), nullable=False)

    adjustment_date: Mapped[date] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<BalanceAdjustment {self.amount:+} {self.currency}: {self.reason}>"
