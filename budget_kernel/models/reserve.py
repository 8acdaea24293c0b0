"""
Module: budget_kernel.models.reserve
Responsibility: ORM persistence for credit-card reserves and their
    application history.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - 0 <= remaining <= amount; remaining only ever decreases.
    - A reserve with remaining == 0 is fully applied and cannot be applied
      again.
    - Every decrease of remaining writes one ReserveApplication row.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from budget_kernel.db.base import TrackedBase, UUIDString, Versioned


class CreditCardReserve(Versioned, TrackedBase):
    """
    Marker that a fund financed spending on a linked credit card and still
    owes the card that amount until settled.
    """

    __tablename__ = "credit_card_reserves"

    __table_args__ = (
        Index("idx_reserve_card", "credit_card_account_id"),
        Index("idx_reserve_fund", "fund_id"),
        Index("idx_reserve_expense", "expense_id"),
    )

    credit_card_account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    fund_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("funds.id"),
        nullable=False,
    )

    expense_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("expenses.id", ondelete="SET NULL"),
        nullable=True,
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    remaining: Mapped[Decimal] = mapped_column(nullable=False)

    # Set when remaining reaches zero
    applied_at: Mapped[datetime | None] = mapped_column(nullable=True)

    @property
    def is_pending(self) -> bool:
        return self.remaining > 0

    def __repr__(self) -> str:
        return f"<CreditCardReserve {self.remaining}/{self.amount}>"


class ReserveApplication(TrackedBase):
    """Audit row: ``amount`` of a reserve was consumed, optionally by a repayment."""

    __tablename__ = "reserve_applications"

    __table_args__ = (
        Index("idx_reserve_application_reserve", "reserve_id"),
    )

    reserve_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("credit_card_reserves.id", ondelete="CASCADE"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    transfer_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("transfers.id", ondelete="SET NULL"),
        nullable=True,
    )

    applied_at: Mapped[datetime] = mapped_column(nullable=False)
