"""
Module: budget_kernel.models.account
Responsibility: ORM persistence for money-holding accounts (cash, debit,
    credit cards).
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - current_balance is a cached value mutated ONLY by BalanceService.
    - A credit account may link exactly one Fund (linked_fund_id); spending on
      the card financed from that fund creates CreditCardReserve rows.

Failure modes:
    - AccountNotFoundError when an operation references a missing account.
    - OptimisticLockError when two transactions update the same row.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from budget_kernel.db.base import TrackedBase, UUIDString, Versioned


class Account(Versioned, TrackedBase):
    """
    A bank account, cash wallet or credit card.

    Contract:
        Balances are signed: a credit card with debt carries a negative
        current_balance; repaying it moves the balance towards zero.

    Guarantees:
        - currency is a validated ISO 4217 code.
        - version increments on every UPDATE.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        Index("idx_account_credit", "is_credit"),
        Index("idx_account_linked_fund", "linked_fund_id"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    current_balance: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    is_credit: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Fund whose spending on this card accumulates reserves
    linked_fund_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("funds.id", ondelete="SET NULL"),
        nullable=True,
    )

    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<Account {self.name}: {self.current_balance} {self.currency}>"
