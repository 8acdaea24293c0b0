"""
Module: budget_kernel.models.fund
Responsibility: ORM persistence for savings funds, their asset balances, and
    the append-only journal of fund balance movements.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - (fund_id, asset_code) is unique: a fund holds one row per asset.
    - FundAsset.amount is mutated ONLY by BalanceService, and every mutation
      writes exactly one FundTransaction naming its counterpart (account,
      income, expense or distribution), so value entering or leaving a fund is
      always mirrored elsewhere.
    - FundTransaction rows are never updated or deleted by the engine.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from budget_kernel.db.base import TrackedBase, UUIDString, Versioned


class FundStatus(str, Enum):
    """Lifecycle of a fund."""

    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class FundTransactionType(str, Enum):
    """Why a fund asset balance changed."""

    DEPOSIT = "deposit"  # account -> fund
    WITHDRAWAL = "withdrawal"  # fund -> account
    CONTRIBUTION = "contribution"  # confirmed income distribution
    CONTRIBUTION_REVERSAL = "contribution_reversal"  # cancelled distribution
    EXPENSE_FUNDING = "expense_funding"  # fund finances an expense
    EXPENSE_FUNDING_REVERSAL = "expense_funding_reversal"  # expense deleted


class Fund(Versioned, TrackedBase):
    """A named savings or investment bucket."""

    __tablename__ = "funds"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    status: Mapped[FundStatus] = mapped_column(
        String(20),
        nullable=False,
        default=FundStatus.ACTIVE.value,
    )

    # Virtual funds are bookkeeping envelopes with no physical custody
    is_virtual: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    @property
    def is_active(self) -> bool:
        return self.status == FundStatus.ACTIVE

    def __repr__(self) -> str:
        return f"<Fund {self.name} ({self.status})>"


class FundAsset(Versioned, TrackedBase):
    """
    One asset balance held by a fund.

    Contract:
        For currency assets asset_code == currency and is_currency is True.
        Non-currency assets (shares, metals) use their own code and are never
        touched by distribution, funding or reserve logic.
    """

    __tablename__ = "fund_assets"

    __table_args__ = (
        UniqueConstraint("fund_id", "asset_code", name="uq_fund_asset_code"),
        Index("idx_fund_asset_fund", "fund_id"),
    )

    fund_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("funds.id", ondelete="CASCADE"),
        nullable=False,
    )

    asset_code: Mapped[str] = mapped_column(String(20), nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    is_currency: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    def __repr__(self) -> str:
        return f"<FundAsset {self.fund_id}/{self.asset_code}: {self.amount}>"


class FundTransaction(TrackedBase):
    """
    Journal row for a single fund asset balance change.

    Guarantees:
        - delta is signed (positive = money entered the fund).
        - balance_after is the asset amount immediately after this change.
    """

    __tablename__ = "fund_transactions"

    __table_args__ = (
        Index("idx_fund_tx_fund", "fund_id"),
        Index("idx_fund_tx_asset", "asset_id"),
    )

    fund_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("funds.id", ondelete="CASCADE"),
        nullable=False,
    )

    asset_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fund_assets.id", ondelete="CASCADE"),
        nullable=False,
    )

    transaction_type: Mapped[FundTransactionType] = mapped_column(
        String(40),
        nullable=False,
    )

    delta: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    balance_after: Mapped[Decimal] = mapped_column(nullable=False)

    # Counterparts; at least one is set by BalanceService
    account_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    income_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    expense_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    distribution_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
