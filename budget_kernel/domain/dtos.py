"""
Data Transfer Objects for the budget kernel.

Frozen dataclasses passed between layers: snapshot lines read by selectors
and fed to the aggregator, requests accepted by services, and the results
services return.  None of them hold ORM instances.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

ZERO = Decimal("0")


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FundingRequest:
    """Draw ``amount`` from the fund's currency asset when confirming."""

    fund_id: UUID
    amount: Decimal


# ---------------------------------------------------------------------------
# Balance effects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BalanceChange:
    """Before/after of one account or fund-asset balance."""

    holder_type: str  # "account" | "fund_asset"
    holder_id: UUID
    currency: str
    before: Decimal
    after: Decimal

    @property
    def delta(self) -> Decimal:
        return self.after - self.before


# ---------------------------------------------------------------------------
# Obligations
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConfirmResult:
    """Outcome of confirming (or receiving) an obligation."""

    obligation_id: UUID
    status: str
    actual_amount: Decimal
    funded_amount: Decimal = ZERO
    ledger_entry_id: UUID | None = None
    balance_changes: tuple[BalanceChange, ...] = ()


@dataclass(frozen=True)
class GenerateResult:
    """What one generate-for-period run did."""

    budget_id: UUID
    year: int
    month: int
    created_expense_ids: tuple[UUID, ...] = ()
    created_income_ids: tuple[UUID, ...] = ()
    existing_count: int = 0

    @property
    def created_count(self) -> int:
        return len(self.created_expense_ids) + len(self.created_income_ids)


# ---------------------------------------------------------------------------
# Distributions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DistributionResult:
    """Outcome of confirming or cancelling a distribution."""

    distribution_id: UUID
    is_completed: bool
    amount: Decimal
    balance_changes: tuple[BalanceChange, ...] = ()


@dataclass(frozen=True)
class ProposedDistribution:
    fund_id: UUID
    planned_amount: Decimal
    rule_id: UUID | None = None


@dataclass(frozen=True)
class RuleSpec:
    """Plain view of a DistributionRule for the pure rule engine."""

    rule_id: UUID
    fund_id: UUID
    rule_type: str
    value: Decimal
    priority: int


# ---------------------------------------------------------------------------
# Reserves
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReserveView:
    id: UUID
    credit_card_account_id: UUID
    fund_id: UUID
    expense_id: UUID | None
    amount: Decimal
    remaining: Decimal
    created_at: datetime | None = None


@dataclass(frozen=True)
class PendingReserves:
    reserves: tuple[ReserveView, ...]
    total_pending: Decimal

    @property
    def count(self) -> int:
        return len(self.reserves)


@dataclass(frozen=True)
class AppliedReserves:
    """How many reserves were touched and how much of them was consumed."""

    count: int
    reserved_amount: Decimal
    reserve_ids: tuple[UUID, ...] = ()


@dataclass(frozen=True)
class RepayResult:
    transfer_id: UUID
    amount: Decimal
    applied_reserves: AppliedReserves
    balance_changes: tuple[BalanceChange, ...] = ()


# ---------------------------------------------------------------------------
# Budget snapshot (input of the aggregator)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BudgetItemLine:
    """Planned category amount, already in the base currency."""

    id: UUID
    category_id: UUID
    planned_amount: Decimal
    fund_id: UUID | None = None
    fund_allocation: Decimal | None = None


@dataclass(frozen=True)
class PlannedExpenseLine:
    id: UUID
    name: str
    planned_amount: Decimal
    currency: str
    planned_date: date
    status: str
    category_id: UUID | None = None
    fund_id: UUID | None = None
    funded_amount: Decimal | None = None
    actual_amount: Decimal | None = None


@dataclass(frozen=True)
class PlannedIncomeLine:
    id: UUID
    name: str
    expected_amount: Decimal
    currency: str
    planned_date: date
    status: str
    actual_amount: Decimal | None = None


@dataclass(frozen=True)
class ExpenseLine:
    id: UUID
    amount: Decimal
    currency: str
    expense_date: date
    category_id: UUID | None = None
    fund_id: UUID | None = None
    funded_amount: Decimal = ZERO


@dataclass(frozen=True)
class IncomeLine:
    id: UUID
    amount: Decimal
    currency: str
    income_date: date


@dataclass(frozen=True)
class DistributionLine:
    id: UUID
    income_id: UUID
    fund_id: UUID
    currency: str
    planned_amount: Decimal
    actual_amount: Decimal | None
    is_completed: bool


@dataclass(frozen=True)
class BudgetSnapshot:
    """Everything the aggregator needs for one month, as plain values."""

    year: int
    month: int
    items: tuple[BudgetItemLine, ...] = ()
    planned_expenses: tuple[PlannedExpenseLine, ...] = ()
    planned_incomes: tuple[PlannedIncomeLine, ...] = ()
    expenses: tuple[ExpenseLine, ...] = ()
    incomes: tuple[IncomeLine, ...] = ()
    distributions: tuple[DistributionLine, ...] = ()

    def entity_ids(self) -> frozenset[UUID]:
        """Ids of every row this snapshot was built from."""
        ids: set[UUID] = set()
        for group in (
            self.items,
            self.planned_expenses,
            self.planned_incomes,
            self.expenses,
            self.incomes,
            self.distributions,
        ):
            ids.update(line.id for line in group)
        return frozenset(ids)


@dataclass(frozen=True)
class OverduePayment:
    obligation_id: UUID
    name: str
    planned_date: date
    planned_amount: Decimal
    currency: str
    days_overdue: int


@dataclass(frozen=True)
class ChangeEvent:
    """Published by services after a successful mutation."""

    entity_type: str
    entity_id: UUID
    action: str
    periods: tuple[tuple[int, int], ...] = field(default_factory=tuple)
