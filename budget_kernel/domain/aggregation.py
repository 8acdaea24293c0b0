"""
Budget Aggregator -- monthly planned-vs-actual roll-up.

Responsibility:
    Compute the monthly summary (totals, obligation splits, income and
    distribution totals, and the two "safe to spend" figures) from a
    ``BudgetSnapshot``, normalizing every amount into the base currency.

Architecture position:
    Kernel > Domain -- pure functional core.  ``BudgetSelector`` builds the
    snapshot and the converter; this module never touches the database.

Invariants enforced:
    - available_for_planning = expected_income - total_planned
      - expected_fund_distributions
    - actually_available = received_income - total_actual
      - actual_fund_distributions
    - Pure: identical snapshot + converter produce equal ``BudgetSummary``
      values.  No cache lives here; see ``domain.cache`` for the explicit
      read-view cache.
    - Missing exchange rates degrade to rate 1 and appear in ``warnings``.

Conventions:
    - Budget item amounts are stored in the base currency and are summed
      as-is.
    - Skipped planned incomes are not expected income.
    - Received income counts every actual income dated in the month,
      independent of distribution state.
"""

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from budget_kernel.domain.conversion import ConversionTotals, CurrencyConverter, RateWarning
from budget_kernel.domain.currency import round_to_currency
from budget_kernel.domain.dtos import BudgetSnapshot

ZERO = Decimal("0")

PENDING = "pending"
CONFIRMED = "confirmed"


@dataclass(frozen=True)
class ObligationSplit:
    """A total split into the fund-financed part and the budget part."""

    total: Decimal
    from_fund: Decimal
    from_budget: Decimal


@dataclass(frozen=True)
class BudgetSummary:
    year: int
    month: int
    base_currency: str

    total_planned: Decimal
    total_actual: Decimal
    variance: Decimal

    pending_obligations: ObligationSplit
    confirmed_obligations: ObligationSplit

    expected_income: Decimal
    received_income: Decimal
    pending_income: Decimal

    expected_fund_distributions: Decimal
    actual_fund_distributions: Decimal

    available_for_planning: Decimal
    actually_available: Decimal

    warnings: tuple[RateWarning, ...] = ()

    @property
    def pending_obligation_total(self) -> Decimal:
        return self.pending_obligations.total

    @property
    def confirmed_obligation_total(self) -> Decimal:
        return self.confirmed_obligations.total

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)


@dataclass(frozen=True)
class FundFinancingLine:
    """How much of the month one fund is planned to finance and did finance."""

    fund_id: UUID
    planned_from_items: Decimal
    planned_from_obligations: Decimal
    used: Decimal

    @property
    def planned(self) -> Decimal:
        return self.planned_from_items + self.planned_from_obligations


@dataclass(frozen=True)
class FundDistributionLine:
    fund_id: UUID
    planned: Decimal
    actual: Decimal


def _split(totals: ConversionTotals, funded: ConversionTotals) -> ObligationSplit:
    return ObligationSplit(
        total=totals.total,
        from_fund=funded.total,
        from_budget=totals.total - funded.total,
    )


def aggregate(snapshot: BudgetSnapshot, converter: CurrencyConverter) -> BudgetSummary:
    """Compute the ``BudgetSummary`` for ``snapshot``."""
    base = converter.base_currency

    def rnd(value: Decimal) -> Decimal:
        return round_to_currency(value, base)

    total_planned = sum((item.planned_amount for item in snapshot.items), ZERO)

    actual = ConversionTotals(converter)
    actual.add_all((e.amount, e.currency) for e in snapshot.expenses)

    pending = ConversionTotals(converter)
    pending_funded = ConversionTotals(converter)
    confirmed = ConversionTotals(converter)
    confirmed_funded = ConversionTotals(converter)
    for pe in snapshot.planned_expenses:
        if pe.status == PENDING:
            pending.add(pe.planned_amount, pe.currency)
            pending_funded.add(pe.funded_amount or ZERO, pe.currency)
        elif pe.status == CONFIRMED:
            amount = pe.actual_amount if pe.actual_amount is not None else pe.planned_amount
            confirmed.add(amount, pe.currency)
            confirmed_funded.add(pe.funded_amount or ZERO, pe.currency)

    expected_income = ConversionTotals(converter)
    pending_income = ConversionTotals(converter)
    for pi in snapshot.planned_incomes:
        # Every planned income counts as expected, skipped ones included
        expected_income.add(pi.expected_amount, pi.currency)
        if pi.status == PENDING:
            pending_income.add(pi.expected_amount, pi.currency)

    received_income = ConversionTotals(converter)
    received_income.add_all((i.amount, i.currency) for i in snapshot.incomes)

    expected_dist = ConversionTotals(converter)
    actual_dist = ConversionTotals(converter)
    for d in snapshot.distributions:
        expected_dist.add(d.planned_amount, d.currency)
        if d.is_completed:
            actual_dist.add(d.actual_amount, d.currency)

    warnings: set[RateWarning] = set()
    for acc in (
        actual, pending, pending_funded, confirmed, confirmed_funded,
        expected_income, pending_income, received_income, expected_dist, actual_dist,
    ):
        warnings.update(acc.warnings)

    pending_split = _split(pending, pending_funded)
    confirmed_split = _split(confirmed, confirmed_funded)

    return BudgetSummary(
        year=snapshot.year,
        month=snapshot.month,
        base_currency=base,
        total_planned=rnd(total_planned),
        total_actual=rnd(actual.total),
        variance=rnd(total_planned - actual.total),
        pending_obligations=ObligationSplit(
            rnd(pending_split.total), rnd(pending_split.from_fund), rnd(pending_split.from_budget)
        ),
        confirmed_obligations=ObligationSplit(
            rnd(confirmed_split.total), rnd(confirmed_split.from_fund), rnd(confirmed_split.from_budget)
        ),
        expected_income=rnd(expected_income.total),
        received_income=rnd(received_income.total),
        pending_income=rnd(pending_income.total),
        expected_fund_distributions=rnd(expected_dist.total),
        actual_fund_distributions=rnd(actual_dist.total),
        available_for_planning=rnd(expected_income.total - total_planned - expected_dist.total),
        actually_available=rnd(received_income.total - actual.total - actual_dist.total),
        warnings=tuple(sorted(warnings)),
    )


def fund_financing(snapshot: BudgetSnapshot, converter: CurrencyConverter) -> tuple[FundFinancingLine, ...]:
    """Per-fund planned financing (items + pending obligations) and actual use."""
    base = converter.base_currency
    from_items: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
    from_obligations: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
    used: dict[UUID, Decimal] = defaultdict(lambda: ZERO)

    for item in snapshot.items:
        if item.fund_id is not None and item.fund_allocation:
            from_items[item.fund_id] += item.fund_allocation
    for pe in snapshot.planned_expenses:
        if pe.status == PENDING and pe.fund_id is not None and pe.funded_amount:
            from_obligations[pe.fund_id] += converter.to_base(pe.funded_amount, pe.currency)
    for e in snapshot.expenses:
        if e.fund_id is not None and e.funded_amount:
            used[e.fund_id] += converter.to_base(e.funded_amount, e.currency)

    fund_ids = sorted(set(from_items) | set(from_obligations) | set(used), key=str)
    return tuple(
        FundFinancingLine(
            fund_id=fid,
            planned_from_items=round_to_currency(from_items[fid], base),
            planned_from_obligations=round_to_currency(from_obligations[fid], base),
            used=round_to_currency(used[fid], base),
        )
        for fid in fund_ids
    )


def distribution_summary(snapshot: BudgetSnapshot, converter: CurrencyConverter) -> tuple[FundDistributionLine, ...]:
    """Per-fund planned vs. confirmed distributions for the month."""
    base = converter.base_currency
    planned: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
    actual: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
    for d in snapshot.distributions:
        planned[d.fund_id] += converter.to_base(d.planned_amount, d.currency)
        if d.is_completed and d.actual_amount is not None:
            actual[d.fund_id] += converter.to_base(d.actual_amount, d.currency)

    return tuple(
        FundDistributionLine(
            fund_id=fid,
            planned=round_to_currency(planned[fid], base),
            actual=round_to_currency(actual[fid], base),
        )
        for fid in sorted(planned, key=str)
    )
