"""
Property-based tests for the pure budget core (hypothesis).

Properties checked:
- Recurrence: monthly/yearly anchors clamp to month end, weekly dates keep
  their weekday, expansion stays inside the period and never repeats.
- Distribution rules: proposals never exceed the unallocated remainder and
  never name a fund twice.
- Aggregation: identical inputs give equal summaries and the two
  "safe to spend" identities hold.
"""

import calendar
from datetime import date
from decimal import Decimal
from uuid import UUID

from hypothesis import given, settings
from hypothesis import strategies as st

from budget_kernel.domain.aggregation import aggregate
from budget_kernel.domain.conversion import CurrencyConverter
from budget_kernel.domain.distribution_rules import propose_distributions
from budget_kernel.domain.dtos import (
    BudgetItemLine,
    BudgetSnapshot,
    DistributionLine,
    ExpenseLine,
    IncomeLine,
    RuleSpec,
)
from budget_kernel.domain.recurrence import MONTHLY, WEEKLY, YEARLY, RecurrenceRule, expand

amounts = st.decimals(
    min_value=Decimal("0.01"), max_value=Decimal("10000000"), places=2,
    allow_nan=False, allow_infinity=False,
)
years = st.integers(min_value=1990, max_value=2100)
months = st.integers(min_value=1, max_value=12)
currencies = st.sampled_from(["RUB", "USD", "EUR"])


def month_bounds(year: int, month: int) -> tuple[date, date]:
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


# =============================================================================
# Recurrence
# =============================================================================


class TestRecurrenceProperties:

    @given(year=years, month=months, day=st.integers(min_value=1, max_value=31))
    def test_monthly_clamps_to_month_end(self, year, month, day):
        start, end = month_bounds(year, month)

        dates = expand(RecurrenceRule(MONTHLY, day_of_month=day), start, end)

        assert dates == [date(year, month, min(day, end.day))]

    @given(year=years, month=months, day=st.integers(min_value=1, max_value=31))
    def test_yearly_occurs_once_per_year(self, year, month, day):
        dates = expand(
            RecurrenceRule(YEARLY, day_of_month=day, month_of_year=month),
            date(year, 1, 1), date(year, 12, 31),
        )

        assert len(dates) == 1
        assert dates[0].month == month
        assert dates[0].day == min(day, calendar.monthrange(year, month)[1])

    @given(year=years, month=months, weekday=st.integers(min_value=0, max_value=6))
    def test_weekly_keeps_weekday(self, year, month, weekday):
        start, end = month_bounds(year, month)

        dates = expand(RecurrenceRule(WEEKLY, day_of_week=weekday), start, end)

        assert 4 <= len(dates) <= 5
        assert all(d.weekday() == weekday for d in dates)
        assert all(start <= d <= end for d in dates)
        assert dates == sorted(set(dates))


# =============================================================================
# Distribution rules
# =============================================================================


@st.composite
def rule_specs(draw):
    count = draw(st.integers(min_value=0, max_value=8))
    rules = []
    for n in range(count):
        rule_type = draw(st.sampled_from(["percentage", "fixed"]))
        if rule_type == "percentage":
            value = draw(st.decimals(min_value=Decimal("0.01"), max_value=Decimal("100"), places=2))
        else:
            value = draw(amounts)
        fund = UUID(int=draw(st.integers(min_value=1, max_value=5)))
        rules.append(RuleSpec(UUID(int=100 + n), fund, rule_type, value, draw(st.integers(0, 3))))
    return rules


class TestDistributionRuleProperties:

    @given(income=amounts, rules=rule_specs(), planned_share=st.integers(min_value=0, max_value=100))
    def test_proposals_fit_unallocated(self, income, rules, planned_share):
        already = (income * planned_share / 100).quantize(Decimal("0.01"))

        proposals = propose_distributions(income, "RUB", rules, already_planned=already)

        assert sum((p.planned_amount for p in proposals), Decimal("0")) <= income - already
        assert all(p.planned_amount > 0 for p in proposals)
        funds = [p.fund_id for p in proposals]
        assert len(funds) == len(set(funds))


# =============================================================================
# Aggregation
# =============================================================================


@st.composite
def snapshots(draw):
    n = iter(range(1, 10_000))

    def line_day():
        return date(2024, 3, draw(st.integers(min_value=1, max_value=31)))

    items = tuple(
        BudgetItemLine(UUID(int=next(n)), UUID(int=next(n)), draw(amounts))
        for _ in range(draw(st.integers(0, 4)))
    )
    expenses = tuple(
        ExpenseLine(UUID(int=next(n)), draw(amounts), draw(currencies), line_day())
        for _ in range(draw(st.integers(0, 6)))
    )
    incomes = tuple(
        IncomeLine(UUID(int=next(n)), draw(amounts), draw(currencies), line_day())
        for _ in range(draw(st.integers(0, 3)))
    )
    distributions = []
    for income in incomes:
        if draw(st.booleans()):
            planned = draw(amounts)
            completed = draw(st.booleans())
            distributions.append(DistributionLine(
                UUID(int=next(n)), income.id, UUID(int=next(n)), income.currency,
                planned, planned if completed else None, completed,
            ))
    return BudgetSnapshot(
        2024, 3, items=items, expenses=expenses, incomes=incomes, distributions=tuple(distributions),
    )


RATES = {("USD", "RUB"): Decimal("90.5")}


class TestAggregationProperties:

    @settings(max_examples=50)
    @given(snapshot=snapshots())
    def test_recompute_is_equal(self, snapshot):
        first = aggregate(snapshot, CurrencyConverter("RUB", RATES))
        second = aggregate(snapshot, CurrencyConverter("RUB", dict(RATES)))

        assert first == second

    @settings(max_examples=50)
    @given(snapshot=snapshots())
    def test_actually_available_identity(self, snapshot):
        summary = aggregate(snapshot, CurrencyConverter("RUB", RATES))

        expected = summary.received_income - summary.total_actual - summary.actual_fund_distributions
        assert abs(summary.actually_available - expected) <= Decimal("0.02")

    @settings(max_examples=50)
    @given(snapshot=snapshots())
    def test_only_eur_degrades(self, snapshot):
        summary = aggregate(snapshot, CurrencyConverter("RUB", RATES))

        assert {w.from_currency for w in summary.warnings} <= {"EUR"}
