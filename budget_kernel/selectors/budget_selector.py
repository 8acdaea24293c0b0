"""
Module: budget_kernel.selectors.budget_selector
Responsibility: Read-only monthly views: the budget snapshot, the
    planned-vs-actual summary, per-fund financing and distribution figures,
    and overdue payments.
Architecture position: Kernel > Selectors.  Builds plain-value snapshots
    from the database and hands them to the pure ``domain.aggregation``
    functions together with a converter over ``RateSelector``'s rate table.

Invariants enforced:
    - Everything in one summary is read within the caller's transaction, so
      a concurrent confirmation is either fully visible or not at all.
    - The cached summary for a month is keyed by (year, month) and depends
      on every row id it was built from; ``ReadViewCache.on_change`` drops it
      when any of those rows, or anything else in that month, changes.

Month membership:
    - budget items, planned expenses and planned incomes: by the month's
      Budget row.
    - expenses and incomes: by their own date.
    - distributions: by the date of the income they split.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import select

from budget_kernel.domain.aggregation import (
    BudgetSummary,
    FundDistributionLine,
    FundFinancingLine,
    aggregate,
    distribution_summary,
    fund_financing,
)
from budget_kernel.domain.cache import ReadViewCache
from budget_kernel.domain.conversion import CurrencyConverter
from budget_kernel.domain.dtos import (
    BudgetItemLine,
    BudgetSnapshot,
    DistributionLine,
    ExpenseLine,
    IncomeLine,
    OverduePayment,
    PlannedExpenseLine,
    PlannedIncomeLine,
)
from budget_kernel.domain.periods import BudgetPeriod
from budget_kernel.logging_config import get_logger
from budget_kernel.models.budget import Budget, BudgetItem
from budget_kernel.models.distribution import IncomeDistribution
from budget_kernel.models.ledger import Expense, Income
from budget_kernel.models.obligation import ObligationStatus, PlannedExpense, PlannedIncome
from budget_kernel.selectors.base import BaseSelector
from budget_kernel.selectors.rate_selector import RateSelector

logger = get_logger("selectors.budget")


class BudgetSelector(BaseSelector[Budget]):

    def converter(self, as_of: datetime | None = None) -> CurrencyConverter:
        rates = RateSelector(self.session, self._settings).rate_table(as_of)
        return CurrencyConverter(self._settings.base_currency, rates)

    def snapshot(self, year: int, month: int) -> BudgetSnapshot:
        """Plain-value copy of every row that feeds the month's summary."""
        period = BudgetPeriod(year, month)
        budget = self.session.scalars(
            select(Budget).where(Budget.year == year, Budget.month == month)
        ).first()

        items: tuple[BudgetItemLine, ...] = ()
        planned_expenses: tuple[PlannedExpenseLine, ...] = ()
        planned_incomes: tuple[PlannedIncomeLine, ...] = ()
        if budget is not None:
            items = tuple(
                BudgetItemLine(i.id, i.category_id, i.planned_amount, i.fund_id, i.fund_allocation)
                for i in self.session.scalars(
                    select(BudgetItem).where(BudgetItem.budget_id == budget.id).order_by(BudgetItem.id)
                )
            )
            planned_expenses = tuple(
                PlannedExpenseLine(
                    id=pe.id,
                    name=pe.name,
                    planned_amount=pe.planned_amount,
                    currency=pe.currency,
                    planned_date=pe.planned_date,
                    status=pe.status,
                    category_id=pe.category_id,
                    fund_id=pe.fund_id,
                    funded_amount=pe.funded_amount,
                    actual_amount=pe.actual_amount,
                )
                for pe in self.session.scalars(
                    select(PlannedExpense)
                    .where(PlannedExpense.budget_id == budget.id)
                    .order_by(PlannedExpense.planned_date, PlannedExpense.id)
                )
            )
            planned_incomes = tuple(
                PlannedIncomeLine(
                    id=pi.id,
                    name=pi.name,
                    expected_amount=pi.expected_amount,
                    currency=pi.currency,
                    planned_date=pi.planned_date,
                    status=pi.status,
                    actual_amount=pi.actual_amount,
                )
                for pi in self.session.scalars(
                    select(PlannedIncome)
                    .where(PlannedIncome.budget_id == budget.id)
                    .order_by(PlannedIncome.planned_date, PlannedIncome.id)
                )
            )

        expenses = tuple(
            ExpenseLine(e.id, e.amount, e.currency, e.expense_date, e.category_id, e.fund_id, e.funded_amount)
            for e in self.session.scalars(
                select(Expense)
                .where(Expense.expense_date.between(period.start, period.end))
                .order_by(Expense.expense_date, Expense.id)
            )
        )
        incomes = tuple(
            IncomeLine(i.id, i.amount, i.currency, i.income_date)
            for i in self.session.scalars(
                select(Income)
                .where(Income.income_date.between(period.start, period.end))
                .order_by(Income.income_date, Income.id)
            )
        )
        distributions = tuple(
            DistributionLine(
                id=d.id,
                income_id=d.income_id,
                fund_id=d.fund_id,
                currency=currency,
                planned_amount=d.planned_amount,
                actual_amount=d.actual_amount,
                is_completed=d.is_completed,
            )
            for d, currency in self.session.execute(
                select(IncomeDistribution, Income.currency)
                .join(Income, Income.id == IncomeDistribution.income_id)
                .where(Income.income_date.between(period.start, period.end))
                .order_by(IncomeDistribution.id)
            )
        )

        return BudgetSnapshot(
            year=year,
            month=month,
            items=items,
            planned_expenses=planned_expenses,
            planned_incomes=planned_incomes,
            expenses=expenses,
            incomes=incomes,
            distributions=distributions,
        )

    def summary(
        self,
        year: int,
        month: int,
        as_of: datetime | None = None,
        cache: ReadViewCache | None = None,
    ) -> BudgetSummary:
        """
        Planned-vs-actual summary in the base currency.

        With a ``cache`` the result is memoized under (year, month).
        Point-in-time summaries (``as_of`` given) are never cached.  A
        summary with rate warnings is logged on every call, cached or not.
        """
        if cache is None or as_of is not None:
            result = aggregate(self.snapshot(year, month), self.converter(as_of))
        else:
            result = cache.get((year, month))
            if result is None:
                snapshot = self.snapshot(year, month)
                result = aggregate(snapshot, self.converter())
                cache.put((year, month), result, depends_on=snapshot.entity_ids())
        self._warn_if_degraded(year, month, result)
        return result

    @staticmethod
    def _warn_if_degraded(year: int, month: int, result: BudgetSummary) -> None:
        if result.has_warnings:
            logger.warning(
                "summary_rates_degraded",
                extra={
                    "year": year,
                    "month": month,
                    "pairs": [f"{w.from_currency}/{w.to_currency}" for w in result.warnings],
                },
            )

    def fund_financing(self, year: int, month: int) -> tuple[FundFinancingLine, ...]:
        return fund_financing(self.snapshot(year, month), self.converter())

    def distribution_summary(self, year: int, month: int) -> tuple[FundDistributionLine, ...]:
        return distribution_summary(self.snapshot(year, month), self.converter())

    def overdue_payments(self, as_of: date, grace_days: int | None = None) -> tuple[OverduePayment, ...]:
        """
        Pending planned expenses whose date is more than ``grace_days``
        before ``as_of``, oldest first.
        """
        if grace_days is None:
            grace_days = self._settings.overdue_grace_days

        rows = self.session.scalars(
            select(PlannedExpense)
            .where(
                PlannedExpense.status == ObligationStatus.PENDING.value,
                PlannedExpense.planned_date < as_of,
            )
            .order_by(PlannedExpense.planned_date, PlannedExpense.id)
        )
        overdue = []
        for pe in rows:
            days = (as_of - pe.planned_date).days
            if days > grace_days:
                overdue.append(OverduePayment(
                    obligation_id=pe.id,
                    name=pe.name,
                    planned_date=pe.planned_date,
                    planned_amount=pe.planned_amount,
                    currency=pe.currency,
                    days_overdue=days,
                ))
        return tuple(overdue)

    def budget_id(self, year: int, month: int) -> UUID | None:
        return self.session.scalar(
            select(Budget.id).where(Budget.year == year, Budget.month == month)
        )
