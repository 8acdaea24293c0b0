"""
Tests for BudgetSelector -- monthly summary, cache wiring and overdue payments.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from budget_kernel.domain.cache import ReadViewCache


@pytest.fixture
def checking(create_account):
    return create_account(name="Checking", balance=Decimal("10000"))


@pytest.fixture
def cache(notifier):
    cache = ReadViewCache()
    notifier.subscribe(cache.on_change)
    yield cache
    notifier.unsubscribe(cache.on_change)


class TestSummary:

    def test_planned_versus_actual(
        self, budget_selector, budget_service, obligation_service, ledger_service,
        checking, create_income,
    ):
        budget_service.upsert_item(2024, 3, uuid4(), Decimal("60000"))
        obligation_service.create_income(
            "Salary", "Employer", Decimal("100000"), "RUB", date(2024, 3, 10),
        )
        rent = obligation_service.create_expense(
            "Rent", Decimal("30000"), "RUB", date(2024, 3, 5), account_id=checking.id,
        )
        create_income(checking, "100000")
        obligation_service.confirm_expense(rent.id)
        ledger_service.record_expense(checking.id, Decimal("500"), date(2024, 3, 20))
        ledger_service.record_expense(checking.id, Decimal("700"), date(2024, 4, 1))

        summary = budget_selector.summary(2024, 3)

        assert summary.total_planned == Decimal("60000")
        assert summary.total_actual == Decimal("30500")
        assert summary.variance == Decimal("29500")
        assert summary.confirmed_obligations.total == Decimal("30000")
        assert summary.expected_income == Decimal("100000")
        assert summary.received_income == Decimal("100000")
        assert summary.available_for_planning == Decimal("40000")
        assert summary.actually_available == Decimal("69500")
        assert summary.warnings == ()

    def test_recomputation_is_equal(self, budget_selector, checking, create_income):
        create_income(checking, "1234.56")

        assert budget_selector.summary(2024, 3) == budget_selector.summary(2024, 3)

    def test_missing_rate_is_a_warning(
        self, budget_selector, ledger_service, create_account, captured_logs,
    ):
        usd = create_account(name="USD cash", currency="USD", balance=Decimal("100"))
        ledger_service.record_expense(usd.id, Decimal("25"), date(2024, 3, 3))

        summary = budget_selector.summary(2024, 3)

        assert summary.total_actual == Decimal("25")
        assert [(w.from_currency, w.to_currency) for w in summary.warnings] == [("USD", "RUB")]
        assert any(r["message"] == "summary_rates_degraded" for r in captured_logs())

    def test_empty_month(self, budget_selector):
        summary = budget_selector.summary(2030, 1)

        assert summary.total_planned == Decimal("0")
        assert summary.actually_available == Decimal("0")


class TestCachedSummary:

    def test_cache_hit(self, budget_selector, cache, checking, create_income):
        create_income(checking, "1000")

        first = budget_selector.summary(2024, 3, cache=cache)

        assert budget_selector.summary(2024, 3, cache=cache) is first

    def test_cache_hit_still_logs_degraded_rates(
        self, budget_selector, ledger_service, cache, create_account, captured_logs,
    ):
        usd = create_account(name="USD cash", currency="USD", balance=Decimal("100"))
        ledger_service.record_expense(usd.id, Decimal("25"), date(2024, 3, 3))

        first = budget_selector.summary(2024, 3, cache=cache)
        second = budget_selector.summary(2024, 3, cache=cache)

        assert second is first
        degraded = [r for r in captured_logs() if r["message"] == "summary_rates_degraded"]
        assert len(degraded) == 2
        assert degraded[1]["pairs"] == ["USD/RUB"]

    def test_change_in_month_invalidates(
        self, budget_selector, ledger_service, cache, checking, create_income,
    ):
        create_income(checking, "1000")
        before = budget_selector.summary(2024, 3, cache=cache)

        ledger_service.record_expense(checking.id, Decimal("100"), date(2024, 3, 12))
        after = budget_selector.summary(2024, 3, cache=cache)

        assert after is not before
        assert after.total_actual == Decimal("100")

    def test_change_in_other_month_keeps_entry(
        self, budget_selector, ledger_service, cache, checking,
    ):
        march = budget_selector.summary(2024, 3, cache=cache)

        ledger_service.record_expense(checking.id, Decimal("100"), date(2024, 4, 2))

        assert budget_selector.summary(2024, 3, cache=cache) is march


class TestFundViews:

    def test_fund_financing_and_distribution_summary(
        self, budget_selector, budget_service, distribution_service, ledger_service,
        create_fund, fill_fund, checking, create_income,
    ):
        fund = create_fund()
        fill_fund(fund, "5000")
        budget_service.upsert_item(
            2024, 3, uuid4(), Decimal("8000"), fund_id=fund.id, fund_allocation=Decimal("3000"),
        )
        ledger_service.record_expense(
            checking.id, Decimal("2000"), date(2024, 3, 8),
            fund_id=fund.id, funded_amount=Decimal("1200"),
        )
        income = create_income(checking, "10000")
        distribution = distribution_service.plan(income.id, fund.id, Decimal("1500"))
        distribution_service.confirm(distribution.id, actual_amount=Decimal("1400"))

        (financing,) = budget_selector.fund_financing(2024, 3)
        assert financing.fund_id == fund.id
        assert financing.planned_from_items == Decimal("3000")
        assert financing.used == Decimal("1200")

        (line,) = budget_selector.distribution_summary(2024, 3)
        assert (line.planned, line.actual) == (Decimal("1500"), Decimal("1400"))


class TestOverduePayments:

    def test_pending_before_as_of(self, budget_selector, obligation_service, checking):
        old = obligation_service.create_expense("Phone", Decimal("500"), "RUB", date(2024, 3, 1))
        recent = obligation_service.create_expense("Gym", Decimal("2000"), "RUB", date(2024, 3, 14))
        paid = obligation_service.create_expense(
            "Rent", Decimal("100"), "RUB", date(2024, 3, 2), account_id=checking.id,
        )
        obligation_service.confirm_expense(paid.id)
        obligation_service.create_expense("Insurance", Decimal("900"), "RUB", date(2024, 3, 15))

        overdue = budget_selector.overdue_payments(date(2024, 3, 15))

        assert [(o.obligation_id, o.days_overdue) for o in overdue] == [(old.id, 14), (recent.id, 1)]

    def test_grace_days(self, budget_selector, obligation_service):
        old = obligation_service.create_expense("Phone", Decimal("500"), "RUB", date(2024, 3, 1))
        obligation_service.create_expense("Gym", Decimal("2000"), "RUB", date(2024, 3, 14))

        overdue = budget_selector.overdue_payments(date(2024, 3, 15), grace_days=3)

        assert [o.obligation_id for o in overdue] == [old.id]
