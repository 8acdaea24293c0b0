"""
Tests for ObligationService -- planned expenses and incomes.

Covers:
- pending -> confirmed | skipped transitions and their terminality
- confirmation with and without fund financing
- update_actual on confirmed obligations only
- linking to existing ledger rows
- editing and moving between monthly budgets
"""

from datetime import date
from decimal import Decimal

import pytest

from budget_kernel.domain.dtos import FundingRequest
from budget_kernel.exceptions import (
    AlreadyConfirmedError,
    AlreadySkippedError,
    CurrencyMismatchError,
    FundingExceedsAmountError,
    InsufficientFundBalanceError,
    InvalidStateError,
    ObligationNotFoundError,
    ValidationError,
)
from budget_kernel.models.ledger import Expense
from budget_kernel.models.obligation import ObligationStatus


@pytest.fixture
def checking(create_account):
    return create_account(name="Checking", balance=Decimal("50000"))


@pytest.fixture
def rent(obligation_service, checking):
    return obligation_service.create_expense(
        name="Rent",
        planned_amount=Decimal("30000"),
        currency="RUB",
        planned_date=date(2024, 3, 5),
        account_id=checking.id,
    )


class TestConfirmExpense:

    def test_confirm_records_expense(self, session, obligation_service, rent, checking):
        result = obligation_service.confirm_expense(rent.id)

        assert result.status == ObligationStatus.CONFIRMED.value
        assert result.actual_amount == Decimal("30000")
        assert rent.status == ObligationStatus.CONFIRMED.value
        assert rent.actual_expense_id == result.ledger_entry_id
        expense = session.get(Expense, result.ledger_entry_id)
        assert expense.expense_date == date(2024, 3, 5)
        assert checking.current_balance == Decimal("20000")

    def test_actual_amount_overrides_plan(self, obligation_service, rent, checking):
        obligation_service.confirm_expense(rent.id, actual_amount=Decimal("29500"))

        assert rent.actual_amount == Decimal("29500")
        assert checking.current_balance == Decimal("20500")

    def test_double_confirm_leaves_state_unchanged(self, obligation_service, rent, checking):
        obligation_service.confirm_expense(rent.id)

        with pytest.raises(AlreadyConfirmedError):
            obligation_service.confirm_expense(rent.id, actual_amount=Decimal("1"))

        assert rent.status == ObligationStatus.CONFIRMED.value
        assert rent.actual_amount == Decimal("30000")
        assert checking.current_balance == Decimal("20000")

    def test_confirm_after_skip(self, obligation_service, rent, checking):
        obligation_service.skip(rent.id)

        with pytest.raises(AlreadySkippedError):
            obligation_service.confirm_expense(rent.id)

        assert rent.status == ObligationStatus.SKIPPED.value
        assert rent.actual_amount is None
        assert checking.current_balance == Decimal("50000")

    def test_skip_after_confirm(self, obligation_service, rent):
        obligation_service.confirm_expense(rent.id)
        with pytest.raises(AlreadyConfirmedError):
            obligation_service.skip(rent.id)

    def test_needs_an_account(self, obligation_service):
        obligation = obligation_service.create_expense(
            "Gym", Decimal("2000"), "RUB", date(2024, 3, 1),
        )
        with pytest.raises(ValidationError):
            obligation_service.confirm_expense(obligation.id)

    def test_funded_confirmation(self, obligation_service, rent, checking, create_fund, fill_fund):
        fund = create_fund(name="Housing")
        fill_fund(fund, "10000")

        result = obligation_service.confirm_expense(
            rent.id, funding=FundingRequest(fund.id, Decimal("10000")),
        )

        assert result.funded_amount == Decimal("10000")
        assert rent.fund_id == fund.id
        assert checking.current_balance == Decimal("30000")

    def test_funding_exceeds_actual(self, obligation_service, rent, create_fund):
        fund = create_fund()
        with pytest.raises(FundingExceedsAmountError):
            obligation_service.confirm_expense(
                rent.id, actual_amount=Decimal("100"),
                funding=FundingRequest(fund.id, Decimal("101")),
            )
        assert rent.status == ObligationStatus.PENDING.value

    def test_fund_shortfall_keeps_pending(
        self, obligation_service, rent, checking, create_fund, fill_fund,
    ):
        fund = create_fund()
        fill_fund(fund, "100")

        with pytest.raises(InsufficientFundBalanceError):
            obligation_service.confirm_expense(
                rent.id, funding=FundingRequest(fund.id, Decimal("5000")),
            )

        assert rent.status == ObligationStatus.PENDING.value
        assert checking.current_balance == Decimal("50000")

    def test_logs_confirmation(self, obligation_service, rent, captured_logs):
        obligation_service.confirm_expense(rent.id)

        records = [r for r in captured_logs() if r["message"] == "obligation_confirmed"]
        assert records and records[0]["kind"] == "expense"


class TestPlannedIncome:

    def test_receive_income(self, obligation_service, checking):
        salary = obligation_service.create_income(
            "March salary", "Employer", Decimal("100000"), "RUB", date(2024, 3, 10),
            account_id=checking.id,
        )

        result = obligation_service.receive_income(salary.id, actual_amount=Decimal("98000"))

        assert result.actual_amount == Decimal("98000")
        assert salary.actual_income_id == result.ledger_entry_id
        assert checking.current_balance == Decimal("148000")

    def test_link_income_currency_mismatch(self, obligation_service, create_account, create_income):
        usd = create_account(name="USD", currency="USD")
        income = create_income(usd, "100")
        planned = obligation_service.create_income(
            "Bonus", "Employer", Decimal("100"), "RUB", date(2024, 3, 20),
        )

        with pytest.raises(CurrencyMismatchError):
            obligation_service.link_income(planned.id, income.id)


class TestUpdateActual:

    def test_requires_confirmed(self, obligation_service, rent):
        with pytest.raises(InvalidStateError):
            obligation_service.update_actual(rent.id, Decimal("1"))

    def test_keeps_confirmed(self, obligation_service, rent):
        obligation_service.confirm_expense(rent.id)

        updated = obligation_service.update_actual(rent.id, Decimal("31000"))

        assert updated.status == ObligationStatus.CONFIRMED.value
        assert updated.actual_amount == Decimal("31000")

    def test_ledger_row_keeps_booked_amount(
        self, session, obligation_service, budget_selector, rent, checking,
    ):
        result = obligation_service.confirm_expense(rent.id)

        obligation_service.update_actual(rent.id, Decimal("31000"))

        assert session.get(Expense, result.ledger_entry_id).amount == Decimal("30000")
        assert checking.current_balance == Decimal("20000")
        summary = budget_selector.summary(2024, 3)
        assert summary.confirmed_obligations.total == Decimal("31000")
        assert summary.total_actual == Decimal("30000")

    def test_unknown_id(self, obligation_service):
        from uuid import uuid4

        with pytest.raises(ObligationNotFoundError):
            obligation_service.update_actual(uuid4(), Decimal("1"))


class TestLinkAndEdit:

    def test_link_existing_expense(self, obligation_service, ledger_service, rent, checking):
        expense = ledger_service.record_expense(checking.id, Decimal("30000"), date(2024, 3, 4))

        result = obligation_service.link_expense(rent.id, expense.id)

        assert result.ledger_entry_id == expense.id
        assert rent.status == ObligationStatus.CONFIRMED.value
        assert checking.current_balance == Decimal("20000")

    def test_move_to_next_month(self, obligation_service, budget_service, rent):
        original_budget = rent.budget_id

        obligation_service.update_expense(rent.id, planned_date=date(2024, 4, 5))

        assert rent.budget_id != original_budget
        assert rent.budget_id == budget_service.find(2024, 4).id

    def test_confirmed_is_not_editable(self, obligation_service, rent):
        obligation_service.confirm_expense(rent.id)
        with pytest.raises(AlreadyConfirmedError):
            obligation_service.update_expense(rent.id, name="Flat")

    def test_unknown_field(self, obligation_service, rent):
        with pytest.raises(ValidationError):
            obligation_service.update_expense(rent.id, status="confirmed")

    def test_delete_keeps_actual_expense(self, session, obligation_service, rent):
        result = obligation_service.confirm_expense(rent.id)

        obligation_service.delete_expense(rent.id)

        assert session.get(Expense, result.ledger_entry_id) is not None
