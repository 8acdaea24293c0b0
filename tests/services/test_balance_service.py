"""
Tests for BalanceService -- the single writer of account and fund balances.
"""

from decimal import Decimal

import pytest
from sqlalchemy import select

from budget_kernel.domain.settings import EngineSettings
from budget_kernel.exceptions import (
    CurrencyMismatchError,
    FundInactiveError,
    InsufficientAccountBalanceError,
    InsufficientFundBalanceError,
    InvalidAmountError,
)
from budget_kernel.models.fund import FundStatus, FundTransaction, FundTransactionType
from budget_kernel.services.balance_service import BalanceService


class TestAccountBalances:

    def test_credit_card_may_go_negative(self, balance_service, create_account):
        card = create_account(name="Card", is_credit=True)

        change = balance_service.debit_account(card.id, Decimal("700"), "RUB")

        assert (change.before, change.after) == (Decimal("0"), Decimal("-700"))

    def test_overdraft_refused_by_default(self, balance_service, create_account):
        account = create_account(balance=Decimal("50"))
        with pytest.raises(InsufficientAccountBalanceError) as exc_info:
            balance_service.debit_account(account.id, Decimal("51"), "RUB")
        assert exc_info.value.available == Decimal("50")

    def test_overdraft_allowed_by_settings(self, session, service_kwargs, create_account):
        account = create_account(balance=Decimal("50"))
        kwargs = {**service_kwargs, "settings": EngineSettings(allow_account_overdraft=True)}

        BalanceService(session, **kwargs).debit_account(account.id, Decimal("80"), "RUB")

        assert account.current_balance == Decimal("-30")

    def test_currency_checked(self, balance_service, create_account):
        account = create_account()
        with pytest.raises(CurrencyMismatchError):
            balance_service.credit_account(account.id, Decimal("1"), "USD")

    def test_amount_must_be_positive(self, balance_service, create_account):
        account = create_account()
        with pytest.raises(InvalidAmountError):
            balance_service.credit_account(account.id, Decimal("-1"), "RUB")


class TestFundBalances:

    def test_journal_tracks_balance_after(self, session, balance_service, create_fund):
        fund = create_fund()

        balance_service.credit_fund(fund.id, "RUB", Decimal("100"), FundTransactionType.DEPOSIT)
        balance_service.debit_fund(fund.id, "RUB", Decimal("30"), FundTransactionType.WITHDRAWAL)

        rows = session.scalars(
            select(FundTransaction)
            .where(FundTransaction.fund_id == fund.id)
            .order_by(FundTransaction.balance_after.desc())
        ).all()
        assert [(r.delta, r.balance_after) for r in rows] == [
            (Decimal("100"), Decimal("100")),
            (Decimal("-30"), Decimal("70")),
        ]

    def test_new_currency_creates_asset(self, balance_service, create_fund):
        fund = create_fund(currencies=())

        change = balance_service.credit_fund(fund.id, "USD", Decimal("5"), FundTransactionType.DEPOSIT)

        assert change.currency == "USD"
        assert balance_service.available_in_fund(fund.id, "USD") == Decimal("5")

    def test_completed_fund_refuses_inflow(self, balance_service, fund_service, create_fund):
        fund = create_fund()
        fund_service.set_status(fund.id, FundStatus.COMPLETED)

        with pytest.raises(FundInactiveError):
            balance_service.credit_fund(fund.id, "RUB", Decimal("1"), FundTransactionType.CONTRIBUTION)

    def test_reversal_into_paused_fund_allowed(self, balance_service, fund_service, create_fund):
        fund = create_fund()
        fund_service.set_status(fund.id, FundStatus.PAUSED)

        change = balance_service.credit_fund(
            fund.id, "RUB", Decimal("1"), FundTransactionType.EXPENSE_FUNDING_REVERSAL,
        )

        assert change.after == Decimal("1")

    def test_debit_from_missing_currency_asset(self, session, balance_service, create_fund):
        fund = create_fund(currencies=())

        with pytest.raises(InsufficientFundBalanceError) as exc_info:
            balance_service.debit_fund(fund.id, "USD", Decimal("1"), FundTransactionType.WITHDRAWAL)

        assert exc_info.value.available == Decimal("0")
        assert session.scalars(
            select(FundTransaction).where(FundTransaction.fund_id == fund.id)
        ).all() == []
