"""Tests for FundService -- fund lifecycle and account <-> fund moves."""

from decimal import Decimal

import pytest
from sqlalchemy import select

from budget_kernel.exceptions import (
    FundInactiveError,
    InsufficientFundBalanceError,
    ValidationError,
)
from budget_kernel.models.fund import FundAsset, FundStatus


class TestCreateFund:

    def test_creates_currency_assets(self, session, fund_service):
        fund = fund_service.create_fund("Emergency", currencies=("RUB", "usd", "RUB"))

        assets = session.scalars(select(FundAsset).where(FundAsset.fund_id == fund.id)).all()
        assert fund.status == FundStatus.ACTIVE.value
        assert sorted(a.currency for a in assets) == ["RUB", "USD"]
        assert all(a.is_currency for a in assets)

    def test_add_non_currency_asset(self, fund_service):
        fund = fund_service.create_fund("Brokerage", currencies=("USD",))
        asset = fund_service.add_asset(fund.id, "VOO", "USD", amount=Decimal("1200"))

        assert not asset.is_currency
        assert asset.amount == Decimal("1200")

    def test_duplicate_asset(self, fund_service):
        fund = fund_service.create_fund("Brokerage", currencies=("USD",))
        with pytest.raises(ValidationError):
            fund_service.add_asset(fund.id, "USD", "USD", is_currency=True)


class TestMovements:

    def test_deposit_and_withdraw(self, fund_service, create_account, create_fund):
        account = create_account(balance=Decimal("1000"))
        fund = create_fund()

        account_change, fund_change = fund_service.deposit(fund.id, account.id, Decimal("600"))
        assert account_change.delta == Decimal("-600")
        assert fund_change.after == Decimal("600")

        fund_change, account_change = fund_service.withdraw(fund.id, account.id, Decimal("100"))
        assert fund_change.after == Decimal("500")
        assert account.current_balance == Decimal("500")

    def test_withdraw_more_than_held(self, fund_service, create_account, create_fund):
        account = create_account()
        fund = create_fund()
        with pytest.raises(InsufficientFundBalanceError):
            fund_service.withdraw(fund.id, account.id, Decimal("1"))

    def test_paused_fund_refuses_deposit_but_allows_withdrawal(
        self, fund_service, create_account, create_fund, fill_fund,
    ):
        account = create_account(balance=Decimal("1000"))
        fund = create_fund()
        fill_fund(fund, "300")
        fund_service.set_status(fund.id, FundStatus.PAUSED)

        with pytest.raises(FundInactiveError):
            fund_service.deposit(fund.id, account.id, Decimal("100"))

        fund_service.withdraw(fund.id, account.id, Decimal("300"))
        assert account.current_balance == Decimal("1300")


class TestLinkCreditCard:

    def test_link_and_unlink(self, fund_service, create_account, create_fund):
        card = create_account(name="Card", is_credit=True)
        fund = create_fund()

        assert fund_service.link_credit_card(card.id, fund.id).linked_fund_id == fund.id
        assert fund_service.link_credit_card(card.id, None).linked_fund_id is None

    def test_only_credit_accounts(self, fund_service, create_account, create_fund):
        account = create_account()
        fund = create_fund()
        with pytest.raises(ValidationError):
            fund_service.link_credit_card(account.id, fund.id)
