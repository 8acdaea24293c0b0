"""
BalanceService -- the only mutation path for account and fund balances.

Responsibility:
    Credit and debit ``Account.current_balance`` and ``FundAsset.amount``,
    enforcing currency agreement, non-negative fund assets and the account
    overdraft policy, and journaling every fund movement as a
    ``FundTransaction``.

Architecture position:
    Kernel > Services.  Called by LedgerService, FundService,
    DistributionService and ReserveService, always inside their
    ``_atomic`` block; it does not open savepoints of its own.

Invariants enforced:
    - A fund asset never goes below zero: ``InsufficientFundBalanceError``.
    - A non-credit account never goes below zero unless
      ``EngineSettings.allow_account_overdraft``: ``InsufficientAccountBalanceError``.
    - Credit accounts may go negative (debt).
    - Every changed row is read with ``FOR UPDATE`` (PostgreSQL) and written
      under its optimistic ``version`` check.
    - Paused or completed funds do not receive new money (deposits and
      contributions); reversals and withdrawals are always allowed.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from budget_kernel.domain.dtos import BalanceChange
from budget_kernel.exceptions import (
    AccountNotFoundError,
    CurrencyMismatchError,
    FundInactiveError,
    FundNotFoundError,
    InsufficientAccountBalanceError,
    InsufficientFundBalanceError,
    InvalidAmountError,
)
from budget_kernel.logging_config import get_logger
from budget_kernel.models.account import Account
from budget_kernel.models.fund import (
    Fund,
    FundAsset,
    FundStatus,
    FundTransaction,
    FundTransactionType,
)
from budget_kernel.services.base import BaseService

logger = get_logger("services.balance")

ZERO = Decimal("0")

_INFLOW_TYPES = frozenset({
    FundTransactionType.DEPOSIT,
    FundTransactionType.CONTRIBUTION,
})


def _require_positive(field: str, amount: Decimal) -> None:
    if amount is None or amount <= 0:
        raise InvalidAmountError(field, amount)


class BalanceService(BaseService):
    """Row-locked balance mutations with a journal for funds."""

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def lock_account(self, account_id: UUID) -> Account:
        account = self.session.get(Account, account_id, with_for_update=True)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    def credit_account(self, account_id: UUID, amount: Decimal, currency: str) -> BalanceChange:
        """Increase an account balance (income, transfer in, reversal)."""
        _require_positive("amount", amount)
        account = self.lock_account(account_id)
        self._check_currency(account, currency)

        before = account.current_balance
        account.current_balance = before + amount
        self._touch(account)
        self.session.flush()
        return BalanceChange("account", account.id, account.currency, before, account.current_balance)

    def debit_account(
        self,
        account_id: UUID,
        amount: Decimal,
        currency: str,
        allow_overdraft: bool | None = None,
    ) -> BalanceChange:
        """
        Decrease an account balance.

        Raises:
            InsufficientAccountBalanceError: for a non-credit account that
                would go negative while overdraft is not allowed.
        """
        _require_positive("amount", amount)
        account = self.lock_account(account_id)
        self._check_currency(account, currency)

        if allow_overdraft is None:
            allow_overdraft = self._settings.allow_account_overdraft

        before = account.current_balance
        after = before - amount
        if after < 0 and not account.is_credit and not allow_overdraft:
            raise InsufficientAccountBalanceError(account.id, account.currency, amount, before)

        account.current_balance = after
        self._touch(account)
        self.session.flush()
        return BalanceChange("account", account.id, account.currency, before, after)

    @staticmethod
    def _check_currency(account: Account, currency: str) -> None:
        if account.currency != currency:
            raise CurrencyMismatchError(account.currency, currency, f"account {account.id}")

    # ------------------------------------------------------------------
    # Funds
    # ------------------------------------------------------------------

    def get_fund(self, fund_id: UUID) -> Fund:
        fund = self.session.get(Fund, fund_id)
        if fund is None:
            raise FundNotFoundError(fund_id)
        return fund

    def lock_currency_asset(self, fund_id: UUID, currency: str) -> FundAsset | None:
        stmt = (
            select(FundAsset)
            .where(
                FundAsset.fund_id == fund_id,
                FundAsset.currency == currency,
                FundAsset.is_currency.is_(True),
            )
            .with_for_update()
        )
        return self.session.scalars(stmt).first()

    def available_in_fund(self, fund_id: UUID, currency: str) -> Decimal:
        asset = self.lock_currency_asset(fund_id, currency)
        return asset.amount if asset is not None else ZERO

    def credit_fund(
        self,
        fund_id: UUID,
        currency: str,
        amount: Decimal,
        transaction_type: FundTransactionType,
        *,
        account_id: UUID | None = None,
        income_id: UUID | None = None,
        expense_id: UUID | None = None,
        distribution_id: UUID | None = None,
        description: str | None = None,
    ) -> BalanceChange:
        """Add ``amount`` to the fund's currency asset, creating it if absent."""
        _require_positive("amount", amount)
        fund = self.get_fund(fund_id)
        if transaction_type in _INFLOW_TYPES and fund.status != FundStatus.ACTIVE:
            raise FundInactiveError(fund.id, fund.status)

        asset = self.lock_currency_asset(fund_id, currency)
        if asset is None:
            asset = self._add(FundAsset(
                fund_id=fund_id,
                asset_code=currency,
                currency=currency,
                is_currency=True,
                amount=ZERO,
            ))
            self.session.flush()

        return self._move_fund(
            asset, amount, transaction_type,
            account_id=account_id, income_id=income_id, expense_id=expense_id,
            distribution_id=distribution_id, description=description,
        )

    def debit_fund(
        self,
        fund_id: UUID,
        currency: str,
        amount: Decimal,
        transaction_type: FundTransactionType,
        *,
        account_id: UUID | None = None,
        income_id: UUID | None = None,
        expense_id: UUID | None = None,
        distribution_id: UUID | None = None,
        description: str | None = None,
    ) -> BalanceChange:
        """
        Take ``amount`` out of the fund's currency asset.

        Raises:
            InsufficientFundBalanceError: the asset is missing or holds less
                than ``amount``.
        """
        _require_positive("amount", amount)
        self.get_fund(fund_id)

        asset = self.lock_currency_asset(fund_id, currency)
        available = asset.amount if asset is not None else ZERO
        if asset is None or available < amount:
            raise InsufficientFundBalanceError(fund_id, currency, amount, available)

        return self._move_fund(
            asset, -amount, transaction_type,
            account_id=account_id, income_id=income_id, expense_id=expense_id,
            distribution_id=distribution_id, description=description,
        )

    def _move_fund(
        self,
        asset: FundAsset,
        delta: Decimal,
        transaction_type: FundTransactionType,
        **counterparts,
    ) -> BalanceChange:
        before = asset.amount
        asset.amount = before + delta
        self._touch(asset)

        description = counterparts.pop("description", None)
        self._add(FundTransaction(
            fund_id=asset.fund_id,
            asset_id=asset.id,
            transaction_type=transaction_type.value,
            delta=delta,
            currency=asset.currency,
            balance_after=asset.amount,
            occurred_at=self._clock.now(),
            description=description,
            **counterparts,
        ))
        self.session.flush()

        logger.debug(
            "fund_balance_changed",
            extra={
                "fund_id": str(asset.fund_id),
                "currency": asset.currency,
                "transaction_type": transaction_type.value,
                "delta": str(delta),
                "balance_after": str(asset.amount),
            },
        )
        return BalanceChange("fund_asset", asset.id, asset.currency, before, asset.amount)
