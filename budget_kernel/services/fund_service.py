"""
FundService -- fund lifecycle and direct account <-> fund movements.

Invariants enforced:
    - Money entering or leaving a fund is always mirrored by the opposite
      movement on an account (deposit / withdraw).
    - Only credit accounts can be linked to a fund for reserve accumulation.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from budget_kernel.domain.currency import CurrencyRegistry
from budget_kernel.domain.dtos import BalanceChange
from budget_kernel.exceptions import (
    AccountNotFoundError,
    FundNotFoundError,
    InvalidAmountError,
    ValidationError,
)
from budget_kernel.logging_config import get_logger
from budget_kernel.models.account import Account
from budget_kernel.models.fund import Fund, FundAsset, FundStatus, FundTransactionType
from budget_kernel.services.balance_service import BalanceService
from budget_kernel.services.base import BaseService

logger = get_logger("services.fund")

ZERO = Decimal("0")


class FundService(BaseService):

    def __init__(self, session, **kwargs):
        super().__init__(session, **kwargs)
        self._balances = BalanceService(session, **self._dependencies())

    def create_fund(
        self,
        name: str,
        currencies: tuple[str, ...] = (),
        is_virtual: bool = False,
        notes: str | None = None,
    ) -> Fund:
        """Create an active fund with an empty currency asset per currency."""
        codes = [CurrencyRegistry.validate(c) for c in currencies]
        with self._atomic("Fund"):
            fund = self._add(Fund(
                name=name,
                status=FundStatus.ACTIVE.value,
                is_virtual=is_virtual,
                notes=notes,
            ))
            self.session.flush()
            for code in dict.fromkeys(codes):
                self._add(FundAsset(
                    fund_id=fund.id,
                    asset_code=code,
                    currency=code,
                    is_currency=True,
                    amount=ZERO,
                ))

        logger.info("fund_created", extra={"fund_id": str(fund.id), "currencies": codes})
        self._emit("Fund", fund.id, "created")
        return fund

    def add_asset(
        self,
        fund_id: UUID,
        asset_code: str,
        currency: str,
        is_currency: bool = False,
        amount: Decimal = ZERO,
    ) -> FundAsset:
        """
        Register an asset row.  Non-currency assets (shares, metals) are held
        at their quoted value in ``currency`` and never used for funding.
        """
        currency = CurrencyRegistry.validate(currency)
        if amount < 0:
            raise InvalidAmountError("amount", amount, "must not be negative")
        if is_currency and asset_code != currency:
            raise ValidationError("A currency asset's code must equal its currency")

        with self._atomic("FundAsset"):
            self._get_fund(fund_id)
            existing = self.session.scalars(
                select(FundAsset).where(
                    FundAsset.fund_id == fund_id, FundAsset.asset_code == asset_code
                )
            ).first()
            if existing is not None:
                raise ValidationError(f"Fund {fund_id} already holds asset {asset_code}")
            asset = self._add(FundAsset(
                fund_id=fund_id,
                asset_code=asset_code,
                currency=currency,
                is_currency=is_currency,
                amount=amount,
            ))

        logger.info(
            "fund_asset_added",
            extra={"fund_id": str(fund_id), "asset_code": asset_code, "currency": currency},
        )
        return asset

    def deposit(self, fund_id: UUID, from_account_id: UUID, amount: Decimal) -> tuple[BalanceChange, BalanceChange]:
        """Move money from an account into the fund's currency asset."""
        with self._atomic("Fund", fund_id):
            account = self._get_account(from_account_id)
            account_change = self._balances.debit_account(account.id, amount, account.currency)
            fund_change = self._balances.credit_fund(
                fund_id, account.currency, amount, FundTransactionType.DEPOSIT,
                account_id=account.id,
            )

        logger.info(
            "fund_deposit",
            extra={"fund_id": str(fund_id), "account_id": str(from_account_id), "amount": str(amount)},
        )
        self._emit("Fund", fund_id, "deposit")
        return account_change, fund_change

    def withdraw(self, fund_id: UUID, to_account_id: UUID, amount: Decimal) -> tuple[BalanceChange, BalanceChange]:
        """Move money from the fund's currency asset back to an account."""
        with self._atomic("Fund", fund_id):
            account = self._get_account(to_account_id)
            fund_change = self._balances.debit_fund(
                fund_id, account.currency, amount, FundTransactionType.WITHDRAWAL,
                account_id=account.id,
            )
            account_change = self._balances.credit_account(account.id, amount, account.currency)

        logger.info(
            "fund_withdrawal",
            extra={"fund_id": str(fund_id), "account_id": str(to_account_id), "amount": str(amount)},
        )
        self._emit("Fund", fund_id, "withdrawal")
        return fund_change, account_change

    def set_status(self, fund_id: UUID, status: FundStatus | str) -> Fund:
        status = FundStatus(status)
        with self._atomic("Fund", fund_id):
            fund = self._get_fund(fund_id)
            fund.status = status.value
            self._touch(fund)

        logger.info("fund_status_changed", extra={"fund_id": str(fund_id), "status": status.value})
        self._emit("Fund", fund_id, "status_changed")
        return fund

    def link_credit_card(self, account_id: UUID, fund_id: UUID | None) -> Account:
        """Link (or with ``fund_id=None`` unlink) a credit card to a fund."""
        with self._atomic("Account", account_id):
            account = self._get_account(account_id)
            if not account.is_credit:
                raise ValidationError("Only credit accounts can be linked to a fund")
            if fund_id is not None:
                self._get_fund(fund_id)
            account.linked_fund_id = fund_id
            self._touch(account)

        logger.info(
            "credit_card_linked",
            extra={"account_id": str(account_id), "fund_id": str(fund_id) if fund_id else None},
        )
        return account

    def _get_fund(self, fund_id: UUID) -> Fund:
        fund = self.session.get(Fund, fund_id)
        if fund is None:
            raise FundNotFoundError(fund_id)
        return fund

    def _get_account(self, account_id: UUID) -> Account:
        account = self.session.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account
