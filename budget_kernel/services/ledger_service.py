"""
LedgerService -- record and reverse actual money movements.

Responsibility:
    Create and delete Expense, Income, Transfer and BalanceAdjustment rows
    together with their balance effects, open accounts, and create
    credit-card reserves as the side effect of fund-financed spending on a
    linked card.

Architecture position:
    Kernel > Services.  Uses BalanceService for every balance change.
    ObligationService, DistributionService and ReserveService build on it.

Invariants enforced:
    - Expense: 0 <= funded_amount <= amount; a funded part needs a fund.
      On a credit card the card is charged the full amount (it carries the
      whole debt); otherwise only amount - funded_amount is charged.
    - Fund-financed spending on a credit card whose linked_fund_id is the
      financing fund creates a CreditCardReserve with
      amount = remaining = funded_amount.
    - Deleting a row reverses exactly the effects recorded on it.
    - A balance adjustment stores the signed amount it applied; set_balance
      computes it from the locked current balance.
    - An expense whose reserve was already (partly) applied cannot be
      deleted: ``ReserveAlreadyAppliedError``.
    - An income with completed distributions cannot be deleted:
      ``InvalidStateError``.  Pending distributions are deleted with it.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from budget_kernel.domain.currency import CurrencyRegistry
from budget_kernel.exceptions import (
    AccountNotFoundError,
    AdjustmentNotFoundError,
    CurrencyMismatchError,
    ExpenseNotFoundError,
    FundingExceedsAmountError,
    IncomeNotFoundError,
    InvalidAmountError,
    InvalidStateError,
    ReserveAlreadyAppliedError,
    TransferNotFoundError,
    ValidationError,
)
from budget_kernel.logging_config import get_logger
from budget_kernel.models.account import Account
from budget_kernel.models.distribution import IncomeDistribution
from budget_kernel.models.fund import FundTransactionType
from budget_kernel.models.ledger import BalanceAdjustment, Expense, Income, Transfer
from budget_kernel.models.obligation import PlannedExpense, PlannedIncome
from budget_kernel.models.reserve import CreditCardReserve, ReserveApplication
from budget_kernel.services.balance_service import BalanceService
from budget_kernel.services.base import BaseService, period_of

logger = get_logger("services.ledger")

ZERO = Decimal("0")


class LedgerService(BaseService):
    """Expenses, incomes, transfers, balance adjustments and accounts."""

    def __init__(self, session, **kwargs):
        super().__init__(session, **kwargs)
        self._balances = BalanceService(session, **self._dependencies())

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def open_account(
        self,
        name: str,
        currency: str,
        is_credit: bool = False,
        opening_balance: Decimal = ZERO,
        linked_fund_id: UUID | None = None,
    ) -> Account:
        """Create an account.  Only credit accounts may link a fund."""
        currency = CurrencyRegistry.validate(currency)
        if linked_fund_id is not None and not is_credit:
            raise ValidationError("Only credit accounts can be linked to a fund")
        if opening_balance < 0 and not is_credit:
            raise InvalidAmountError("opening_balance", opening_balance, "must not be negative")

        with self._atomic("Account"):
            if linked_fund_id is not None:
                self._balances.get_fund(linked_fund_id)
            account = self._add(Account(
                name=name,
                currency=currency,
                is_credit=is_credit,
                current_balance=opening_balance,
                linked_fund_id=linked_fund_id,
            ))

        logger.info(
            "account_opened",
            extra={"account_id": str(account.id), "currency": currency, "is_credit": is_credit},
        )
        return account

    def _get_account(self, account_id: UUID) -> Account:
        account = self.session.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    # ------------------------------------------------------------------
    # Expenses
    # ------------------------------------------------------------------

    def record_expense(
        self,
        account_id: UUID,
        amount: Decimal,
        expense_date: date | None = None,
        currency: str | None = None,
        category_id: UUID | None = None,
        description: str | None = None,
        fund_id: UUID | None = None,
        funded_amount: Decimal | None = None,
    ) -> Expense:
        """
        Record money spent, optionally financed in part from a fund.

        Raises:
            InvalidAmountError: amount <= 0 or funded_amount < 0.
            FundingExceedsAmountError: funded_amount > amount.
            InsufficientFundBalanceError: the fund cannot cover funded_amount.
            InsufficientAccountBalanceError: the account cannot cover its part.
        """
        if amount is None or amount <= 0:
            raise InvalidAmountError("amount", amount)
        funded = funded_amount or ZERO
        if funded < 0:
            raise InvalidAmountError("funded_amount", funded, "must not be negative")
        if funded > amount:
            raise FundingExceedsAmountError("expense", funded, amount)
        if funded > 0 and fund_id is None:
            raise ValidationError("funded_amount requires a fund_id")

        with self._atomic("Expense"):
            account = self._get_account(account_id)
            currency = currency or account.currency
            if currency != account.currency:
                raise CurrencyMismatchError(account.currency, currency, "expense")

            charged = amount if account.is_credit else amount - funded
            expense = self._add(Expense(
                account_id=account.id,
                category_id=category_id,
                amount=amount,
                currency=currency,
                expense_date=expense_date or self._clock.today(),
                description=description,
                fund_id=fund_id if funded > 0 else None,
                funded_amount=funded,
                charged_amount=charged,
            ))
            self.session.flush()

            if funded > 0:
                self._balances.debit_fund(
                    fund_id, currency, funded, FundTransactionType.EXPENSE_FUNDING,
                    account_id=account.id, expense_id=expense.id,
                )
            if charged > 0:
                self._balances.debit_account(account.id, charged, currency)

            reserve = None
            if account.is_credit and funded > 0 and account.linked_fund_id == fund_id:
                reserve = self._add(CreditCardReserve(
                    credit_card_account_id=account.id,
                    fund_id=fund_id,
                    expense_id=expense.id,
                    amount=funded,
                    remaining=funded,
                    created_at=self._clock.now(),
                ))

        logger.info(
            "expense_recorded",
            extra={
                "expense_id": str(expense.id),
                "account_id": str(account.id),
                "amount": str(amount),
                "funded_amount": str(funded),
                "currency": currency,
                "reserve_id": str(reserve.id) if reserve is not None else None,
            },
        )
        self._emit("Expense", expense.id, "created", [period_of(expense.expense_date)])
        return expense

    def delete_expense(self, expense_id: UUID) -> None:
        """Delete an expense and reverse its account, fund and reserve effects."""
        with self._atomic("Expense", expense_id):
            expense = self.session.get(Expense, expense_id, with_for_update=True)
            if expense is None:
                raise ExpenseNotFoundError(expense_id)

            reserves = self.session.scalars(
                select(CreditCardReserve)
                .where(CreditCardReserve.expense_id == expense.id)
                .with_for_update()
            ).all()
            for reserve in reserves:
                if reserve.remaining < reserve.amount:
                    raise ReserveAlreadyAppliedError(reserve.id)

            if expense.charged_amount > 0:
                self._balances.credit_account(
                    expense.account_id, expense.charged_amount, expense.currency
                )
            if expense.funded_amount > 0:
                self._balances.credit_fund(
                    expense.fund_id, expense.currency, expense.funded_amount,
                    FundTransactionType.EXPENSE_FUNDING_REVERSAL,
                    account_id=expense.account_id, expense_id=expense.id,
                )

            for reserve in reserves:
                self.session.delete(reserve)
            linked = self.session.scalars(
                select(PlannedExpense).where(PlannedExpense.actual_expense_id == expense.id)
            )
            for obligation in linked:
                obligation.actual_expense_id = None
                self._touch(obligation)
            period = period_of(expense.expense_date)
            self.session.delete(expense)

        logger.info("expense_deleted", extra={"expense_id": str(expense_id)})
        self._emit("Expense", expense_id, "deleted", [period])

    # ------------------------------------------------------------------
    # Incomes
    # ------------------------------------------------------------------

    def record_income(
        self,
        account_id: UUID,
        amount: Decimal,
        source: str,
        income_date: date | None = None,
        currency: str | None = None,
        description: str | None = None,
    ) -> Income:
        if amount is None or amount <= 0:
            raise InvalidAmountError("amount", amount)

        with self._atomic("Income"):
            account = self._get_account(account_id)
            currency = currency or account.currency
            if currency != account.currency:
                raise CurrencyMismatchError(account.currency, currency, "income")

            income = self._add(Income(
                account_id=account.id,
                source=source,
                amount=amount,
                currency=currency,
                income_date=income_date or self._clock.today(),
                description=description,
            ))
            self._balances.credit_account(account.id, amount, currency)

        logger.info(
            "income_recorded",
            extra={
                "income_id": str(income.id),
                "account_id": str(account.id),
                "amount": str(amount),
                "currency": currency,
            },
        )
        self._emit("Income", income.id, "created", [period_of(income.income_date)])
        return income

    def delete_income(self, income_id: UUID) -> None:
        """
        Delete an income and debit its amount back from the account.

        Raises:
            InvalidStateError: a distribution of this income is completed;
                cancel it first.
        """
        with self._atomic("Income", income_id):
            income = self.session.get(Income, income_id, with_for_update=True)
            if income is None:
                raise IncomeNotFoundError(income_id)

            distributions = self.session.scalars(
                select(IncomeDistribution).where(IncomeDistribution.income_id == income.id)
            ).all()
            if any(d.is_completed for d in distributions):
                raise InvalidStateError(
                    "Income", income.id, "distributed",
                    f"Income {income.id} has completed distributions; cancel them first",
                )

            for distribution in distributions:
                self.session.delete(distribution)
            self._balances.debit_account(
                income.account_id, income.amount, income.currency, allow_overdraft=True
            )
            linked = self.session.scalars(
                select(PlannedIncome).where(PlannedIncome.actual_income_id == income.id)
            )
            for obligation in linked:
                obligation.actual_income_id = None
                self._touch(obligation)
            period = period_of(income.income_date)
            self.session.delete(income)

        logger.info("income_deleted", extra={"income_id": str(income_id)})
        self._emit("Income", income_id, "deleted", [period])

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------

    def record_transfer(
        self,
        from_account_id: UUID,
        to_account_id: UUID,
        amount: Decimal,
        transfer_date: date | None = None,
        description: str | None = None,
    ) -> Transfer:
        """Move ``amount`` between two accounts of the same currency."""
        if amount is None or amount <= 0:
            raise InvalidAmountError("amount", amount)
        if from_account_id == to_account_id:
            raise ValidationError("Cannot transfer an account to itself")

        with self._atomic("Transfer"):
            source = self._get_account(from_account_id)
            target = self._get_account(to_account_id)
            if source.currency != target.currency:
                raise CurrencyMismatchError(source.currency, target.currency, "transfer")

            transfer = self._add(Transfer(
                from_account_id=source.id,
                to_account_id=target.id,
                amount=amount,
                currency=source.currency,
                transfer_date=transfer_date or self._clock.today(),
                description=description,
            ))
            self._balances.debit_account(source.id, amount, source.currency)
            self._balances.credit_account(target.id, amount, target.currency)

        logger.info(
            "transfer_recorded",
            extra={
                "transfer_id": str(transfer.id),
                "from_account_id": str(source.id),
                "to_account_id": str(target.id),
                "amount": str(amount),
            },
        )
        self._emit("Transfer", transfer.id, "created", [period_of(transfer.transfer_date)])
        return transfer

    def delete_transfer(self, transfer_id: UUID) -> None:
        """
        Delete a transfer and reverse both balances.

        Reserve applications made by a repayment stay applied; reserves are
        never re-grown.
        """
        with self._atomic("Transfer", transfer_id):
            transfer = self.session.get(Transfer, transfer_id, with_for_update=True)
            if transfer is None:
                raise TransferNotFoundError(transfer_id)

            self._balances.debit_account(
                transfer.to_account_id, transfer.amount, transfer.currency, allow_overdraft=True
            )
            self._balances.credit_account(
                transfer.from_account_id, transfer.amount, transfer.currency
            )
            applications = self.session.scalars(
                select(ReserveApplication).where(ReserveApplication.transfer_id == transfer.id)
            )
            for application in applications:
                application.transfer_id = None
            period = period_of(transfer.transfer_date)
            self.session.delete(transfer)

        logger.info("transfer_deleted", extra={"transfer_id": str(transfer_id)})
        self._emit("Transfer", transfer_id, "deleted", [period])

    # ------------------------------------------------------------------
    # Balance adjustments
    # ------------------------------------------------------------------

    def adjust_balance(
        self,
        account_id: UUID,
        amount: Decimal,
        reason: str,
        adjustment_date: date | None = None,
    ) -> BalanceAdjustment:
        """
        Correct an account balance by a signed ``amount``.

        A negative adjustment is a debit and follows the overdraft policy.
        """
        if amount is None or amount == 0:
            raise InvalidAmountError("amount", amount, "must be non-zero")
        if not reason:
            raise ValidationError("A balance adjustment needs a reason")

        with self._atomic("Account", account_id):
            account = self._get_account(account_id)
            adjustment = self._book_adjustment(account, amount, reason, adjustment_date)

        self._log_adjustment(adjustment)
        return adjustment

    def set_balance(
        self,
        account_id: UUID,
        target_balance: Decimal,
        reason: str | None = None,
        adjustment_date: date | None = None,
    ) -> BalanceAdjustment:
        """
        Bring an account to ``target_balance`` with one adjustment.

        The difference is computed against the locked current balance.

        Raises:
            ValidationError: the account already holds ``target_balance``.
        """
        if target_balance is None:
            raise InvalidAmountError("target_balance", target_balance)

        with self._atomic("Account", account_id):
            account = self._balances.lock_account(account_id)
            delta = target_balance - account.current_balance
            if delta == 0:
                raise ValidationError(f"Account {account.id} already holds {target_balance}")
            adjustment = self._book_adjustment(
                account, delta, reason or "Balance correction", adjustment_date
            )

        self._log_adjustment(adjustment, target_balance=str(target_balance))
        return adjustment

    def delete_adjustment(self, adjustment_id: UUID) -> None:
        """Delete an adjustment and apply the opposite amount to the account."""
        with self._atomic("BalanceAdjustment", adjustment_id):
            adjustment = self.session.get(BalanceAdjustment, adjustment_id, with_for_update=True)
            if adjustment is None:
                raise AdjustmentNotFoundError(adjustment_id)

            if adjustment.amount > 0:
                self._balances.debit_account(
                    adjustment.account_id, adjustment.amount, adjustment.currency,
                    allow_overdraft=True,
                )
            else:
                self._balances.credit_account(
                    adjustment.account_id, -adjustment.amount, adjustment.currency
                )
            period = period_of(adjustment.adjustment_date)
            self.session.delete(adjustment)

        logger.info("balance_adjustment_deleted", extra={"adjustment_id": str(adjustment_id)})
        self._emit("BalanceAdjustment", adjustment_id, "deleted", [period])

    def _book_adjustment(
        self, account: Account, amount: Decimal, reason: str, adjustment_date: date | None
    ) -> BalanceAdjustment:
        if amount > 0:
            self._balances.credit_account(account.id, amount, account.currency)
        else:
            self._balances.debit_account(account.id, -amount, account.currency)
        adjustment = self._add(BalanceAdjustment(
            account_id=account.id,
            amount=amount,
            currency=account.currency,
            reason=reason,
            adjustment_date=adjustment_date or self._clock.today(),
        ))
        self.session.flush()
        return adjustment

    def _log_adjustment(self, adjustment: BalanceAdjustment, **fields) -> None:
        logger.info(
            "balance_adjusted",
            extra={
                "adjustment_id": str(adjustment.id),
                "account_id": str(adjustment.account_id),
                "amount": str(adjustment.amount),
                **fields,
            },
        )
        self._emit(
            "BalanceAdjustment", adjustment.id, "created", [period_of(adjustment.adjustment_date)]
        )
