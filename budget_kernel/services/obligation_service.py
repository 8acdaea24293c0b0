"""
ObligationService -- lifecycle of planned expenses and planned incomes.

Responsibility:
    Create, edit, confirm, skip and delete obligations.  Confirmation turns
    a planned expense into an actual Expense (optionally drawing part of it
    from a fund) and a planned income into an actual Income.

Architecture position:
    Kernel > Services.  Actual ledger rows are written through
    LedgerService, so fund draws, account debits and credit-card reserves
    follow exactly one code path.

Invariants enforced:
    - State machine: pending -> confirmed | skipped.  Both targets are
      terminal; any further confirm/skip raises AlreadyConfirmedError or
      AlreadySkippedError (InvalidState) and changes nothing.
    - funded_amount <= amount (FundingExceedsAmountError) and a single
      funding fund per obligation.
    - Editing the actual amount of a confirmed obligation keeps it confirmed.
    - Deleting an obligation never reverses its actual ledger entry; that is
      done by deleting the Expense/Income through LedgerService.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from budget_kernel.domain.currency import CurrencyRegistry
from budget_kernel.domain.dtos import ConfirmResult, FundingRequest
from budget_kernel.exceptions import (
    AlreadyConfirmedError,
    AlreadySkippedError,
    CurrencyMismatchError,
    ExpenseNotFoundError,
    FundingExceedsAmountError,
    IncomeNotFoundError,
    InvalidAmountError,
    InvalidStateError,
    ObligationNotFoundError,
    ValidationError,
)
from budget_kernel.logging_config import LogContext, get_logger
from budget_kernel.models.ledger import Expense, Income
from budget_kernel.models.obligation import ObligationStatus, PlannedExpense, PlannedIncome
from budget_kernel.services.base import BaseService, period_of
from budget_kernel.services.budget_service import BudgetService
from budget_kernel.services.ledger_service import LedgerService

logger = get_logger("services.obligation")

ZERO = Decimal("0")

_EXPENSE_FIELDS = frozenset({
    "name", "planned_amount", "planned_date", "category_id",
    "account_id", "fund_id", "funded_amount", "notes",
})
_INCOME_FIELDS = frozenset({
    "name", "source", "expected_amount", "planned_date", "account_id", "notes",
})


def _ensure_pending(obligation: PlannedExpense | PlannedIncome, entity_type: str) -> None:
    if obligation.status == ObligationStatus.CONFIRMED:
        raise AlreadyConfirmedError(entity_type, obligation.id)
    if obligation.status == ObligationStatus.SKIPPED:
        raise AlreadySkippedError(entity_type, obligation.id)


def _validate_funding(
    entity_id, amount: Decimal, fund_id: UUID | None, funded_amount: Decimal | None
) -> None:
    if funded_amount is None or funded_amount == 0:
        return
    if funded_amount < 0:
        raise InvalidAmountError("funded_amount", funded_amount, "must not be negative")
    if fund_id is None:
        raise ValidationError("funded_amount requires a fund_id")
    if funded_amount > amount:
        raise FundingExceedsAmountError(entity_id, funded_amount, amount)


class ObligationService(BaseService):

    def __init__(self, session, **kwargs):
        super().__init__(session, **kwargs)
        self._ledger = LedgerService(session, **self._dependencies())
        self._budgets = BudgetService(session, **self._dependencies())

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_expense(self, obligation_id: UUID, lock: bool = False) -> PlannedExpense:
        obligation = self.session.get(
            PlannedExpense, obligation_id, with_for_update=True if lock else None
        )
        if obligation is None:
            raise ObligationNotFoundError(obligation_id)
        return obligation

    def get_income(self, obligation_id: UUID, lock: bool = False) -> PlannedIncome:
        obligation = self.session.get(
            PlannedIncome, obligation_id, with_for_update=True if lock else None
        )
        if obligation is None:
            raise ObligationNotFoundError(obligation_id)
        return obligation

    # ------------------------------------------------------------------
    # Create / update / delete
    # ------------------------------------------------------------------

    def create_expense(
        self,
        name: str,
        planned_amount: Decimal,
        currency: str,
        planned_date: date,
        category_id: UUID | None = None,
        account_id: UUID | None = None,
        fund_id: UUID | None = None,
        funded_amount: Decimal | None = None,
        notes: str | None = None,
        recurring_template_id: UUID | None = None,
    ) -> PlannedExpense:
        """Schedule a payment in the budget of ``planned_date``'s month."""
        currency = CurrencyRegistry.validate(currency)
        if planned_amount is None or planned_amount <= 0:
            raise InvalidAmountError("planned_amount", planned_amount)
        _validate_funding("planned expense", planned_amount, fund_id, funded_amount)

        budget = self._budgets.get_or_create(planned_date.year, planned_date.month)
        with self._atomic("PlannedExpense"):
            obligation = self._add(PlannedExpense(
                budget_id=budget.id,
                recurring_template_id=recurring_template_id,
                category_id=category_id,
                name=name,
                planned_amount=planned_amount,
                currency=currency,
                planned_date=planned_date,
                status=ObligationStatus.PENDING.value,
                account_id=account_id,
                fund_id=fund_id if funded_amount else None,
                funded_amount=funded_amount or None,
                notes=notes,
            ))

        logger.info(
            "planned_expense_created",
            extra={"obligation_id": str(obligation.id), "planned_amount": str(planned_amount)},
        )
        self._emit("PlannedExpense", obligation.id, "created", [period_of(planned_date)])
        return obligation

    def create_income(
        self,
        name: str,
        source: str,
        expected_amount: Decimal,
        currency: str,
        planned_date: date,
        account_id: UUID | None = None,
        notes: str | None = None,
        recurring_template_id: UUID | None = None,
    ) -> PlannedIncome:
        currency = CurrencyRegistry.validate(currency)
        if expected_amount is None or expected_amount <= 0:
            raise InvalidAmountError("expected_amount", expected_amount)

        budget = self._budgets.get_or_create(planned_date.year, planned_date.month)
        with self._atomic("PlannedIncome"):
            obligation = self._add(PlannedIncome(
                budget_id=budget.id,
                recurring_template_id=recurring_template_id,
                source=source,
                name=name,
                expected_amount=expected_amount,
                currency=currency,
                planned_date=planned_date,
                status=ObligationStatus.PENDING.value,
                account_id=account_id,
                notes=notes,
            ))

        logger.info(
            "planned_income_created",
            extra={"obligation_id": str(obligation.id), "expected_amount": str(expected_amount)},
        )
        self._emit("PlannedIncome", obligation.id, "created", [period_of(planned_date)])
        return obligation

    def update_expense(self, obligation_id: UUID, **changes) -> PlannedExpense:
        """
        Edit a pending planned expense.

        Accepted fields: name, planned_amount, planned_date, category_id,
        account_id, fund_id, funded_amount, notes.  Moving planned_date into
        another month moves the obligation into that month's budget.
        """
        unknown = set(changes) - _EXPENSE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update fields: {sorted(unknown)}")

        with self._atomic("PlannedExpense", obligation_id):
            obligation = self.get_expense(obligation_id, lock=True)
            _ensure_pending(obligation, "PlannedExpense")
            old_period = period_of(obligation.planned_date)

            amount = changes.get("planned_amount", obligation.planned_amount)
            if amount is None or amount <= 0:
                raise InvalidAmountError("planned_amount", amount)
            fund_id = changes.get("fund_id", obligation.fund_id)
            funded = changes.get("funded_amount", obligation.funded_amount)
            _validate_funding(obligation.id, amount, fund_id, funded)

            for field, value in changes.items():
                setattr(obligation, field, value)
            if not funded:
                obligation.fund_id = None
                obligation.funded_amount = None
            if "planned_date" in changes:
                self._move_to_budget(obligation)
            self._touch(obligation)

        logger.info("planned_expense_updated", extra={"obligation_id": str(obligation_id),
                                                      "fields": sorted(changes)})
        self._emit("PlannedExpense", obligation.id, "updated",
                   [old_period, period_of(obligation.planned_date)])
        return obligation

    def update_income(self, obligation_id: UUID, **changes) -> PlannedIncome:
        """Edit a pending planned income (name, source, expected_amount, planned_date, account_id, notes)."""
        unknown = set(changes) - _INCOME_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update fields: {sorted(unknown)}")

        with self._atomic("PlannedIncome", obligation_id):
            obligation = self.get_income(obligation_id, lock=True)
            _ensure_pending(obligation, "PlannedIncome")
            old_period = period_of(obligation.planned_date)

            amount = changes.get("expected_amount", obligation.expected_amount)
            if amount is None or amount <= 0:
                raise InvalidAmountError("expected_amount", amount)

            for field, value in changes.items():
                setattr(obligation, field, value)
            if "planned_date" in changes:
                self._move_to_budget(obligation)
            self._touch(obligation)

        logger.info("planned_income_updated", extra={"obligation_id": str(obligation_id),
                                                     "fields": sorted(changes)})
        self._emit("PlannedIncome", obligation.id, "updated",
                   [old_period, period_of(obligation.planned_date)])
        return obligation

    def _move_to_budget(self, obligation: PlannedExpense | PlannedIncome) -> None:
        day = obligation.planned_date
        obligation.budget_id = self._budgets.get_or_create(day.year, day.month).id

    def delete_expense(self, obligation_id: UUID) -> None:
        """Delete in any state.  An actual Expense, if any, is left in place."""
        with self._atomic("PlannedExpense", obligation_id):
            obligation = self.get_expense(obligation_id, lock=True)
            period = period_of(obligation.planned_date)
            self.session.delete(obligation)

        logger.info("planned_expense_deleted", extra={"obligation_id": str(obligation_id)})
        self._emit("PlannedExpense", obligation_id, "deleted", [period])

    def delete_income(self, obligation_id: UUID) -> None:
        """Delete in any state.  An actual Income, if any, is left in place."""
        with self._atomic("PlannedIncome", obligation_id):
            obligation = self.get_income(obligation_id, lock=True)
            period = period_of(obligation.planned_date)
            self.session.delete(obligation)

        logger.info("planned_income_deleted", extra={"obligation_id": str(obligation_id)})
        self._emit("PlannedIncome", obligation_id, "deleted", [period])

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def confirm_expense(
        self,
        obligation_id: UUID,
        actual_amount: Decimal | None = None,
        account_id: UUID | None = None,
        funding: FundingRequest | None = None,
        on_date: date | None = None,
    ) -> ConfirmResult:
        """
        Pay a planned expense.

        actual_amount defaults to planned_amount.  ``funding`` (or, when
        omitted, the obligation's own fund_id/funded_amount) is drawn from
        the fund's currency asset; the rest is charged to the account.

        Raises:
            AlreadyConfirmedError / AlreadySkippedError: not pending.
            FundingExceedsAmountError: funding larger than the actual amount.
            InsufficientFundBalanceError: the fund cannot cover the funding.
            ValidationError: no account to charge.
        """
        with LogContext.bind(entity_id=obligation_id), self._atomic("PlannedExpense", obligation_id):
            obligation = self.get_expense(obligation_id, lock=True)
            _ensure_pending(obligation, "PlannedExpense")

            amount = actual_amount if actual_amount is not None else obligation.planned_amount
            if amount <= 0:
                raise InvalidAmountError("actual_amount", amount)

            if funding is not None:
                fund_id, funded = funding.fund_id, funding.amount
            else:
                fund_id, funded = obligation.fund_id, obligation.funded_amount or ZERO
            _validate_funding(obligation.id, amount, fund_id, funded)

            account_id = account_id or obligation.account_id
            if account_id is None:
                raise ValidationError(f"Planned expense {obligation.id} needs an account to confirm")

            expense = self._ledger.record_expense(
                account_id=account_id,
                amount=amount,
                expense_date=on_date or obligation.planned_date,
                currency=obligation.currency,
                category_id=obligation.category_id,
                description=obligation.name,
                fund_id=fund_id if funded else None,
                funded_amount=funded or None,
            )

            obligation.status = ObligationStatus.CONFIRMED.value
            obligation.actual_amount = amount
            obligation.actual_expense_id = expense.id
            obligation.account_id = account_id
            obligation.fund_id = fund_id if funded else None
            obligation.funded_amount = funded or None
            self._touch(obligation)

            logger.info(
                "obligation_confirmed",
                extra={
                    "kind": "expense",
                    "actual_amount": str(amount),
                    "funded_amount": str(funded or ZERO),
                    "expense_id": str(expense.id),
                },
            )

        self._emit("PlannedExpense", obligation.id, "confirmed", [period_of(obligation.planned_date)])
        return ConfirmResult(
            obligation_id=obligation.id,
            status=ObligationStatus.CONFIRMED.value,
            actual_amount=amount,
            funded_amount=funded or ZERO,
            ledger_entry_id=expense.id,
        )

    def receive_income(
        self,
        obligation_id: UUID,
        actual_amount: Decimal | None = None,
        account_id: UUID | None = None,
        on_date: date | None = None,
    ) -> ConfirmResult:
        """Receive a planned income into an account (defaults: expected amount, planned account)."""
        with LogContext.bind(entity_id=obligation_id), self._atomic("PlannedIncome", obligation_id):
            obligation = self.get_income(obligation_id, lock=True)
            _ensure_pending(obligation, "PlannedIncome")

            amount = actual_amount if actual_amount is not None else obligation.expected_amount
            account_id = account_id or obligation.account_id
            if account_id is None:
                raise ValidationError(f"Planned income {obligation.id} needs an account to receive")

            income = self._ledger.record_income(
                account_id=account_id,
                amount=amount,
                source=obligation.source,
                income_date=on_date or obligation.planned_date,
                currency=obligation.currency,
                description=obligation.name,
            )

            obligation.status = ObligationStatus.CONFIRMED.value
            obligation.actual_amount = amount
            obligation.actual_income_id = income.id
            obligation.account_id = account_id
            self._touch(obligation)

            logger.info(
                "obligation_confirmed",
                extra={"kind": "income", "actual_amount": str(amount), "income_id": str(income.id)},
            )

        self._emit("PlannedIncome", obligation.id, "confirmed", [period_of(obligation.planned_date)])
        return ConfirmResult(
            obligation_id=obligation.id,
            status=ObligationStatus.CONFIRMED.value,
            actual_amount=amount,
            ledger_entry_id=income.id,
        )

    def link_expense(self, obligation_id: UUID, expense_id: UUID) -> ConfirmResult:
        """Confirm a planned expense against an Expense that already exists."""
        with self._atomic("PlannedExpense", obligation_id):
            obligation = self.get_expense(obligation_id, lock=True)
            _ensure_pending(obligation, "PlannedExpense")
            expense = self.session.get(Expense, expense_id)
            if expense is None:
                raise ExpenseNotFoundError(expense_id)
            if expense.currency != obligation.currency:
                raise CurrencyMismatchError(obligation.currency, expense.currency, "link_expense")

            obligation.status = ObligationStatus.CONFIRMED.value
            obligation.actual_amount = expense.amount
            obligation.actual_expense_id = expense.id
            obligation.account_id = expense.account_id
            obligation.fund_id = expense.fund_id
            obligation.funded_amount = expense.funded_amount or None
            self._touch(obligation)

        logger.info(
            "obligation_linked",
            extra={"obligation_id": str(obligation_id), "expense_id": str(expense_id)},
        )
        self._emit("PlannedExpense", obligation.id, "confirmed", [period_of(obligation.planned_date)])
        return ConfirmResult(
            obligation_id=obligation.id,
            status=ObligationStatus.CONFIRMED.value,
            actual_amount=expense.amount,
            funded_amount=expense.funded_amount,
            ledger_entry_id=expense.id,
        )

    def link_income(self, obligation_id: UUID, income_id: UUID) -> ConfirmResult:
        """Confirm a planned income against an Income that already exists."""
        with self._atomic("PlannedIncome", obligation_id):
            obligation = self.get_income(obligation_id, lock=True)
            _ensure_pending(obligation, "PlannedIncome")
            income = self.session.get(Income, income_id)
            if income is None:
                raise IncomeNotFoundError(income_id)
            if income.currency != obligation.currency:
                raise CurrencyMismatchError(obligation.currency, income.currency, "link_income")

            obligation.status = ObligationStatus.CONFIRMED.value
            obligation.actual_amount = income.amount
            obligation.actual_income_id = income.id
            obligation.account_id = income.account_id
            self._touch(obligation)

        logger.info(
            "obligation_linked",
            extra={"obligation_id": str(obligation_id), "income_id": str(income_id)},
        )
        self._emit("PlannedIncome", obligation.id, "confirmed", [period_of(obligation.planned_date)])
        return ConfirmResult(
            obligation_id=obligation.id,
            status=ObligationStatus.CONFIRMED.value,
            actual_amount=income.amount,
            ledger_entry_id=income.id,
        )

    def skip(self, obligation_id: UUID) -> PlannedExpense | PlannedIncome:
        """pending -> skipped for a planned expense or planned income.  No ledger effect."""
        with self._atomic("Obligation", obligation_id):
            obligation = self.session.get(PlannedExpense, obligation_id, with_for_update=True)
            entity_type = "PlannedExpense"
            if obligation is None:
                obligation = self.session.get(PlannedIncome, obligation_id, with_for_update=True)
                entity_type = "PlannedIncome"
            if obligation is None:
                raise ObligationNotFoundError(obligation_id)

            _ensure_pending(obligation, entity_type)
            obligation.status = ObligationStatus.SKIPPED.value
            self._touch(obligation)

        logger.info("obligation_skipped", extra={"obligation_id": str(obligation_id),
                                                 "kind": entity_type})
        self._emit(entity_type, obligation.id, "skipped", [period_of(obligation.planned_date)])
        return obligation

    def update_actual(self, obligation_id: UUID, actual_amount: Decimal) -> PlannedExpense | PlannedIncome:
        """
        Correct the recorded actual amount of a confirmed obligation.

        The status stays confirmed.  Only the obligation changes: the linked
        Expense or Income and the account balance keep the amount that was
        actually booked, so the summary's ``confirmed_obligations`` (from
        obligations) and ``total_actual`` (from Expense rows) differ by the
        correction.  To change the money that moved, delete the Expense or
        Income through LedgerService and record it again.
        """
        if actual_amount is None or actual_amount <= 0:
            raise InvalidAmountError("actual_amount", actual_amount)

        with self._atomic("Obligation", obligation_id):
            obligation = self.session.get(PlannedExpense, obligation_id, with_for_update=True)
            entity_type = "PlannedExpense"
            if obligation is None:
                obligation = self.session.get(PlannedIncome, obligation_id, with_for_update=True)
                entity_type = "PlannedIncome"
            if obligation is None:
                raise ObligationNotFoundError(obligation_id)

            if obligation.status != ObligationStatus.CONFIRMED:
                raise InvalidStateError(
                    entity_type, obligation.id, obligation.status,
                    f"{entity_type} {obligation.id} is {obligation.status}; only confirmed "
                    "obligations carry an actual amount",
                )
            if isinstance(obligation, PlannedExpense) and obligation.funded_amount:
                if obligation.funded_amount > actual_amount:
                    raise FundingExceedsAmountError(obligation.id, obligation.funded_amount, actual_amount)
            obligation.actual_amount = actual_amount
            self._touch(obligation)

        logger.info("obligation_actual_updated", extra={"obligation_id": str(obligation_id),
                                                        "actual_amount": str(actual_amount)})
        self._emit(entity_type, obligation.id, "updated", [period_of(obligation.planned_date)])
        return obligation

