"""
Typed exception hierarchy for the budget kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (an API layer, a CLI, tests) must react to failures by TYPE and by a
stable machine-readable CODE, never by parsing message strings:

    try:
        distributions.cancel(distribution_id)
    except InsufficientFundBalanceError as e:
        show(f"Fund only holds {e.available} {e.currency}")
    except InvalidStateError as e:
        api_response(code=e.code)

Every exception stores its context as attributes so it survives logging
and serialization (see ``StructuredFormatter`` in ``logging_config``).

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    BudgetKernelError (base)
    |
    +-- NotFoundError
    |   +-- AccountNotFoundError
    |   +-- FundNotFoundError
    |   +-- ObligationNotFoundError
    |   +-- IncomeNotFoundError
    |   +-- ExpenseNotFoundError
    |   +-- TransferNotFoundError
    |   +-- AdjustmentNotFoundError
    |   +-- DistributionNotFoundError
    |   +-- ReserveNotFoundError
    |   +-- BudgetNotFoundError
    |   +-- BudgetItemNotFoundError
    |   +-- TemplateNotFoundError
    |
    +-- InvalidStateError
    |   +-- AlreadyConfirmedError
    |   +-- AlreadySkippedError
    |   +-- AlreadyCompletedError
    |   +-- DistributionNotCompletedError
    |   +-- ReserveAlreadyAppliedError
    |   +-- FundInactiveError
    |
    +-- InsufficientBalanceError
    |   +-- InsufficientFundBalanceError
    |   +-- InsufficientAccountBalanceError
    |
    +-- OverAllocatedError
    |   +-- DistributionOverAllocatedError
    |   +-- FundingExceedsAmountError
    |   +-- ReserveApplicationExceedsError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- CurrencyError
    |   +-- InvalidCurrencyError
    |   +-- CurrencyMismatchError
    |   +-- ExchangeRateNotFoundError
    |   +-- InvalidExchangeRateError
    |
    +-- ValidationError
        +-- InvalidAmountError
        +-- InvalidRecurrenceError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Not found       | ACCOUNT_NOT_FOUND           | Account id unknown
                | FUND_NOT_FOUND              | Fund id unknown
                | FUND_ASSET_NOT_FOUND        | Fund holds no asset in that currency
                | OBLIGATION_NOT_FOUND        | Planned expense/income id unknown
                | RESERVE_NOT_FOUND           | Reserve unknown or on another card
                | ...                         | (one code per entity type)
----------------|-----------------------------|-----------------------------------------
State           | ALREADY_CONFIRMED           | Obligation already confirmed
                | ALREADY_SKIPPED             | Obligation already skipped
                | ALREADY_COMPLETED           | Distribution already confirmed
                | DISTRIBUTION_NOT_COMPLETED  | Cancel/undo of a pending distribution
                | RESERVE_ALREADY_APPLIED     | Reserve remaining is already 0
                | FUND_INACTIVE               | Fund paused or completed
----------------|-----------------------------|-----------------------------------------
Balance         | INSUFFICIENT_FUND_BALANCE   | Fund currency asset below the draw
                | INSUFFICIENT_ACCOUNT_BALANCE| Debit account would go negative
----------------|-----------------------------|-----------------------------------------
Allocation      | DISTRIBUTION_OVER_ALLOCATED | Sum of planned distributions > income
                | FUNDING_EXCEEDS_AMOUNT      | Fund share larger than the obligation
                | RESERVE_APPLICATION_EXCEEDS | Partial apply larger than remaining
----------------|-----------------------------|-----------------------------------------
Concurrency     | CONFLICTING_UPDATE          | Version check failed on flush
----------------|-----------------------------|-----------------------------------------
Currency        | INVALID_CURRENCY            | Not a supported ISO 4217 code
                | CURRENCY_MISMATCH           | Mixed currencies in one movement
                | RATE_UNAVAILABLE            | No rate; aggregation degrades to 1
                | INVALID_EXCHANGE_RATE       | Rate is zero or negative
----------------|-----------------------------|-----------------------------------------
Validation      | INVALID_AMOUNT              | Amount is zero/negative where forbidden
                | INVALID_RECURRENCE          | Template anchor out of range

RATE_UNAVAILABLE is the only soft error: the converter records it as a
warning on the result instead of raising.
"""

from decimal import Decimal


class BudgetKernelError(Exception):
    """
    Base exception for all budget kernel errors.

    All subclasses define a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "BUDGET_KERNEL_ERROR"


# Not-found exceptions


class NotFoundError(BudgetKernelError):
    """Base exception for unknown entity ids."""

    code: str = "NOT_FOUND"
    entity_type: str = "entity"

    def __init__(self, entity_id: str):
        self.entity_id = str(entity_id)
        super().__init__(f"{self.entity_type} not found: {entity_id}")


class AccountNotFoundError(NotFoundError):
    code: str = "ACCOUNT_NOT_FOUND"
    entity_type = "Account"


class FundNotFoundError(NotFoundError):
    code: str = "FUND_NOT_FOUND"
    entity_type = "Fund"


class ObligationNotFoundError(NotFoundError):
    code: str = "OBLIGATION_NOT_FOUND"
    entity_type = "Obligation"


class IncomeNotFoundError(NotFoundError):
    code: str = "INCOME_NOT_FOUND"
    entity_type = "Income"


class ExpenseNotFoundError(NotFoundError):
    code: str = "EXPENSE_NOT_FOUND"
    entity_type = "Expense"


class TransferNotFoundError(NotFoundError):
    code: str = "TRANSFER_NOT_FOUND"
    entity_type = "Transfer"


class AdjustmentNotFoundError(NotFoundError):
    code: str = "ADJUSTMENT_NOT_FOUND"
    entity_type = "Balance adjustment"


class DistributionNotFoundError(NotFoundError):
    code: str = "DISTRIBUTION_NOT_FOUND"
    entity_type = "Income distribution"


class ReserveNotFoundError(NotFoundError):
    """Reserve id unknown, or it belongs to a different credit card."""

    code: str = "RESERVE_NOT_FOUND"
    entity_type = "Credit card reserve"


class BudgetNotFoundError(NotFoundError):
    code: str = "BUDGET_NOT_FOUND"
    entity_type = "Budget"


class BudgetItemNotFoundError(NotFoundError):
    code: str = "BUDGET_ITEM_NOT_FOUND"
    entity_type = "Budget item"


class TemplateNotFoundError(NotFoundError):
    code: str = "TEMPLATE_NOT_FOUND"
    entity_type = "Recurring template"


# State-machine exceptions


class InvalidStateError(BudgetKernelError):
    """A transition was attempted from the wrong state."""

    code: str = "INVALID_STATE"

    def __init__(self, entity_type: str, entity_id: str, status: str, message: str | None = None):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.status = status
        super().__init__(
            message or f"{entity_type} {entity_id} is {status}; transition not allowed"
        )


class AlreadyConfirmedError(InvalidStateError):
    code: str = "ALREADY_CONFIRMED"

    def __init__(self, entity_type: str, entity_id: str):
        super().__init__(entity_type, entity_id, "confirmed",
                         f"{entity_type} {entity_id} is already confirmed")


class AlreadySkippedError(InvalidStateError):
    code: str = "ALREADY_SKIPPED"

    def __init__(self, entity_type: str, entity_id: str):
        super().__init__(entity_type, entity_id, "skipped",
                         f"{entity_type} {entity_id} is already skipped")


class AlreadyCompletedError(InvalidStateError):
    code: str = "ALREADY_COMPLETED"

    def __init__(self, distribution_id: str):
        super().__init__("IncomeDistribution", distribution_id, "completed",
                         f"Distribution {distribution_id} is already confirmed")


class DistributionNotCompletedError(InvalidStateError):
    code: str = "DISTRIBUTION_NOT_COMPLETED"

    def __init__(self, distribution_id: str):
        super().__init__("IncomeDistribution", distribution_id, "pending",
                         f"Distribution {distribution_id} has not been confirmed")


class ReserveAlreadyAppliedError(InvalidStateError):
    code: str = "RESERVE_ALREADY_APPLIED"

    def __init__(self, reserve_id: str):
        super().__init__("CreditCardReserve", reserve_id, "applied",
                         f"Reserve {reserve_id} has already been applied")


class FundInactiveError(InvalidStateError):
    code: str = "FUND_INACTIVE"

    def __init__(self, fund_id: str, status: str):
        super().__init__("Fund", fund_id, status,
                         f"Fund {fund_id} is {status} and cannot receive or release money")


# Balance exceptions


class InsufficientBalanceError(BudgetKernelError):
    """A fund or account lacks the amount being drawn or reversed."""

    code: str = "INSUFFICIENT_BALANCE"


class InsufficientFundBalanceError(InsufficientBalanceError):
    code: str = "INSUFFICIENT_FUND_BALANCE"

    def __init__(self, fund_id: str, currency: str, requested: Decimal, available: Decimal):
        self.fund_id = str(fund_id)
        self.currency = currency
        self.requested = requested
        self.available = available
        super().__init__(
            f"Fund {fund_id} holds {available} {currency}, cannot draw {requested}"
        )


class InsufficientAccountBalanceError(InsufficientBalanceError):
    code: str = "INSUFFICIENT_ACCOUNT_BALANCE"

    def __init__(self, account_id: str, currency: str, requested: Decimal, available: Decimal):
        self.account_id = str(account_id)
        self.currency = currency
        self.requested = requested
        self.available = available
        super().__init__(
            f"Account {account_id} holds {available} {currency}, cannot debit {requested}"
        )


# Allocation exceptions


class OverAllocatedError(BudgetKernelError):
    """A distribution or funding would exceed its source total."""

    code: str = "OVER_ALLOCATED"


class DistributionOverAllocatedError(OverAllocatedError):
    code: str = "DISTRIBUTION_OVER_ALLOCATED"

    def __init__(self, income_id: str, income_amount: Decimal, total_planned: Decimal):
        self.income_id = str(income_id)
        self.income_amount = income_amount
        self.total_planned = total_planned
        super().__init__(
            f"Distributions for income {income_id} would total {total_planned}, "
            f"exceeding the income amount {income_amount}"
        )


class FundingExceedsAmountError(OverAllocatedError):
    code: str = "FUNDING_EXCEEDS_AMOUNT"

    def __init__(self, entity_id: str, funded_amount: Decimal, amount: Decimal):
        self.entity_id = str(entity_id)
        self.funded_amount = funded_amount
        self.amount = amount
        super().__init__(
            f"Funded amount {funded_amount} exceeds amount {amount} for {entity_id}"
        )


class ReserveApplicationExceedsError(OverAllocatedError):
    code: str = "RESERVE_APPLICATION_EXCEEDS"

    def __init__(self, reserve_id: str, requested: Decimal, remaining: Decimal):
        self.reserve_id = str(reserve_id)
        self.requested = requested
        self.remaining = remaining
        super().__init__(
            f"Cannot apply {requested} of reserve {reserve_id}: only {remaining} remains"
        )


# Concurrency exceptions


class ConcurrencyError(BudgetKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Concurrent modification detected; the loser must re-read and retry."""

    code: str = "CONFLICTING_UPDATE"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Currency exceptions


class CurrencyError(BudgetKernelError):
    """Base exception for currency-related errors."""

    code: str = "CURRENCY_ERROR"


class InvalidCurrencyError(CurrencyError, ValueError):
    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid ISO 4217 currency code: {currency!r}")


class CurrencyMismatchError(CurrencyError):
    code: str = "CURRENCY_MISMATCH"

    def __init__(self, expected: str, actual: str, context: str = ""):
        self.expected = expected
        self.actual = actual
        self.context = context
        suffix = f" ({context})" if context else ""
        super().__init__(f"Currency mismatch: expected {expected}, got {actual}{suffix}")


class ExchangeRateNotFoundError(CurrencyError):
    """No rate for the pair. Aggregation records this as a warning."""

    code: str = "RATE_UNAVAILABLE"

    def __init__(self, from_currency: str, to_currency: str):
        self.from_currency = from_currency
        self.to_currency = to_currency
        super().__init__(
            f"No exchange rate found for {from_currency}/{to_currency}; using 1"
        )


class InvalidExchangeRateError(CurrencyError):
    code: str = "INVALID_EXCHANGE_RATE"

    def __init__(self, from_currency: str, to_currency: str, rate: Decimal):
        self.from_currency = from_currency
        self.to_currency = to_currency
        self.rate = rate
        super().__init__(
            f"Exchange rate {from_currency}/{to_currency} must be positive, got {rate}"
        )


# Validation exceptions


class ValidationError(BudgetKernelError):
    """Base exception for malformed input."""

    code: str = "VALIDATION_ERROR"


class InvalidAmountError(ValidationError):
    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, amount: Decimal, reason: str = "must be positive"):
        self.field = field
        self.amount = amount
        self.reason = reason
        super().__init__(f"{field} {reason}, got {amount}")


class InvalidRecurrenceError(ValidationError):
    code: str = "INVALID_RECURRENCE"

    def __init__(self, frequency: str, reason: str):
        self.frequency = frequency
        self.reason = reason
        super().__init__(f"Invalid {frequency} recurrence: {reason}")
