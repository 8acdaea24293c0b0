"""ORM models for the budget kernel."""

from budget_kernel.models.account import Account
from budget_kernel.models.budget import Budget, BudgetItem, BudgetStatus
from budget_kernel.models.distribution import (
    DistributionRule,
    DistributionRuleType,
    IncomeDistribution,
)
from budget_kernel.models.exchange_rate import ExchangeRate
from budget_kernel.models.fund import (
    Fund,
    FundAsset,
    FundStatus,
    FundTransaction,
    FundTransactionType,
)
from budget_kernel.models.ledger import BalanceAdjustment, Expense, Income, Transfer
from budget_kernel.models.obligation import (
    ObligationStatus,
    PlannedExpense,
    PlannedIncome,
)
from budget_kernel.models.recurring import Frequency, RecurringTemplate, TemplateKind
from budget_kernel.models.reserve import CreditCardReserve, ReserveApplication

__all__ = [
    "Account",
    "BalanceAdjustment",
    "Budget",
    "BudgetItem",
    "BudgetStatus",
    "CreditCardReserve",
    "DistributionRule",
    "DistributionRuleType",
    "ExchangeRate",
    "Expense",
    "Frequency",
    "Fund",
    "FundAsset",
    "FundStatus",
    "FundTransaction",
    "FundTransactionType",
    "Income",
    "IncomeDistribution",
    "ObligationStatus",
    "PlannedExpense",
    "PlannedIncome",
    "RecurringTemplate",
    "ReserveApplication",
    "TemplateKind",
    "Transfer",
]
