"""Services for the budget kernel (write side)."""

from budget_kernel.services.balance_service import BalanceService
from budget_kernel.services.base import SYSTEM_ACTOR_ID, BaseService
from budget_kernel.services.budget_service import BudgetService
from budget_kernel.services.distribution_service import DistributionService
from budget_kernel.services.fund_service import FundService
from budget_kernel.services.ledger_service import LedgerService
from budget_kernel.services.obligation_service import ObligationService
from budget_kernel.services.recurrence_service import RecurrenceService
from budget_kernel.services.reserve_service import ReserveService

__all__ = [
    "BalanceService",
    "BaseService",
    "BudgetService",
    "DistributionService",
    "FundService",
    "LedgerService",
    "ObligationService",
    "RecurrenceService",
    "ReserveService",
    "SYSTEM_ACTOR_ID",
]
