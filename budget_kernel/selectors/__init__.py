"""Selectors for the budget kernel (read side)."""

from budget_kernel.selectors.budget_selector import BudgetSelector
from budget_kernel.selectors.rate_selector import RateSelector
from budget_kernel.selectors.reserve_selector import ReserveSelector

__all__ = [
    "BudgetSelector",
    "RateSelector",
    "ReserveSelector",
]
