"""
BudgetService -- monthly budgets and their category items.

Invariants enforced:
    - One Budget per (year, month), created lazily on first write.
    - One item per category per budget; upsert replaces the amounts.
    - fund_allocation <= planned_amount, and only with a fund.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from budget_kernel.domain.periods import BudgetPeriod
from budget_kernel.exceptions import (
    BudgetItemNotFoundError,
    BudgetNotFoundError,
    FundingExceedsAmountError,
    InvalidAmountError,
    ValidationError,
)
from budget_kernel.logging_config import LogContext, get_logger
from budget_kernel.models.budget import Budget, BudgetItem, BudgetStatus
from budget_kernel.services.base import BaseService

logger = get_logger("services.budget")


class BudgetService(BaseService):

    def find(self, year: int, month: int) -> Budget | None:
        BudgetPeriod(year, month)
        return self.session.scalars(
            select(Budget).where(Budget.year == year, Budget.month == month)
        ).first()

    def get_or_create(self, year: int, month: int) -> Budget:
        """The month's budget, created in draft status if it does not exist."""
        budget = self.find(year, month)
        if budget is not None:
            return budget

        with self._atomic("Budget"):
            budget = self._add(Budget(year=year, month=month, status=BudgetStatus.DRAFT.value))

        logger.info(
            "budget_created",
            extra={"budget_id": str(budget.id), "year": year, "month": month},
        )
        self._emit("Budget", budget.id, "created", [(year, month)])
        return budget

    def set_status(self, budget_id: UUID, status: BudgetStatus | str) -> Budget:
        status = BudgetStatus(status)
        with self._atomic("Budget", budget_id):
            budget = self._get(budget_id)
            budget.status = status.value
            self._touch(budget)

        self._emit("Budget", budget.id, "status_changed", [(budget.year, budget.month)])
        return budget

    def upsert_item(
        self,
        year: int,
        month: int,
        category_id: UUID,
        planned_amount: Decimal,
        fund_id: UUID | None = None,
        fund_allocation: Decimal | None = None,
        notes: str | None = None,
    ) -> BudgetItem:
        """Create or replace the plan for ``category_id`` in the month."""
        if planned_amount is None or planned_amount < 0:
            raise InvalidAmountError("planned_amount", planned_amount, "must not be negative")
        if fund_allocation is not None:
            if fund_id is None:
                raise ValidationError("fund_allocation requires a fund_id")
            if fund_allocation < 0:
                raise InvalidAmountError("fund_allocation", fund_allocation, "must not be negative")
            if fund_allocation > planned_amount:
                raise FundingExceedsAmountError("budget item", fund_allocation, planned_amount)

        budget = self.get_or_create(year, month)
        with LogContext.bind(budget_id=budget.id), self._atomic("BudgetItem"):
            item = self.session.scalars(
                select(BudgetItem).where(
                    BudgetItem.budget_id == budget.id,
                    BudgetItem.category_id == category_id,
                )
            ).first()
            if item is None:
                item = self._add(BudgetItem(budget_id=budget.id, category_id=category_id,
                                            planned_amount=planned_amount))
            item.planned_amount = planned_amount
            item.fund_id = fund_id
            item.fund_allocation = fund_allocation
            item.notes = notes
            self._touch(item)

            logger.info(
                "budget_item_saved",
                extra={"category_id": str(category_id), "planned_amount": str(planned_amount)},
            )

        self._emit("BudgetItem", item.id, "saved", [(year, month)])
        return item

    def delete_item(self, item_id: UUID) -> None:
        with self._atomic("BudgetItem", item_id):
            item = self.session.get(BudgetItem, item_id)
            if item is None:
                raise BudgetItemNotFoundError(item_id)
            budget = self._get(item.budget_id)
            self.session.delete(item)

        logger.info("budget_item_deleted", extra={"item_id": str(item_id)})
        self._emit("BudgetItem", item_id, "deleted", [(budget.year, budget.month)])

    def copy_budget(self, source_budget_id: UUID, target_year: int, target_month: int) -> Budget:
        """
        Copy category items into the target month.

        Categories already planned in the target are left untouched.
        Obligations are not copied; generate them from templates instead.
        """
        source = self._get(source_budget_id)
        target = self.get_or_create(target_year, target_month)
        if target.id == source.id:
            raise ValidationError("Cannot copy a budget onto itself")

        copied = 0
        with self._atomic("Budget", target.id):
            existing = set(self.session.scalars(
                select(BudgetItem.category_id).where(BudgetItem.budget_id == target.id)
            ))
            items = self.session.scalars(
                select(BudgetItem)
                .where(BudgetItem.budget_id == source.id)
                .order_by(BudgetItem.category_id)
            ).all()
            for item in items:
                if item.category_id in existing:
                    continue
                self._add(BudgetItem(
                    budget_id=target.id,
                    category_id=item.category_id,
                    planned_amount=item.planned_amount,
                    fund_id=item.fund_id,
                    fund_allocation=item.fund_allocation,
                    notes=item.notes,
                ))
                copied += 1

        logger.info(
            "budget_copied",
            extra={
                "source_budget_id": str(source.id),
                "target_budget_id": str(target.id),
                "copied_items": copied,
            },
        )
        self._emit("Budget", target.id, "copied", [(target_year, target_month)])
        return target

    def _get(self, budget_id: UUID) -> Budget:
        budget = self.session.get(Budget, budget_id)
        if budget is None:
            raise BudgetNotFoundError(budget_id)
        return budget
