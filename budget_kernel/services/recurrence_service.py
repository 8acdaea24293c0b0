"""
RecurrenceService -- recurring templates and their expansion into budgets.

Responsibility:
    Store recurring expense/income templates and generate the pending
    obligations they produce for a budget month.

Architecture position:
    Kernel > Services.  Date arithmetic lives in ``domain.recurrence``; this
    service performs the existence checks and inserts.

Invariants enforced:
    - Generation is idempotent: an occurrence is keyed by
      (template, occurrence_date) and is never inserted twice, even if the
      earlier row was since confirmed, skipped, re-dated or moved to another
      month.  The unique constraints on planned_expenses/planned_incomes back
      this up.
    - Inactive templates produce nothing; deactivation never deletes rows
      already generated.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from budget_kernel.domain.currency import CurrencyRegistry
from budget_kernel.domain.dtos import GenerateResult
from budget_kernel.domain.periods import BudgetPeriod
from budget_kernel.domain.recurrence import RecurrenceRule, expand
from budget_kernel.exceptions import (
    FundingExceedsAmountError,
    InvalidAmountError,
    TemplateNotFoundError,
    ValidationError,
)
from budget_kernel.logging_config import LogContext, get_logger
from budget_kernel.models.obligation import ObligationStatus, PlannedExpense, PlannedIncome
from budget_kernel.models.recurring import Frequency, RecurringTemplate, TemplateKind
from budget_kernel.services.base import BaseService
from budget_kernel.services.budget_service import BudgetService

logger = get_logger("services.recurrence")


class RecurrenceService(BaseService):

    def __init__(self, session, **kwargs):
        super().__init__(session, **kwargs)
        self._budgets = BudgetService(session, **self._dependencies())

    def create_template(
        self,
        kind: TemplateKind | str,
        name: str,
        amount: Decimal,
        currency: str,
        frequency: Frequency | str,
        day_of_week: int | None = None,
        day_of_month: int | None = None,
        month_of_year: int | None = None,
        category_id: UUID | None = None,
        source: str | None = None,
        account_id: UUID | None = None,
        fund_id: UUID | None = None,
        funded_amount: Decimal | None = None,
    ) -> RecurringTemplate:
        kind = TemplateKind(kind)
        frequency = Frequency(frequency)
        currency = CurrencyRegistry.validate(currency)
        if amount is None or amount <= 0:
            raise InvalidAmountError("amount", amount)
        RecurrenceRule(frequency.value, day_of_week, day_of_month, month_of_year).validate()

        if kind == TemplateKind.INCOME:
            if not source:
                raise ValidationError("Income templates need a source")
            if fund_id is not None or funded_amount:
                raise ValidationError("Only expense templates can be fund-financed")
        if funded_amount:
            if fund_id is None:
                raise ValidationError("funded_amount requires a fund_id")
            if funded_amount < 0:
                raise InvalidAmountError("funded_amount", funded_amount, "must not be negative")
            if funded_amount > amount:
                raise FundingExceedsAmountError("recurring template", funded_amount, amount)

        with self._atomic("RecurringTemplate"):
            template = self._add(RecurringTemplate(
                kind=kind.value,
                name=name,
                category_id=category_id,
                source=source,
                account_id=account_id,
                fund_id=fund_id if funded_amount else None,
                funded_amount=funded_amount or None,
                amount=amount,
                currency=currency,
                frequency=frequency.value,
                day_of_week=day_of_week,
                day_of_month=day_of_month,
                month_of_year=month_of_year,
                is_active=True,
            ))

        logger.info(
            "recurring_template_created",
            extra={"template_id": str(template.id), "kind": kind.value, "frequency": frequency.value},
        )
        return template

    def set_active(self, template_id: UUID, is_active: bool) -> RecurringTemplate:
        with self._atomic("RecurringTemplate", template_id):
            template = self.session.get(RecurringTemplate, template_id)
            if template is None:
                raise TemplateNotFoundError(template_id)
            template.is_active = is_active
            self._touch(template)

        logger.info(
            "recurring_template_toggled",
            extra={"template_id": str(template_id), "is_active": is_active},
        )
        return template

    def generate_for_period(self, year: int, month: int) -> GenerateResult:
        """
        Expand every active template into the (year, month) budget.

        Returns the ids created in this run and how many occurrences already
        existed.  Running it again for the same month creates nothing.
        """
        period = BudgetPeriod(year, month)
        budget = self._budgets.get_or_create(year, month)

        created_expenses: list[UUID] = []
        created_incomes: list[UUID] = []
        existing = 0

        with LogContext.bind(budget_id=budget.id), self._atomic("Budget", budget.id):
            templates = self.session.scalars(
                select(RecurringTemplate)
                .where(RecurringTemplate.is_active.is_(True))
                .order_by(RecurringTemplate.created_at, RecurringTemplate.id)
            ).all()

            for template in templates:
                rule = RecurrenceRule.from_template(template)
                model = PlannedExpense if template.kind == TemplateKind.EXPENSE else PlannedIncome
                known = self._existing_occurrences(model, template.id, period)

                for planned_date in expand(rule, period.start, period.end):
                    if planned_date in known:
                        existing += 1
                        continue
                    obligation = self._add(self._occurrence(template, budget.id, planned_date))
                    self.session.flush()
                    if model is PlannedExpense:
                        created_expenses.append(obligation.id)
                    else:
                        created_incomes.append(obligation.id)

            logger.info(
                "obligations_generated",
                extra={
                    "year": year,
                    "month": month,
                    "templates": len(templates),
                    "created_count": len(created_expenses) + len(created_incomes),
                    "existing": existing,
                },
            )

        if created_expenses or created_incomes:
            self._emit("Budget", budget.id, "generated", [period.key])
        return GenerateResult(
            budget_id=budget.id,
            year=year,
            month=month,
            created_expense_ids=tuple(created_expenses),
            created_income_ids=tuple(created_incomes),
            existing_count=existing,
        )

    def _existing_occurrences(self, model, template_id: UUID, period: BudgetPeriod) -> set[date]:
        return set(self.session.scalars(
            select(model.occurrence_date).where(
                model.recurring_template_id == template_id,
                model.occurrence_date >= period.start,
                model.occurrence_date <= period.end,
            )
        ))

    @staticmethod
    def _occurrence(template: RecurringTemplate, budget_id: UUID, planned_date: date):
        if template.kind == TemplateKind.EXPENSE:
            return PlannedExpense(
                budget_id=budget_id,
                recurring_template_id=template.id,
                category_id=template.category_id,
                name=template.name,
                planned_amount=template.amount,
                currency=template.currency,
                planned_date=planned_date,
                occurrence_date=planned_date,
                status=ObligationStatus.PENDING.value,
                account_id=template.account_id,
                fund_id=template.fund_id,
                funded_amount=template.funded_amount,
            )
        return PlannedIncome(
            budget_id=budget_id,
            recurring_template_id=template.id,
            source=template.source,
            name=template.name,
            expected_amount=template.amount,
            currency=template.currency,
            planned_date=planned_date,
            occurrence_date=planned_date,
            status=ObligationStatus.PENDING.value,
            account_id=template.account_id,
        )
