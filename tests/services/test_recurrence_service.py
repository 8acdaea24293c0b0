"""
Tests for RecurrenceService -- templates and monthly generation.

Covers:
- template validation
- month-end clamping through generate_for_period()
- idempotent generation and inactive templates
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from budget_kernel.exceptions import (
    FundingExceedsAmountError,
    InvalidRecurrenceError,
    TemplateNotFoundError,
    ValidationError,
)
from budget_kernel.models.obligation import ObligationStatus, PlannedExpense, PlannedIncome


@pytest.fixture
def monthly_rent(recurrence_service):
    return recurrence_service.create_template(
        "expense", "Rent", Decimal("30000"), "RUB", "monthly", day_of_month=31,
    )


class TestCreateTemplate:

    def test_income_needs_source(self, recurrence_service):
        with pytest.raises(ValidationError):
            recurrence_service.create_template(
                "income", "Salary", Decimal("1"), "RUB", "monthly", day_of_month=10,
            )

    def test_income_cannot_be_funded(self, recurrence_service, create_fund):
        fund = create_fund()
        with pytest.raises(ValidationError):
            recurrence_service.create_template(
                "income", "Salary", Decimal("1"), "RUB", "monthly", day_of_month=10,
                source="Employer", fund_id=fund.id, funded_amount=Decimal("1"),
            )

    def test_funding_above_amount(self, recurrence_service, create_fund):
        fund = create_fund()
        with pytest.raises(FundingExceedsAmountError):
            recurrence_service.create_template(
                "expense", "Gym", Decimal("10"), "RUB", "monthly", day_of_month=1,
                fund_id=fund.id, funded_amount=Decimal("11"),
            )

    def test_weekly_needs_day_of_week(self, recurrence_service):
        with pytest.raises(InvalidRecurrenceError):
            recurrence_service.create_template("expense", "Cleaning", Decimal("10"), "RUB", "weekly")

    def test_set_active_unknown(self, recurrence_service):
        with pytest.raises(TemplateNotFoundError):
            recurrence_service.set_active(uuid4(), False)


class TestGenerate:

    def test_day_31_in_february(self, session, recurrence_service, monthly_rent):
        result = recurrence_service.generate_for_period(2023, 2)

        assert len(result.created_expense_ids) == 1
        obligation = session.get(PlannedExpense, result.created_expense_ids[0])
        assert obligation.planned_date == date(2023, 2, 28)
        assert obligation.status == ObligationStatus.PENDING.value
        assert obligation.recurring_template_id == monthly_rent.id
        assert obligation.planned_amount == Decimal("30000")

    def test_second_run_creates_nothing(self, session, recurrence_service, monthly_rent):
        recurrence_service.generate_for_period(2024, 4)

        again = recurrence_service.generate_for_period(2024, 4)

        assert again.created_expense_ids == ()
        assert again.existing_count == 1
        rows = session.scalars(
            select(PlannedExpense).where(PlannedExpense.recurring_template_id == monthly_rent.id)
        ).all()
        assert [r.planned_date for r in rows] == [date(2024, 4, 30)]

    def test_redated_occurrence_is_not_regenerated(
        self, session, recurrence_service, obligation_service, monthly_rent,
    ):
        created = recurrence_service.generate_for_period(2024, 2).created_expense_ids
        obligation_service.update_expense(created[0], planned_date=date(2024, 2, 15))

        again = recurrence_service.generate_for_period(2024, 2)

        assert again.created_expense_ids == ()
        assert again.existing_count == 1
        rows = session.scalars(
            select(PlannedExpense).where(PlannedExpense.recurring_template_id == monthly_rent.id)
        ).all()
        assert len(rows) == 1
        assert rows[0].planned_date == date(2024, 2, 15)
        assert rows[0].occurrence_date == date(2024, 2, 29)

    def test_occurrence_moved_to_next_month_is_not_regenerated(
        self, session, recurrence_service, obligation_service, monthly_rent,
    ):
        created = recurrence_service.generate_for_period(2024, 2).created_expense_ids
        obligation_service.update_expense(created[0], planned_date=date(2024, 3, 2))

        again = recurrence_service.generate_for_period(2024, 2)

        assert again.created_expense_ids == ()
        feb_rows = session.scalars(
            select(PlannedExpense).where(
                PlannedExpense.recurring_template_id == monthly_rent.id,
                PlannedExpense.budget_id == again.budget_id,
            )
        ).all()
        assert feb_rows == []

    def test_weekly_income(self, session, recurrence_service):
        recurrence_service.create_template(
            "income", "Tutoring", Decimal("2000"), "RUB", "weekly", day_of_week=0, source="Student",
        )

        result = recurrence_service.generate_for_period(2024, 4)

        dates = sorted(session.get(PlannedIncome, i).planned_date for i in result.created_income_ids)
        assert dates == [date(2024, 4, d) for d in (1, 8, 15, 22, 29)]

    def test_inactive_template_is_skipped(self, recurrence_service, monthly_rent):
        recurrence_service.set_active(monthly_rent.id, False)

        result = recurrence_service.generate_for_period(2024, 5)

        assert result.created_expense_ids == ()

    def test_deactivation_keeps_generated(self, session, recurrence_service, monthly_rent):
        created = recurrence_service.generate_for_period(2024, 5).created_expense_ids

        recurrence_service.set_active(monthly_rent.id, False)

        assert session.get(PlannedExpense, created[0]) is not None

    def test_logs_generation(self, recurrence_service, monthly_rent, captured_logs):
        recurrence_service.generate_for_period(2024, 6)

        records = [r for r in captured_logs() if r["message"] == "obligations_generated"]
        assert records[0]["created_count"] == 1
