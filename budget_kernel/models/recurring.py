"""
Module: budget_kernel.models.recurring
Responsibility: ORM persistence for recurring expense and income templates.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Templates are generators.  Deactivating a template (is_active=False)
      stops future expansion but never retracts generated obligations.
    - Anchor fields are validated by domain.recurrence before expansion.
"""

from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from budget_kernel.db.base import TrackedBase, UUIDString


class TemplateKind(str, Enum):
    EXPENSE = "expense"
    INCOME = "income"


class Frequency(str, Enum):
    """How often a template produces an occurrence."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class RecurringTemplate(TrackedBase):
    """
    Generator for planned expenses or planned incomes.

    Contract:
        - weekly templates set day_of_week (0 = Monday .. 6 = Sunday).
        - monthly templates set day_of_month (1..31).
        - yearly templates set month_of_year (1..12) and day_of_month.
        - fund_id/funded_amount apply to expense templates only.
    """

    __tablename__ = "recurring_templates"

    __table_args__ = (
        Index("idx_template_kind_active", "kind", "is_active"),
    )

    kind: Mapped[TemplateKind] = mapped_column(String(10), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Expense templates
    category_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # Income templates
    source: Mapped[str | None] = mapped_column(String(255), nullable=True)

    account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id", ondelete="SET NULL"),
        nullable=True,
    )

    fund_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("funds.id", ondelete="SET NULL"),
        nullable=True,
    )

    funded_amount: Mapped[Decimal | None] = mapped_column(nullable=True)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    frequency: Mapped[Frequency] = mapped_column(String(10), nullable=False)

    day_of_week: Mapped[int | None] = mapped_column(Integer, nullable=True)

    day_of_month: Mapped[int | None] = mapped_column(Integer, nullable=True)

    month_of_year: Mapped[int | None] = mapped_column(Integer, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<RecurringTemplate {self.kind}:{self.name} {self.frequency}>"
