"""
Module: budget_kernel.selectors.reserve_selector
Responsibility: Read-only queries over pending credit-card reserves.

Ordering:
    Reserves are listed oldest first: by created_at, then by id.  This is
    also the order in which a repayment consumes them.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from budget_kernel.domain.dtos import PendingReserves, ReserveView
from budget_kernel.models.reserve import CreditCardReserve
from budget_kernel.selectors.base import BaseSelector

ZERO = Decimal("0")


def _view(reserve: CreditCardReserve) -> ReserveView:
    return ReserveView(
        id=reserve.id,
        credit_card_account_id=reserve.credit_card_account_id,
        fund_id=reserve.fund_id,
        expense_id=reserve.expense_id,
        amount=reserve.amount,
        remaining=reserve.remaining,
        created_at=reserve.created_at,
    )


class ReserveSelector(BaseSelector[CreditCardReserve]):

    def _pending(self, *criteria) -> PendingReserves:
        rows = self.session.scalars(
            select(CreditCardReserve)
            .where(CreditCardReserve.remaining > 0, *criteria)
            .order_by(CreditCardReserve.created_at, CreditCardReserve.id)
        ).all()
        views = tuple(_view(r) for r in rows)
        return PendingReserves(
            reserves=views,
            total_pending=sum((v.remaining for v in views), ZERO),
        )

    def pending_for_card(self, credit_card_account_id: UUID) -> PendingReserves:
        """Reserves with remaining > 0 on one card, oldest first."""
        return self._pending(CreditCardReserve.credit_card_account_id == credit_card_account_id)

    def pending_for_fund(self, fund_id: UUID) -> PendingReserves:
        """Reserves a fund still owes across all cards."""
        return self._pending(CreditCardReserve.fund_id == fund_id)
