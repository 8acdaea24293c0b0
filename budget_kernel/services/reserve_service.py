"""
ReserveService -- settling credit-card reserves.

Responsibility:
    List pending reserves, mark reserves as applied, and repay a credit card
    from a regular account while consuming reserves oldest first.

Architecture position:
    Kernel > Services.  Reads pending reserves through ReserveSelector and
    records the repayment transfer through LedgerService.

Invariants enforced:
    - 0 <= remaining <= amount; remaining only decreases and every decrease
      writes a ReserveApplication.
    - ``apply`` is all-or-nothing: every id is validated before any reserve
      is touched.  It moves no money; the fund was already debited when the
      expense was recorded.
    - ``repay`` consumes at most min(total_pending, repayment) of reserves,
      oldest first (created_at, then id).  The last reserve touched may be
      consumed only partly.
    - The repayment transfer and the reserve consumption share one
      savepoint: if either fails, neither the transfer nor any application
      remains.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from budget_kernel.domain.dtos import AppliedReserves, BalanceChange, PendingReserves, RepayResult
from budget_kernel.exceptions import (
    AccountNotFoundError,
    CurrencyMismatchError,
    InvalidAmountError,
    ReserveAlreadyAppliedError,
    ReserveApplicationExceedsError,
    ReserveNotFoundError,
    ValidationError,
)
from budget_kernel.logging_config import LogContext, get_logger
from budget_kernel.models.account import Account
from budget_kernel.models.reserve import CreditCardReserve, ReserveApplication
from budget_kernel.selectors.reserve_selector import ReserveSelector
from budget_kernel.services.base import BaseService, period_of
from budget_kernel.services.ledger_service import LedgerService

logger = get_logger("services.reserve")

ZERO = Decimal("0")


class ReserveService(BaseService):

    def __init__(self, session, **kwargs):
        super().__init__(session, **kwargs)
        self._ledger = LedgerService(session, **self._dependencies())
        self._selector = ReserveSelector(session, self._settings)

    def list_pending(self, credit_card_account_id: UUID) -> PendingReserves:
        return self._selector.pending_for_card(credit_card_account_id)

    def apply(self, credit_card_account_id: UUID, reserve_ids: list[UUID]) -> AppliedReserves:
        """
        Mark reserves on a card as fully applied.

        Raises:
            ReserveNotFoundError: an id is unknown or belongs to another card.
            ReserveAlreadyAppliedError: a reserve has nothing remaining.
        """
        ids = list(dict.fromkeys(reserve_ids))
        with LogContext.bind(entity_id=credit_card_account_id), self._atomic("CreditCardReserve"):
            reserves = []
            for reserve_id in ids:
                reserve = self.session.get(CreditCardReserve, reserve_id, with_for_update=True)
                if reserve is None or reserve.credit_card_account_id != credit_card_account_id:
                    raise ReserveNotFoundError(reserve_id)
                if reserve.remaining <= 0:
                    raise ReserveAlreadyAppliedError(reserve.id)
                reserves.append(reserve)

            total = ZERO
            for reserve in reserves:
                total += self._consume(reserve, reserve.remaining)

            logger.info(
                "reserves_applied",
                extra={"count": len(reserves), "reserved_amount": str(total)},
            )

        for reserve in reserves:
            self._emit("CreditCardReserve", reserve.id, "applied")
        return AppliedReserves(
            count=len(reserves),
            reserved_amount=total,
            reserve_ids=tuple(r.id for r in reserves),
        )

    def repay(
        self,
        credit_card_account_id: UUID,
        from_account_id: UUID,
        amount: Decimal,
        apply_reserves: bool = True,
        on_date: date | None = None,
        description: str | None = None,
    ) -> RepayResult:
        """
        Pay down a credit card and settle its reserves.

        The transfer moves ``amount`` from the source account to the card.
        With ``apply_reserves`` the card's pending reserves are then
        consumed oldest first up to min(total_pending, amount).

        Raises:
            ValidationError: the card is not a credit account, or the source
                is one.
            CurrencyMismatchError: the accounts differ in currency.
            InsufficientAccountBalanceError: the source cannot cover it.
        """
        if amount is None or amount <= 0:
            raise InvalidAmountError("amount", amount)

        with LogContext.bind(entity_id=credit_card_account_id), self._atomic("Account", credit_card_account_id):
            card = self._get_account(credit_card_account_id)
            source = self._get_account(from_account_id)
            if not card.is_credit:
                raise ValidationError(f"Account {card.id} is not a credit card")
            if source.is_credit:
                raise ValidationError("A credit card cannot be repaid from another credit account")
            if source.currency != card.currency:
                raise CurrencyMismatchError(card.currency, source.currency, "credit card repayment")

            card_before = card.current_balance
            source_before = source.current_balance
            transfer = self._ledger.record_transfer(
                source.id, card.id, amount,
                transfer_date=on_date or self._clock.today(),
                description=description or "Credit card repayment",
            )

            applied_ids: list[UUID] = []
            reserved = ZERO
            if apply_reserves:
                left = amount
                rows = self.session.scalars(
                    select(CreditCardReserve)
                    .where(
                        CreditCardReserve.credit_card_account_id == card.id,
                        CreditCardReserve.remaining > 0,
                    )
                    .order_by(CreditCardReserve.created_at, CreditCardReserve.id)
                    .with_for_update()
                ).all()
                for reserve in rows:
                    if left <= 0:
                        break
                    portion = min(reserve.remaining, left)
                    self._consume(reserve, portion, transfer_id=transfer.id)
                    left -= portion
                    reserved += portion
                    applied_ids.append(reserve.id)

            logger.info(
                "credit_card_repaid",
                extra={
                    "transfer_id": str(transfer.id),
                    "amount": str(amount),
                    "reserved_amount": str(reserved),
                    "reserves_applied": len(applied_ids),
                },
            )

        self._emit("Account", card.id, "repaid", [period_of(transfer.transfer_date)])
        return RepayResult(
            transfer_id=transfer.id,
            amount=amount,
            applied_reserves=AppliedReserves(
                count=len(applied_ids),
                reserved_amount=reserved,
                reserve_ids=tuple(applied_ids),
            ),
            balance_changes=(
                BalanceChange("account", source.id, source.currency, source_before, source.current_balance),
                BalanceChange("account", card.id, card.currency, card_before, card.current_balance),
            ),
        )

    def _consume(self, reserve: CreditCardReserve, portion: Decimal, transfer_id: UUID | None = None) -> Decimal:
        if portion > reserve.remaining:
            raise ReserveApplicationExceedsError(reserve.id, portion, reserve.remaining)
        now = self._clock.now()
        reserve.remaining = reserve.remaining - portion
        if reserve.remaining == 0:
            reserve.applied_at = now
        self._touch(reserve)
        self._add(ReserveApplication(
            reserve_id=reserve.id,
            amount=portion,
            transfer_id=transfer_id,
            applied_at=now,
        ))
        return portion

    def _get_account(self, account_id: UUID) -> Account:
        account = self.session.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account
