"""
DistributionService -- allocating received income into funds.

Responsibility:
    Plan, confirm, cancel, edit and delete IncomeDistribution rows, and
    maintain the standing DistributionRules that propose them.

Architecture position:
    Kernel > Services.  All balance effects go through BalanceService; the
    rule arithmetic is the pure ``domain.distribution_rules`` engine.

Invariants enforced:
    - Over one income, sum(planned_amount) <= income.amount
      (DistributionOverAllocatedError).
    - confirm moves actual_amount from an account into the fund's currency
      asset atomically; cancel moves it back.  A confirm followed by a cancel
      restores both balances exactly.
    - Only pending distributions can be confirmed, edited or deleted
      (AlreadyCompletedError); only completed ones can be cancelled
      (DistributionNotCompletedError).
    - A cancel that the fund can no longer cover fails with
      InsufficientFundBalanceError and changes nothing.
    - Paused and completed funds cannot receive new allocations.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from budget_kernel.domain.distribution_rules import propose_distributions
from budget_kernel.domain.dtos import DistributionResult, RuleSpec
from budget_kernel.exceptions import (
    AccountNotFoundError,
    AlreadyCompletedError,
    DistributionNotCompletedError,
    DistributionNotFoundError,
    DistributionOverAllocatedError,
    FundInactiveError,
    IncomeNotFoundError,
    InvalidAmountError,
    ValidationError,
)
from budget_kernel.logging_config import LogContext, get_logger
from budget_kernel.models.account import Account
from budget_kernel.models.distribution import (
    DistributionRule,
    DistributionRuleType,
    IncomeDistribution,
)
from budget_kernel.models.fund import FundStatus, FundTransactionType
from budget_kernel.models.ledger import Income
from budget_kernel.services.balance_service import BalanceService
from budget_kernel.services.base import BaseService, period_of

logger = get_logger("services.distribution")

ZERO = Decimal("0")
HUNDRED = Decimal("100")


class DistributionService(BaseService):

    def __init__(self, session, **kwargs):
        super().__init__(session, **kwargs)
        self._balances = BalanceService(session, **self._dependencies())

    # ------------------------------------------------------------------
    # Lookup helpers
    # ------------------------------------------------------------------

    def get(self, distribution_id: UUID, lock: bool = False) -> IncomeDistribution:
        distribution = self.session.get(
            IncomeDistribution, distribution_id, with_for_update=True if lock else None
        )
        if distribution is None:
            raise DistributionNotFoundError(distribution_id)
        return distribution

    def _lock_income(self, income_id: UUID) -> Income:
        income = self.session.get(Income, income_id, with_for_update=True)
        if income is None:
            raise IncomeNotFoundError(income_id)
        return income

    def planned_total(self, income_id: UUID, exclude_id: UUID | None = None) -> Decimal:
        stmt = select(IncomeDistribution.planned_amount).where(
            IncomeDistribution.income_id == income_id
        )
        if exclude_id is not None:
            stmt = stmt.where(IncomeDistribution.id != exclude_id)
        return sum(self.session.scalars(stmt), ZERO)

    def _check_allocation(self, income: Income, amount: Decimal, exclude_id: UUID | None = None) -> None:
        total = self.planned_total(income.id, exclude_id) + amount
        if total > income.amount:
            raise DistributionOverAllocatedError(income.id, income.amount, total)

    # ------------------------------------------------------------------
    # Plan / edit / delete
    # ------------------------------------------------------------------

    def plan(self, income_id: UUID, fund_id: UUID, planned_amount: Decimal) -> IncomeDistribution:
        """
        Allocate part of an income to a fund.

        Raises:
            DistributionOverAllocatedError: the income's distributions would
                exceed its amount.
            FundInactiveError: the fund is paused or completed.
        """
        if planned_amount is None or planned_amount <= 0:
            raise InvalidAmountError("planned_amount", planned_amount)

        with LogContext.bind(entity_id=income_id), self._atomic("Income", income_id):
            income = self._lock_income(income_id)
            fund = self._balances.get_fund(fund_id)
            if fund.status != FundStatus.ACTIVE:
                raise FundInactiveError(fund.id, fund.status)
            self._check_allocation(income, planned_amount)

            distribution = self._add(IncomeDistribution(
                income_id=income.id,
                fund_id=fund.id,
                planned_amount=planned_amount,
                is_completed=False,
            ))

        logger.info(
            "distribution_planned",
            extra={
                "distribution_id": str(distribution.id),
                "fund_id": str(fund_id),
                "planned_amount": str(planned_amount),
            },
        )
        self._emit("IncomeDistribution", distribution.id, "planned", [period_of(income.income_date)])
        return distribution

    def plan_from_rules(self, income_id: UUID) -> list[IncomeDistribution]:
        """
        Create pending distributions proposed by the active rules.

        Funds that already have a distribution for this income, and funds
        that are not active, are skipped.
        """
        with LogContext.bind(entity_id=income_id), self._atomic("Income", income_id):
            income = self._lock_income(income_id)
            rules = self.session.scalars(
                select(DistributionRule)
                .where(DistributionRule.is_active.is_(True))
                .order_by(DistributionRule.priority, DistributionRule.fund_id)
            ).all()
            taken = set(self.session.scalars(
                select(IncomeDistribution.fund_id).where(IncomeDistribution.income_id == income.id)
            ))
            for rule in rules:
                if self._balances.get_fund(rule.fund_id).status != FundStatus.ACTIVE:
                    taken.add(rule.fund_id)

            proposals = propose_distributions(
                income.amount,
                income.currency,
                [RuleSpec(r.id, r.fund_id, r.rule_type, r.value, r.priority) for r in rules],
                already_planned=self.planned_total(income.id),
                skip_fund_ids=taken,
                rounding_places=self._settings.distribution_rounding_places,
            )
            created = [
                self._add(IncomeDistribution(
                    income_id=income.id,
                    fund_id=proposal.fund_id,
                    planned_amount=proposal.planned_amount,
                    is_completed=False,
                ))
                for proposal in proposals
            ]

        logger.info(
            "distributions_proposed",
            extra={"rules": len(rules), "created_count": len(created)},
        )
        for distribution in created:
            self._emit("IncomeDistribution", distribution.id, "planned", [period_of(income.income_date)])
        return created

    def update(self, distribution_id: UUID, new_planned_amount: Decimal) -> IncomeDistribution:
        """Change a pending distribution's planned amount."""
        if new_planned_amount is None or new_planned_amount <= 0:
            raise InvalidAmountError("planned_amount", new_planned_amount)

        with self._atomic("IncomeDistribution", distribution_id):
            distribution = self.get(distribution_id, lock=True)
            if distribution.is_completed:
                raise AlreadyCompletedError(distribution.id)
            income = self._lock_income(distribution.income_id)
            self._check_allocation(income, new_planned_amount, exclude_id=distribution.id)
            distribution.planned_amount = new_planned_amount
            self._touch(distribution)

        logger.info(
            "distribution_updated",
            extra={"distribution_id": str(distribution_id), "planned_amount": str(new_planned_amount)},
        )
        self._emit("IncomeDistribution", distribution.id, "updated", [period_of(income.income_date)])
        return distribution

    def delete(self, distribution_id: UUID) -> None:
        """Delete a pending distribution.  Completed ones must be cancelled first."""
        with self._atomic("IncomeDistribution", distribution_id):
            distribution = self.get(distribution_id, lock=True)
            if distribution.is_completed:
                raise AlreadyCompletedError(distribution.id)
            income = self.session.get(Income, distribution.income_id)
            self.session.delete(distribution)

        logger.info("distribution_deleted", extra={"distribution_id": str(distribution_id)})
        self._emit("IncomeDistribution", distribution_id, "deleted", [period_of(income.income_date)])

    # ------------------------------------------------------------------
    # Confirm / cancel
    # ------------------------------------------------------------------

    def confirm(
        self,
        distribution_id: UUID,
        actual_amount: Decimal | None = None,
        source_account_id: UUID | None = None,
    ) -> DistributionResult:
        """
        Move the money: debit the source account, credit the fund.

        ``actual_amount`` defaults to planned_amount; ``source_account_id``
        defaults to the account the income was received on.

        Raises:
            AlreadyCompletedError: already confirmed.
            InsufficientAccountBalanceError: the account cannot cover it.
            FundInactiveError: the fund is paused or completed.
            OptimisticLockError: a concurrent confirm won the race.
        """
        with LogContext.bind(entity_id=distribution_id), self._atomic("IncomeDistribution", distribution_id):
            distribution = self.get(distribution_id, lock=True)
            if distribution.is_completed:
                raise AlreadyCompletedError(distribution.id)

            income = self.session.get(Income, distribution.income_id)
            amount = actual_amount if actual_amount is not None else distribution.planned_amount
            if amount <= 0:
                raise InvalidAmountError("actual_amount", amount)

            account = self.session.get(Account, source_account_id or income.account_id)
            if account is None:
                raise AccountNotFoundError(source_account_id or income.account_id)
            if account.is_credit:
                raise ValidationError("Distributions cannot be funded from a credit account")

            account_change = self._balances.debit_account(account.id, amount, account.currency)
            fund_change = self._balances.credit_fund(
                distribution.fund_id, account.currency, amount, FundTransactionType.CONTRIBUTION,
                account_id=account.id, income_id=income.id, distribution_id=distribution.id,
            )

            distribution.is_completed = True
            distribution.actual_amount = amount
            distribution.completed_at = self._clock.now()
            distribution.source_account_id = account.id
            self._touch(distribution)

            logger.info(
                "distribution_confirmed",
                extra={
                    "fund_id": str(distribution.fund_id),
                    "account_id": str(account.id),
                    "amount": str(amount),
                },
            )

        self._emit("IncomeDistribution", distribution.id, "confirmed", [period_of(income.income_date)])
        return DistributionResult(
            distribution_id=distribution.id,
            is_completed=True,
            amount=amount,
            balance_changes=(account_change, fund_change),
        )

    def cancel(self, distribution_id: UUID) -> DistributionResult:
        """
        Reverse a confirmed distribution: debit the fund, credit the account.

        Raises:
            DistributionNotCompletedError: the distribution is pending.
            InsufficientFundBalanceError: the fund already spent the money.
        """
        with LogContext.bind(entity_id=distribution_id), self._atomic("IncomeDistribution", distribution_id):
            distribution = self.get(distribution_id, lock=True)
            if not distribution.is_completed:
                raise DistributionNotCompletedError(distribution.id)

            income = self.session.get(Income, distribution.income_id)
            account = self.session.get(Account, distribution.source_account_id)
            if account is None:
                raise AccountNotFoundError(distribution.source_account_id)
            amount = distribution.actual_amount

            fund_change = self._balances.debit_fund(
                distribution.fund_id, account.currency, amount,
                FundTransactionType.CONTRIBUTION_REVERSAL,
                account_id=account.id, income_id=income.id, distribution_id=distribution.id,
            )
            account_change = self._balances.credit_account(account.id, amount, account.currency)

            distribution.is_completed = False
            distribution.actual_amount = None
            distribution.completed_at = None
            distribution.source_account_id = None
            self._touch(distribution)

            logger.info(
                "distribution_cancelled",
                extra={"fund_id": str(distribution.fund_id), "amount": str(amount)},
            )

        self._emit("IncomeDistribution", distribution.id, "cancelled", [period_of(income.income_date)])
        return DistributionResult(
            distribution_id=distribution.id,
            is_completed=False,
            amount=amount,
            balance_changes=(fund_change, account_change),
        )

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def create_rule(
        self,
        fund_id: UUID,
        rule_type: DistributionRuleType | str,
        value: Decimal,
        priority: int = 0,
    ) -> DistributionRule:
        rule_type = DistributionRuleType(rule_type)
        if value is None or value <= 0:
            raise InvalidAmountError("value", value)
        if rule_type == DistributionRuleType.PERCENTAGE and value > HUNDRED:
            raise InvalidAmountError("value", value, "must not exceed 100 percent")

        with self._atomic("DistributionRule"):
            self._balances.get_fund(fund_id)
            rule = self._add(DistributionRule(
                fund_id=fund_id,
                rule_type=rule_type.value,
                value=value,
                priority=priority,
                is_active=True,
            ))

        logger.info(
            "distribution_rule_created",
            extra={"rule_id": str(rule.id), "rule_type": rule_type.value, "value": str(value)},
        )
        return rule

    def set_rule_active(self, rule_id: UUID, is_active: bool) -> DistributionRule:
        with self._atomic("DistributionRule", rule_id):
            rule = self.session.get(DistributionRule, rule_id)
            if rule is None:
                raise ValidationError(f"Unknown distribution rule: {rule_id}")
            rule.is_active = is_active
            self._touch(rule)
        return rule
