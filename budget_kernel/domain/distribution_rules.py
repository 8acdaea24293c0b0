"""
Pure rule engine proposing income distributions from standing rules.

Rules are applied in ascending priority (ties broken by fund id so the
result is stable).  A percentage rule proposes ``income * value / 100``
rounded half-up; a fixed rule proposes ``value``.  Every proposal is capped
at what is still unallocated, so the proposals can never push the income
into over-allocation.
"""

from collections.abc import Iterable
from decimal import Decimal

from budget_kernel.domain.currency import round_to_currency
from budget_kernel.domain.dtos import ProposedDistribution, RuleSpec

PERCENTAGE = "percentage"
FIXED = "fixed"

HUNDRED = Decimal("100")
ZERO = Decimal("0")


def propose_distributions(
    income_amount: Decimal,
    currency: str,
    rules: Iterable[RuleSpec],
    already_planned: Decimal = ZERO,
    skip_fund_ids: Iterable = (),
    rounding_places: int | None = None,
) -> list[ProposedDistribution]:
    skip = set(skip_fund_ids)
    unallocated = income_amount - already_planned
    proposals: list[ProposedDistribution] = []

    for rule in sorted(rules, key=lambda r: (r.priority, str(r.fund_id))):
        if unallocated <= 0:
            break
        if rule.fund_id in skip:
            continue

        if rule.rule_type == PERCENTAGE:
            raw = income_amount * rule.value / HUNDRED
        elif rule.rule_type == FIXED:
            raw = rule.value
        else:
            raise ValueError(f"Unknown distribution rule type: {rule.rule_type!r}")

        amount = min(round_to_currency(raw, currency, rounding_places), unallocated)
        if amount <= 0:
            continue

        proposals.append(ProposedDistribution(rule.fund_id, amount, rule.rule_id))
        unallocated -= amount
        # one distribution per fund per income
        skip.add(rule.fund_id)

    return proposals
