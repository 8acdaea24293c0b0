"""
Recurrence expansion for recurring templates.

Responsibility:
    Decide on which dates a recurring template produces an occurrence
    within a date range.

Architecture position:
    Kernel > Domain -- pure functional core.  ``RecurrenceService`` feeds it
    templates and performs the existence checks before inserting obligations.

Invariants enforced:
    - Day-of-month anchors are clamped to the last valid day of the target
      month: day 31 in April falls on the 30th, in February on the 28th or
      29th.  Yearly anchors clamp the same way (Feb 29 -> Feb 28).
    - Expansion is deterministic and side-effect free; the same inputs
      always yield the same ascending list of dates.

Failure modes:
    - InvalidRecurrenceError for unknown frequencies or out-of-range anchors.
"""

import calendar
from dataclasses import dataclass
from datetime import date, timedelta

from budget_kernel.exceptions import InvalidRecurrenceError

DAILY = "daily"
WEEKLY = "weekly"
MONTHLY = "monthly"
YEARLY = "yearly"

FREQUENCIES = frozenset({DAILY, WEEKLY, MONTHLY, YEARLY})


@dataclass(frozen=True)
class RecurrenceRule:
    """
    Frequency plus its anchor.

    day_of_week uses Python's convention: 0 = Monday .. 6 = Sunday.
    """

    frequency: str
    day_of_week: int | None = None
    day_of_month: int | None = None
    month_of_year: int | None = None

    @classmethod
    def from_template(cls, template) -> "RecurrenceRule":
        frequency = template.frequency
        return cls(
            frequency=getattr(frequency, "value", frequency),
            day_of_week=template.day_of_week,
            day_of_month=template.day_of_month,
            month_of_year=template.month_of_year,
        )

    def validate(self) -> "RecurrenceRule":
        """Return self if the anchor fits the frequency, else raise."""
        if self.frequency not in FREQUENCIES:
            raise InvalidRecurrenceError(str(self.frequency), "unknown frequency")

        if self.frequency == WEEKLY:
            if self.day_of_week is None or not 0 <= self.day_of_week <= 6:
                raise InvalidRecurrenceError(
                    self.frequency, f"day_of_week must be 0..6, got {self.day_of_week}"
                )

        if self.frequency in (MONTHLY, YEARLY):
            if self.day_of_month is None or not 1 <= self.day_of_month <= 31:
                raise InvalidRecurrenceError(
                    self.frequency, f"day_of_month must be 1..31, got {self.day_of_month}"
                )

        if self.frequency == YEARLY:
            if self.month_of_year is None or not 1 <= self.month_of_year <= 12:
                raise InvalidRecurrenceError(
                    self.frequency, f"month_of_year must be 1..12, got {self.month_of_year}"
                )

        return self


def clamp_day(year: int, month: int, day: int) -> date:
    """The given day of the month, or the month's last day if it is shorter."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def _months_between(start: date, end: date):
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        yield year, month
        if month == 12:
            year, month = year + 1, 1
        else:
            month += 1


def expand(rule: RecurrenceRule, period_start: date, period_end: date) -> list[date]:
    """
    All occurrence dates of ``rule`` in [period_start, period_end], ascending.

    An empty or inverted range yields no dates.
    """
    rule.validate()
    if period_end < period_start:
        return []

    if rule.frequency == DAILY:
        span = (period_end - period_start).days
        return [period_start + timedelta(days=offset) for offset in range(span + 1)]

    if rule.frequency == WEEKLY:
        shift = (rule.day_of_week - period_start.weekday()) % 7
        first = period_start + timedelta(days=shift)
        occurrences = []
        current = first
        while current <= period_end:
            occurrences.append(current)
            current += timedelta(days=7)
        return occurrences

    if rule.frequency == MONTHLY:
        candidates = (
            clamp_day(year, month, rule.day_of_month)
            for year, month in _months_between(period_start, period_end)
        )
    else:
        candidates = (
            clamp_day(year, rule.month_of_year, rule.day_of_month)
            for year in range(period_start.year, period_end.year + 1)
        )

    return [d for d in candidates if period_start <= d <= period_end]


def first_occurrence(rule: RecurrenceRule, period_start: date, period_end: date) -> date | None:
    """The earliest occurrence in range, or None when the template does not fire."""
    occurrences = expand(rule, period_start, period_end)
    return occurrences[0] if occurrences else None
