"""Calendar-month budget periods."""

import calendar
from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True, order=True)
class BudgetPeriod:
    """One calendar month, the unit every budget and summary is keyed by."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"month must be 1..12, got {self.month}")
        if not 1 <= self.year <= 9999:
            raise ValueError(f"year out of range: {self.year}")

    @classmethod
    def containing(cls, day: date) -> "BudgetPeriod":
        return cls(day.year, day.month)

    @property
    def start(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def end(self) -> date:
        return date(self.year, self.month, calendar.monthrange(self.year, self.month)[1])

    @property
    def key(self) -> tuple[int, int]:
        return (self.year, self.month)

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def next(self) -> "BudgetPeriod":
        if self.month == 12:
            return BudgetPeriod(self.year + 1, 1)
        return BudgetPeriod(self.year, self.month + 1)

    def previous(self) -> "BudgetPeriod":
        if self.month == 1:
            return BudgetPeriod(self.year - 1, 12)
        return BudgetPeriod(self.year, self.month - 1)

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"
