"""
Currency conversion into the base (reporting) currency.

Responsibility:
    Turn any (amount, currency) pair into a base-currency amount using a
    read-only rate table.  This is the leaf dependency of every aggregation.

Architecture position:
    Kernel > Domain -- pure.  Rates come in through the ``RateProvider``
    protocol; ``selectors.rate_selector`` supplies a database-backed table.

Invariants enforced:
    - Identity conversion when currency == base currency (rate exactly 1).
    - A missing rate never fails a conversion: the amount is passed through
      at rate 1 and the ``Conversion`` carries a ``RateWarning`` with code
      RATE_UNAVAILABLE that aggregation consumers must surface.
    - No shared mutable state; a converter may be used from many threads.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from budget_kernel.exceptions import ExchangeRateNotFoundError, InvalidExchangeRateError

ONE = Decimal("1")
ZERO = Decimal("0")


class RateProvider(Protocol):
    """Anything that can answer "how many ``to`` for one ``from``"."""

    def get_rate(self, from_currency: str, to_currency: str) -> Decimal | None:
        ...


class StaticRateProvider:
    """
    Immutable in-memory rate table.

    Rates are keyed by (from_currency, to_currency).  Non-positive rates are
    rejected at construction.
    """

    def __init__(self, rates: Mapping[tuple[str, str], Decimal] | None = None):
        table: dict[tuple[str, str], Decimal] = {}
        for (from_currency, to_currency), rate in (rates or {}).items():
            rate = Decimal(rate)
            if rate <= 0:
                raise InvalidExchangeRateError(from_currency, to_currency, rate)
            table[(from_currency.upper(), to_currency.upper())] = rate
        self._rates = table

    def get_rate(self, from_currency: str, to_currency: str) -> Decimal | None:
        return self._rates.get((from_currency.upper(), to_currency.upper()))

    def pairs(self) -> frozenset[tuple[str, str]]:
        return frozenset(self._rates)


@dataclass(frozen=True, order=True)
class RateWarning:
    """Soft data-quality warning: no rate for the pair, rate 1 was used."""

    from_currency: str
    to_currency: str

    code: str = ExchangeRateNotFoundError.code

    @property
    def message(self) -> str:
        return str(ExchangeRateNotFoundError(self.from_currency, self.to_currency))


@dataclass(frozen=True)
class Conversion:
    """Result of converting one amount."""

    amount: Decimal
    currency: str
    base_amount: Decimal
    base_currency: str
    rate: Decimal
    warning: RateWarning | None = None

    @property
    def is_degraded(self) -> bool:
        return self.warning is not None


class CurrencyConverter:
    """
    Convert amounts into ``base_currency``.

    Lookup order for a non-base currency C:
        1. direct rate (C -> base): amount * rate
        2. inverse rate (base -> C): amount / rate
        3. neither: amount * 1, flagged with RateWarning
    """

    def __init__(self, base_currency: str, rates: RateProvider | Mapping[tuple[str, str], Decimal] | None = None):
        self.base_currency = base_currency.upper()
        if rates is None or isinstance(rates, Mapping):
            rates = StaticRateProvider(rates)
        self._rates = rates

    def rate_for(self, currency: str) -> tuple[Decimal, RateWarning | None]:
        """Return (rate, warning) for converting ``currency`` into base."""
        currency = currency.upper()
        if currency == self.base_currency:
            return ONE, None

        direct = self._rates.get_rate(currency, self.base_currency)
        if direct is not None:
            return Decimal(direct), None

        inverse = self._rates.get_rate(self.base_currency, currency)
        if inverse is not None and inverse > 0:
            return ONE / Decimal(inverse), None

        return ONE, RateWarning(currency, self.base_currency)

    def convert(self, amount: Decimal, currency: str) -> Conversion:
        rate, warning = self.rate_for(currency)
        return Conversion(
            amount=amount,
            currency=currency.upper(),
            base_amount=amount * rate,
            base_currency=self.base_currency,
            rate=rate,
            warning=warning,
        )

    def to_base(self, amount: Decimal, currency: str) -> Decimal:
        """The base-currency value of ``amount``; rate 1 when unknown."""
        return self.convert(amount, currency).base_amount


class ConversionTotals:
    """
    Local accumulator: sums base amounts and remembers every degraded pair.

    Created per aggregation call; never shared.
    """

    def __init__(self, converter: CurrencyConverter):
        self._converter = converter
        self.total = ZERO
        self._warnings: set[RateWarning] = set()

    def add(self, amount: Decimal | None, currency: str) -> Decimal:
        if amount is None:
            return ZERO
        conversion = self._converter.convert(amount, currency)
        if conversion.warning is not None:
            self._warnings.add(conversion.warning)
        self.total += conversion.base_amount
        return conversion.base_amount

    def add_all(self, pairs: Iterable[tuple[Decimal | None, str]]) -> Decimal:
        for amount, currency in pairs:
            self.add(amount, currency)
        return self.total

    @property
    def warnings(self) -> tuple[RateWarning, ...]:
        return tuple(sorted(self._warnings))
