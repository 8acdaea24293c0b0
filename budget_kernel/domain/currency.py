"""Currency -- ISO 4217 registry and precision-derived rounding."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import ClassVar

from budget_kernel.exceptions import InvalidCurrencyError


@dataclass(frozen=True)
class CurrencyInfo:
    """Information about a single ISO 4217 currency."""

    code: str
    decimal_places: int
    name: str

    @property
    def quantize_string(self) -> str:
        """String for Decimal.quantize() to round to this currency's precision."""
        if self.decimal_places == 0:
            return "1"
        return "0." + "0" * self.decimal_places


class CurrencyRegistry:
    """Registry of the ISO 4217 currencies a household is likely to hold."""

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        # Major currencies
        "USD": CurrencyInfo("USD", 2, "US Dollar"),
        "EUR": CurrencyInfo("EUR", 2, "Euro"),
        "GBP": CurrencyInfo("GBP", 2, "Pound Sterling"),
        "JPY": CurrencyInfo("JPY", 0, "Japanese Yen"),
        "CHF": CurrencyInfo("CHF", 2, "Swiss Franc"),
        "CNY": CurrencyInfo("CNY", 2, "Yuan Renminbi"),
        "CAD": CurrencyInfo("CAD", 2, "Canadian Dollar"),
        "AUD": CurrencyInfo("AUD", 2, "Australian Dollar"),
        # CIS and neighbours
        "RUB": CurrencyInfo("RUB", 2, "Russian Ruble"),
        "BYN": CurrencyInfo("BYN", 2, "Belarusian Ruble"),
        "KZT": CurrencyInfo("KZT", 2, "Kazakhstani Tenge"),
        "UZS": CurrencyInfo("UZS", 2, "Uzbekistan Sum"),
        "KGS": CurrencyInfo("KGS", 2, "Kyrgyzstani Som"),
        "AMD": CurrencyInfo("AMD", 2, "Armenian Dram"),
        "GEL": CurrencyInfo("GEL", 2, "Georgian Lari"),
        "AZN": CurrencyInfo("AZN", 2, "Azerbaijani Manat"),
        "UAH": CurrencyInfo("UAH", 2, "Ukrainian Hryvnia"),
        "TRY": CurrencyInfo("TRY", 2, "Turkish Lira"),
        "AED": CurrencyInfo("AED", 2, "UAE Dirham"),
        "THB": CurrencyInfo("THB", 2, "Thai Baht"),
        "RSD": CurrencyInfo("RSD", 2, "Serbian Dinar"),
        "PLN": CurrencyInfo("PLN", 2, "Polish Zloty"),
        "CZK": CurrencyInfo("CZK", 2, "Czech Koruna"),
        "ILS": CurrencyInfo("ILS", 2, "Israeli New Shekel"),
        "INR": CurrencyInfo("INR", 2, "Indian Rupee"),
        "HKD": CurrencyInfo("HKD", 2, "Hong Kong Dollar"),
        "SGD": CurrencyInfo("SGD", 2, "Singapore Dollar"),
        # Zero decimal currencies
        "KRW": CurrencyInfo("KRW", 0, "South Korean Won"),
        "VND": CurrencyInfo("VND", 0, "Vietnamese Dong"),
        "ISK": CurrencyInfo("ISK", 0, "Icelandic Krona"),
        # Three decimal currencies
        "BHD": CurrencyInfo("BHD", 3, "Bahraini Dinar"),
        "KWD": CurrencyInfo("KWD", 3, "Kuwaiti Dinar"),
        "OMR": CurrencyInfo("OMR", 3, "Omani Rial"),
    }

    DEFAULT_DECIMAL_PLACES: ClassVar[int] = 2

    @classmethod
    def is_valid(cls, code: str) -> bool:
        """Check if a currency code is a supported ISO 4217 code."""
        if not code or not isinstance(code, str):
            return False
        return code.upper().strip() in cls._CURRENCIES

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo | None:
        if not code or not isinstance(code, str):
            return None
        return cls._CURRENCIES.get(code.upper().strip())

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        info = cls.get_info(code)
        return info.decimal_places if info else cls.DEFAULT_DECIMAL_PLACES

    @classmethod
    def validate(cls, code: str) -> str:
        """
        Validate and normalize a currency code.

        Raises:
            InvalidCurrencyError: (a ValueError) for anything that is not a
                supported three-letter code.
        """
        if not code or not isinstance(code, str):
            raise InvalidCurrencyError(code)

        normalized = code.upper().strip()
        if len(normalized) != 3 or normalized not in cls._CURRENCIES:
            raise InvalidCurrencyError(code)

        return normalized

    @classmethod
    def all_codes(cls) -> frozenset[str]:
        return frozenset(cls._CURRENCIES.keys())


def round_to_currency(amount: Decimal, currency: str, places: int | None = None) -> Decimal:
    """Round ``amount`` half-up to the currency's precision (or ``places``)."""
    if places is None:
        places = CurrencyRegistry.get_decimal_places(currency)
    quantum = Decimal("1") if places == 0 else Decimal("0." + "0" * places)
    return amount.quantize(quantum, rounding=ROUND_HALF_UP)
