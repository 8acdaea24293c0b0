"""
Tests for currency conversion into the base currency.

Covers:
- identity conversion for the base currency
- direct and inverse rate lookup
- degraded conversion at rate 1 with a RATE_UNAVAILABLE warning
- ConversionTotals accumulation and warning de-duplication
"""

from decimal import Decimal

import pytest

from budget_kernel.domain.conversion import (
    ConversionTotals,
    CurrencyConverter,
    RateWarning,
    StaticRateProvider,
)
from budget_kernel.exceptions import InvalidExchangeRateError


class TestCurrencyConverter:

    def test_base_currency_is_identity(self):
        converter = CurrencyConverter("RUB", {("USD", "RUB"): Decimal("90")})
        conversion = converter.convert(Decimal("1500.50"), "RUB")

        assert conversion.base_amount == Decimal("1500.50")
        assert conversion.rate == Decimal("1")
        assert not conversion.is_degraded

    def test_direct_rate(self):
        converter = CurrencyConverter("RUB", {("USD", "RUB"): Decimal("90")})
        assert converter.to_base(Decimal("10"), "USD") == Decimal("900")

    def test_inverse_rate_used_when_direct_missing(self):
        converter = CurrencyConverter("RUB", {("RUB", "GEL"): Decimal("0.04")})
        assert converter.to_base(Decimal("2"), "GEL") == Decimal("50")

    def test_missing_rate_degrades_to_one_with_warning(self):
        converter = CurrencyConverter("RUB")
        conversion = converter.convert(Decimal("100"), "KZT")

        assert conversion.base_amount == Decimal("100")
        assert conversion.is_degraded
        assert conversion.warning == RateWarning("KZT", "RUB")
        assert conversion.warning.code == "RATE_UNAVAILABLE"
        assert "KZT" in conversion.warning.message

    def test_lowercase_codes_are_normalized(self):
        converter = CurrencyConverter("rub", {("usd", "rub"): Decimal("90")})
        assert converter.base_currency == "RUB"
        assert converter.to_base(Decimal("1"), "usd") == Decimal("90")


class TestStaticRateProvider:

    def test_rejects_non_positive_rate(self):
        with pytest.raises(InvalidExchangeRateError):
            StaticRateProvider({("USD", "RUB"): Decimal("0")})

    def test_pairs(self):
        provider = StaticRateProvider({("USD", "RUB"): Decimal("90"), ("EUR", "RUB"): Decimal("100")})
        assert provider.pairs() == frozenset({("USD", "RUB"), ("EUR", "RUB")})
        assert provider.get_rate("GEL", "RUB") is None


class TestConversionTotals:

    def test_accumulates_and_collects_each_warning_once(self):
        converter = CurrencyConverter("RUB", {("USD", "RUB"): Decimal("90")})
        totals = ConversionTotals(converter)

        totals.add(Decimal("100"), "RUB")
        totals.add(Decimal("1"), "USD")
        totals.add(Decimal("5"), "GEL")
        totals.add(Decimal("5"), "GEL")
        totals.add(None, "USD")

        assert totals.total == Decimal("200")
        assert totals.warnings == (RateWarning("GEL", "RUB"),)

    def test_warnings_are_sorted(self):
        totals = ConversionTotals(CurrencyConverter("RUB"))
        totals.add_all([(Decimal("1"), "USD"), (Decimal("1"), "EUR")])

        assert [w.from_currency for w in totals.warnings] == ["EUR", "USD"]
