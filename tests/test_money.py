"""
Tests for amount normalization

Validates the half-up rounding rule, rejection of invalid amounts and
that floats never leak binary rounding into stored values.
"""

import pytest
from decimal import Decimal

from wallet_ledger.errors import InvalidAmount
from wallet_ledger.money import format_amount, normalize_amount, quantize, to_decimal
from wallet_ledger.models import TransactionKind


class TestNormalizeAmount:
    """Test amount normalization"""

    def test_rounds_half_up(self):
        """10.005 rounds up to 10.01"""
        assert normalize_amount("10.005") == Decimal("10.01")
        assert normalize_amount(Decimal("10.005")) == Decimal("10.01")
        assert normalize_amount("10.004") == Decimal("10.00")
        assert normalize_amount("0.125") == Decimal("0.13")

    def test_float_goes_through_str(self):
        """Floats are converted via their shortest repr, not binary value"""
        assert normalize_amount(10.005) == Decimal("10.01")
        assert normalize_amount(0.1) == Decimal("0.10")

    def test_result_has_two_places(self):
        """Normalized amounts always carry scale 2"""
        amount = normalize_amount(5)
        assert amount == Decimal("5.00")
        assert amount.as_tuple().exponent == -2

    @pytest.mark.parametrize("value", [0, "0.00", "-1", -0.01, "0.004"])
    def test_rejects_non_positive(self, value):
        """Amounts that are not positive after rounding are rejected"""
        with pytest.raises(InvalidAmount):
            normalize_amount(value)

    @pytest.mark.parametrize("value", ["abc", "", None, True, "NaN", "Infinity", [1]])
    def test_rejects_non_numbers(self, value):
        """Non-numeric input is rejected"""
        with pytest.raises(InvalidAmount):
            normalize_amount(value)

    def test_rejects_out_of_range_exponent(self):
        """Values too large to quantize are rejected, not crashed on"""
        with pytest.raises(InvalidAmount):
            normalize_amount("1e40")

    def test_max_amount_is_inclusive(self):
        """The configured maximum itself is allowed"""
        limit = Decimal("999999.99")
        assert normalize_amount("999999.99", limit) == limit
        with pytest.raises(InvalidAmount):
            normalize_amount("1000000.00", limit)

    def test_invalid_amount_is_value_error(self):
        """InvalidAmount can be caught as ValueError"""
        with pytest.raises(ValueError):
            normalize_amount("-5")


class TestHelpers:
    """Test helper functions"""

    def test_to_decimal_keeps_precision(self):
        assert to_decimal("1.23456") == Decimal("1.23456")
        assert to_decimal(7) == Decimal("7")

    def test_quantize(self):
        assert quantize(Decimal("2.675")) == Decimal("2.68")

    def test_format_amount(self):
        assert format_amount(Decimal("1234.5")) == "1,234.50"

    def test_kind_applies_signed_amount(self):
        """Top-ups add and charges subtract"""
        balance = Decimal("10.00")
        assert TransactionKind.TOP_UP.apply(balance, Decimal("2.50")) == Decimal("12.50")
        assert TransactionKind.CHARGE.apply(balance, Decimal("2.50")) == Decimal("7.50")

    def test_kind_defaults(self):
        """Default descriptions and messages derive from the kind"""
        assert TransactionKind.TOP_UP.default_description == "Top-up transaction"
        assert TransactionKind.CHARGE.default_description == "Charge transaction"
        assert TransactionKind.TOP_UP.success_message == "Top-up successful"
        assert TransactionKind.CHARGE.success_message == "Charge successful"
