"""
Test suite for currency module

Tests the closed currency set and amount coercion. Floats must never reach
a balance.
"""

import pytest
from decimal import Decimal

from bank_ledger.currency import (
    CURRENCY_SET_VERSION, CurrencyCode, check_scale, parse_currency, require_positive, to_amount
)
from bank_ledger.errors import ErrorKind, InvalidAmountError, InvalidCurrencyError


class TestCurrencyCode:
    """Test the currency enumeration"""

    def test_members_carry_iso_data(self):
        assert CurrencyCode.USD.code == "USD"
        assert CurrencyCode.USD.numeric == "840"
        assert CurrencyCode.USD.precision == 2
        assert CurrencyCode.JPY.precision == 0
        assert CurrencyCode.RUB.numeric == "643"

    def test_codes_listing(self):
        codes = CurrencyCode.codes()
        assert "USD" in codes
        assert "EUR" in codes
        assert len(codes) == len(set(codes))

    def test_set_is_versioned(self):
        assert isinstance(CURRENCY_SET_VERSION, int)
        assert CURRENCY_SET_VERSION >= 1


class TestParseCurrency:
    """Test resolution of currency codes"""

    def test_member_passes_through(self):
        assert parse_currency(CurrencyCode.EUR) is CurrencyCode.EUR

    def test_string_codes(self):
        assert parse_currency("USD") is CurrencyCode.USD
        assert parse_currency(" gbp ") is CurrencyCode.GBP

    def test_unknown_code_rejected(self):
        with pytest.raises(InvalidCurrencyError, match="Unknown currency code") as exc_info:
            parse_currency("XYZ")
        assert exc_info.value.kind == ErrorKind.INVALID_CURRENCY
        assert "USD" in exc_info.value.details["supported"]

    def test_non_string_rejected(self):
        with pytest.raises(InvalidCurrencyError):
            parse_currency(840)
        with pytest.raises(InvalidCurrencyError):
            parse_currency(None)


class TestAmounts:
    """Test amount coercion"""

    def test_decimal_int_and_string(self):
        assert to_amount(Decimal('10.25')) == Decimal('10.25')
        assert to_amount(7) == Decimal('7')
        assert to_amount("  99.99 ") == Decimal('99.99')

    def test_float_rejected(self):
        with pytest.raises(InvalidAmountError, match="float"):
            to_amount(0.1)

    def test_bool_rejected(self):
        with pytest.raises(InvalidAmountError):
            to_amount(True)

    def test_garbage_rejected(self):
        with pytest.raises(InvalidAmountError, match="Cannot convert"):
            to_amount("ten dollars")
        with pytest.raises(InvalidAmountError):
            to_amount(["100"])

    def test_non_finite_rejected(self):
        with pytest.raises(InvalidAmountError, match="finite"):
            to_amount(Decimal('NaN'))
        with pytest.raises(InvalidAmountError, match="finite"):
            to_amount("Infinity")

    @pytest.mark.parametrize("value", [0, "0", Decimal('0.00'), -1, "-0.01", Decimal('-100')])
    def test_require_positive_rejects_non_positive(self, value):
        with pytest.raises(InvalidAmountError, match="must be positive"):
            require_positive(value)

    def test_require_positive_accepts_small_amounts(self):
        assert require_positive("0.01") == Decimal('0.01')


class TestCheckScale:
    """Amounts must be whole minor units of the account currency"""

    @pytest.mark.parametrize("value,currency", [
        (Decimal('10.25'), CurrencyCode.USD),
        (Decimal('10.250'), CurrencyCode.EUR),
        (Decimal('7'), CurrencyCode.JPY),
        (Decimal('1E+3'), CurrencyCode.JPY),
    ])
    def test_whole_minor_units_pass_unchanged(self, value, currency):
        assert check_scale(value, currency) is value

    def test_sub_cent_rejected(self):
        with pytest.raises(InvalidAmountError, match="at most 2 decimal places") as exc_info:
            check_scale(Decimal('0.001'), CurrencyCode.USD)
        assert exc_info.value.details["precision"] == 2

    def test_fractional_yen_rejected(self):
        with pytest.raises(InvalidAmountError, match="at most 0 decimal places"):
            check_scale(Decimal('0.5'), CurrencyCode.JPY)

    def test_tiny_exponent_rejected(self):
        with pytest.raises(InvalidAmountError):
            check_scale(Decimal('1E-28'), CurrencyCode.USD)

    def test_beyond_context_precision_rejected(self):
        # 27 integer digits cannot also carry two decimal places in 28 digits
        with pytest.raises(InvalidAmountError, match="supported precision"):
            check_scale(Decimal('1' * 27), CurrencyCode.USD)
