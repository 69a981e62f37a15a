"""
Currency Codes Module

Closed set of ISO 4217 currency codes an account may be opened in, plus the
amount coercion used by every balance mutation. NEVER uses float for
monetary values.
"""

from decimal import Decimal, InvalidOperation, getcontext
from enum import Enum
from typing import Union

from .errors import InvalidAmountError, InvalidCurrencyError

# Set global decimal context for financial precision
getcontext().prec = 28

# Bumped whenever a code is added to or retired from CurrencyCode
CURRENCY_SET_VERSION = 2


class CurrencyCode(Enum):
    """ISO 4217 currency codes with numeric code and precision"""
    RUB = ("RUB", "643", 2)  # Russian Ruble
    USD = ("USD", "840", 2)  # US Dollar
    EUR = ("EUR", "978", 2)  # Euro
    GBP = ("GBP", "826", 2)  # British Pound
    CNY = ("CNY", "156", 2)  # Chinese Yuan
    JPY = ("JPY", "392", 0)  # Japanese Yen

    def __init__(self, code: str, numeric: str, precision: int):
        self.code = code
        self.numeric = numeric
        self.precision = precision

    @classmethod
    def codes(cls) -> list:
        """All recognised alphabetic codes"""
        return [member.code for member in cls]


AmountLike = Union[Decimal, int, str]


def parse_currency(value: Union["CurrencyCode", str]) -> CurrencyCode:
    """
    Resolve a currency code to a CurrencyCode member

    Args:
        value: CurrencyCode member or alphabetic code (case-insensitive)

    Returns:
        CurrencyCode member

    Raises:
        InvalidCurrencyError: If the code is not in the supported set
    """
    if isinstance(value, CurrencyCode):
        return value

    if isinstance(value, str):
        code = value.strip().upper()
        for member in CurrencyCode:
            if member.code == code:
                return member

    raise InvalidCurrencyError(
        f"Unknown currency code: {value!r}",
        details={"currency": str(value), "supported": CurrencyCode.codes()}
    )


def to_amount(value: AmountLike) -> Decimal:
    """
    Coerce a requested amount to a finite Decimal

    Floats are refused outright; booleans are refused even though they are ints.

    Raises:
        InvalidAmountError: If the value is not a finite decimal number
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidAmountError(
            f"Amount must be Decimal, int or str, got {type(value).__name__}",
            details={"amount": str(value)}
        )

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, str)):
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise InvalidAmountError(f"Cannot convert {value!r} to an amount",
                                     details={"amount": str(value)})
    else:
        raise InvalidAmountError(
            f"Amount must be Decimal, int or str, got {type(value).__name__}",
            details={"amount": repr(value)}
        )

    if not amount.is_finite():
        raise InvalidAmountError("Amount must be a finite number", details={"amount": str(value)})

    return amount


def require_positive(value: AmountLike) -> Decimal:
    """Coerce an amount and reject zero or negative values"""
    amount = to_amount(value)
    if amount <= Decimal('0'):
        raise InvalidAmountError(
            f"Amount must be positive, got {amount}",
            details={"amount": str(amount)}
        )
    return amount


def check_scale(value: Decimal, currency: CurrencyCode) -> Decimal:
    """
    Ensure a value is a whole number of the currency's minor units

    The value is returned unchanged; nothing is ever rounded. A value the
    decimal context already had to round (too many significant digits) fails
    the same way.

    Raises:
        InvalidAmountError: If the value has a fraction smaller than the minor
            unit or cannot be represented within the decimal context
    """
    quantum = Decimal('0.1') ** currency.precision
    try:
        scaled = value.quantize(quantum)
    except InvalidOperation:
        raise InvalidAmountError(
            f"{value} exceeds the supported precision for {currency.code}",
            details={"amount": str(value), "currency": currency.code}
        )

    if scaled != value:
        raise InvalidAmountError(
            f"{currency.code} amounts allow at most {currency.precision} decimal places, got {value}",
            details={"amount": str(value), "currency": currency.code,
                     "precision": currency.precision}
        )
    return value
