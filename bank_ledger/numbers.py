"""
Account Number Generation

Account numbers are the ISO alphabetic currency code followed by a block of
random digits. Collisions are improbable but possible; the account store's
unique constraint is what actually guarantees uniqueness.
"""

import secrets

from .currency import CurrencyCode, parse_currency
from .errors import InvalidCurrencyError


class AccountNumberGenerator:
    """Generates currency-prefixed account numbers"""

    def __init__(self, digits: int = 16):
        if digits < 8:
            raise ValueError("Account numbers need at least 8 random digits")
        self.digits = digits

    def generate(self, currency: CurrencyCode) -> str:
        """Generate a new account number for the given currency"""
        if not isinstance(currency, CurrencyCode):
            raise InvalidCurrencyError(
                f"Unknown currency code: {currency!r}",
                details={"currency": str(currency)}
            )
        suffix = secrets.randbelow(10 ** self.digits)
        return f"{currency.code}{suffix:0{self.digits}d}"

    def currency_of(self, account_number: str) -> CurrencyCode:
        """Decode the currency encoded in an account number"""
        return parse_currency(account_number[:3])
