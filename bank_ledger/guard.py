"""
Balance Guard

Pure pre-condition check for withdrawals. No storage, no side effects.
"""

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class GuardDecision:
    """Outcome of a withdrawal check"""
    accepted: bool
    balance: Decimal
    amount: Decimal
    remaining: Decimal   # balance after the withdrawal
    shortfall: Decimal   # 0 when accepted


class BalanceGuard:
    """Decides whether a debit may be applied to a balance"""

    def __init__(self, minimum_balance: Decimal = Decimal('0')):
        if minimum_balance < Decimal('0'):
            raise ValueError("Minimum balance cannot be negative")
        self.minimum_balance = minimum_balance

    def check_withdrawal(self, current_balance: Decimal, amount: Decimal) -> GuardDecision:
        remaining = current_balance - amount
        accepted = remaining >= self.minimum_balance
        return GuardDecision(
            accepted=accepted,
            balance=current_balance,
            amount=amount,
            remaining=remaining,
            shortfall=Decimal('0') if accepted else self.minimum_balance - remaining
        )
