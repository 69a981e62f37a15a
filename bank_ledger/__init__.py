"""
Bank Ledger

Account ledger engine: account opening, deposits, withdrawals and balance
queries with non-negative balances under concurrent mutation. All amounts
use Decimal; every mutation is recorded in a hash-chained audit trail.
"""

__version__ = "1.0.0"
