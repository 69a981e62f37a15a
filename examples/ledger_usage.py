#!/usr/bin/env python3
"""
Example: Running the account ledger against a configured backend

Set BANK_LEDGER_DATABASE_URL to sqlite:///ledger.db or a postgresql:// URL
to use a persistent backend; the default is in-memory storage.
"""

import os
import sys
from decimal import Decimal

# Add the ledger package to the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from bank_ledger.config import LedgerConfig
from bank_ledger.currency import CurrencyCode
from bank_ledger.errors import LedgerError
from bank_ledger.factory import build_ledger
from bank_ledger.logging_config import configure_from_settings
from bank_ledger.users import User


def main():
    print("Account Ledger - Usage Example")
    print("=" * 60)

    # 1. Configuration
    print("\n1. Configuration Setup")
    config = LedgerConfig()
    configure_from_settings(config)
    print(f"   Database URL: {config.database_url}")
    print(f"   Minimum balance: {config.min_account_balance}")

    # 2. Ledger wiring
    print("\n2. Ledger Initialization")
    ledger = build_ledger(config)
    holder = ledger.users.save(User.create("+15550100000", full_name="Example Holder"))
    print(f"   Holder token: {holder.token}")

    # 3. Accounts
    print("\n3. Opening Accounts")
    usd = ledger.create_account(holder, CurrencyCode.USD)
    eur = ledger.create_account(holder, "eur")
    print(f"   USD account: {usd.account_number}")
    print(f"   EUR account: {eur.account_number}")

    # 4. Balance updates
    print("\n4. Deposits and Withdrawals")
    print(f"   Deposit 250.00 -> {ledger.deposit(usd.account_number, Decimal('250.00'))}")
    print(f"   Withdraw 75.50 -> {ledger.withdraw(usd.account_number, '75.50')}")

    try:
        ledger.withdraw(usd.account_number, Decimal('1000'))
    except LedgerError as e:
        print(f"   Rejected ({e.kind.value}): {e.message}")

    # 5. Status
    print("\n5. Holder Summary")
    for account in ledger.find_accounts_for_holder(holder.token):
        print(f"   {account.account_number}: {account.balance} {account.currency.code}")

    if ledger.audit_trail is not None:
        result = ledger.audit_trail.verify_integrity()
        print(f"   Audit events: {result['total_events']} (valid: {result['valid']})")

    ledger.store.storage.close()
    print("\nExample completed")
    print("=" * 60)


if __name__ == "__main__":
    main()
