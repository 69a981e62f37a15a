"""
Ledger wiring: builds storage, stores, guard and audit trail from configuration.
"""

from typing import Optional

from .accounts import AccountStore
from .audit import AuditTrail
from .config import LedgerConfig, get_config
from .guard import BalanceGuard
from .ledger import AccountLedger
from .storage import StorageInterface, create_storage
from .users import UserDirectory, UserStore


def build_ledger(config: Optional[LedgerConfig] = None,
                 storage: Optional[StorageInterface] = None,
                 users: Optional[UserDirectory] = None) -> AccountLedger:
    """
    Assemble an AccountLedger

    Args:
        config: Settings to use (global configuration if omitted)
        storage: Backend to use instead of the one named by config.database_url
        users: User directory (a UserStore on the same storage if omitted)
    """
    config = config or get_config()
    storage = storage or create_storage(config.database_url)

    return AccountLedger(
        store=AccountStore(storage),
        users=users or UserStore(storage),
        guard=BalanceGuard(config.min_account_balance),
        audit_trail=AuditTrail(storage) if config.enable_audit_logging else None,
        max_update_retries=config.max_update_retries,
        retry_backoff_seconds=config.retry_backoff_seconds,
        account_number_attempts=config.account_number_attempts,
        max_transaction_amount=config.max_transaction_amount,
        empty_holder_is_error=config.empty_holder_is_error
    )
