"""
Account Ledger Module

Orchestrates account opening, deposits, withdrawals and balance queries.
Each balance mutation is a single indivisible operation: the account's lock
is held, the account is read inside a storage transaction, validated, and
written back with a version check. A version miss (another process wrote the
row first) retries the whole operation a bounded number of times.
"""

from decimal import Decimal
from typing import Callable, List, Optional, Union
import logging
import time

from .accounts import Account, AccountLocks, AccountStore
from .audit import AuditTrail, AuditEventType
from .currency import AmountLike, CurrencyCode, check_scale, parse_currency, require_positive
from .errors import (
    ConcurrentUpdateError, ConflictError, EmptyResultError,
    InsufficientFundsError, InvalidAmountError, StaleAccountError
)
from .guard import BalanceGuard
from .logging_config import log_action
from .numbers import AccountNumberGenerator
from .users import User, UserDirectory


logger = logging.getLogger("bank_ledger.ledger")


class AccountLedger:
    """
    Enforces balance invariants across account mutations
    """

    def __init__(
        self,
        store: AccountStore,
        users: UserDirectory,
        generator: Optional[AccountNumberGenerator] = None,
        guard: Optional[BalanceGuard] = None,
        audit_trail: Optional[AuditTrail] = None,
        locks: Optional[AccountLocks] = None,
        max_update_retries: int = 5,
        retry_backoff_seconds: float = 0.01,
        account_number_attempts: int = 5,
        max_transaction_amount: Optional[Decimal] = None,
        empty_holder_is_error: bool = True
    ):
        self.store = store
        self.users = users
        self.generator = generator or AccountNumberGenerator()
        self.guard = guard or BalanceGuard()
        self.audit_trail = audit_trail
        self.locks = locks or AccountLocks()
        self.max_update_retries = max_update_retries
        self.retry_backoff_seconds = retry_backoff_seconds
        self.account_number_attempts = account_number_attempts
        self.max_transaction_amount = max_transaction_amount
        self.empty_holder_is_error = empty_holder_is_error

    def create_account(self, holder: User, currency: Union[CurrencyCode, str]) -> Account:
        """
        Open a zero-balance account for a holder

        Args:
            holder: Account owner
            currency: CurrencyCode member or alphabetic code

        Returns:
            The persisted Account

        Raises:
            InvalidCurrencyError: Unknown currency code
            ConflictError: Every generated account number was already taken
        """
        currency = parse_currency(currency)

        for attempt in range(1, self.account_number_attempts + 1):
            account = Account.open(holder.id, currency, self.generator.generate(currency))
            try:
                with self.store.atomic():
                    self.store.save(account)
                    self._audit(AuditEventType.ACCOUNT_CREATED, account, {
                        "account_number": account.account_number,
                        "currency": currency.code,
                        "holder_id": holder.id
                    }, user_id=holder.id)
            except ConflictError:
                logger.warning(f"Account number collision on attempt {attempt} for holder {holder.id}")
                if attempt == self.account_number_attempts:
                    raise
                continue

            log_action(logger, "info", f"Opened account {account.account_number}",
                       user_id=holder.id, action="create_account",
                       account_number=account.account_number, extra={"currency": currency.code})
            return account

    def deposit(self, account_number: str, amount: AmountLike) -> Decimal:
        """
        Credit an account. Each call is an independent credit.

        Returns:
            Balance after the deposit

        Raises:
            InvalidAmountError: Amount is not a positive decimal within limits
            AccountNotFoundError: No such account
            ConcurrentUpdateError: Optimistic retries exhausted
        """
        amount = self._validate_amount(amount)
        logger.info(f"Depositing {amount} to account {account_number}")

        account = self._apply(account_number, amount, AuditEventType.DEPOSIT_POSTED,
                              lambda current: current.balance + amount)

        log_action(logger, "info", f"Balance after deposit: {account.balance}",
                   user_id=account.holder_id, action="deposit", account_number=account_number,
                   extra={"amount": str(amount), "balance": str(account.balance)})
        return account.balance

    def withdraw(self, account_number: str, amount: AmountLike) -> Decimal:
        """
        Debit an account without letting its balance fall below the floor

        Returns:
            Balance after the withdrawal

        Raises:
            InvalidAmountError: Amount is not a positive decimal within limits
            AccountNotFoundError: No such account
            InsufficientFundsError: Balance read in the same transaction is too low
            ConcurrentUpdateError: Optimistic retries exhausted
        """
        amount = self._validate_amount(amount)
        logger.info(f"Withdrawing {amount} from account {account_number}")

        def debit(current: Account) -> Decimal:
            decision = self.guard.check_withdrawal(current.balance, amount)
            if not decision.accepted:
                logger.warning(f"Insufficient funds on {account_number}: "
                               f"balance {decision.balance}, requested {decision.amount}")
                raise InsufficientFundsError(
                    f"Insufficient funds on account {account_number}",
                    details={
                        "account_number": account_number,
                        "balance": str(decision.balance),
                        "amount": str(decision.amount),
                        "shortfall": str(decision.shortfall)
                    }
                )
            return decision.remaining

        account = self._apply(account_number, amount, AuditEventType.WITHDRAWAL_POSTED, debit)

        log_action(logger, "info", f"Balance after withdrawal: {account.balance}",
                   user_id=account.holder_id, action="withdraw", account_number=account_number,
                   extra={"amount": str(amount), "balance": str(account.balance)})
        return account.balance

    def get_balance(self, account_number: str) -> Decimal:
        """Current balance of an account"""
        return self.store.find_by_account_number(account_number).balance

    def get_account(self, account_number: str) -> Account:
        """Account by number, raising AccountNotFoundError if absent"""
        return self.store.find_by_account_number(account_number)

    def find_accounts_for_holder(self, token: str) -> List[Account]:
        """
        All accounts of the user owning a session token

        Raises:
            UserNotFoundError: Token does not resolve to a user
            EmptyResultError: The user has no accounts and empty_holder_is_error is set
        """
        holder = self.users.find_by_token(token)
        accounts = self.store.find_all_by_holder(holder)
        if not accounts and self.empty_holder_is_error:
            logger.warning(f"No accounts for holder {holder.id}")
            raise EmptyResultError(
                "The holder has no accounts",
                details={"holder_id": holder.id}
            )
        return accounts

    def account_exists(self, account_number: str) -> bool:
        if not account_number:
            return False
        return self.store.exists_by_account_number(account_number)

    def _validate_amount(self, amount: AmountLike) -> Decimal:
        amount = require_positive(amount)
        if self.max_transaction_amount is not None and amount > self.max_transaction_amount:
            raise InvalidAmountError(
                f"Amount {amount} exceeds the single transaction limit",
                details={"amount": str(amount), "limit": str(self.max_transaction_amount)}
            )
        return amount

    def _apply(self, account_number: str, amount: Decimal, event_type: AuditEventType,
               compute: Callable[[Account], Decimal]) -> Account:
        """Read, compute the new balance, and write back as one transaction"""
        for attempt in range(1, self.max_update_retries + 1):
            try:
                with self.locks.hold(account_number), self.store.atomic():
                    account = self.store.find_by_account_number(account_number)
                    check_scale(amount, account.currency)
                    previous = account.balance
                    account.apply_balance(check_scale(compute(account), account.currency))
                    self.store.save(account)
                    self._audit(event_type, account, {
                        "account_number": account_number,
                        "amount": amount,
                        "previous_balance": previous,
                        "new_balance": account.balance
                    }, user_id=account.holder_id)
                return account
            except StaleAccountError:
                logger.warning(f"Concurrent update on {account_number}, "
                               f"attempt {attempt} of {self.max_update_retries}")

            # Back off with the account lock released
            if attempt < self.max_update_retries:
                time.sleep(self.retry_backoff_seconds * attempt)

        raise ConcurrentUpdateError(
            f"Account {account_number} kept changing; retry the request",
            details={"account_number": account_number, "attempts": self.max_update_retries}
        )

    def _audit(self, event_type: AuditEventType, account: Account, metadata: dict,
               user_id: Optional[str] = None) -> None:
        if self.audit_trail is None:
            return
        self.audit_trail.log_event(
            event_type=event_type,
            entity_type="account",
            entity_id=account.id,
            metadata=metadata,
            user_id=user_id
        )
