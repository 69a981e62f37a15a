"""
Account Management Module

The Account record, its keyed persistence and the per-account locks that
bound every balance mutation. Account numbers are unique across the store;
uniqueness is enforced by a secondary table keyed by account number that is
written in the same transaction as the account row.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional
from contextlib import contextmanager
import threading
import uuid
import zlib

from .currency import CurrencyCode, parse_currency
from .errors import AccountNotFoundError, ConflictError, StaleAccountError
from .storage import DuplicateKeyError, StorageInterface, StorageRecord


_IMMUTABLE_FIELDS = frozenset({'id', 'account_number', 'currency', 'holder_id', 'created_at'})


@dataclass
class Account(StorageRecord):
    """
    A holder's balance record

    account_number, currency and holder_id are fixed once the account exists.
    version counts persisted writes; 0 means never saved.
    """
    account_number: str
    holder_id: str
    currency: CurrencyCode
    balance: Decimal = Decimal('0')
    version: int = 0

    def __post_init__(self):
        if not self.account_number:
            raise ValueError("Account number is required")
        if not self.holder_id:
            raise ValueError("Account holder is required")
        if not isinstance(self.balance, Decimal):
            self.balance = Decimal(str(self.balance))
        if self.balance < Decimal('0'):
            raise ValueError(f"Account balance cannot be negative: {self.balance}")

    def __setattr__(self, name, value):
        if name in _IMMUTABLE_FIELDS and name in self.__dict__:
            raise AttributeError(f"Account.{name} cannot be changed after creation")
        super().__setattr__(name, value)

    @classmethod
    def open(cls, holder_id: str, currency: CurrencyCode, account_number: str) -> 'Account':
        """New, unsaved account with a zero balance"""
        now = datetime.now(timezone.utc)
        return cls(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            account_number=account_number,
            holder_id=holder_id,
            currency=currency,
            balance=Decimal('0'),
            version=0
        )

    def apply_balance(self, new_balance: Decimal) -> None:
        """Set a new balance; the store persists it on the next save"""
        if new_balance < Decimal('0'):
            raise ValueError(f"Account balance cannot be negative: {new_balance}")
        self.balance = new_balance
        self.updated_at = datetime.now(timezone.utc)

    def to_dict(self) -> Dict:
        result = super().to_dict()
        result['currency'] = self.currency.code
        return result

    @classmethod
    def from_dict(cls, data: Dict) -> 'Account':
        data = dict(data)
        data['currency'] = parse_currency(data['currency'])
        data['balance'] = Decimal(data['balance'])
        return super().from_dict(data)


class AccountStore:
    """
    Durable keyed storage for accounts

    Lookups by account number go through the account_numbers table, which
    maps each number to the id of the account that owns it.
    """

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.accounts_table = "accounts"
        self.numbers_table = "account_numbers"

    def atomic(self):
        """Transactional block on the underlying storage"""
        return self.storage.atomic()

    def save(self, account: Account) -> Account:
        """
        Insert a new account or update an existing one

        Raises:
            ConflictError: account number already belongs to another account
            StaleAccountError: the stored version moved since the account was read
            AccountNotFoundError: updating an account that was never saved
        """
        if account.version == 0:
            self._insert(account)
        else:
            self._update(account)
        return account

    def _insert(self, account: Account) -> None:
        data = account.to_dict()
        data['version'] = 1
        with self.storage.atomic():
            try:
                self.storage.insert(self.numbers_table, account.account_number,
                                    {"account_id": account.id})
                self.storage.insert(self.accounts_table, account.id, data)
            except DuplicateKeyError as e:
                raise ConflictError(
                    f"Account number {account.account_number} is already in use",
                    details={"account_number": account.account_number, "table": e.table}
                )
        account.version = 1

    def _update(self, account: Account) -> None:
        data = account.to_dict()
        data['version'] = account.version + 1
        with self.storage.atomic():
            if not self.storage.compare_and_swap(self.accounts_table, account.id,
                                                 account.version, data):
                if not self.storage.exists(self.accounts_table, account.id):
                    raise AccountNotFoundError(
                        f"Account {account.account_number} not found",
                        details={"account_number": account.account_number}
                    )
                raise StaleAccountError(
                    f"Account {account.account_number} was modified concurrently",
                    details={"account_number": account.account_number,
                             "expected_version": account.version}
                )
        account.version += 1

    def get(self, account_id: str) -> Optional[Account]:
        """Get account by ID"""
        data = self.storage.load(self.accounts_table, account_id)
        if data:
            return Account.from_dict(data)
        return None

    def get_by_account_number(self, account_number: str) -> Optional[Account]:
        """Get account by account number, or None"""
        owner = self.storage.load(self.numbers_table, account_number)
        if not owner:
            return None
        return self.get(owner['account_id'])

    def find_by_account_number(self, account_number: str) -> Account:
        """Get account by account number, raising if absent"""
        account = self.get_by_account_number(account_number)
        if account is None:
            raise AccountNotFoundError(
                f"Account {account_number} not found",
                details={"account_number": account_number}
            )
        return account

    def exists_by_account_number(self, account_number: str) -> bool:
        return self.storage.exists(self.numbers_table, account_number)

    def find_all_by_holder(self, holder) -> List[Account]:
        """All accounts owned by a user, oldest first"""
        accounts = [Account.from_dict(data)
                    for data in self.storage.find(self.accounts_table, {"holder_id": holder.id})]
        accounts.sort(key=lambda a: a.created_at)
        return accounts

    def count(self) -> int:
        return self.storage.count(self.accounts_table)


class AccountLocks:
    """
    Striped in-process locks keyed by account number

    hold() takes its stripes in ascending index order, so operations that
    touch several accounts always lock in the same order.
    """

    def __init__(self, stripes: int = 64):
        if stripes < 1:
            raise ValueError("At least one lock stripe is required")
        self._locks = [threading.RLock() for _ in range(stripes)]

    def stripe_of(self, account_number: str) -> int:
        return zlib.crc32(account_number.encode('utf-8')) % len(self._locks)

    @contextmanager
    def hold(self, *account_numbers: str):
        stripes = sorted({self.stripe_of(number) for number in account_numbers})
        acquired = []
        try:
            for index in stripes:
                self._locks[index].acquire()
                acquired.append(index)
            yield
        finally:
            for index in reversed(acquired):
                self._locks[index].release()
