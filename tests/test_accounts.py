"""
Test suite for accounts module

Tests the Account record, keyed persistence with unique account numbers and
optimistic versioning, and per-account lock ordering.
"""

import pytest
import threading
from decimal import Decimal
from datetime import datetime, timezone

from bank_ledger.accounts import Account, AccountLocks, AccountStore
from bank_ledger.currency import CurrencyCode
from bank_ledger.errors import AccountNotFoundError, ConflictError, StaleAccountError
from bank_ledger.storage import InMemoryStorage
from bank_ledger.users import User


class TestAccount:
    """Test Account class functionality"""

    def test_open_starts_at_zero(self):
        account = Account.open("USER001", CurrencyCode.USD, "USD0000000000000001")

        assert account.balance == Decimal('0')
        assert account.version == 0
        assert account.currency == CurrencyCode.USD
        assert account.holder_id == "USER001"
        assert account.id

    def test_negative_balance_refused(self):
        now = datetime.now(timezone.utc)
        with pytest.raises(ValueError, match="cannot be negative"):
            Account(
                id="ACC001",
                created_at=now,
                updated_at=now,
                account_number="USD0000000000000001",
                holder_id="USER001",
                currency=CurrencyCode.USD,
                balance=Decimal('-0.01')
            )

    def test_required_fields(self):
        with pytest.raises(ValueError, match="Account number is required"):
            Account.open("USER001", CurrencyCode.USD, "")
        with pytest.raises(ValueError, match="holder is required"):
            Account.open("", CurrencyCode.USD, "USD0000000000000001")

    @pytest.mark.parametrize("field_name,value", [
        ("account_number", "USD9999999999999999"),
        ("currency", CurrencyCode.EUR),
        ("holder_id", "USER002"),
        ("id", "other"),
    ])
    def test_identity_fields_are_fixed(self, field_name, value):
        account = Account.open("USER001", CurrencyCode.USD, "USD0000000000000001")
        with pytest.raises(AttributeError, match="cannot be changed"):
            setattr(account, field_name, value)

    def test_apply_balance(self):
        account = Account.open("USER001", CurrencyCode.USD, "USD0000000000000001")
        before = account.updated_at
        account.apply_balance(Decimal('42.10'))
        assert account.balance == Decimal('42.10')
        assert account.updated_at >= before

        with pytest.raises(ValueError):
            account.apply_balance(Decimal('-1'))
        assert account.balance == Decimal('42.10')

    def test_dict_round_trip_keeps_decimal(self):
        account = Account.open("USER001", CurrencyCode.JPY, "JPY0000000000000001")
        account.apply_balance(Decimal('1234567890.123456789'))

        data = account.to_dict()
        assert data['currency'] == "JPY"
        assert data['balance'] == "1234567890.123456789"

        restored = Account.from_dict(data)
        assert restored.balance == Decimal('1234567890.123456789')
        assert restored.currency is CurrencyCode.JPY
        assert restored.created_at == account.created_at


class TestAccountStore:
    """Test keyed account persistence"""

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.store = AccountStore(self.storage)
        self.holder = User.create("+15550000001", "Ada Holder")

    def _open(self, number="USD0000000000000001", holder=None):
        holder = holder or self.holder
        return Account.open(holder.id, CurrencyCode.USD, number)

    def test_save_and_find(self):
        account = self.store.save(self._open())
        assert account.version == 1

        found = self.store.find_by_account_number("USD0000000000000001")
        assert found.id == account.id
        assert found.balance == Decimal('0')
        assert found.version == 1
        assert self.store.get(account.id).account_number == account.account_number

    def test_find_missing(self):
        with pytest.raises(AccountNotFoundError, match="not found"):
            self.store.find_by_account_number("USD404")
        assert self.store.get_by_account_number("USD404") is None

    def test_exists(self):
        self.store.save(self._open())
        assert self.store.exists_by_account_number("USD0000000000000001")
        assert not self.store.exists_by_account_number("USD0000000000000002")

    def test_duplicate_account_number_conflicts(self):
        self.store.save(self._open())
        duplicate = self._open()

        with pytest.raises(ConflictError, match="already in use"):
            self.store.save(duplicate)

        # Loser left nothing behind
        assert self.store.get(duplicate.id) is None
        assert self.store.count() == 1

    def test_update_bumps_version(self):
        account = self.store.save(self._open())
        account.apply_balance(Decimal('10'))
        self.store.save(account)

        stored = self.store.find_by_account_number(account.account_number)
        assert stored.balance == Decimal('10')
        assert stored.version == 2
        assert account.version == 2

    def test_stale_update_rejected(self):
        self.store.save(self._open())
        first = self.store.find_by_account_number("USD0000000000000001")
        second = self.store.find_by_account_number("USD0000000000000001")

        first.apply_balance(Decimal('100'))
        self.store.save(first)

        second.apply_balance(Decimal('5'))
        with pytest.raises(StaleAccountError) as exc_info:
            self.store.save(second)
        assert exc_info.value.retryable

        assert self.store.find_by_account_number("USD0000000000000001").balance == Decimal('100')

    def test_update_of_unsaved_account(self):
        account = self._open()
        account.version = 3
        with pytest.raises(AccountNotFoundError):
            self.store.save(account)

    def test_find_all_by_holder(self):
        other = User.create("+15550000002")
        first = self.store.save(self._open("USD0000000000000001"))
        second = self.store.save(self._open("USD0000000000000002"))
        self.store.save(self._open("USD0000000000000003", holder=other))

        accounts = self.store.find_all_by_holder(self.holder)
        assert [a.id for a in accounts] == [first.id, second.id]
        assert self.store.find_all_by_holder(User.create("+15550000003")) == []


class TestAccountLocks:

    def test_same_number_same_stripe(self):
        locks = AccountLocks(stripes=8)
        assert locks.stripe_of("USD1") == locks.stripe_of("USD1")
        assert 0 <= locks.stripe_of("EUR42") < 8

    def test_hold_is_reentrant(self):
        locks = AccountLocks()
        with locks.hold("USD1"):
            with locks.hold("USD1", "USD2"):
                pass

    def test_hold_excludes_other_threads(self):
        locks = AccountLocks()
        entered = threading.Event()

        def contender():
            with locks.hold("USD1"):
                entered.set()

        with locks.hold("USD1"):
            thread = threading.Thread(target=contender)
            thread.start()
            assert not entered.wait(0.1)
        thread.join(timeout=5)
        assert entered.is_set()

    def test_opposite_order_does_not_deadlock(self):
        locks = AccountLocks()
        errors = []

        def worker(first, second):
            try:
                for _ in range(200):
                    with locks.hold(first, second):
                        pass
            except Exception as e:
                errors.append(e)

        threads = [
            threading.Thread(target=worker, args=("USD1", "EUR2")),
            threading.Thread(target=worker, args=("EUR2", "USD1")),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert not any(thread.is_alive() for thread in threads)
        assert errors == []

    def test_stripes_must_be_positive(self):
        with pytest.raises(ValueError):
            AccountLocks(stripes=0)
