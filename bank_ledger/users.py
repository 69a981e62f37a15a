"""
Account Holders

The ledger does not own users; it only needs to resolve a session token to a
User and ask whether a phone number is taken. UserDirectory is that contract,
and UserStore is the storage-backed implementation used by default.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol
import secrets
import uuid

from .errors import ConflictError, UserNotFoundError
from .storage import DuplicateKeyError, StorageInterface, StorageRecord


@dataclass
class User(StorageRecord):
    """Account holder identified by phone number and session token"""
    phone_number: str
    token: str
    full_name: str = ""

    @classmethod
    def create(cls, phone_number: str, full_name: str = "",
               token: Optional[str] = None) -> 'User':
        now = datetime.now(timezone.utc)
        return cls(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            phone_number=phone_number,
            token=token or secrets.token_urlsafe(24),
            full_name=full_name
        )


class UserDirectory(Protocol):
    """User lookup consumed by the ledger"""

    def find_by_token(self, token: str) -> User:
        ...

    def exists_by_phone_number(self, phone_number: str) -> bool:
        ...


class UserStore:
    """Storage-backed UserDirectory"""

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.users_table = "users"
        self.phones_table = "user_phone_numbers"

    def save(self, user: User) -> User:
        """Persist a new user; phone numbers are unique"""
        with self.storage.atomic():
            try:
                self.storage.insert(self.phones_table, user.phone_number, {"user_id": user.id})
            except DuplicateKeyError:
                raise ConflictError(
                    f"Phone number {user.phone_number} is already registered",
                    details={"phone_number": user.phone_number}
                )
            self.storage.save(self.users_table, user.id, user.to_dict())
        return user

    def get(self, user_id: str) -> Optional[User]:
        data = self.storage.load(self.users_table, user_id)
        return User.from_dict(data) if data else None

    def find_by_token(self, token: str) -> User:
        matches = self.storage.find(self.users_table, {"token": token}) if token else []
        if not matches:
            raise UserNotFoundError("No user for the given token")
        return User.from_dict(matches[0])

    def exists_by_phone_number(self, phone_number: str) -> bool:
        return self.storage.exists(self.phones_table, phone_number)
