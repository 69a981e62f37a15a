"""
Audit Trail Module

Hash-chained immutable audit log with SHA-256 for tamper detection.
Every balance mutation is logged here inside the same storage transaction
as the mutation itself, so a rolled back operation leaves no audit event.
"""

import hashlib
import json
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional, Any
from enum import Enum
from decimal import Decimal
import logging
import uuid

from .errors import ConcurrentUpdateError
from .storage import DuplicateKeyError, StorageInterface, StorageRecord


logger = logging.getLogger("bank_ledger.audit")


class AuditEventType(Enum):
    """Types of audit events"""
    ACCOUNT_CREATED = "account_created"
    DEPOSIT_POSTED = "deposit_posted"
    WITHDRAWAL_POSTED = "withdrawal_posted"


@dataclass
class AuditEvent(StorageRecord):
    """
    Immutable audit event with hash chaining for tamper detection
    """
    sequence: int       # Position in the chain, starting at 1
    event_type: AuditEventType
    entity_type: str
    entity_id: str
    previous_hash: str  # Hash of previous audit event for chaining
    current_hash: str   # SHA-256 hash of this event
    metadata: Dict[str, Any]
    user_id: Optional[str] = None

    def __post_init__(self):
        if self.metadata:
            self._serialize_metadata()

    def _serialize_metadata(self) -> None:
        """Convert metadata values to JSON-serializable format"""
        def convert_value(value):
            if isinstance(value, Decimal):
                return str(value)
            elif isinstance(value, datetime):
                return value.isoformat()
            elif isinstance(value, Enum):
                return value.value
            elif isinstance(value, dict):
                return {k: convert_value(v) for k, v in value.items()}
            elif isinstance(value, list):
                return [convert_value(v) for v in value]
            else:
                return value

        self.metadata = {k: convert_value(v) for k, v in self.metadata.items()}

    def calculate_hash(self) -> str:
        """
        Calculate SHA-256 hash of this event
        Hash includes all fields except current_hash to prevent circular reference
        """
        hash_data = {
            'id': self.id,
            'sequence': self.sequence,
            'created_at': self.created_at.isoformat(),
            'event_type': self.event_type.value,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'previous_hash': self.previous_hash,
            'user_id': self.user_id,
            'metadata': self.metadata
        }

        # Create deterministic JSON string
        json_data = json.dumps(hash_data, sort_keys=True, separators=(',', ':'))
        return hashlib.sha256(json_data.encode('utf-8')).hexdigest()

    def verify_hash(self) -> bool:
        """Verify that the current hash is correct"""
        return self.current_hash == self.calculate_hash()

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['event_type'] = self.event_type.value
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuditEvent':
        data = dict(data)
        if isinstance(data['event_type'], str):
            data['event_type'] = AuditEventType(data['event_type'])
        return super().from_dict(data)


class AuditTrail:
    """
    Hash-chained audit trail for tamper detection

    The chain head (last sequence and hash) lives in its own table. It is
    advanced with a compare-and-swap keyed on the sequence, in the same atomic
    block as the event it points to, so two writers on separate connections
    can never both extend the same link.
    """

    HEAD_ID = "head"

    def __init__(self, storage: StorageInterface, table_name: str = "audit_events",
                 max_head_attempts: int = 10):
        self.storage = storage
        self.table_name = table_name
        self.head_table = f"{table_name}_head"
        self.max_head_attempts = max_head_attempts

    def _head(self) -> Dict[str, Any]:
        return self.storage.load(self.head_table, self.HEAD_ID) or {"sequence": 0, "hash": ""}

    def _advance_head(self, previous_sequence: int, event: AuditEvent) -> bool:
        """Move the head onto event; False if another writer moved it first"""
        head = {"sequence": event.sequence, "hash": event.current_hash, "version": event.sequence}
        if previous_sequence == 0:
            try:
                self.storage.insert(self.head_table, self.HEAD_ID, head)
            except DuplicateKeyError:
                return False
            return True
        return self.storage.compare_and_swap(self.head_table, self.HEAD_ID,
                                             previous_sequence, head)

    def log_event(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: str,
        metadata: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None
    ) -> AuditEvent:
        """
        Log an audit event with hash chaining

        Args:
            event_type: Type of audit event
            entity_type: Type of entity being audited
            entity_id: ID of the entity
            metadata: Additional event-specific data
            user_id: ID of user who initiated the action

        Returns:
            Created AuditEvent

        Raises:
            ConcurrentUpdateError: The head kept moving for max_head_attempts tries
        """
        with self.storage.atomic():
            for _ in range(self.max_head_attempts):
                head = self._head()
                now = datetime.now(timezone.utc)

                event = AuditEvent(
                    id=str(uuid.uuid4()),
                    created_at=now,
                    updated_at=now,
                    sequence=head["sequence"] + 1,
                    event_type=event_type,
                    entity_type=entity_type,
                    entity_id=entity_id,
                    previous_hash=head["hash"],
                    current_hash="",
                    metadata=metadata or {},
                    user_id=user_id
                )
                event.current_hash = event.calculate_hash()

                if self._advance_head(head["sequence"], event):
                    self.storage.insert(self.table_name, event.id, event.to_dict())
                    return event

                logger.warning(f"Audit chain head moved past sequence {head['sequence']}, retrying")

        raise ConcurrentUpdateError(
            "Audit chain head kept changing; retry the request",
            details={"attempts": self.max_head_attempts}
        )

    def get_all_events(self) -> List[AuditEvent]:
        """All events in chain order"""
        events = [AuditEvent.from_dict(data) for data in self.storage.load_all(self.table_name)]
        events.sort(key=lambda e: e.sequence)
        return events

    def get_events_for_entity(self, entity_type: str, entity_id: str,
                              limit: Optional[int] = None) -> List[AuditEvent]:
        """Events for one entity in chain order, optionally only the most recent N"""
        events_data = self.storage.find(self.table_name, {
            'entity_type': entity_type,
            'entity_id': entity_id
        })
        events = sorted((AuditEvent.from_dict(data) for data in events_data),
                        key=lambda e: e.sequence)
        if limit:
            events = events[-limit:]
        return events

    def verify_integrity(self) -> Dict[str, Any]:
        """
        Verify the integrity of the entire audit chain

        Returns:
            Dictionary with integrity check results
        """
        result = {
            'valid': True,
            'total_events': 0,
            'hash_errors': [],
            'chain_breaks': []
        }

        events = self.get_all_events()
        result['total_events'] = len(events)

        previous_hash = ""
        for position, event in enumerate(events):
            if not event.verify_hash():
                result['valid'] = False
                result['hash_errors'].append({
                    'event_id': event.id,
                    'position': position,
                    'expected_hash': event.calculate_hash(),
                    'actual_hash': event.current_hash
                })
            if event.previous_hash != previous_hash or event.sequence != position + 1:
                result['valid'] = False
                result['chain_breaks'].append({
                    'event_id': event.id,
                    'position': position,
                    'expected_previous_hash': previous_hash,
                    'actual_previous_hash': event.previous_hash
                })
            previous_hash = event.current_hash

        return result

    def count_events(self) -> int:
        """Get total number of audit events"""
        return self.storage.count(self.table_name)
