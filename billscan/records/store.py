"""
Record Store Module.

In-memory, thread-safe collection of billing records keyed by id.

Concurrency model:
    - Each record id has its own lock; writes to the same id are serialized,
      writes to different ids never wait on each other's work.
    - Records are immutable. A write builds the new record outside any
      shared lock and publishes it with a single mapping assignment, so a
      reader sees either the old record or the new one, never a mix.
    - A short index lock guards only insertion, lookup of the per-id lock
      and publication.
"""

import threading
from collections import Counter
from typing import Any, Dict, List, Optional

from billscan.utils.logger import get_logger
from billscan.utils.exceptions import (
    InvalidStateTransitionError,
    RecordNotFoundError,
    RecordStateError,
    RecordUpdateError,
)
from .models import BillingRecord, ExtractedFields, RecordStatus

logger = get_logger(__name__)


class RecordStore:
    """
    Owns every ``BillingRecord`` of the process.

    The backing mapping is private; callers only receive immutable
    snapshots.

    Example:
        >>> store = RecordStore()
        >>> record = store.create("bill.jpg")
        >>> store.get(record.id).status
        <RecordStatus.PROCESSING: 'processing'>
    """

    def __init__(self, default_currency: str = "USD") -> None:
        self._records: Dict[str, BillingRecord] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._index_lock = threading.Lock()
        self.default_currency = default_currency

    def __len__(self) -> int:
        with self._index_lock:
            return len(self._records)

    def __contains__(self, record_id: str) -> bool:
        with self._index_lock:
            return record_id in self._records

    def create(self, original_filename: str, image_path: Optional[str] = None) -> BillingRecord:
        """
        Insert a new record in ``processing`` state.

        Args:
            original_filename: Client filename.
            image_path: Where the upload was stored.

        Returns:
            The created record.
        """
        record = BillingRecord(
            original_filename=original_filename,
            image_path=image_path,
            currency=self.default_currency,
        )
        with self._index_lock:
            # uuid4 collisions are not expected; never overwrite if one happens
            while record.id in self._records:
                record = BillingRecord(
                    original_filename=original_filename,
                    image_path=image_path,
                    currency=self.default_currency,
                )
            self._records[record.id] = record
            self._locks[record.id] = threading.Lock()

        logger.debug(f"Created record {record.id} for {original_filename}")
        return record

    def get(self, record_id: str) -> BillingRecord:
        """
        Raises:
            RecordNotFoundError: If the id is unknown.
        """
        with self._index_lock:
            record = self._records.get(record_id)
        if record is None:
            raise RecordNotFoundError(record_id)
        return record

    def list(self) -> List[BillingRecord]:
        """Snapshot of all records in upload order."""
        with self._index_lock:
            return list(self._records.values())

    def completed(self) -> List[BillingRecord]:
        return [r for r in self.list() if r.status is RecordStatus.COMPLETED]

    def counts(self) -> Dict[str, int]:
        """
        Number of records per status.

        Returns:
            Dictionary with ``total`` and one key per status value.
        """
        records = self.list()
        tally = Counter(r.status.value for r in records)
        counts = {'total': len(records)}
        for status in RecordStatus:
            counts[status.value] = tally.get(status.value, 0)
        return counts

    def update(self, record_id: str, **changes: Any) -> BillingRecord:
        """
        Merge user corrections into a finished record.

        Only the fields named in ``BillingRecord.EDITABLE_FIELDS`` may be
        changed; fields not passed keep their values.

        Raises:
            RecordNotFoundError: If the id is unknown.
            RecordUpdateError: If a protected or unknown field is passed.
            RecordStateError: If the record is still processing.
        """
        forbidden = set(changes) - BillingRecord.EDITABLE_FIELDS
        if forbidden:
            raise RecordUpdateError(list(forbidden))

        with self._lock_for(record_id):
            current = self.get(record_id)
            if current.status is RecordStatus.PROCESSING:
                raise RecordStateError(record_id, current.status.value)
            updated = current.edited(changes)
            self._publish(updated)

        logger.info(f"Record {record_id} updated: {', '.join(sorted(changes)) or 'no fields'}")
        return updated

    def complete(
        self,
        record_id: str,
        fields: ExtractedFields,
        raw_text: str,
        confidence: float
    ) -> BillingRecord:
        """
        Move a record to ``completed`` with its extraction results.

        Raises:
            RecordNotFoundError: If the id is unknown.
            InvalidStateTransitionError: If the record already left processing.
        """
        return self._transition(
            record_id,
            RecordStatus.COMPLETED,
            lambda record: record.completed(fields, raw_text, confidence)
        )

    def fail(self, record_id: str, reason: Optional[str] = None) -> BillingRecord:
        """
        Move a record to ``error``.

        Raises:
            RecordNotFoundError: If the id is unknown.
            InvalidStateTransitionError: If the record already left processing.
        """
        return self._transition(
            record_id,
            RecordStatus.ERROR,
            lambda record: record.failed(reason)
        )

    def _transition(self, record_id: str, target: RecordStatus, build) -> BillingRecord:
        with self._lock_for(record_id):
            current = self.get(record_id)
            if current.status is not RecordStatus.PROCESSING:
                raise InvalidStateTransitionError(record_id, current.status.value, target.value)
            updated = build(current)
            self._publish(updated)
        return updated

    def _lock_for(self, record_id: str) -> threading.Lock:
        with self._index_lock:
            lock = self._locks.get(record_id)
        if lock is None:
            raise RecordNotFoundError(record_id)
        return lock

    def _publish(self, record: BillingRecord) -> None:
        with self._index_lock:
            self._records[record.id] = record
