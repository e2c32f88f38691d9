"""Transactions repository adapters.

Records live in process memory only and are lost on restart.
"""

from __future__ import annotations

import threading
from typing import Protocol

from shared.models import TransactionError, TransactionErrorCode, TransactionRecord


def is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


class TransactionsRepository(Protocol):
    def save(self, record: TransactionRecord) -> TransactionRecord | TransactionError:
        """Insert or overwrite a record, or return a conflict for a reference held by another id."""

    def find_by_id(self, transaction_id: str) -> TransactionRecord | None:
        """Return the record with this id, if any."""

    def find_by_reference(self, reference: str) -> TransactionRecord | None:
        """Return the record holding this external reference, if any."""

    def find_all(self) -> list[TransactionRecord]:
        """Return every record, most recent timestamp first."""

    def find_page(self, page: int, size: int) -> list[TransactionRecord]:
        """Return one zero-based page of `find_all()`."""

    def count(self) -> int:
        """Return the number of live records."""

    def delete_by_id(self, transaction_id: str) -> bool:
        """Delete a record and return whether it existed."""

    def exists_by_id(self, transaction_id: str) -> bool:
        """Return whether a record with this id exists."""

    def exists_by_reference(self, reference: str) -> bool:
        """Return whether a live record holds this reference."""


class InMemoryTransactionsRepository:
    """Thread-safe in-memory store indexed by id and by external reference.

    A single lock covers both indices so readers never see a reference that
    points to a missing record, or a record whose reference is not indexed.
    Records are copied on the way in and out.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._records: dict[str, TransactionRecord] = {}
        self._reference_to_id: dict[str, str] = {}

    def save(self, record: TransactionRecord) -> TransactionRecord | TransactionError:
        reference = record.transaction_reference
        with self._lock:
            if not is_blank(reference):
                existing_id = self._reference_to_id.get(reference)
                if existing_id is not None and existing_id != record.id:
                    return TransactionError(
                        code=TransactionErrorCode.CONFLICT,
                        message=f"Transaction reference already exists: {reference}",
                        details={"transaction_reference": reference, "existing_id": existing_id},
                    )

            previous = self._records.get(record.id)
            if previous is not None:
                previous_reference = previous.transaction_reference
                if (
                    not is_blank(previous_reference)
                    and previous_reference != reference
                    and self._reference_to_id.get(previous_reference) == record.id
                ):
                    del self._reference_to_id[previous_reference]

            stored = record.model_copy()
            self._records[stored.id] = stored
            if not is_blank(reference):
                self._reference_to_id[reference] = stored.id
            return stored.model_copy()

    def find_by_id(self, transaction_id: str) -> TransactionRecord | None:
        if is_blank(transaction_id):
            return None
        with self._lock:
            record = self._records.get(transaction_id)
            return record.model_copy() if record is not None else None

    def find_by_reference(self, reference: str) -> TransactionRecord | None:
        if is_blank(reference):
            return None
        with self._lock:
            transaction_id = self._reference_to_id.get(reference)
            if transaction_id is None:
                return None
            return self.find_by_id(transaction_id)

    def find_all(self) -> list[TransactionRecord]:
        with self._lock:
            records = [record.model_copy() for record in self._records.values()]
        # sorted() is stable, so equal timestamps keep insertion order.
        return sorted(records, key=lambda record: record.timestamp, reverse=True)

    def find_page(self, page: int, size: int) -> list[TransactionRecord]:
        if page < 0 or size <= 0:
            return []
        records = self.find_all()
        start = page * size
        if start >= len(records):
            return []
        return records[start : start + size]

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def delete_by_id(self, transaction_id: str) -> bool:
        if is_blank(transaction_id):
            return False
        with self._lock:
            record = self._records.pop(transaction_id, None)
            if record is None:
                return False
            reference = record.transaction_reference
            if not is_blank(reference) and self._reference_to_id.get(reference) == transaction_id:
                del self._reference_to_id[reference]
            return True

    def exists_by_id(self, transaction_id: str) -> bool:
        if is_blank(transaction_id):
            return False
        with self._lock:
            return transaction_id in self._records

    def exists_by_reference(self, reference: str) -> bool:
        if is_blank(reference):
            return False
        with self._lock:
            return reference in self._reference_to_id
