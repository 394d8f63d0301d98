"""Current lock holder lookup."""
from __future__ import annotations

import threading
from datetime import UTC, datetime
from typing import Callable, Protocol, runtime_checkable

from family_studies.locks.models import LockRecord


@runtime_checkable
class LockHolderLookup(Protocol):
    """Reports the current edit lock of a document.

    Returns None when the document is not locked; raises LockLookupError
    when the lock store cannot be read.
    """

    def current_lock(self, document_id: str) -> LockRecord | None: ...


def utcnow() -> datetime:
    return datetime.now(UTC)


class InMemoryLockTable:
    """Process-local LockHolderLookup that also hands out locks."""

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self._clock = clock
        self._locks: dict[str, LockRecord] = {}
        self._guard = threading.Lock()

    def current_lock(self, document_id: str) -> LockRecord | None:
        with self._guard:
            return self._locks.get(document_id)

    def acquire(self, document_id: str, user: str, acquired_at: datetime | None = None) -> LockRecord:
        """Take (or re-take) the edit lock; the latest editor wins."""
        record = LockRecord(holder=user, acquired_at=acquired_at or self._clock())
        with self._guard:
            self._locks[document_id] = record
        return record

    def release(self, document_id: str, user: str | None = None) -> bool:
        """Drop the lock, only if held by ``user`` when one is given."""
        with self._guard:
            record = self._locks.get(document_id)
            if record is None or (user is not None and record.holder != user):
                return False
            del self._locks[document_id]
            return True
