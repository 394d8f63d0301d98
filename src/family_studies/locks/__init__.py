"""Edit-lock arbitration for patient and family documents."""
from __future__ import annotations

from .arbitrator import EditLockArbitrator, default_arbitrator
from .holders import InMemoryLockTable, LockHolderLookup
from .models import LockRecord, LockState, LockVerdict, classify
from .modules import BaselineLockModule, LinkedRecordSelfLockModule, LockModule

__all__ = [
    "EditLockArbitrator",
    "default_arbitrator",
    # Modules
    "LockModule",
    "BaselineLockModule",
    "LinkedRecordSelfLockModule",
    # Lock state
    "LockRecord",
    "LockVerdict",
    "LockState",
    "classify",
    # Lookup
    "LockHolderLookup",
    "InMemoryLockTable",
]
