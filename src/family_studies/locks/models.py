"""Lock records and verdicts."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class LockState(str, Enum):
    """Outcome of inspecting a document's lock."""
    UNLOCKED = "unlocked"
    LOCKED_BY_OTHER = "locked_by_other"
    LOCKED_BY_SELF_FRESH = "locked_by_self_fresh"  # our own just-opened edit session
    LOCKED_BY_SELF_STALE = "locked_by_self_stale"


@dataclass(frozen=True)
class LockRecord:
    """Who holds the edit lock on a document, and since when."""
    holder: str
    acquired_at: datetime


@dataclass(frozen=True)
class LockVerdict:
    """Why a document is blocked for editing.

    Recomputed on every check; never persisted.
    """
    holder: str
    acquired_at: datetime
    message: str
    overridable: bool = True
    is_self_lock: bool = False
    state: LockState = LockState.LOCKED_BY_OTHER
    actions: frozenset[str] = field(default_factory=lambda: frozenset({"edit"}))


def classify(record: LockRecord | None, user: str | None, now: datetime, freshness_seconds: float) -> LockState:
    """Classify a lock record from the point of view of ``user``."""
    if record is None:
        return LockState.UNLOCKED
    if user is None or record.holder != user:
        return LockState.LOCKED_BY_OTHER
    if (now - record.acquired_at).total_seconds() < freshness_seconds:
        return LockState.LOCKED_BY_SELF_FRESH
    return LockState.LOCKED_BY_SELF_STALE
