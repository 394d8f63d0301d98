"""Lock-check modules.

Each module inspects one aspect of a document's lock state and either
returns a LockVerdict or None (no opinion). A module that cannot read the
lock store logs the failure and returns None: a broken lock check never
blocks editing.
"""
from __future__ import annotations

from datetime import datetime
from typing import Callable, Protocol, runtime_checkable

from family_studies.config import CONFIG, FamilyStudiesConfig
from family_studies.exceptions import LockLookupError, NotFound, StoreError
from family_studies.family.manager import FamilyMembershipManager
from family_studies.family.store import RightsProvider
from family_studies.locks.holders import LockHolderLookup, utcnow
from family_studies.locks.models import LockState, LockVerdict, classify
from family_studies.logging import get_logger

logger = get_logger(__name__)

# Failures of collaborators that mean "lock state unknown"
LOOKUP_ERRORS = (LockLookupError, StoreError, OSError)


@runtime_checkable
class LockModule(Protocol):
    """A prioritized lock check; higher priorities run first."""

    name: str
    priority: int

    def check(self, document_id: str) -> LockVerdict | None: ...


class BaselineLockModule:
    """Blocks editing of a document locked by anyone else.

    A lock held by the current user for less than the freshness window is
    the one their own edit request just created, so it is ignored. An older
    lock of theirs is reported like anybody else's.
    """

    name = "baselock"

    def __init__(
        self,
        locks: LockHolderLookup,
        identity: RightsProvider,
        *,
        clock: Callable[[], datetime] = utcnow,
        config: FamilyStudiesConfig | None = None,
        priority: int | None = None,
    ) -> None:
        self.locks = locks
        self.identity = identity
        self.clock = clock
        self.config = config or CONFIG
        self.priority = self.config.baseline_lock_priority if priority is None else priority

    def check(self, document_id: str) -> LockVerdict | None:
        try:
            record = self.locks.current_lock(document_id)
        except LOOKUP_ERRORS as e:
            logger.error("lock.lookup_failed", module=self.name, document_id=document_id, error=str(e))
            return None

        state = classify(record, self.identity.current_user(), self.clock(), self.config.lock_freshness_seconds)
        if state in (LockState.UNLOCKED, LockState.LOCKED_BY_SELF_FRESH):
            return None

        return LockVerdict(
            holder=record.holder,
            acquired_at=record.acquired_at,
            message=f"This document is already being edited by {record.holder}",
            overridable=True,
            is_self_lock=False,
            state=state,
        )


class LinkedRecordSelfLockModule:
    """Warns a user who is editing a linked patient record in another session.

    For a family document the linked records are its members; a patient
    document is linked to itself. When one of them is locked by the current
    user for longer than the freshness window, editing is discouraged but
    may be forced.
    """

    name = "patientselflock"

    def __init__(
        self,
        locks: LockHolderLookup,
        identity: RightsProvider,
        manager: FamilyMembershipManager,
        *,
        clock: Callable[[], datetime] = utcnow,
        config: FamilyStudiesConfig | None = None,
        priority: int | None = None,
    ) -> None:
        self.locks = locks
        self.identity = identity
        self.manager = manager
        self.clock = clock
        self.config = config or CONFIG
        self.priority = self.config.self_lock_priority if priority is None else priority

    def check(self, document_id: str) -> LockVerdict | None:
        user = self.identity.current_user()
        if user is None:
            return None

        try:
            patient_ids = self.manager.linked_patient_ids(document_id)
        except NotFound:
            return None
        except LOOKUP_ERRORS as e:
            logger.error("lock.lookup_failed", module=self.name, document_id=document_id, error=str(e))
            return None

        now = self.clock()
        for patient_id in patient_ids:
            try:
                record = self.locks.current_lock(patient_id)
            except LOOKUP_ERRORS as e:
                logger.error("lock.lookup_failed", module=self.name, document_id=patient_id, error=str(e))
                continue
            if record is None or record.holder != user:
                continue
            # strictly older than the freshness window
            if (now - record.acquired_at).total_seconds() <= self.config.lock_freshness_seconds:
                continue
            return LockVerdict(
                holder=record.holder,
                acquired_at=record.acquired_at,
                message=(
                    f"It looks like you are already editing patient record {patient_id} in another session. "
                    "Keep editing in that session to avoid losing changes; force editing here only if "
                    "the other session can no longer be found."
                ),
                overridable=True,
                is_self_lock=True,
                state=LockState.LOCKED_BY_SELF_STALE,
            )
        return None
