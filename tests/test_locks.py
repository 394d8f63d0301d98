"""Tests for lock-check modules and the edit-lock arbitrator."""

import pytest

from family_studies.exceptions import LockLookupError, StoreError
from family_studies.locks.arbitrator import EditLockArbitrator, default_arbitrator
from family_studies.locks.models import LockRecord, LockState, LockVerdict, classify
from family_studies.locks.modules import BaselineLockModule, LinkedRecordSelfLockModule


class BrokenLookup:
    def current_lock(self, document_id):
        raise LockLookupError(document_id=document_id, detail="connection reset")


class RecordingModule:
    """Module with a fixed answer that records whether it ran."""

    def __init__(self, name, priority, verdict=None):
        self.name = name
        self.priority = priority
        self.verdict = verdict
        self.calls = []

    def check(self, document_id):
        self.calls.append(document_id)
        return self.verdict


def make_verdict(clock, holder="alice"):
    return LockVerdict(holder=holder, acquired_at=clock(), message="locked")


class TestClassify:
    """Tests for classify."""

    def test_states(self, clock):
        assert classify(None, "alice", clock(), 5) == LockState.UNLOCKED
        assert classify(LockRecord("bob", clock.ago(1)), "alice", clock(), 5) == LockState.LOCKED_BY_OTHER
        assert classify(LockRecord("alice", clock.ago(1)), "alice", clock(), 5) == LockState.LOCKED_BY_SELF_FRESH
        assert classify(LockRecord("alice", clock.ago(6)), "alice", clock(), 5) == LockState.LOCKED_BY_SELF_STALE

    def test_anonymous_user_never_owns_a_lock(self, clock):
        assert classify(LockRecord("alice", clock.ago(1)), None, clock(), 5) == LockState.LOCKED_BY_OTHER


class TestBaselineLockModule:
    """Tests for BaselineLockModule."""

    @pytest.fixture
    def module(self, lock_table, rights, clock):
        return BaselineLockModule(lock_table, rights, clock=clock)

    def test_unlocked(self, module):
        assert module.check("FAM0000001") is None

    def test_own_stale_lock(self, module, lock_table, clock):
        """Our own lock from 10 seconds ago is reported."""
        lock_table.acquire("FAM0000001", "alice", acquired_at=clock.ago(10))

        verdict = module.check("FAM0000001")

        assert verdict.state == LockState.LOCKED_BY_SELF_STALE
        assert verdict.overridable is True
        assert verdict.is_self_lock is False
        assert verdict.holder == "alice"
        assert verdict.acquired_at == clock.ago(10)
        assert verdict.actions == frozenset({"edit"})

    def test_own_fresh_lock_is_ignored(self, module, lock_table, clock):
        """Our own lock from 2 seconds ago is the edit request itself."""
        lock_table.acquire("FAM0000001", "alice", acquired_at=clock.ago(2))
        assert module.check("FAM0000001") is None

    def test_fresh_lock_goes_stale(self, module, lock_table, clock):
        lock_table.acquire("FAM0000001", "alice")
        assert module.check("FAM0000001") is None

        clock.advance(5)
        assert module.check("FAM0000001").state == LockState.LOCKED_BY_SELF_STALE

    def test_locked_by_other(self, module, lock_table, clock):
        lock_table.acquire("FAM0000001", "bob", acquired_at=clock.ago(1))

        verdict = module.check("FAM0000001")

        assert verdict.state == LockState.LOCKED_BY_OTHER
        assert "bob" in verdict.message
        assert verdict.overridable is True

    def test_lookup_failure_fails_open(self, rights, clock):
        module = BaselineLockModule(BrokenLookup(), rights, clock=clock)
        assert module.check("FAM0000001") is None

    def test_priority(self, module):
        assert module.priority == 100


class TestLinkedRecordSelfLockModule:
    """Tests for LinkedRecordSelfLockModule."""

    @pytest.fixture
    def family_id(self, manager):
        family = manager.create_family("P0000001")
        manager.set_members(family.id, ["P0000001", "P0000002"])
        return family.id

    @pytest.fixture
    def module(self, lock_table, rights, manager, clock):
        return LinkedRecordSelfLockModule(lock_table, rights, manager, clock=clock)

    def test_member_locked_by_self_in_other_session(self, module, lock_table, clock, family_id):
        lock_table.acquire("P0000002", "alice", acquired_at=clock.ago(30))

        verdict = module.check(family_id)

        assert verdict.is_self_lock is True
        assert verdict.overridable is True
        assert verdict.state == LockState.LOCKED_BY_SELF_STALE
        assert "P0000002" in verdict.message

    def test_fresh_member_lock_is_ignored(self, module, lock_table, clock, family_id):
        lock_table.acquire("P0000002", "alice", acquired_at=clock.ago(2))
        assert module.check(family_id) is None

    def test_member_locked_by_someone_else(self, module, lock_table, clock, family_id):
        lock_table.acquire("P0000001", "bob", acquired_at=clock.ago(30))
        assert module.check(family_id) is None

    def test_family_lock_itself_is_not_considered(self, module, lock_table, clock, family_id):
        lock_table.acquire(family_id, "alice", acquired_at=clock.ago(30))
        assert module.check(family_id) is None

    def test_lock_exactly_at_freshness_window(self, module, lock_table, clock, rights):
        """At exactly 5 seconds the baseline module reports, this one does not."""
        lock_table.acquire("P0000003", "alice", acquired_at=clock.ago(5))

        assert module.check("P0000003") is None
        baseline = BaselineLockModule(lock_table, rights, clock=clock)
        assert baseline.check("P0000003").state == LockState.LOCKED_BY_SELF_STALE

        clock.advance(0.001)
        assert module.check("P0000003").is_self_lock is True

    def test_patient_document(self, module, lock_table, clock):
        lock_table.acquire("P0000003", "alice", acquired_at=clock.ago(30))
        assert module.check("P0000003").is_self_lock is True

    def test_unknown_document(self, module):
        assert module.check("FAM0000404") is None

    def test_anonymous_user(self, module, lock_table, clock, session, family_id):
        session.user = None
        lock_table.acquire("P0000001", "alice", acquired_at=clock.ago(30))
        assert module.check(family_id) is None

    def test_store_failure_fails_open(self, lock_table, rights, clock):
        class BrokenManager:
            def linked_patient_ids(self, document_id):
                raise StoreError(operation="get", document_id=document_id, detail="timeout")

        module = LinkedRecordSelfLockModule(lock_table, rights, BrokenManager(), clock=clock)
        assert module.check("FAM0000001") is None

    def test_priority(self, module):
        assert module.priority == 500


class TestEditLockArbitrator:
    """Tests for EditLockArbitrator."""

    def test_no_modules_means_unlocked(self):
        arbitrator = EditLockArbitrator()
        assert arbitrator.check("FAM0000001") is None
        assert arbitrator.state("FAM0000001") == LockState.UNLOCKED

    def test_higher_priority_wins_and_stops_the_chain(self, clock):
        baseline = RecordingModule("baselock", 100, make_verdict(clock, "bob"))
        self_lock = RecordingModule("patientselflock", 500, make_verdict(clock, "alice"))
        arbitrator = EditLockArbitrator([baseline, self_lock])

        verdict = arbitrator.check("FAM0000001")

        assert verdict is self_lock.verdict
        assert self_lock.calls == ["FAM0000001"]
        assert baseline.calls == []

    def test_falls_through_to_lower_priority(self, clock):
        first = RecordingModule("first", 500)
        second = RecordingModule("second", 100, make_verdict(clock))
        arbitrator = EditLockArbitrator([second, first])

        assert arbitrator.check("FAM0000001") is second.verdict
        assert first.calls == ["FAM0000001"]

    def test_ties_keep_registration_order(self, clock):
        a = RecordingModule("a", 200, make_verdict(clock, "a"))
        b = RecordingModule("b", 200, make_verdict(clock, "b"))
        low = RecordingModule("low", 10)
        arbitrator = EditLockArbitrator([low, a])
        arbitrator.register(b)

        assert [m.name for m in arbitrator.modules] == ["a", "b", "low"]
        assert arbitrator.check("X").holder == "a"
        assert b.calls == []

    def test_default_chain(self, lock_table, rights, manager, clock):
        arbitrator = default_arbitrator(lock_table, rights, manager, clock=clock)
        assert [m.name for m in arbitrator.modules] == ["patientselflock", "baselock"]

        baseline_only = default_arbitrator(lock_table, rights, clock=clock)
        assert [m.name for m in baseline_only.modules] == ["baselock"]

    def test_self_lock_verdict_preempts_baseline(self, lock_table, rights, manager, clock):
        """Both modules could answer; the linked-record self lock is returned."""
        family = manager.create_family("P0000001")
        lock_table.acquire(family.id, "alice", acquired_at=clock.ago(10))
        lock_table.acquire("P0000001", "alice", acquired_at=clock.ago(10))

        verdict = default_arbitrator(lock_table, rights, manager, clock=clock).check(family.id)

        assert verdict.is_self_lock is True
        assert "patient record" in verdict.message

    def test_baseline_answers_when_self_lock_does_not(self, lock_table, rights, manager, clock, session):
        family = manager.create_family("P0000001")
        lock_table.acquire(family.id, "bob", acquired_at=clock.ago(1))

        arbitrator = default_arbitrator(lock_table, rights, manager, clock=clock)

        assert arbitrator.state(family.id) == LockState.LOCKED_BY_OTHER
        session.user = "bob"
        assert arbitrator.state(family.id) == LockState.UNLOCKED

    def test_broken_lookup_never_blocks(self, rights, manager, clock):
        family = manager.create_family("P0000001")
        arbitrator = default_arbitrator(BrokenLookup(), rights, manager, clock=clock)
        assert arbitrator.check(family.id) is None


class TestInMemoryLockTable:
    """Tests for InMemoryLockTable."""

    def test_acquire_and_release(self, lock_table, clock):
        record = lock_table.acquire("P0000001", "alice")
        assert record == LockRecord("alice", clock())
        assert lock_table.current_lock("P0000001") == record

        assert lock_table.release("P0000001", "bob") is False
        assert lock_table.release("P0000001", "alice") is True
        assert lock_table.current_lock("P0000001") is None
        assert lock_table.release("P0000001") is False
