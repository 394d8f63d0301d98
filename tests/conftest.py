"""Shared fixtures: in-memory collaborators and a controllable clock."""
from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from family_studies.family.manager import FamilyMembershipManager
from family_studies.family.models import AccessRight, PatientDocument, SubjectType
from family_studies.family.store import DocumentRightsProvider, InMemoryDocumentStore
from family_studies.locks.holders import InMemoryLockTable
from family_studies.pedigree.models import (
    Individual,
    Pedigree,
    RelationshipEdge,
    RelationshipKind,
    Sex,
    VitalStatus,
)


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 3, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)

    def ago(self, seconds: float) -> datetime:
        return self.now - timedelta(seconds=seconds)


class Session:
    """The acting user of the current request."""

    def __init__(self, user: str | None = "alice") -> None:
        self.user = user


def parent_child(edge_id: str, parent: str, child: str) -> RelationshipEdge:
    return RelationshipEdge(id=edge_id, kind=RelationshipKind.PARENT_CHILD, members=(parent, child))


def partnership(edge_id: str, a: str, b: str) -> RelationshipEdge:
    return RelationshipEdge(id=edge_id, kind=RelationshipKind.PARTNERSHIP, members=(a, b))


def make_trio_pedigree() -> Pedigree:
    """Father 2 and mother 3 with children 1 (proband, P0000001) and 4.

    The proband is added after the parents so ordering is exercised.
    """
    pedigree = Pedigree()
    pedigree.add_individual(Individual(id="2", sex=Sex.MALE, vital_status=VitalStatus.ALIVE))
    pedigree.add_individual(
        Individual(
            id="3",
            sex=Sex.FEMALE,
            vital_status=VitalStatus.DECEASED,
            clinical_annotations={"cause_of_death": "MI", "onset": {"age": 52, "unit": "years"}},
        )
    )
    pedigree.add_individual(
        Individual(
            id="1",
            external_patient_id="P0000001",
            sex=Sex.FEMALE,
            vital_status=VitalStatus.ALIVE,
            clinical_annotations={"phenotypes": ["HP:0001250", "HP:0001263"]},
        )
    )
    pedigree.add_individual(Individual(id="4", sex=Sex.MALE))
    pedigree.add_edge(partnership("r1", "2", "3"))
    pedigree.add_edge(parent_child("r2", "2", "1"))
    pedigree.add_edge(parent_child("r3", "3", "1"))
    pedigree.add_edge(parent_child("r4", "2", "4"))
    pedigree.add_edge(parent_child("r5", "3", "4"))
    pedigree.set_proband("1")
    return pedigree


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session() -> Session:
    return Session()


@pytest.fixture
def store() -> InMemoryDocumentStore:
    """Store holding patients P0000001-P0000003."""
    return InMemoryDocumentStore(
        [
            PatientDocument(
                id="P0000001",
                fields={"relatives": [{"id": "P0000002", "relationship": "sibling"}, "P0000003"]},
                rights=[
                    AccessRight(subject="alice", levels={"view", "edit"}),
                    AccessRight(subject="carol", levels={"view"}),
                    AccessRight(subject="genetics", subject_type=SubjectType.GROUP, levels={"edit"}),
                ],
                pedigree={"proband": "1", "members": [{"id": "1", "patientId": "P0000001"}], "relationships": []},
            ),
            PatientDocument(id="P0000002", rights=[AccessRight(subject="bob", levels={"edit"})]),
            PatientDocument(id="P0000003"),
        ]
    )


@pytest.fixture
def rights(store: InMemoryDocumentStore, session: Session) -> DocumentRightsProvider:
    return DocumentRightsProvider(store, current_user=lambda: session.user)


@pytest.fixture
def manager(store: InMemoryDocumentStore, rights: DocumentRightsProvider) -> FamilyMembershipManager:
    return FamilyMembershipManager(store, rights)


@pytest.fixture
def lock_table(clock: FakeClock) -> InMemoryLockTable:
    return InMemoryLockTable(clock=clock)


@pytest.fixture
def trio() -> Pedigree:
    return make_trio_pedigree()
