"""Family membership management.

A family document lists its members; every member's patient document
carries a back-reference to the family. Both sides are only written through
FamilyMembershipManager, one family at a time, so readers never observe a
member missing from one side longer than a single mutation call.

Reassigning a patient to a new family does NOT remove them from the family
they were in before. Callers that want the old membership gone call
``set_members`` on the old family themselves; until they do,
``resolve_family_of`` reports the stale listing as a ConsistencyViolation.
"""
from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Any

from family_studies.config import CONFIG, FamilyStudiesConfig
from family_studies.exceptions import ConsistencyViolation, DuplicateMember, NotFound
from family_studies.family.models import (
    EDIT,
    AccessRight,
    Document,
    FamilyDocument,
    PatientDocument,
    SubjectType,
)
from family_studies.family.store import DocumentStore, RightsProvider
from family_studies.logging import get_logger
from family_studies.pedigree.converter import IndividualRecord
from family_studies.pedigree.diagram import to_diagram
from family_studies.pedigree.models import Pedigree

logger = get_logger(__name__)


def _unique(ids: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    unique = []
    for i in ids:
        if i not in seen:
            seen.add(i)
            unique.append(i)
    return unique


def merge_edit_rights(family: FamilyDocument, users: set[str], groups: set[str]) -> bool:
    """Grant edit access to ``users`` and ``groups`` on ``family`` in place.

    Existing entries keep every level they already have. Returns True when
    anything changed.
    """
    changed = False
    for subject_type, subjects in ((SubjectType.USER, users), (SubjectType.GROUP, groups)):
        for subject in sorted(subjects):
            entry = next(
                (r for r in family.rights if r.subject == subject and r.subject_type == subject_type),
                None,
            )
            if entry is None:
                family.rights.append(AccessRight(subject=subject, subject_type=subject_type, levels={EDIT}))
                changed = True
            elif EDIT not in entry.levels:
                entry.levels.add(EDIT)
                changed = True
    return changed


class FamilyMembershipManager:
    """Owns family creation, membership changes and rights propagation.

    Args:
        store: Document store holding patient and family documents
        rights: Identity and access-rights provider
        config: Policy configuration (module default if not provided)
    """

    def __init__(
        self,
        store: DocumentStore,
        rights: RightsProvider,
        config: FamilyStudiesConfig | None = None,
    ) -> None:
        self.store = store
        self.rights = rights
        self.config = config or CONFIG
        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _family_lock(self, family_id: str) -> Iterator[None]:
        with self._locks_guard:
            lock = self._locks.setdefault(family_id, threading.RLock())
        with lock:
            yield

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_patient(self, patient_id: str) -> PatientDocument:
        try:
            document = self.store.get(patient_id)
        except NotFound:
            raise NotFound(document_id=patient_id, kind="patient") from None
        if not isinstance(document, PatientDocument):
            raise NotFound(document_id=patient_id, kind="patient")
        return document

    def get_family(self, family_id: str) -> FamilyDocument:
        try:
            document = self.store.get(family_id)
        except NotFound:
            raise NotFound(document_id=family_id, kind="family") from None
        if not isinstance(document, FamilyDocument):
            raise NotFound(document_id=family_id, kind="family")
        return document

    def get_family_members(self, family_id: str) -> list[str]:
        return list(self.get_family(family_id).members)

    def resolve_family_of(self, patient_id: str) -> FamilyDocument | None:
        """Return the family listing ``patient_id``, or None.

        Raises:
            NotFound: the patient does not exist
            ConsistencyViolation: the member lists and the patient's
                back-reference disagree
        """
        patient = self.get_patient(patient_id)
        listed_in = self.store.families_containing(patient_id)

        if not listed_in and patient.family_ref is None:
            return None
        if listed_in == [patient.family_ref]:
            return self.get_family(patient.family_ref)

        logger.warning(
            "family.consistency_violation",
            patient_id=patient_id,
            back_reference=patient.family_ref,
            listed_in=listed_in,
        )
        raise ConsistencyViolation(
            patient_id=patient_id,
            back_reference=patient.family_ref,
            listed_in=listed_in,
        )

    def get_family_doc(self, anchor_id: str) -> FamilyDocument | None:
        """The family tied to a document.

        A family document resolves to itself, a patient to the family its
        back-reference points at.
        """
        document = self.store.get(anchor_id)
        if isinstance(document, FamilyDocument):
            return document
        if isinstance(document, PatientDocument) and document.family_ref:
            return self.get_family(document.family_ref)
        return None

    def linked_patient_ids(self, document_id: str) -> list[str]:
        """Patient records a document stands for: itself, or a family's members."""
        document = self.store.get(document_id)
        if isinstance(document, PatientDocument):
            return [document.id]
        if isinstance(document, FamilyDocument):
            return list(document.members)
        return []

    def get_relatives(self, patient_id: str) -> list[str]:
        """Relatives recorded on a patient by the legacy family studies form.

        Entries are either plain external ids or ``{"id": ..., "relationship": ...}``.
        """
        relatives = self.get_patient(patient_id).fields.get("relatives") or []
        ids = []
        for entry in relatives:
            if isinstance(entry, dict):
                entry = entry.get("id")
            if entry:
                ids.append(str(entry))
        return _unique(ids)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_family(
        self,
        proband_id: str,
        member_records: Iterable[IndividualRecord] = (),
        pedigree: Pedigree | dict[str, Any] | None = None,
    ) -> FamilyDocument:
        """Create a family seeded with ``proband_id`` and the converted records.

        Records without an existing patient document get a new one. The
        proband's pedigree is copied to the family unless ``pedigree`` is
        given, and the proband's edit rights are granted on the family.

        A proband or member already belonging to another family has its
        back-reference overwritten but stays listed in the old family.
        """
        proband = self.get_patient(proband_id)
        if isinstance(pedigree, Pedigree):
            pedigree = to_diagram(pedigree)
        records = [r for r in member_records if r.external_id != proband_id]
        members = _unique([proband_id] + [r.external_id for r in records])

        family = FamilyDocument(
            id=self.store.allocate_id(self.config.family_id_prefix),
            pedigree=pedigree if pedigree is not None else proband.pedigree,
        )
        users, groups = self.rights.edit_grantees(proband_id)
        merge_edit_rights(family, users, groups)

        created: dict[str, PatientDocument] = {}
        for record in records:
            if record.external_id in created:
                continue
            try:
                self.get_patient(record.external_id)
            except NotFound:
                created[record.external_id] = self._patient_from_record(record)

        with self._family_lock(family.id):
            self._commit(family, members, created=created)

        logger.info("family.create", family_id=family.id, proband_id=proband_id, members=len(members))
        return family

    def set_members(self, family_id: str, members: list[str]) -> FamilyDocument:
        """Replace the member list and update every affected back-reference.

        Raises:
            DuplicateMember: ``members`` repeats an id
            NotFound: the family or an added patient does not exist
        """
        duplicates = _unique(m for m in members if members.count(m) > 1)
        if duplicates:
            raise DuplicateMember(family_id=family_id, member_ids=duplicates)

        with self._family_lock(family_id):
            family = self.get_family(family_id)
            self._commit(family, list(members))

        logger.info("family.members.set", family_id=family_id, members=len(members))
        return family

    def propagate_edit_rights(self, patient_id: str, family_id: str) -> FamilyDocument:
        """Grant everyone who can edit the patient edit access to the family.

        Rights on the family only ever grow.
        """
        users, groups = self.rights.edit_grantees(patient_id)
        with self._family_lock(family_id):
            family = self.get_family(family_id)
            if merge_edit_rights(family, users, groups):
                self.store.save(family)
        logger.info(
            "family.rights.propagate",
            patient_id=patient_id,
            family_id=family_id,
            users=len(users),
            groups=len(groups),
        )
        return family

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _patient_from_record(self, record: IndividualRecord) -> PatientDocument:
        fields = record.to_patient_json()
        fields.pop("id", None)
        return PatientDocument(id=record.external_id, fields=fields)

    def _commit(
        self,
        family: FamilyDocument,
        members: list[str],
        created: dict[str, PatientDocument] | None = None,
    ) -> None:
        """Write ``members`` and the matching back-references as one unit.

        Patient documents are written first and the family last. If any write
        fails, documents already written are restored (new patient documents
        are left without a back-reference) and the error is re-raised.
        """
        created = created or {}
        previous = list(family.members)
        added = [m for m in members if m not in previous]
        removed = [m for m in previous if m not in members]

        # (document to write, state to restore on failure)
        writes: list[tuple[Document, Document]] = []
        for patient_id in added:
            if patient_id in created:
                patient = created[patient_id]
                before = patient.model_copy(update={"family_ref": None})
            else:
                patient = self.get_patient(patient_id)
                before = patient.model_copy(deep=True)
                if patient.family_ref not in (None, family.id):
                    logger.warning(
                        "family.member.reassigned",
                        patient_id=patient_id,
                        previous_family=patient.family_ref,
                        family_id=family.id,
                    )
            patient.family_ref = family.id
            writes.append((patient, before))

        for patient_id in removed:
            try:
                patient = self.get_patient(patient_id)
            except NotFound:
                continue
            if patient.family_ref != family.id:
                continue
            before = patient.model_copy(deep=True)
            patient.family_ref = None
            writes.append((patient, before))

        family_before = family.model_copy(deep=True)
        family.members = members
        writes.append((family, family_before))

        done: list[Document] = []
        try:
            for document, before in writes:
                self.store.save(document)
                done.append(before)
        except Exception as e:
            logger.error("family.commit_failed", family_id=family.id, error=str(e), written=len(done))
            for before in reversed(done):
                try:
                    self.store.save(before)
                except Exception as rollback_error:
                    logger.error(
                        "family.rollback_failed",
                        family_id=family.id,
                        document_id=before.id,
                        error=str(rollback_error),
                    )
            family.members = family_before.members
            raise
