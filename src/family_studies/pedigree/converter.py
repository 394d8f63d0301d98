"""Pedigree to patient record conversion.

Flattens a pedigree graph into one record per individual, with relationships
expressed as external patient ids so that the records can reference each
other before anything is persisted.
"""
from __future__ import annotations

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field
from uuid_utils import uuid7 as _uuid7

from family_studies.config import CONFIG
from family_studies.logging import get_logger
from family_studies.pedigree.models import Individual, Pedigree, Sex, VitalStatus

logger = get_logger(__name__)


def uuid7() -> UUID:
    """Generate a UUID7 compatible with stdlib UUID."""
    return UUID(str(_uuid7()))


class IndividualRecord(BaseModel):
    """A patient record derived from one pedigree individual."""
    external_id: str
    local_id: str = Field(description="Id of the individual within the source pedigree")
    placeholder: bool = Field(default=False, description="True when external_id was generated here")
    is_proband: bool = False
    sex: Sex = Sex.UNKNOWN
    vital_status: VitalStatus = VitalStatus.UNKNOWN
    clinical_fields: dict[str, Any] = Field(default_factory=dict)

    # Relationship summary, as external ids
    parents: list[str] = Field(default_factory=list)
    mother: str | None = None
    father: str | None = None
    partners: list[str] = Field(default_factory=list)
    children: list[str] = Field(default_factory=list)

    def to_patient_json(self) -> dict[str, Any]:
        """Render in the layout consumed by the patient data model."""
        data: dict[str, Any] = {
            "id": self.external_id,
            "sex": self.sex.value,
            "life_status": self.vital_status.value,
        }
        data.update(self.clinical_fields)
        relatives: dict[str, Any] = {"parents": list(self.parents), "partners": list(self.partners)}
        if self.mother:
            relatives["mother"] = self.mother
        if self.father:
            relatives["father"] = self.father
        if self.children:
            relatives["children"] = list(self.children)
        data["pedigree_relatives"] = relatives
        return data


def flatten_fields(annotations: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten nested annotation dicts into dotted keys.

    >>> flatten_fields({"onset": {"age": 3, "unit": "y"}, "notes": "x"})
    {'onset.age': 3, 'onset.unit': 'y', 'notes': 'x'}
    """
    flat: dict[str, Any] = {}
    for key, value in annotations.items():
        name = f"{prefix}{key}"
        if isinstance(value, dict) and value:
            flat.update(flatten_fields(value, prefix=f"{name}."))
        else:
            flat[name] = value
    return flat


class PedigreeConverter:
    """Converts a Pedigree into IndividualRecords.

    Placeholder ids are derived from the local individual id by default, so
    converting the same pedigree twice yields identical records. With
    ``random_ids=True`` every call generates fresh UUID7 placeholders that
    stay consistent within that call.

    Example:
        >>> records = PedigreeConverter().convert(pedigree)
        >>> records[0].is_proband
        True
    """

    def __init__(self, *, random_ids: bool = False, placeholder_prefix: str | None = None) -> None:
        self.random_ids = random_ids
        self.placeholder_prefix = CONFIG.placeholder_prefix if placeholder_prefix is None else placeholder_prefix

    def convert(self, pedigree: Pedigree | None) -> list[IndividualRecord]:
        """Convert ``pedigree``; an empty or missing pedigree yields ``[]``.

        Raises:
            MalformedPedigree: on cycles, dangling references or more than
                two parents. No partial output is produced.
        """
        if pedigree is None or pedigree.is_empty:
            return []

        pedigree.validate()

        ids = self._assign_ids(pedigree)
        records = [
            self._to_record(pedigree, individual, ids)
            for individual in self._ordered(pedigree)
        ]
        logger.debug(
            "pedigree.convert",
            individuals=len(records),
            placeholders=sum(1 for r in records if r.placeholder),
        )
        return records

    def _ordered(self, pedigree: Pedigree) -> list[Individual]:
        """Proband first, then the remaining individuals in insertion order."""
        proband = pedigree.individuals[pedigree.proband]
        return [proband] + [i for i in pedigree.individuals.values() if i.id != proband.id]

    def _assign_ids(self, pedigree: Pedigree) -> dict[str, tuple[str, bool]]:
        """Map local ids to (external id, is placeholder).

        A placeholder never reuses an id already taken by a linked patient or
        an earlier placeholder; clashes get a ``-2``, ``-3``... suffix.
        """
        ids: dict[str, tuple[str, bool]] = {}
        taken = {i.external_patient_id for i in pedigree.individuals.values() if i.external_patient_id}
        for individual in pedigree.individuals.values():
            if individual.external_patient_id:
                ids[individual.id] = (individual.external_patient_id, False)
                continue
            if self.random_ids:
                candidate = f"{self.placeholder_prefix}{uuid7()}"
            else:
                candidate = f"{self.placeholder_prefix}{individual.id}"
            placeholder, n = candidate, 1
            while placeholder in taken:
                n += 1
                placeholder = f"{candidate}-{n}"
            if placeholder != candidate:
                logger.warning(
                    "pedigree.placeholder_collision",
                    individual_id=individual.id,
                    placeholder=candidate,
                    assigned=placeholder,
                )
            taken.add(placeholder)
            ids[individual.id] = (placeholder, True)
        return ids

    def _to_record(
        self,
        pedigree: Pedigree,
        individual: Individual,
        ids: dict[str, tuple[str, bool]],
    ) -> IndividualRecord:
        external_id, placeholder = ids[individual.id]

        mother = father = None
        parents = []
        for parent_id in pedigree.parents_of(individual.id):
            parent_external = ids[parent_id][0]
            parents.append(parent_external)
            parent_sex = pedigree.individuals[parent_id].sex
            if parent_sex == Sex.FEMALE and mother is None:
                mother = parent_external
            elif parent_sex == Sex.MALE and father is None:
                father = parent_external

        partners: list[str] = []
        for partner_id in pedigree.partners_of(individual.id):
            if ids[partner_id][0] not in partners:
                partners.append(ids[partner_id][0])

        return IndividualRecord(
            external_id=external_id,
            local_id=individual.id,
            placeholder=placeholder,
            is_proband=individual.id == pedigree.proband,
            sex=individual.sex,
            vital_status=individual.vital_status,
            clinical_fields=flatten_fields(individual.clinical_annotations),
            parents=parents,
            mother=mother,
            father=father,
            partners=partners,
            children=[ids[c][0] for c in pedigree.children_of(individual.id)],
        )


def convert(pedigree: Pedigree | None, *, random_ids: bool = False) -> list[IndividualRecord]:
    """Convert with a default-configured PedigreeConverter."""
    return PedigreeConverter(random_ids=random_ids).convert(pedigree)
