"""Pedigree editor JSON adapter.

The pedigree editor exchanges diagrams in this layout::

    {
      "proband": "1",
      "members": [
        {"id": "1", "patientId": "P0000001", "sex": "F",
         "lifeStatus": "alive", "annotations": {...}}
      ],
      "relationships": [
        {"id": "r1", "kind": "partnership", "members": ["2", "3"]},
        {"id": "r2", "kind": "parent-child", "parent": "2", "child": "1"}
      ]
    }

Family documents store the pedigree in the same layout.
"""
from __future__ import annotations

import json
from typing import Any

from pydantic import ValidationError

from family_studies.exceptions import MalformedPedigree
from family_studies.pedigree.models import (
    Individual,
    Pedigree,
    RelationshipEdge,
    RelationshipKind,
    Sex,
    VitalStatus,
)


def _sex(value: Any) -> Sex:
    if not value:
        return Sex.UNKNOWN
    try:
        return Sex(str(value).upper()[:1])
    except ValueError:
        return Sex.UNKNOWN


def _vital_status(value: Any) -> VitalStatus:
    try:
        return VitalStatus(str(value).lower()) if value else VitalStatus.UNKNOWN
    except ValueError:
        return VitalStatus.UNKNOWN


def _list(data: dict[str, Any], key: str) -> list[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise MalformedPedigree(reason=f"{key!r} must be a list")
    return value


def _individual(raw: Any) -> Individual:
    if not isinstance(raw, dict) or raw.get("id") in (None, ""):
        raise MalformedPedigree(reason="Pedigree member without an id")
    individual_id = str(raw["id"])
    annotations = raw.get("annotations") or {}
    if not isinstance(annotations, dict):
        raise MalformedPedigree(reason="Annotations must be an object", individual_id=individual_id)
    patient_id = raw.get("patientId")
    if isinstance(patient_id, int):
        patient_id = str(patient_id)
    try:
        return Individual(
            id=individual_id,
            external_patient_id=patient_id or None,
            sex=_sex(raw.get("sex")),
            vital_status=_vital_status(raw.get("lifeStatus")),
            clinical_annotations=dict(annotations),
        )
    except ValidationError as e:
        raise MalformedPedigree(reason=str(e.errors()[0]["msg"]), individual_id=individual_id) from e


def _edge(raw: dict[str, Any], position: int) -> RelationshipEdge:
    edge_id = str(raw.get("id") or f"rel{position}")
    try:
        kind = RelationshipKind(raw.get("kind"))
    except ValueError:
        raise MalformedPedigree(reason=f"Unknown relationship kind {raw.get('kind')!r}", edge_id=edge_id) from None

    if kind == RelationshipKind.PARENT_CHILD:
        members = (raw.get("parent"), raw.get("child"))
    else:
        members = raw.get("members") or ()
        if not isinstance(members, (list, tuple)):
            raise MalformedPedigree(reason="Relationship members must be a list", edge_id=edge_id)
        members = tuple(members)
    if len(members) != 2 or not all(members):
        raise MalformedPedigree(reason="Relationship must connect exactly two individuals", edge_id=edge_id)

    try:
        return RelationshipEdge(id=edge_id, kind=kind, members=(str(members[0]), str(members[1])))
    except ValidationError as e:
        raise MalformedPedigree(reason=str(e.errors()[0]["msg"]), edge_id=edge_id) from e


def parse_diagram(data: dict[str, Any] | str) -> Pedigree:
    """Build a Pedigree from pedigree editor JSON (a dict or a JSON string).

    Raises:
        MalformedPedigree: when the diagram is structurally invalid.
    """
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise MalformedPedigree(reason=f"Pedigree is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedPedigree(reason="Pedigree must be a JSON object")

    pedigree = Pedigree()
    for raw in _list(data, "members"):
        pedigree.add_individual(_individual(raw))

    for position, raw in enumerate(_list(data, "relationships")):
        if not isinstance(raw, dict):
            raise MalformedPedigree(reason="Relationship must be an object")
        pedigree.add_edge(_edge(raw, position))

    proband = data.get("proband")
    if proband is not None:
        pedigree.set_proband(str(proband))
    elif pedigree.individuals:
        raise MalformedPedigree(reason="Pedigree has individuals but no proband")
    return pedigree


def to_diagram(pedigree: Pedigree) -> dict[str, Any]:
    """Serialize a Pedigree back into pedigree editor JSON."""
    members = []
    for individual in pedigree.individuals.values():
        member: dict[str, Any] = {
            "id": individual.id,
            "sex": individual.sex.value,
            "lifeStatus": individual.vital_status.value,
        }
        if individual.external_patient_id:
            member["patientId"] = individual.external_patient_id
        if individual.clinical_annotations:
            member["annotations"] = dict(individual.clinical_annotations)
        members.append(member)

    relationships = []
    for edge in pedigree.edges.values():
        if edge.kind == RelationshipKind.PARENT_CHILD:
            relationships.append({"id": edge.id, "kind": edge.kind.value, "parent": edge.parent, "child": edge.child})
        else:
            relationships.append({"id": edge.id, "kind": edge.kind.value, "members": list(edge.members)})

    return {"proband": pedigree.proband, "members": members, "relationships": relationships}
