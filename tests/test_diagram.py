"""Tests for the pedigree editor JSON adapter."""

import json

import pytest

from family_studies.exceptions import MalformedPedigree
from family_studies.pedigree.diagram import parse_diagram, to_diagram
from family_studies.pedigree.models import RelationshipKind, Sex, VitalStatus

DIAGRAM = {
    "proband": "1",
    "members": [
        {"id": "1", "patientId": "P0000001", "sex": "female", "lifeStatus": "alive",
         "annotations": {"phenotypes": ["HP:0001250"]}},
        {"id": "2", "sex": "M", "lifeStatus": "deceased"},
        {"id": "3", "sex": "F"},
    ],
    "relationships": [
        {"id": "r1", "kind": "partnership", "members": ["2", "3"]},
        {"id": "r2", "kind": "parent-child", "parent": "2", "child": "1"},
        {"id": "r3", "kind": "parent-child", "parent": "3", "child": "1"},
    ],
}


class TestParseDiagram:
    """Tests for parse_diagram."""

    def test_parse(self):
        pedigree = parse_diagram(DIAGRAM)

        assert list(pedigree.individuals) == ["1", "2", "3"]
        assert pedigree.proband == "1"
        proband = pedigree.individuals["1"]
        assert proband.external_patient_id == "P0000001"
        assert proband.sex == Sex.FEMALE
        assert proband.clinical_annotations == {"phenotypes": ["HP:0001250"]}
        assert pedigree.individuals["2"].vital_status == VitalStatus.DECEASED
        assert pedigree.individuals["3"].vital_status == VitalStatus.UNKNOWN
        assert pedigree.edges["r1"].kind == RelationshipKind.PARTNERSHIP
        assert pedigree.parents_of("1") == ["2", "3"]

    def test_parse_json_string(self):
        pedigree = parse_diagram(json.dumps(DIAGRAM))
        assert len(pedigree.individuals) == 3

    def test_empty_diagram(self):
        pedigree = parse_diagram({})
        assert pedigree.is_empty
        assert pedigree.proband is None

    def test_invalid_json(self):
        with pytest.raises(MalformedPedigree):
            parse_diagram("{not json")

    def test_unknown_relationship_kind(self):
        data = dict(DIAGRAM, relationships=[{"id": "r9", "kind": "adoption", "members": ["1", "2"]}])
        with pytest.raises(MalformedPedigree) as exc:
            parse_diagram(data)
        assert exc.value.edge_id == "r9"

    def test_cycle(self):
        data = dict(
            DIAGRAM,
            relationships=DIAGRAM["relationships"] + [{"id": "r4", "kind": "parent-child", "parent": "1", "child": "2"}],
        )
        with pytest.raises(MalformedPedigree) as exc:
            parse_diagram(data)
        assert exc.value.edge_id == "r4"

    def test_missing_proband(self):
        data = {k: v for k, v in DIAGRAM.items() if k != "proband"}
        with pytest.raises(MalformedPedigree):
            parse_diagram(data)

    def test_incomplete_relationship(self):
        data = dict(DIAGRAM, relationships=[{"id": "r1", "kind": "parent-child", "parent": "2"}])
        with pytest.raises(MalformedPedigree) as exc:
            parse_diagram(data)
        assert exc.value.edge_id == "r1"

    def test_numeric_patient_id_is_stringified(self):
        pedigree = parse_diagram({"proband": "1", "members": [{"id": 1, "patientId": 123}]})
        assert pedigree.individuals["1"].external_patient_id == "123"

    def test_invalid_member_field(self):
        data = {"proband": "1", "members": [{"id": "1", "patientId": "P0000001", "annotations": {}}]}
        data["members"][0]["patientId"] = ["P0000001"]
        with pytest.raises(MalformedPedigree):
            parse_diagram(data)

    @pytest.mark.parametrize("key", ["members", "relationships"])
    @pytest.mark.parametrize("value", [5, "12", {"id": "1"}])
    def test_collections_must_be_lists(self, key, value):
        data = dict(DIAGRAM, **{key: value})
        with pytest.raises(MalformedPedigree) as exc:
            parse_diagram(data)
        assert key in str(exc.value)

    def test_partnership_members_must_be_a_list(self):
        data = dict(DIAGRAM, relationships=[{"id": "r1", "kind": "partnership", "members": "23"}])
        with pytest.raises(MalformedPedigree) as exc:
            parse_diagram(data)
        assert exc.value.edge_id == "r1"


def test_to_diagram_keeps_structure():
    data = to_diagram(parse_diagram(DIAGRAM))

    assert data["proband"] == "1"
    assert data["members"][0] == {
        "id": "1",
        "sex": "F",
        "lifeStatus": "alive",
        "patientId": "P0000001",
        "annotations": {"phenotypes": ["HP:0001250"]},
    }
    assert {"id": "r2", "kind": "parent-child", "parent": "2", "child": "1"} in data["relationships"]
    assert parse_diagram(data).parents_of("1") == ["2", "3"]
