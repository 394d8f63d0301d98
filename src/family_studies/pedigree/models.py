"""Pedigree graph model.

A pedigree is the set of individuals drawn in the pedigree editor, the
relationship edges between them, and the proband who started the family
record. Parent-child edges must form a directed acyclic graph; the model
rejects edges that would close a cycle.
"""
from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator

from family_studies.exceptions import MalformedPedigree


class Sex(str, Enum):
    """Sex as drawn on the pedigree."""
    MALE = "M"
    FEMALE = "F"
    OTHER = "O"
    UNKNOWN = "U"


class VitalStatus(str, Enum):
    """Life status of an individual."""
    ALIVE = "alive"
    DECEASED = "deceased"
    STILLBORN = "stillborn"
    MISCARRIAGE = "miscarriage"
    UNBORN = "unborn"
    UNKNOWN = "unknown"


class RelationshipKind(str, Enum):
    """Kinds of relationship edges."""
    PARTNERSHIP = "partnership"  # unordered pair
    PARENT_CHILD = "parent-child"  # directed parent -> child


class Individual(BaseModel):
    """A node of the pedigree diagram."""
    id: str
    external_patient_id: str | None = None
    sex: Sex = Sex.UNKNOWN
    vital_status: VitalStatus = VitalStatus.UNKNOWN
    clinical_annotations: dict[str, Any] = Field(default_factory=dict)
    relationship_edge_ids: set[str] = Field(default_factory=set)


class RelationshipEdge(BaseModel):
    """A partnership or parent-child edge.

    ``members`` holds the two individual ids. For parent-child edges the
    order is significant: ``members[0]`` is the parent, ``members[1]`` the
    child.
    """
    id: str
    kind: RelationshipKind
    members: tuple[str, str]

    @model_validator(mode="after")
    def _distinct_members(self) -> RelationshipEdge:
        if self.members[0] == self.members[1]:
            raise ValueError(f"Relationship {self.id} connects {self.members[0]} to itself")
        return self

    @property
    def parent(self) -> str | None:
        return self.members[0] if self.kind == RelationshipKind.PARENT_CHILD else None

    @property
    def child(self) -> str | None:
        return self.members[1] if self.kind == RelationshipKind.PARENT_CHILD else None

    def other(self, individual_id: str) -> str:
        """Return the endpoint that is not ``individual_id``."""
        a, b = self.members
        return b if individual_id == a else a


class Pedigree(BaseModel):
    """Individuals, relationship edges and the designated proband.

    Individuals keep the insertion order of the diagram; the converter
    relies on it.
    """
    individuals: dict[str, Individual] = Field(default_factory=dict)
    edges: dict[str, RelationshipEdge] = Field(default_factory=dict)
    proband: str | None = None

    @model_validator(mode="after")
    def _proband_present(self) -> Pedigree:
        if self.proband is not None and self.proband not in self.individuals:
            raise ValueError(f"Proband {self.proband} is not an individual of this pedigree")
        return self

    @property
    def is_empty(self) -> bool:
        return not self.individuals

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def add_individual(self, individual: Individual) -> Individual:
        if individual.id in self.individuals:
            raise MalformedPedigree(reason="Duplicate individual id", individual_id=individual.id)
        self.individuals[individual.id] = individual
        return individual

    def remove_individual(self, individual_id: str) -> None:
        """Remove an individual together with every edge it participates in."""
        if individual_id not in self.individuals:
            return
        if individual_id == self.proband:
            raise MalformedPedigree(reason="The proband cannot be removed", individual_id=individual_id)
        del self.individuals[individual_id]
        for edge_id in [e.id for e in self.edges.values() if individual_id in e.members]:
            edge = self.edges.pop(edge_id)
            other = self.individuals.get(edge.other(individual_id))
            if other is not None:
                other.relationship_edge_ids.discard(edge_id)

    def add_edge(self, edge: RelationshipEdge) -> RelationshipEdge:
        """Add a relationship edge, rejecting dangling ids and cycles."""
        if edge.id in self.edges:
            raise MalformedPedigree(reason="Duplicate relationship id", edge_id=edge.id)
        for member in edge.members:
            if member not in self.individuals:
                raise MalformedPedigree(
                    reason="Relationship references an unknown individual",
                    edge_id=edge.id,
                    individual_id=member,
                )
        if edge.kind == RelationshipKind.PARENT_CHILD and self._reaches(edge.child, edge.parent):
            raise MalformedPedigree(reason="Parent-child relationship creates a cycle", edge_id=edge.id)

        self.edges[edge.id] = edge
        for member in edge.members:
            self.individuals[member].relationship_edge_ids.add(edge.id)
        return edge

    def set_proband(self, individual_id: str) -> None:
        if individual_id not in self.individuals:
            raise MalformedPedigree(reason="Proband is not in the pedigree", individual_id=individual_id)
        self.proband = individual_id

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def parents_of(self, individual_id: str) -> list[str]:
        return [e.parent for e in self.edges.values() if e.child == individual_id]

    def children_of(self, individual_id: str) -> list[str]:
        return [e.child for e in self.edges.values() if e.parent == individual_id]

    def partners_of(self, individual_id: str) -> list[str]:
        return [
            e.other(individual_id)
            for e in self.edges.values()
            if e.kind == RelationshipKind.PARTNERSHIP and individual_id in e.members
        ]

    def _children_index(self) -> dict[str, list[tuple[str, str]]]:
        index: dict[str, list[tuple[str, str]]] = {}
        for edge in self.edges.values():
            if edge.kind == RelationshipKind.PARENT_CHILD:
                index.setdefault(edge.parent, []).append((edge.id, edge.child))
        return index

    def _reaches(self, start: str, target: str) -> bool:
        """True when ``target`` is ``start`` or one of its descendants."""
        index = self._children_index()
        stack = [start]
        seen: set[str] = set()
        while stack:
            node = stack.pop()
            if node == target:
                return True
            if node in seen:
                continue
            seen.add(node)
            stack.extend(child for _, child in index.get(node, []))
        return False

    def find_cycle_edge(self) -> str | None:
        """Return the id of a parent-child edge that closes a cycle, if any.

        Iterative white/grey/black colouring over parent-child edges, keyed by
        individual id and visited in insertion order so the reported edge is
        stable.
        """
        index = self._children_index()
        white, grey, black = 0, 1, 2
        colour = {node: white for node in self.individuals}

        for root in self.individuals:
            if colour[root] != white:
                continue
            colour[root] = grey
            stack = [(root, iter(index.get(root, [])))]
            while stack:
                node, children = stack[-1]
                step = next(children, None)
                if step is None:
                    colour[node] = black
                    stack.pop()
                    continue
                edge_id, child = step
                state = colour.get(child, white)
                if state == grey:
                    return edge_id
                if state == white:
                    colour[child] = grey
                    stack.append((child, iter(index.get(child, []))))
        return None

    def validate(self) -> None:
        """Check structural integrity; raise MalformedPedigree on the first problem."""
        if self.proband is None and self.individuals:
            raise MalformedPedigree(reason="Pedigree has individuals but no proband")

        for edge in self.edges.values():
            for member in edge.members:
                if member not in self.individuals:
                    raise MalformedPedigree(
                        reason="Relationship references an unknown individual",
                        edge_id=edge.id,
                        individual_id=member,
                    )

        cycle_edge = self.find_cycle_edge()
        if cycle_edge is not None:
            raise MalformedPedigree(reason="Parent-child relationships form a cycle", edge_id=cycle_edge)

        for individual_id in self.individuals:
            parents = self.parents_of(individual_id)
            if len(parents) > 2:
                raise MalformedPedigree(
                    reason=f"Individual has {len(parents)} parents; at most 2 are allowed",
                    individual_id=individual_id,
                )
            if len(set(parents)) != len(parents):
                raise MalformedPedigree(reason="Duplicate parent-child relationship", individual_id=individual_id)
