"""Pedigree graph model, diagram adapter and record converter."""
from __future__ import annotations

from .converter import IndividualRecord, PedigreeConverter, convert, flatten_fields
from .diagram import parse_diagram, to_diagram
from .models import (
    Individual,
    Pedigree,
    RelationshipEdge,
    RelationshipKind,
    Sex,
    VitalStatus,
)

__all__ = [
    # Graph model
    "Pedigree",
    "Individual",
    "RelationshipEdge",
    "RelationshipKind",
    "Sex",
    "VitalStatus",
    # Diagram JSON
    "parse_diagram",
    "to_diagram",
    # Conversion
    "PedigreeConverter",
    "IndividualRecord",
    "convert",
    "flatten_fields",
]
