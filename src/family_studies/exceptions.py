"""Error taxonomy for pedigree conversion, family membership and locks.

None of these are used for normal control flow: an unlocked document or a
patient without a family is a regular ``None`` result.
"""
from __future__ import annotations

from dataclasses import dataclass, field


class FamilyStudiesError(Exception):
    """Base class for all Family Studies errors."""


@dataclass
class MalformedPedigree(FamilyStudiesError):
    """Raised when a pedigree graph is structurally invalid.

    Covers parent-child cycles, dangling individual references and
    impossible parentage. Always fatal to the conversion that hit it.
    """

    reason: str
    edge_id: str | None = None
    individual_id: str | None = None

    def __str__(self) -> str:
        base = self.reason
        if self.edge_id is not None:
            base += f" (edge={self.edge_id})"
        if self.individual_id is not None:
            base += f" (individual={self.individual_id})"
        return base


@dataclass
class NotFound(FamilyStudiesError):
    """Raised when a referenced patient or family document does not exist."""

    document_id: str
    kind: str = "document"

    def __str__(self) -> str:
        return f"{self.kind} {self.document_id!r} not found"


@dataclass
class ConsistencyViolation(FamilyStudiesError):
    """A family's member list and a patient's back-reference disagree.

    The member lists are authoritative. Callers repair the mismatch
    explicitly; it is never fixed silently.
    """

    patient_id: str
    back_reference: str | None = None
    listed_in: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        return (
            f"Patient {self.patient_id!r} has family back-reference "
            f"{self.back_reference!r} but is listed as a member of {self.listed_in!r}"
        )


@dataclass
class DuplicateMember(FamilyStudiesError, ValueError):
    """Raised when a member list contains the same patient id more than once."""

    family_id: str
    member_ids: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        return f"Duplicate members for family {self.family_id!r}: {', '.join(self.member_ids)}"


@dataclass
class StoreError(FamilyStudiesError):
    """Document store I/O failure."""

    operation: str
    document_id: str | None = None
    detail: str = ""

    def __str__(self) -> str:
        target = f" {self.document_id!r}" if self.document_id else ""
        return f"Store {self.operation}{target} failed: {self.detail}"


@dataclass
class LockLookupError(FamilyStudiesError):
    """The current lock holder of a document could not be determined."""

    document_id: str
    detail: str = ""

    def __str__(self) -> str:
        return f"Lock lookup for {self.document_id!r} failed: {self.detail}"
