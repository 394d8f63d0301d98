"""Patient and family documents as seen by the membership manager."""
from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Union

from pydantic import BaseModel, Field

EDIT = "edit"


class SubjectType(str, Enum):
    USER = "user"
    GROUP = "group"


class AccessRight(BaseModel):
    """One access-control entry: a user or group and the levels granted."""
    subject: str
    subject_type: SubjectType = SubjectType.USER
    levels: set[str] = Field(default_factory=set)

    @property
    def can_edit(self) -> bool:
        return EDIT in self.levels


def edit_grantees(rights: list[AccessRight]) -> tuple[set[str], set[str]]:
    """Partition the subjects holding edit access into (users, groups)."""
    users = {r.subject for r in rights if r.can_edit and r.subject_type == SubjectType.USER}
    groups = {r.subject for r in rights if r.can_edit and r.subject_type == SubjectType.GROUP}
    return users, groups


class PatientDocument(BaseModel):
    """A patient record with its family back-reference."""
    id: str
    kind: Literal["patient"] = "patient"
    family_ref: str | None = Field(default=None, description="Id of the family this patient belongs to")
    fields: dict[str, Any] = Field(default_factory=dict, description="Clinical field bag")
    rights: list[AccessRight] = Field(default_factory=list)
    pedigree: dict[str, Any] | None = None


class FamilyDocument(BaseModel):
    """The aggregate record of a family.

    ``members`` is only ever changed through FamilyMembershipManager, which
    keeps it consistent with every member's ``family_ref``.
    """
    id: str
    kind: Literal["family"] = "family"
    members: list[str] = Field(default_factory=list)
    rights: list[AccessRight] = Field(default_factory=list)
    pedigree: dict[str, Any] | None = None

    @property
    def rights_snapshot(self) -> tuple[set[str], set[str]]:
        """Users and groups holding edit access."""
        return edit_grantees(self.rights)


Document = Union[PatientDocument, FamilyDocument]
