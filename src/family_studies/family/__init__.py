"""Family documents and membership management."""
from __future__ import annotations

from .manager import FamilyMembershipManager, merge_edit_rights
from .models import (
    AccessRight,
    Document,
    FamilyDocument,
    PatientDocument,
    SubjectType,
    edit_grantees,
)
from .store import (
    DocumentRightsProvider,
    DocumentStore,
    InMemoryDocumentStore,
    RightsProvider,
)

__all__ = [
    "FamilyMembershipManager",
    "merge_edit_rights",
    # Documents
    "Document",
    "PatientDocument",
    "FamilyDocument",
    "AccessRight",
    "SubjectType",
    "edit_grantees",
    # Collaborators
    "DocumentStore",
    "RightsProvider",
    "InMemoryDocumentStore",
    "DocumentRightsProvider",
]
