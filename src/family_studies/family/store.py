"""Document store and identity/rights provider contracts.

Production deployments plug in their own storage; the in-memory versions
back the CLI and the test suite.
"""
from __future__ import annotations

import itertools
import threading
from typing import Callable, Protocol, runtime_checkable

from family_studies.exceptions import NotFound
from family_studies.family.models import Document, FamilyDocument, edit_grantees


@runtime_checkable
class DocumentStore(Protocol):
    """Keyed document storage.

    ``get`` raises NotFound for unknown ids; both methods may raise
    StoreError on I/O failure.
    """

    def get(self, document_id: str) -> Document: ...

    def save(self, document: Document) -> None: ...

    def families_containing(self, patient_id: str) -> list[str]:
        """Ids of every family document listing ``patient_id`` as a member."""
        ...

    def allocate_id(self, prefix: str) -> str: ...


@runtime_checkable
class RightsProvider(Protocol):
    """Identity and access-rights lookups."""

    def edit_grantees(self, document_id: str) -> tuple[set[str], set[str]]: ...

    def current_user(self) -> str | None: ...


class InMemoryDocumentStore:
    """Dict-backed DocumentStore handing out copies, never live documents."""

    def __init__(self, documents: list[Document] | None = None) -> None:
        self._documents: dict[str, Document] = {}
        self._lock = threading.Lock()
        self._counter = itertools.count(1)
        for document in documents or []:
            self.save(document)

    def get(self, document_id: str) -> Document:
        with self._lock:
            document = self._documents.get(document_id)
            if document is None:
                raise NotFound(document_id=document_id)
            return document.model_copy(deep=True)

    def save(self, document: Document) -> None:
        with self._lock:
            self._documents[document.id] = document.model_copy(deep=True)

    def families_containing(self, patient_id: str) -> list[str]:
        with self._lock:
            return [
                d.id
                for d in self._documents.values()
                if isinstance(d, FamilyDocument) and patient_id in d.members
            ]

    def allocate_id(self, prefix: str) -> str:
        with self._lock:
            while True:
                candidate = f"{prefix}{next(self._counter):07d}"
                if candidate not in self._documents:
                    return candidate

    def __contains__(self, document_id: str) -> bool:
        with self._lock:
            return document_id in self._documents


class DocumentRightsProvider:
    """RightsProvider reading access-control entries stored on documents.

    Args:
        store: Where documents are read from
        current_user: The acting user, or a callable returning it per request
    """

    def __init__(self, store: DocumentStore, current_user: str | Callable[[], str | None] | None = None) -> None:
        self.store = store
        self._current_user = current_user

    def edit_grantees(self, document_id: str) -> tuple[set[str], set[str]]:
        return edit_grantees(self.store.get(document_id).rights)

    def current_user(self) -> str | None:
        if callable(self._current_user):
            return self._current_user()
        return self._current_user
