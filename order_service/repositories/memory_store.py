"""
In-memory document store for local runs and tests
"""
import asyncio
import copy
from typing import Any, Dict, List, Mapping, Optional, Sequence

from order_service.repositories.document_store import (
    Document,
    DocumentNotFoundError,
    DocumentStore,
    DuplicateKeyError,
    StaleDocumentError,
    apply_changes,
    new_document_id,
)


class InMemoryDocumentStore(DocumentStore):
    """
    Dict-backed store with the same semantics as the SQL store.
    
    Every operation yields to the event loop first, so concurrent
    coroutines interleave between a read and the following write the
    way they would against a remote store.
    """

    def __init__(self, unique_fields: Sequence[str] = ("idempotencyKey",)):
        self._documents: Dict[str, Document] = {}
        self._unique_fields = tuple(unique_fields)

    async def _io(self) -> None:
        await asyncio.sleep(0)

    @staticmethod
    def _copy(document: Document) -> Document:
        return Document(id=document.id, data=copy.deepcopy(document.data), version=document.version)

    async def get(self, doc_id: str) -> Optional[Document]:
        await self._io()
        document = self._documents.get(doc_id)
        return self._copy(document) if document else None

    async def add(self, data: Mapping[str, Any]) -> Document:
        await self._io()
        for unique_field in self._unique_fields:
            value = data.get(unique_field)
            if value is None:
                continue
            if any(d.data.get(unique_field) == value for d in self._documents.values()):
                raise DuplicateKeyError(f"{unique_field}={value!r} already exists")

        document = Document(id=new_document_id(), data=copy.deepcopy(dict(data)), version=1)
        self._documents[document.id] = document
        return self._copy(document)

    async def update(
        self,
        doc_id: str,
        changes: Mapping[str, Any],
        expected_version: Optional[int] = None,
    ) -> Document:
        await self._io()
        document = self._documents.get(doc_id)
        if document is None:
            raise DocumentNotFoundError(f"Document {doc_id} not found")
        if expected_version is not None and document.version != expected_version:
            raise StaleDocumentError(
                f"Document {doc_id} is at version {document.version}, expected {expected_version}"
            )

        updated = Document(
            id=doc_id,
            data=apply_changes(document.data, changes),
            version=document.version + 1,
        )
        self._documents[doc_id] = updated
        return self._copy(updated)

    async def query(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> List[Document]:
        await self._io()
        filters = filters or {}
        matches = [
            d for d in self._documents.values()
            if all(d.data.get(key) == value for key, value in filters.items())
        ]
        if order_by:
            matches.sort(key=lambda d: (d.data.get(order_by) is not None, d.data.get(order_by) or ""), reverse=descending)
        if limit is not None:
            matches = matches[:limit]
        return [self._copy(d) for d in matches]

    def __len__(self) -> int:
        return len(self._documents)
