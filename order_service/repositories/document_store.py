"""
Document store abstraction - the only shared mutable resource of the service.

A store holds JSON documents keyed by a store-assigned id. Besides plain
get/add/query it offers two write primitives the order core relies on:

- ``ArrayAppend`` appends elements to an array field instead of
  overwriting it.
- ``update(..., expected_version=n)`` is a compare-and-set: the write is
  applied only if the document is still at version ``n``.
"""
import copy
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional


class StoreError(Exception):
    """Base exception for document store errors"""
    pass


class StoreUnavailableError(StoreError):
    """Store unreachable or returned something unexpected"""
    pass


class DocumentNotFoundError(StoreError):
    """Document does not exist"""
    pass


class DuplicateKeyError(StoreError):
    """A unique field already holds this value"""
    pass


class StaleDocumentError(StoreError):
    """Compare-and-set failed: the document changed since it was read"""
    pass


@dataclass
class Document:
    """A stored document with its id and write version"""
    id: str
    data: Dict[str, Any]
    version: int = 1


class ArrayAppend:
    """Update marker: append ``items`` to an array field"""

    def __init__(self, *items: Any):
        self.items = list(items)

    def __repr__(self):
        return f"ArrayAppend({self.items!r})"


def new_document_id() -> str:
    return uuid.uuid4().hex


def apply_changes(data: Mapping[str, Any], changes: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``data`` with ``changes`` applied"""
    updated = copy.deepcopy(dict(data))
    for key, value in changes.items():
        if isinstance(value, ArrayAppend):
            current = list(updated.get(key) or [])
            current.extend(copy.deepcopy(value.items))
            updated[key] = current
        else:
            updated[key] = copy.deepcopy(value)
    return updated


class DocumentStore(ABC):
    """Async key/document store used by the order repository"""

    @abstractmethod
    async def get(self, doc_id: str) -> Optional[Document]:
        """Fetch a document by id, None if absent"""

    @abstractmethod
    async def add(self, data: Mapping[str, Any]) -> Document:
        """
        Insert a new document under a fresh id
        
        Raises:
            DuplicateKeyError: If a unique field value is already taken
        """

    @abstractmethod
    async def update(
        self,
        doc_id: str,
        changes: Mapping[str, Any],
        expected_version: Optional[int] = None,
    ) -> Document:
        """
        Apply ``changes`` to a document and bump its version
        
        Raises:
            DocumentNotFoundError: If the document does not exist
            StaleDocumentError: If ``expected_version`` no longer matches
        """

    @abstractmethod
    async def query(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> List[Document]:
        """Documents whose fields equal every value in ``filters``"""

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None
