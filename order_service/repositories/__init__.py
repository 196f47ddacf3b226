"""
Repositories package
"""
from order_service.repositories.document_store import (
    ArrayAppend,
    Document,
    DocumentNotFoundError,
    DocumentStore,
    DuplicateKeyError,
    StaleDocumentError,
    StoreError,
    StoreUnavailableError,
)
from order_service.repositories.memory_store import InMemoryDocumentStore
from order_service.repositories.order_repository import OrderRepository

__all__ = [
    "ArrayAppend",
    "Document",
    "DocumentNotFoundError",
    "DocumentStore",
    "DuplicateKeyError",
    "InMemoryDocumentStore",
    "OrderRepository",
    "StaleDocumentError",
    "StoreError",
    "StoreUnavailableError",
]
