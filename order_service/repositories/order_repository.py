"""
Order Repository - Data Access Layer
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, TypeAdapter, ValidationError

from order_service.repositories.document_store import (
    ArrayAppend,
    Document,
    DocumentStore,
    StoreUnavailableError,
)
from order_service.schemas.order import Order, OrderStatus

_DATETIME = TypeAdapter(datetime)


def to_document_value(value: Any) -> Any:
    """Serialize schema objects the way they are stored (camelCase, ISO dates)"""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(value, ArrayAppend):
        return ArrayAppend(*(to_document_value(item) for item in value.items))
    if isinstance(value, (list, tuple)):
        return [to_document_value(item) for item in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return _DATETIME.dump_python(value, mode="json")
    return value


class OrderRepository:
    """Repository for order documents"""
    
    def __init__(self, store: DocumentStore):
        self.store = store
    
    @staticmethod
    def _to_order(document: Document) -> Order:
        try:
            return Order.model_validate({**document.data, "id": document.id, "version": document.version})
        except ValidationError as e:
            raise StoreUnavailableError(f"Order document {document.id} has an unexpected shape: {e}") from e
    
    async def get_by_id(self, order_id: str) -> Optional[Order]:
        """Get order by ID"""
        document = await self.store.get(order_id)
        if not document:
            return None
        return self._to_order(document)
    
    async def find_by_idempotency_key(self, key: str, user_id: Optional[str] = None) -> Optional[Order]:
        """
        Find the order created with ``key``
        
        A match scoped to ``user_id`` is preferred; otherwise any order
        carrying the key is returned.
        """
        if user_id:
            documents = await self.store.query({"idempotencyKey": key, "userId": user_id}, limit=1)
            if documents:
                return self._to_order(documents[0])
        documents = await self.store.query({"idempotencyKey": key}, limit=1)
        return self._to_order(documents[0]) if documents else None
    
    async def get_by_user(self, user_id: str) -> List[Order]:
        """Get a customer's orders, newest first"""
        documents = await self.store.query({"userId": user_id}, order_by="createdAt", descending=True)
        return [self._to_order(d) for d in documents]
    
    async def get_all(self, status: Optional[OrderStatus] = None) -> List[Order]:
        """Get all orders, optionally by status, newest first"""
        filters = {"status": status.value} if status else {}
        documents = await self.store.query(filters, order_by="createdAt", descending=True)
        return [self._to_order(d) for d in documents]
    
    async def create(self, order_data: Mapping[str, Any]) -> Order:
        """
        Insert a new order document
        
        Raises:
            DuplicateKeyError: If the idempotency key is already taken
        """
        document = await self.store.add({k: to_document_value(v) for k, v in order_data.items()})
        return self._to_order(document)
    
    async def update(self, order: Order, changes: Dict[str, Any]) -> Order:
        """
        Write ``changes`` if ``order`` is still the latest version
        
        Raises:
            StaleDocumentError: If the order changed since it was read
        """
        document = await self.store.update(
            order.id,
            {k: to_document_value(v) for k, v in changes.items()},
            expected_version=order.version,
        )
        return self._to_order(document)
