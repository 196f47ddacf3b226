"""
SQLAlchemy-backed document store
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from order_service.database import create_session_factory, init_db
from order_service.models.order import OrderRecord
from order_service.repositories.document_store import (
    Document,
    DocumentNotFoundError,
    DocumentStore,
    DuplicateKeyError,
    StaleDocumentError,
    StoreUnavailableError,
    apply_changes,
    new_document_id,
)

logger = logging.getLogger(__name__)

# Document fields mirrored into indexed columns
_INDEXED_FIELDS = {
    "userId": OrderRecord.user_id,
    "idempotencyKey": OrderRecord.idempotency_key,
    "status": OrderRecord.status,
    "createdAt": OrderRecord.created_at,
}


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    return datetime.now(timezone.utc)


def _indexed_values(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "user_id": data.get("userId"),
        "idempotency_key": data.get("idempotencyKey"),
        "status": data.get("status"),
    }


class SqlDocumentStore(DocumentStore):
    """
    Stores each document as a JSON column on the ``orders`` table.
    
    Only fields listed in ``_INDEXED_FIELDS`` can be filtered or ordered on.
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.session_factory = create_session_factory(engine)

    async def initialize(self) -> None:
        try:
            await init_db(self.engine)
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Cannot initialize orders table: {e}") from e

    @staticmethod
    def _to_document(record: OrderRecord) -> Document:
        return Document(id=record.id, data=dict(record.data), version=record.version)

    async def get(self, doc_id: str) -> Optional[Document]:
        try:
            async with self.session_factory() as session:
                record = await session.get(OrderRecord, doc_id)
                return self._to_document(record) if record else None
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Failed to read document {doc_id}: {e}") from e

    async def add(self, data: Mapping[str, Any]) -> Document:
        record = OrderRecord(
            id=new_document_id(),
            created_at=_parse_timestamp(data.get("createdAt")),
            version=1,
            data=dict(data),
            **_indexed_values(data),
        )
        try:
            async with self.session_factory() as session:
                session.add(record)
                await session.commit()
                return Document(id=record.id, data=dict(data), version=1)
        except IntegrityError as e:
            raise DuplicateKeyError(f"Unique constraint violated: {e.orig}") from e
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Failed to insert document: {e}") from e

    async def update(
        self,
        doc_id: str,
        changes: Mapping[str, Any],
        expected_version: Optional[int] = None,
    ) -> Document:
        try:
            async with self.session_factory() as session:
                record = await session.get(OrderRecord, doc_id)
                if record is None:
                    raise DocumentNotFoundError(f"Document {doc_id} not found")
                current_version = record.version
                if expected_version is not None and current_version != expected_version:
                    raise StaleDocumentError(
                        f"Document {doc_id} is at version {current_version}, expected {expected_version}"
                    )

                data = apply_changes(record.data, changes)
                result = await session.execute(
                    update(OrderRecord)
                    .where(OrderRecord.id == doc_id, OrderRecord.version == current_version)
                    .values(data=data, version=current_version + 1, **_indexed_values(data))
                    .execution_options(synchronize_session=False)
                )
                # Another writer got in between our read and this statement
                if result.rowcount != 1:
                    await session.rollback()
                    raise StaleDocumentError(f"Document {doc_id} changed during update")
                await session.commit()
                return Document(id=doc_id, data=data, version=current_version + 1)
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Failed to update document {doc_id}: {e}") from e

    async def query(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> List[Document]:
        statement = select(OrderRecord)
        for field_name, value in (filters or {}).items():
            column = _INDEXED_FIELDS.get(field_name)
            if column is None:
                raise ValueError(f"Field '{field_name}' is not queryable")
            statement = statement.where(column == value)
        if order_by:
            column = _INDEXED_FIELDS.get(order_by)
            if column is None:
                raise ValueError(f"Field '{order_by}' is not sortable")
            statement = statement.order_by(column.desc() if descending else column.asc())
        if limit is not None:
            statement = statement.limit(limit)

        try:
            async with self.session_factory() as session:
                result = await session.execute(statement)
                return [self._to_document(r) for r in result.scalars().all()]
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Query failed: {e}") from e

    async def ping(self) -> bool:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.warning(f"Store ping failed: {e}")
            return False

    async def close(self) -> None:
        await self.engine.dispose()
