"""
Idempotency guard for order creation.

Collapses retried creation requests carrying the same idempotency key
into one order. The existence check and the insert are two separate
store calls; the store's unique constraint on ``idempotencyKey`` settles
the race when two requests pass the check at the same time.
"""
import logging
import secrets
import string
import time
from typing import Any, Mapping, Optional, Tuple

from order_service.repositories.document_store import DuplicateKeyError, StoreUnavailableError
from order_service.repositories.order_repository import OrderRepository
from order_service.schemas.order import Order

logger = logging.getLogger(__name__)

_KEY_ALPHABET = string.ascii_lowercase + string.digits


def generate_idempotency_key() -> str:
    """Server-side fallback key: time plus randomness"""
    suffix = "".join(secrets.choice(_KEY_ALPHABET) for _ in range(13))
    return f"order_{int(time.time() * 1000)}_{suffix}"


class IdempotencyGuard:
    """Creates an order at most once per idempotency key"""

    def __init__(self, repository: OrderRepository):
        self.repository = repository

    async def find_existing(self, key: str, user_id: Optional[str] = None) -> Optional[Order]:
        return await self.repository.find_by_idempotency_key(key, user_id)

    async def create_once(
        self,
        key: str,
        user_id: Optional[str],
        order_data: Mapping[str, Any],
    ) -> Tuple[Order, bool]:
        """
        Return the order for ``key``, inserting ``order_data`` if none exists
        
        Returns:
            (order, created) where ``created`` is False for a replay
        """
        existing = await self.find_existing(key, user_id)
        if existing:
            logger.info(f"Idempotency hit for key {key[:8]}... - returning order {existing.id}")
            return existing, False

        try:
            return await self.repository.create({**order_data, "idempotencyKey": key}), True
        except DuplicateKeyError:
            # Lost the race against a concurrent request with the same key
            existing = await self.find_existing(key, user_id)
            if existing is None:
                raise StoreUnavailableError(f"Idempotency key {key[:8]}... reported as taken but not found")
            logger.info(f"Concurrent duplicate for key {key[:8]}... resolved to order {existing.id}")
            return existing, False
