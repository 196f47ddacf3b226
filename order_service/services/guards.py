"""
Shared plumbing for service operations: payload parsing, store failure
mapping and compare-and-set retries
"""
import functools
import logging
from typing import Any, Mapping, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError
from tenacity import before_sleep_log, retry, retry_if_exception_type, stop_after_attempt

from order_service.config import settings
from order_service.domain.result import Ok, Result, conflict, dependency_error, not_found, validation_error
from order_service.repositories.document_store import (
    DocumentNotFoundError,
    StaleDocumentError,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

# Re-run a read-modify-write from a fresh read when another writer won the race
retry_on_stale = retry(
    retry=retry_if_exception_type(StaleDocumentError),
    stop=stop_after_attempt(settings.CAS_MAX_ATTEMPTS),
    before_sleep=before_sleep_log(logger, logging.DEBUG),
    reraise=True,
)


def parse_payload(schema: Type[M], payload: Union[M, Mapping[str, Any]]) -> Result[M]:
    """Validate a raw payload before it reaches the store"""
    if isinstance(payload, schema):
        return Ok(payload)
    try:
        return Ok(schema.model_validate(payload))
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'body'}: {err['msg']}" for err in e.errors()
        )
        return validation_error(f"Invalid {schema.__name__}: {details}")


def store_errors_as_result(operation: str):
    """Turn store exceptions escaping ``operation`` into ``Err`` results"""
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except StaleDocumentError as e:
                logger.warning(f"{operation}: gave up after repeated concurrent modifications: {e}")
                return conflict("The order was modified concurrently. Please retry.")
            except DocumentNotFoundError as e:
                return not_found(str(e))
            except StoreUnavailableError as e:
                logger.error(f"{operation} failed, document store unavailable: {e}")
                return dependency_error(f"{operation} failed: order storage is unavailable.")
        return wrapper
    return decorator
