"""
Health check endpoint
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from order_service import __version__
from order_service.api.dependencies import get_store
from order_service.config import settings
from order_service.repositories.document_store import DocumentStore

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(store: DocumentStore = Depends(get_store)):
    """
    Health check endpoint
    
    Checks:
    - Service status
    - Document store connectivity
    """
    store_status = "healthy" if await store.ping() else "unhealthy"
    
    return {
        "service": settings.SERVICE_NAME,
        "status": store_status,
        "store": store_status,
        "store_backend": settings.STORE_BACKEND,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@router.get("/")
def root():
    """Root endpoint"""
    return {
        "service": settings.SERVICE_NAME,
        "version": __version__,
        "docs": "/docs"
    }
