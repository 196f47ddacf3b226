"""
FastAPI Application Entry Point - Order Service
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from order_service import __version__
from order_service.api import health, orders
from order_service.config import Settings, settings
from order_service.database import create_engine
from order_service.repositories.document_store import DocumentStore
from order_service.repositories.memory_store import InMemoryDocumentStore
from order_service.repositories.sql_store import SqlDocumentStore

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# Create FastAPI application
app = FastAPI(
    title="Order Service",
    description="Order lifecycle and payment ledger service",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router)
app.include_router(orders.router)

# Prometheus metrics
Instrumentator().instrument(app).expose(app)


async def create_store(config: Settings) -> DocumentStore:
    """Open the document store selected by STORE_BACKEND"""
    if config.STORE_BACKEND == "memory":
        return InMemoryDocumentStore()
    store = SqlDocumentStore(create_engine(config.DATABASE_URL, echo=config.DATABASE_ECHO))
    await store.initialize()
    return store


@app.on_event("startup")
async def startup_event():
    """Open the document store on startup"""
    logger.info(f"Starting {settings.SERVICE_NAME}...")
    app.state.store = await create_store(settings)
    logger.info(f"Document store ready ({settings.STORE_BACKEND})")
    logger.info(f"RabbitMQ URL: {settings.RABBITMQ_URL} (events enabled: {settings.EVENTS_ENABLED})")
    logger.info(f"{settings.SERVICE_NAME} is running on port {settings.SERVICE_PORT}")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown"""
    logger.info(f"Shutting down {settings.SERVICE_NAME}...")
    store = getattr(app.state, "store", None)
    if store is not None:
        await store.close()
