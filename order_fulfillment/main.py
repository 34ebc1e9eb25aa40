"""
FastAPI Application Entry Point - Order Fulfillment Service
"""
import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from order_fulfillment import __version__
from order_fulfillment.config import settings
from order_fulfillment.database import init_db
from order_fulfillment.logging_config import configure_logging
from order_fulfillment.api import orders, health

configure_logging(settings.LOG_LEVEL, json_output=settings.LOG_JSON)
logger = structlog.get_logger(__name__)

# Create FastAPI application
app = FastAPI(
    title="Order Fulfillment Service",
    description="Checkout, order lifecycle and role-scoped order views",
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


@app.on_event("startup")
def startup_event():
    """Initialize database on startup"""
    logger.info("Starting service", service=settings.SERVICE_NAME)
    init_db()
    logger.info(
        "Service ready",
        service=settings.SERVICE_NAME,
        port=settings.SERVICE_PORT,
        max_cart_lines=settings.MAX_CART_LINES,
        lock_timeout_seconds=settings.LOCK_TIMEOUT_SECONDS,
        events_enabled=settings.EVENTS_ENABLED,
    )


@app.on_event("shutdown")
def shutdown_event():
    """Cleanup on shutdown"""
    logger.info("Shutting down", service=settings.SERVICE_NAME)


def run():
    """Console entry point"""
    import uvicorn

    uvicorn.run("order_fulfillment.main:app", host="0.0.0.0", port=settings.SERVICE_PORT)
