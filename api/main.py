"""Main FastAPI application for the deal token service."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware

from database import DealDatabase
from deals import DealService
from api.dependencies import get_service, set_database, set_service
from api.models import HealthResponse
from api.routes import ledger, listings, tickets
from main import load_config

logger = logging.getLogger(__name__)

SERVICE_NAME = "Deal Token API"
VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    # Startup
    logger.info(f"Starting {SERVICE_NAME}...")

    config = load_config()
    service = DealService(config)
    database = DealDatabase(config.database_path)

    await service.start()
    await database.start()

    # Set global instances for dependency injection
    set_service(service)
    set_database(database)
    logger.info(f"{SERVICE_NAME} started successfully")

    yield

    # Shutdown
    logger.info(f"Stopping {SERVICE_NAME}...")
    set_service(None)
    set_database(None)
    await database.stop()
    await service.stop()
    logger.info(f"{SERVICE_NAME} stopped")


# Create FastAPI app
app = FastAPI(
    title=SERVICE_NAME,
    description="REST API for deal token redemption and marketplace listings",
    version=VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

# Enable CORS for the wallet front end
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(tickets.router)
app.include_router(ledger.router)
app.include_router(listings.router)


@app.get("/", response_model=HealthResponse)
async def root(service: DealService = Depends(get_service)):
    """API health check."""
    return HealthResponse(
        status="online",
        service=SERVICE_NAME,
        version=VERSION,
        network=service.config.network.value,
    )


@app.get("/health")
async def health_check():
    """Simple health check for monitoring."""
    return {"status": "healthy"}
