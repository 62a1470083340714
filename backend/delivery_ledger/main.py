"""CBD Entregas - delivery ledger API"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from delivery_ledger.core.config import get_settings
from delivery_ledger.core.logging import configure_logging, logger
from delivery_ledger.core.roster import get_roster
from delivery_ledger.routers import dashboard, data, occurrences, records
from delivery_ledger.services.record_store import record_store

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    settings = get_settings()
    configure_logging(settings.log_level, settings.normalized_log_format())
    roster = get_roster()
    logger.info(
        "Delivery ledger API starting",
        version=VERSION,
        data_dir=settings.data_dir,
        drivers=len(roster),
        records=len(record_store.records),
        occurrences=len(record_store.occurrences),
    )
    yield
    # Shutdown
    logger.info("Delivery ledger API shutting down")


app = FastAPI(
    title="CBD Entregas API",
    description="Delivery bookkeeping for a small trucking fleet - monthly net deliveries, revenue and occurrences",
    version=VERSION,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(dashboard.router)
app.include_router(records.router)
app.include_router(occurrences.router)
app.include_router(data.router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "CBD Entregas API",
        "version": VERSION,
        "description": "Delivery ledger and monthly BI for the fleet",
        "endpoints": {
            "dashboard": "/dashboard",
            "drivers": "/drivers/{driver}",
            "records": "/records",
            "occurrences": "/occurrences",
            "data": "/data",
        }
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "persistence": "durable" if record_store.persistent else "memory-only",
    }
