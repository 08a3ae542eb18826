"""
FastAPI Main Application

Violation CSV ingestion REST API.
"""
from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import sessionmaker

from src import __version__
from src.leadintake.api.dependencies import get_session_factory_dependency, get_storage
from src.leadintake.api.schemas import HealthCheck
from src.leadintake.api.routers import uploads, maintenance
from src.leadintake.db.session import close_connections, health_check as database_health_check
from src.leadintake.storage.blob import BlobStorage
from src.leadintake.utils.logger import setup_logging
from src.leadintake.utils.timeutils import utcnow

setup_logging()

# Create FastAPI app
app = FastAPI(
    title="Lead Intake API",
    description="Upload, ingest and track municipal code-violation CSV exports",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Dispose the pooled engine when the server stops
app.add_event_handler("shutdown", close_connections)

# Include routers
app.include_router(uploads.router)
app.include_router(maintenance.router)


@app.get("/health", response_model=HealthCheck, tags=["health"])
def health_check(
    session_factory: sessionmaker = Depends(get_session_factory_dependency),
    storage: BlobStorage = Depends(get_storage),
):
    """
    Health check endpoint.

    Returns:
        Health status with database connectivity check
    """
    database_status = "connected" if database_health_check(session_factory) else "unavailable"

    return HealthCheck(
        status="healthy" if database_status == "connected" else "degraded",
        version=__version__,
        database=database_status,
        storage=f"{type(storage).__name__}:{storage.bucket}",
        timestamp=utcnow(),
    )


@app.get("/", tags=["root"])
def root():
    """
    Root endpoint.

    Returns:
        API information
    """
    return {
        "name": "Lead Intake API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.leadintake.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
