"""
Ride Log Decoder - FastAPI Backend

Main application entry point and configuration.
"""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ridelog.api.activities import router as activities_router, folder_router
from ridelog.config import get_settings
from ridelog.services.repository import init_repository, get_repository


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


# Default data folder (can be overridden via API or environment)
DEFAULT_DATA_FOLDER = Path("./data/activities")
DATA_FOLDER_ENV = "RIDELOG_DATA_FOLDER"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    settings = get_settings()
    logger.info(
        f"Starting Ride Log Decoder (smart recording: {settings.smart_recording}, "
        f"high-water mark: {settings.high_water_mark}s)"
    )

    repo = get_repository()
    if repo.data_folder is None:
        data_folder = Path(os.getenv(DATA_FOLDER_ENV, str(DEFAULT_DATA_FOLDER)))
        if data_folder.exists():
            init_repository(data_folder)
            logger.info(f"Initialized repository with folder: {data_folder}")
        else:
            logger.info(f"Default data folder not found: {data_folder}")
            logger.info("Use POST /folder to set data folder")

    yield

    # Shutdown
    logger.info("Shutting down Ride Log Decoder")


app = FastAPI(
    title="Ride Log Decoder",
    description="""
    Backend API for decoding Garmin Training Center (TCX) activity files.

    ## Features
    - Decode single and multi-activity TCX files (plain or .tcx.gz)
    - Derive speed from distance (or distance from speed)
    - Fill smart recording gaps with one-second interpolated samples
    - Fill pool swim rests with zero samples

    ## Data Flow
    1. Set data folder via POST /folder
    2. List decoded activities via GET /activities
    3. Get metadata and laps via GET /activities/{id}
    4. Get the sample series via GET /activities/{id}/samples
    """,
    version="0.1.0",
    lifespan=lifespan,
)


# CORS middleware (allow all origins for development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, restrict this
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(activities_router)
app.include_router(folder_router)


@app.get("/")
async def root():
    """Root endpoint - basic health check."""
    return {
        "name": "Ride Log Decoder",
        "version": "0.1.0",
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    repo = get_repository()
    settings = get_settings()

    return {
        "status": "healthy",
        "data_folder": str(repo.data_folder) if repo.data_folder else None,
        "file_count": repo.file_count,
        "smart_recording": settings.smart_recording,
        "high_water_mark": settings.high_water_mark,
    }
