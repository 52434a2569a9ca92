"""
Main FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.startup import configure_logging, run_startup_tasks
from app.services.classification_service import shutdown_classification_service

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run startup tasks, then release the analysis worker pool on shutdown."""
    run_startup_tasks()
    yield
    shutdown_classification_service()
    logger.info("Application shutdown complete")


app = FastAPI(
    title="Wardrobe Catalog API",
    description="Personal wardrobe catalog with heuristic garment photo classification",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    """Root endpoint - health check."""
    return {
        "status": "online",
        "service": "Wardrobe Catalog API",
        "version": "0.1.0",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


# Import and include API routers
from app.api import api_router

app.include_router(api_router, prefix=settings.API_V1_PREFIX)
