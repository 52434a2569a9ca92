"""
Application startup tasks.

Handles initialization tasks that should run when the application starts:
- Logging configuration
- Database table creation
- Backup and sync directory initialization
"""
import logging
from pathlib import Path

from app.core.config import settings
from app.core.database import Base, engine

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Configure root logging from settings."""
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def initialize_database() -> None:
    """Create tables for all registered models."""
    # Registers the ORM models on Base.metadata
    import app.models  # noqa: F401

    logger.info("Initializing database...")
    Base.metadata.create_all(bind=engine)
    logger.info("✅ Database initialized")


def initialize_directories() -> None:
    """
    Ensure backup and sync directories exist.

    A missing or unwritable sync folder does not stop the application; sync
    requests will report the error instead.
    """
    for label, directory in (("backup", settings.BACKUP_DIRECTORY), ("sync", settings.SYNC_DIRECTORY)):
        try:
            Path(directory).mkdir(parents=True, exist_ok=True)
            logger.info(f"✅ {label.capitalize()} directory ready: {directory}")
        except OSError as e:
            logger.error(f"❌ Failed to create {label} directory {directory}: {e}")
            logger.warning(f"⚠️  Application starting without {label} directory")


def run_startup_tasks() -> None:
    """
    Run all startup tasks.

    This function is called when the FastAPI application starts.
    """
    logger.info("=" * 60)
    logger.info("Running application startup tasks...")
    logger.info("=" * 60)

    initialize_database()
    initialize_directories()

    logger.info("=" * 60)
    logger.info("✅ Startup tasks completed")
    logger.info("=" * 60)
