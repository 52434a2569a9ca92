"""
Application configuration management using Pydantic Settings.
"""
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Wardrobe Catalog"
    DEBUG: bool = False
    API_V1_PREFIX: str = "/api/v1"
    LOG_LEVEL: str = "INFO"

    # CORS
    ALLOWED_ORIGINS: List[str] = ["http://localhost:5173", "http://localhost:3000"]

    # Database
    DATABASE_URL: str = "sqlite:///./wardrobe.db"
    DB_ECHO: bool = False

    # Garment analysis
    ANALYSIS_TIMEOUT_SECONDS: float = 15.0
    ANALYSIS_MIN_CONFIDENCE: float = 0.1
    ANALYSIS_MAX_WORKERS: int = 3

    # Images
    IMAGE_JPEG_QUALITY: int = 80
    MAX_IMAGE_SIZE_MB: int = 20

    # Closet
    UNDO_DELETE_WINDOW_SECONDS: float = 5.0

    # Backup & sync
    SYNC_ENABLED: bool = False
    SYNC_DIRECTORY: str = "./sync"
    BACKUP_DIRECTORY: str = "./backups"
    SYNC_INTERVAL_MINUTES: int = 60

    # Processing
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"


settings = Settings()
