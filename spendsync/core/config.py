from pathlib import Path

from pydantic_settings import BaseSettings
from pydantic import Field
import os

DEFAULT_CATEGORIZATION_CONFIG_DIR = str(
    Path(__file__).resolve().parent.parent / "intelligence" / "categorization" / "config"
)


class Config(BaseSettings):
    # Database Configuration
    db_url: str = Field(default="sqlite+aiosqlite:///./spendsync.db", alias="DB_URL")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Gmail Configuration
    gmail_credentials_path: str = Field(default="credentials.json", alias="GMAIL_CREDENTIALS_PATH")
    gmail_token_dir: str = Field(default="tokens", alias="GMAIL_TOKEN_DIR")  # <user_id>.json per user
    gmail_page_size: int = Field(default=500, alias="GMAIL_PAGE_SIZE")
    gmail_chunk_size: int = Field(default=100, alias="GMAIL_CHUNK_SIZE")
    gmail_chunk_delay_seconds: float = Field(default=0.2, alias="GMAIL_CHUNK_DELAY_SECONDS")
    gmail_max_concurrency: int = Field(default=10, alias="GMAIL_MAX_CONCURRENCY")

    # Sync Configuration
    sync_batch_size: int = Field(default=100, alias="SYNC_BATCH_SIZE")
    sync_batch_delay_seconds: float = Field(default=0.2, alias="SYNC_BATCH_DELAY_SECONDS")
    sync_max_results: int = Field(default=1000, alias="SYNC_MAX_RESULTS")
    sync_lookback_days: int = Field(default=180, alias="SYNC_LOOKBACK_DAYS")
    sync_incremental_overlap_days: int = Field(default=0, alias="SYNC_INCREMENTAL_OVERLAP_DAYS")

    # Extraction / Categorization
    extraction_confidence_threshold: float = Field(
        default=0.7, alias="EXTRACTION_CONFIDENCE_THRESHOLD"
    )
    categorization_config_dir: str = Field(
        default=DEFAULT_CATEGORIZATION_CONFIG_DIR, alias="CATEGORIZATION_CONFIG_DIR"
    )

    # Celery broker/backend
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")

    is_production: bool = os.getenv("ENVIRONMENT", "development").lower() == "production"

    # Path to .env file (for loading env vars)
    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


# Instantiate the settings
config = Config()
