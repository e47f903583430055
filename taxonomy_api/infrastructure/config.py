"""Application configuration.

Settings come from environment variables or a `.env` file. Every field
has a development default so tests and scripts run without configuration.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API
    api_version: str = "0.1.0"
    debug: bool = False

    # Database
    database_url: str = "postgresql+asyncpg://taxonomy:taxonomy_dev_password@db:5432/taxonomy"
    database_pool_size: int = 5
    database_max_overflow: int = 10
    create_tables_on_startup: bool = False

    # Resolved filter cache, held in process memory; disable it when running
    # more than one worker process
    filter_cache_enabled: bool = True
    filter_cache_max_entries: int = 1024

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    class Config:
        """Pydantic configuration."""

        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
