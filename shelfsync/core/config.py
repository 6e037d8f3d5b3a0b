from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "shelfsync"
    ENVIRONMENT: str = "development"  # development, staging, production

    # Logging
    LOG_LEVEL: str = "INFO"

    # Backend
    API_BASE_URL: str = "http://localhost:3000/api/v1"
    API_TIMEOUT_SECONDS: float = 30.0

    @field_validator("API_BASE_URL", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Paths are joined with a leading slash."""
        if v and v.endswith("/"):
            return v.rstrip("/")
        return v

    # External book catalog
    GOOGLE_BOOKS_BASE_URL: str = "https://www.googleapis.com/books/v1"
    GOOGLE_BOOKS_API_KEY: str = ""
    CATALOG_MAX_RESULTS: int = 40  # Hard limit per request on the catalog side
    CATALOG_TIMEOUT_SECONDS: float = 10.0

    # Events
    EVENTS_STALENESS_SECONDS: int = 5 * 60

    # Imports
    IMPORT_MAX_FILE_BYTES: int = 10 * 1024 * 1024
    IMPORT_POLL_INITIAL_SECONDS: float = 2.0
    IMPORT_POLL_STEP_SECONDS: float = 1.0
    IMPORT_POLL_MAX_SECONDS: float = 10.0

    # Caches
    AUTHOR_SEARCH_CACHE_SIZE: int = 10

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    return Settings()
