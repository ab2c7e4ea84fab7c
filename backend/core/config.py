from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./wordbank.db"

    # Backend
    BACKEND_HOST: str = "0.0.0.0"
    BACKEND_PORT: int = 8000
    APP_DEBUG: bool = True
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False  # True for production (structured JSON), False for dev (colored)
    LOG_SQL: bool = False   # Enable SQLAlchemy query logging

    # Review scheduling
    REVIEW_MAX_ATTEMPTS: int = 3              # read-compute-write cycles before giving up on conflicts
    REVIEW_RETRY_BASE_DELAY_SECONDS: float = 0.05
    REVIEW_HISTORY_LIMIT: int = 200           # newest history entries kept per word
    DUE_QUEUE_LIMIT: int = 20

    # Cache
    CACHE_TTL_SECONDS: float = 300.0
    CACHE_MAX_ENTRIES: int = 10_000

    class Config:
        env_file = ".env"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
