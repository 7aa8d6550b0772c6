"""
Application configuration and environment settings.
"""
from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import List, Union


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "TripOps"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Store
    STORE_BACKEND: str = "sql"  # Options: "sql", "memory"
    DATABASE_URL: str = "sqlite:///./tripops.db"
    DB_ECHO: bool = False
    STORE_TIMEOUT_SECONDS: float = 10.0  # Applied to every store connection

    # Ledger
    LEDGER_MAX_RETRIES: int = 3  # Optimistic-concurrency attempts per voucher edit

    # CORS
    CORS_ORIGINS: Union[List[str], str] = ["http://localhost:3000"]

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS_ORIGINS from comma-separated string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("LEDGER_MAX_RETRIES")
    @classmethod
    def check_ledger_retries(cls, v: int) -> int:
        if v < 1:
            raise ValueError("LEDGER_MAX_RETRIES must be at least 1")
        return v

    @field_validator("STORE_BACKEND")
    @classmethod
    def check_store_backend(cls, v: str) -> str:
        backend = v.lower()
        if backend not in ("sql", "memory"):
            raise ValueError(f"Unsupported STORE_BACKEND: {v}")
        return backend

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
