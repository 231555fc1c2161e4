"""Application configuration via Pydantic Settings."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings

# Resolve .env from backend/ regardless of CWD
_ENV_FILE = Path(__file__).resolve().parents[3] / ".env"


class Settings(BaseSettings):
    """Central configuration loaded from environment variables / .env file."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./spacematch.db"

    # AI extraction
    gemini_api_key: str = ""
    extraction_model: str = "gemini-3-flash-preview"
    extraction_temperature: float = 0.3
    extraction_timeout_seconds: float = 30.0
    extraction_max_attempts: int = 2
    extraction_backoff_seconds: float = 0.5
    extraction_backoff_jitter: float = 0.25

    # Candidate listings
    listing_api_url: str = "http://localhost:3000/api/properties/search"
    listing_api_timeout_seconds: float = 10.0

    # Conversation sessions
    session_ttl_hours: int = 48

    # CORS / Frontend
    cors_origins: str = "http://localhost:3000"

    # General
    debug: bool = True

    model_config = {"env_file": str(_ENV_FILE), "env_file_encoding": "utf-8", "extra": "ignore"}

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list.

        In debug mode, returns ["*"] to allow any origin.
        """
        if self.debug:
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Return cached Settings instance."""
    return Settings()
