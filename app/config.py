"""
Application Configuration

Loads environment variables using pydantic-settings.
All settings can be overridden via a .env file or environment variables.
"""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Remote assistant backend (chat, health check, appointment creation)
    BACKEND_URL: str = "http://localhost:8000"
    BACKEND_TIMEOUT_SECONDS: float = 30.0
    BACKEND_AUTH_TOKEN: str = ""

    # Connectivity monitor
    HEALTH_CHECK_INTERVAL_SECONDS: float = 30.0

    # Context window sent with every remote dispatch
    CONTEXT_MAX_TURNS: int = 10
    CONTEXT_MAX_SUMMARIES: int = 3

    # Language model used by the backend endpoints
    GOOGLE_CLOUD_PROJECT: str = ""
    GOOGLE_CLOUD_LOCATION: str = "europe-west1"
    GEMINI_MODEL: str = "gemini-2.0-flash"

    RECORDS_PATH: str = "data/records.json"
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=str(_ENV_FILE), extra="ignore")


settings = Settings()
