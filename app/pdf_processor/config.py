"""
Application configuration using Pydantic Settings.

Automatically loads environment variables from .env files.
"""

import json
import tempfile
from functools import lru_cache
from pathlib import Path
from typing import Annotated

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEV_JWT_KEY = "development-only-signing-key-change-me-0123456789"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Runtime environment ("Development" relaxes admin setup)
    environment: str = "Production"

    # Database
    database_url: str = "sqlite:///./pdf_processor.db"

    # JWT
    jwt_key: str = DEV_JWT_KEY
    jwt_issuer: str = "pdf-processor"
    jwt_audience: str = "pdf-processor-ui"
    jwt_expiry_minutes: int = 180

    # Admin bootstrap
    admin_setup_secret_key: str | None = None
    seed_admin_email: str | None = None
    seed_admin_password: str | None = None

    # OpenAI
    openai_api_key: str | None = None
    openai_model: str = "gpt-4.1-mini"
    extraction_max_output_tokens: int = 8192
    system_instructions_path: Path | None = None

    # Upload processing
    upload_dir: Path = Path(tempfile.gettempdir())
    max_concurrent_extractions: int = 4
    file_retention_hours: float = 6
    cleanup_interval_seconds: float = 3600
    handle_release_delay_seconds: float = 0.1

    cors_allow_origins: Annotated[list[str], NoDecode] = ["*"]

    # Debug flags
    sql_debug: bool = False
    debug: bool = False

    model_config = SettingsConfigDict(
        # Load from .env file in the package directory
        env_file=Path(__file__).parent / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
        # Case insensitive environment variable names
        case_sensitive=False,
    )

    @field_validator("cors_allow_origins", mode="before")
    @classmethod
    def _split_origins(cls, value):
        # Accepts a JSON list or a comma-separated string
        if isinstance(value, str):
            if value.strip().startswith("["):
                return json.loads(value)
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @property
    def is_development(self) -> bool:
        return self.environment.strip().lower() == "development"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application configuration loaded from environment.
    """
    return Settings()
