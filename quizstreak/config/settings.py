"""Application settings and configuration."""

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

# Load .env file if present
load_dotenv()


class AppSettings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Storage
    data_dir: Path = Field(
        default=Path.home() / ".quizstreak",
        description="Directory holding the persisted state document",
        validation_alias="QUIZSTREAK_DATA_DIR",
    )

    storage_key: str = Field(
        default="quiz_app_data_v1",
        min_length=1,
        description="Key (file stem) of the persisted state document",
        validation_alias="QUIZSTREAK_STORAGE_KEY",
    )

    save_debounce_seconds: float = Field(
        default=0.5,
        ge=0.0,
        le=10.0,
        description="Mutations within this window coalesce into one write",
        validation_alias="QUIZSTREAK_SAVE_DEBOUNCE",
    )

    # Logging
    log_level: str = Field(
        default="WARNING",
        description="Root log level for the CLI",
        validation_alias="QUIZSTREAK_LOG_LEVEL",
    )

    # Export
    export_dir: str = Field(
        default="output",
        description="Directory for exported quiz documents",
        validation_alias="QUIZSTREAK_EXPORT_DIR",
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


# Loaded once and cached for the rest of the process
@lru_cache
def get_app_settings() -> AppSettings:
    """
    Get cached settings instance.

    Returns:
        AppSettings object with loaded configuration
    """
    return AppSettings()
