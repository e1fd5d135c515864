"""Configuration management for NoMoneyLa."""

from decimal import Decimal
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError

FairShareMode = Literal["equal", "contributed"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="NOMONEYLA_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Display
    currency_code: str = "HKD"  # Used when formatting amounts at the CLI

    # Validation thresholds
    tolerance: Decimal = Field(default=Decimal("0.01"), ge=0)  # Sum vs. total
    warning_limit: Decimal = Field(default=Decimal("1.00"), ge=0)  # Beyond = error

    # Settlement
    amount_quantum: Decimal = Field(default=Decimal("0.01"), gt=0)  # Currency unit
    fair_share_mode: FairShareMode = "equal"

    # Database path
    database_path: Path = Path.home() / ".nomoneyla" / "nomoneyla.db"

    def __init__(self, **kwargs):
        """Initialize settings and create database directory if needed."""
        super().__init__(**kwargs)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)


def load_settings(**overrides) -> Settings:
    """Load application settings from environment variables."""
    try:
        return Settings(**overrides)
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load settings. Check the NOMONEYLA_* environment "
            f"variables or your .env file.\n"
            f"Error: {e}"
        ) from e
