"""
Centralized configuration management.
All environment variables and settings are defined here.
"""
import codecs
from pathlib import Path
from typing import Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.exceptions import BankStatementError
from core.schema import CsvFormat


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = Field(default="Bank Statement Service", alias="APP_NAME")
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Storage
    database_path: str = Field(default="bank_statement.db", alias="DATABASE_PATH")

    # CSV format
    csv_delimiter: str = Field(default=",", alias="CSV_DELIMITER")
    csv_encoding: str = Field(default="utf-8", alias="CSV_ENCODING")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level is one of the standard levels."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v_upper

    @field_validator("port")
    @classmethod
    def validate_port(cls, v):
        """Validate port is in valid range."""
        if not (1 <= v <= 65535):
            raise ValueError("Port must be between 1 and 65535")
        return v

    @field_validator("csv_delimiter")
    @classmethod
    def validate_delimiter(cls, v):
        if len(v) != 1:
            raise ValueError("CSV delimiter must be a single character")
        return v

    @field_validator("csv_encoding")
    @classmethod
    def validate_encoding(cls, v):
        try:
            codecs.lookup(v)
        except LookupError:
            raise ValueError(f"Unknown CSV encoding: {v}")
        return v

    def csv_format(self) -> CsvFormat:
        """Build the CSV format passed to the import and export pipelines."""
        return CsvFormat(delimiter=self.csv_delimiter, encoding=self.csv_encoding)

    def ensure_directories(self) -> None:
        """Ensure the database directory exists."""
        Path(self.database_path).parent.mkdir(parents=True, exist_ok=True)


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get application settings singleton.

    Returns:
        Settings instance

    Raises:
        BankStatementError: If the environment holds invalid settings
    """
    global _settings
    if _settings is None:
        try:
            settings = Settings()
        except ValidationError as e:
            raise BankStatementError.configuration(
                "Invalid application settings",
                details={"errors": [err["msg"] for err in e.errors()]}
            ) from e
        settings.ensure_directories()
        _settings = settings
    return _settings


def reset_settings() -> None:
    """Reset settings singleton (useful for testing)."""
    global _settings
    _settings = None
