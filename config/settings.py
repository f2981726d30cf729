"""
Application Settings Configuration.

Loads and validates configuration from environment variables and .env files.
"""

from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from dotenv import load_dotenv

# Load .env file
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


class Settings(BaseSettings):
    """Application settings loaded from DBADMIN_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="DBADMIN_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # File Paths
    data_dir: str = Field(default="./data")
    logs_dir: str = Field(default="./logs")
    aliases_file: str = Field(default="aliases.json")
    history_file: str = Field(default="query_history.json")
    saved_queries_file: str = Field(default="saved_queries.json")

    # Logging Configuration
    log_level: str = Field(default="INFO")
    log_retention_days: int = Field(default=30, ge=1)
    log_file_prefix: str = Field(default="dbadmin")

    # Provider Configuration
    default_engine: str = Field(default="sqlserver")
    display_name: str = Field(default="SQL Server")
    odbc_driver: str = Field(default="ODBC Driver 18 for SQL Server")
    login_timeout: int = Field(default=15, ge=0)

    def _data_path(self, filename: str) -> Path:
        path = Path(filename)
        if path.is_absolute():
            return path
        return Path(self.data_dir) / path

    @property
    def aliases_path(self) -> Path:
        return self._data_path(self.aliases_file)

    @property
    def history_path(self) -> Path:
        return self._data_path(self.history_file)

    @property
    def saved_queries_path(self) -> Path:
        return self._data_path(self.saved_queries_file)

    def create_directories(self) -> None:
        """Create necessary directories if they don't exist."""
        for directory in (self.data_dir, self.logs_dir):
            Path(directory).mkdir(parents=True, exist_ok=True)

    def provider_config(self) -> dict:
        """Config bag handed to providers built from these settings."""
        return {
            "odbc_driver": self.odbc_driver,
            "login_timeout": self.login_timeout,
        }


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance (singleton pattern)."""
    global _settings
    if _settings is None:
        _settings = Settings()
        _settings.create_directories()
    return _settings


def reload_settings() -> Settings:
    """Reload settings from environment (useful for testing)."""
    global _settings
    _settings = None
    return get_settings()
