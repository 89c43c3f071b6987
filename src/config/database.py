"""Database configuration using Pydantic Settings.

SQLite through aiosqlite by default; any SQLAlchemy async URL can be used
by setting DB_DRIVER and the server fields.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """
    Database configuration settings.

    All settings can be overridden via environment variables with DB_ prefix.

    Example environment variables:
        DB_SQLITE_PATH=data/prospects.db
        DB_ECHO_SQL=true
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    driver: str = Field(
        default="sqlite+aiosqlite",
        description="SQLAlchemy async driver"
    )

    # Server settings (non-SQLite drivers)
    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    name: str = Field(default="prospect_pipeline", description="Database name")
    user: str = Field(default="", description="Database user")
    password: str = Field(default="", description="Database password")

    sqlite_path: Path = Field(
        default=Path("data/prospects.db"),
        description="Path to SQLite database file"
    )

    pool_size: int = Field(default=5, ge=1, le=100, description="Connections kept in the pool")
    pool_pre_ping: bool = Field(default=True, description="Test connections before using them")

    echo_sql: bool = Field(
        default=False,
        description="Log all SQL statements (for debugging)"
    )
    busy_timeout: int = Field(
        default=30,
        ge=1,
        description="Seconds SQLite waits on a locked database"
    )

    @computed_field
    @property
    def is_sqlite(self) -> bool:
        """Check if using SQLite."""
        return "sqlite" in self.driver.lower()

    @computed_field
    @property
    def async_url(self) -> str:
        """
        Get the async database URL.

        Returns:
            Database URL for async connections.
        """
        if self.is_sqlite:
            self.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
            return f"sqlite+aiosqlite:///{self.sqlite_path.absolute()}"

        auth = ""
        if self.user:
            auth = self.user
            if self.password:
                auth += f":{self.password}"
            auth += "@"

        return f"{self.driver}://{auth}{self.host}:{self.port}/{self.name}"

    def get_connect_args(self) -> dict:
        """
        Get database-specific connection arguments.

        Returns:
            Dictionary of connection arguments for SQLAlchemy.
        """
        if self.is_sqlite:
            return {
                "check_same_thread": False,
                "timeout": self.busy_timeout,
            }
        return {}


@lru_cache
def get_database_settings() -> DatabaseSettings:
    """
    Get cached database settings instance.

    Returns:
        DatabaseSettings: Cached settings loaded from environment.
    """
    return DatabaseSettings()
