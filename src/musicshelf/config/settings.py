"""Application settings loaded from environment variables.

Hey future me - the library core only needs ONE thing from configuration: the
database file. Everything else here (echo, busy timeout, logging) is ambient
plumbing for the daemon that embeds the core. Env vars use the MUSICSHELF_
prefix and "__" for nested groups:

    MUSICSHELF_DATABASE__DB_FILE=/var/lib/musicshelf/library.db
    MUSICSHELF_LOGGING__LEVEL=DEBUG
"""

from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseModel):
    """Database connection settings."""

    db_file: Path = Field(
        default=Path("data/library.db"),
        description="Path of the SQLite library database file",
    )
    # Full SQLAlchemy URL override, e.g. "sqlite+aiosqlite:///:memory:" in tests
    url: str | None = None
    echo: bool = Field(default=False, description="Log every emitted SQL statement")
    busy_timeout: float = Field(
        default=30.0, description="Seconds to wait on a locked database file"
    )

    @property
    def connection_url(self) -> str:
        """Resolved async SQLAlchemy URL for the library database."""
        if self.url:
            return self.url
        return f"sqlite+aiosqlite:///{self.db_file}"


class LoggingSettings(BaseModel):
    """Logging output settings."""

    level: str = "INFO"
    json_format: bool = False


class Settings(BaseSettings):
    """Top-level musicshelf settings."""

    model_config = SettingsConfigDict(
        env_prefix="MUSICSHELF_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    app_name: str = "musicshelf"
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


@lru_cache
def get_settings() -> Settings:
    """Get the cached settings instance."""
    return Settings()
