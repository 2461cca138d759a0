"""Configuration management using Pydantic settings.

Two-layer configuration system:
1. Environment: Loads raw values from environment variables (UPPER_CASE)
2. Settings: Clean application settings with lowercase fields and derived values
"""

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_DEFAULT_DATABASE_NAME = "item_database"


def _sqlite_url(directory: str, name: str) -> str:
    return f"sqlite:///{(Path(directory) / name).as_posix()}"


class Environment(BaseSettings):
    """Raw environment variable loading."""

    model_config = SettingsConfigDict(
        env_file=_PROJECT_ROOT / ".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    APP_ENV: str = Field(default="development")

    DATABASE_DIR: str = Field(default="data")
    DATABASE_NAME: str = Field(default=_DEFAULT_DATABASE_NAME)
    DATABASE_URL: str | None = Field(default=None)
    DB_ECHO: bool = Field(default=False)

    TASK_MAX_WORKERS: int = Field(default=4)
    QUERY_MAX_WORKERS: int = Field(default=2)
    GRACEFUL_SHUTDOWN_TIMEOUT: int = Field(default=30)


class Settings(BaseModel):
    """Application settings with lowercase fields and derived values."""

    model_config = ConfigDict(from_attributes=True)

    app_env: str = "development"

    database_name: str = _DEFAULT_DATABASE_NAME
    database_url: str = _sqlite_url("data", _DEFAULT_DATABASE_NAME)
    db_echo: bool = False
    sqlalchemy_engine_options: dict[str, Any] = Field(default_factory=dict)

    task_max_workers: int = 4
    query_max_workers: int = 2
    graceful_shutdown_timeout: int = 30

    @property
    def is_testing(self) -> bool:
        return self.app_env == "testing"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    def validate_config(self) -> None:
        from inventory.exceptions import ConfigurationError

        errors: list[str] = []

        if not self.database_name.strip():
            errors.append("DATABASE_NAME must not be empty")
        if not self.database_url.startswith("sqlite"):
            errors.append("DATABASE_URL must point at a SQLite database")
        if self.task_max_workers < 1:
            errors.append("TASK_MAX_WORKERS must be at least 1")
        if self.query_max_workers < 1:
            errors.append("QUERY_MAX_WORKERS must be at least 1")
        if self.graceful_shutdown_timeout < 0:
            errors.append("GRACEFUL_SHUTDOWN_TIMEOUT must not be negative")

        if errors:
            raise ConfigurationError(
                "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            )

    def set_engine_options_override(self, options: dict[str, Any]) -> None:
        """Override SQLAlchemy engine options (used for testing with SQLite)."""
        self.sqlalchemy_engine_options = options

    @classmethod
    def load(cls, env: "Environment | None" = None) -> "Settings":
        if env is None:
            env = Environment()

        database_url = env.DATABASE_URL or _sqlite_url(env.DATABASE_DIR, env.DATABASE_NAME)

        return cls(
            app_env=env.APP_ENV,
            database_name=env.DATABASE_NAME,
            database_url=database_url,
            db_echo=env.DB_ECHO,
            task_max_workers=env.TASK_MAX_WORKERS,
            query_max_workers=env.QUERY_MAX_WORKERS,
            graceful_shutdown_timeout=env.GRACEFUL_SHUTDOWN_TIMEOUT,
        )
