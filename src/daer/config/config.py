# src/daer/config/config.py
"""Configuration system for Daer.

Every section reads its values from the process environment (and ``.env``)
at construction time. The application factory accepts an explicit
:class:`DaerConfig`, so tests build one directly instead of patching
environment variables.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_SETTINGS = SettingsConfigDict(
    env_file=".env",
    env_file_encoding="utf-8",
    case_sensitive=False,
    extra="ignore",
)


class DatabaseConfig(BaseSettings):
    """Database configuration settings."""

    model_config = _SETTINGS

    database_url: str = ""
    database_echo: bool = False
    postgres_user: str = "daer"
    postgres_password: str = "daer_password"
    postgres_db: str = "daer_novel"
    postgres_host: str = "localhost"
    postgres_port: str = "5432"

    @property
    def url(self) -> str:
        """Return the SQLAlchemy async URL, preferring ``DATABASE_URL``."""
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+psycopg://{self.postgres_user}:{self.postgres_password}@"
            f"{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


class AIFallbackConfig(BaseSettings):
    """Process-wide provider used when a user has no stored AI configuration."""

    model_config = SettingsConfigDict(**_SETTINGS, env_prefix="AI_")

    provider: str = "openai"
    model: str = "gpt-4o-mini"
    # No default: the fallback only exists when a key is supplied.
    api_key: str | None = None
    base_url: str | None = None
    temperature: float = 0.7
    max_tokens: int | None = None
    top_p: float | None = None

    @property
    def available(self) -> bool:
        return bool(self.api_key)


class SystemConfig(BaseSettings):
    """System configuration settings."""

    model_config = _SETTINGS

    log_level: str = "INFO"
    backend_port: int = 8002
    cors_origin: str = "http://localhost:8001"
    disable_auth: bool = False
    default_user_id: str = "local"

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origin.split(",") if o.strip()]


class WorkerConfig(BaseSettings):
    """Worker configuration settings."""

    model_config = _SETTINGS

    worker_enabled: bool = True
    queue_workers: int = Field(default=3, ge=1)
    worker_idle: float = Field(default=0.5, gt=0)
    db_wait_attempts: int = Field(default=20, ge=1)
    db_wait_seconds: float = Field(default=1.5, ge=0)


class DaerConfig(BaseModel):
    """Main configuration class."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    ai: AIFallbackConfig = Field(default_factory=AIFallbackConfig)
    system: SystemConfig = Field(default_factory=SystemConfig)
    worker: WorkerConfig = Field(default_factory=WorkerConfig)


@lru_cache(maxsize=1)
def get_config() -> DaerConfig:
    """Return the process-wide configuration, loading ``.env`` first."""
    from daer.core.env import load_env

    load_env()
    return DaerConfig()


__all__ = [
    "AIFallbackConfig",
    "DaerConfig",
    "DatabaseConfig",
    "SystemConfig",
    "WorkerConfig",
    "get_config",
]
