"""Environment-driven configuration, read once per process through get_settings()"""
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="allow", case_sensitive=False
    )

    app_name: str = "Taskboard"
    app_version: str = "1.0.0"
    environment: str = "development"  # development | test | production
    debug: bool = False

    # Durable store (PostgreSQL via asyncpg in production)
    database_url: str = ""
    database_echo: bool = False
    database_pool_min: int = Field(default=2, ge=0)
    database_pool_max: int = Field(default=10, ge=1)
    database_pool_timeout: int = 30
    database_pool_recycle: int = 3600
    database_command_timeout: int = 60
    database_connect_retries: int = Field(default=3, ge=1)

    # Cache; an unreachable Redis degrades to store reads unless redis_required
    redis_enabled: bool = True
    redis_required: bool = False
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: str | None = None
    redis_max_connections: int = 10
    redis_connect_retries: int = Field(default=3, ge=1)

    cache_ttl_default: int = 3600

    # Seconds close() waits for checked-out connections before disposing the pool
    shutdown_grace_period: float = Field(default=10.0, ge=0)

    @model_validator(mode="after")
    def require_database_url(self) -> "Settings":
        if not self.database_url:
            raise ValueError("DATABASE_URL is required. Set in environment or .env file.")
        return self

    @model_validator(mode="after")
    def check_pool_bounds(self) -> "Settings":
        if self.database_pool_min > self.database_pool_max:
            raise ValueError(
                f"DATABASE_POOL_MIN ({self.database_pool_min}) cannot exceed "
                f"DATABASE_POOL_MAX ({self.database_pool_max})"
            )
        return self

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache
def get_settings() -> Settings:
    return Settings()
