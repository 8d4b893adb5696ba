"""Application configuration using Pydantic Settings."""

import json
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "PropInspect"
    debug: bool = False
    environment: str = "development"
    port: int = 8000

    # Database
    database_url: str = "sqlite+aiosqlite:///./propinspect.db"

    @field_validator("database_url", mode="before")
    @classmethod
    def assemble_db_url(cls, v: str) -> str:
        """Convert standard postgres:// URL to asyncpg format."""
        if v.startswith("postgres://"):
            v = v.replace("postgres://", "postgresql+asyncpg://", 1)
        elif v.startswith("postgresql://") and "+asyncpg" not in v:
            v = v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    # CORS - accepts comma-separated string or JSON array
    cors_origins_str: str = "http://localhost:3000,http://localhost:5173"

    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        value = self.cors_origins_str
        if value.startswith("["):
            return json.loads(value)
        return [origin.strip() for origin in value.split(",") if origin.strip()]

    # Logging
    log_level: str = "INFO"

    # Metrics
    metrics_enabled: bool = True

    # Deficient items
    deficiency_tracking_enabled: bool = True
    default_deficiency_state: str = "requires-action"
    # JSON object of main input type -> list of booleans; empty = built-in table
    deficient_list_eligible: str = ""

    @property
    def deficient_list_eligible_table(self) -> dict[str, list[bool]] | None:
        """Parse the eligibility table override, if any."""
        if not self.deficient_list_eligible.strip():
            return None
        return json.loads(self.deficient_list_eligible)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
