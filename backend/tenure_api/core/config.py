"""Application configuration using Pydantic Settings"""

import logging
import os
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Any of these being set means we run inside a serverless function
SERVERLESS_ENV_VARS = ("VERCEL", "AWS_LAMBDA_FUNCTION_NAME", "AWS_EXECUTION_ENV")


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_file=Path(__file__).parent.parent / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(..., description="PostgreSQL database URL")
    database_ssl: str = Field(
        default="require", description="asyncpg ssl mode ('disable' for local databases)"
    )

    # Queue / payout rules
    max_winners_per_payout: int = Field(default=2, ge=0, description="Winners per payout cycle")
    default_payout_threshold: int = Field(
        default=500000, ge=0, description="Revenue threshold that triggers a payout"
    )

    # HTTP behaviour
    allowed_origins: str = Field(
        default="http://localhost:3000", description="Comma-separated CORS allow-list"
    )
    rate_limit_window_ms: int = Field(default=900000, gt=0, description="Rate limit window")
    rate_limit_max_requests: int = Field(default=100, gt=0, description="Requests per window")
    session_cookie_name: str = Field(default="better-auth.session_token")
    not_found_status: int = Field(
        default=500, description="HTTP status for unknown queue members (500 or 404)"
    )
    deprecated_mutation_status: int = Field(
        default=200, description="HTTP status for deprecated queue mutations (200 or 410)"
    )

    # Environment
    environment: str = Field(default="development", description="Environment name")
    log_level: str = Field(default="INFO", description="Logging level")

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=3001, description="Server port")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid logging level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper

    @field_validator("not_found_status")
    @classmethod
    def validate_not_found_status(cls, v: int) -> int:
        if v not in (404, 500):
            raise ValueError("NOT_FOUND_STATUS must be 404 or 500")
        return v

    @field_validator("deprecated_mutation_status")
    @classmethod
    def validate_deprecated_status(cls, v: int) -> int:
        if v not in (200, 410):
            raise ValueError("DEPRECATED_MUTATION_STATUS must be 200 or 410")
        return v

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS allowed origins"""
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

    @property
    def rate_limit_window_seconds(self) -> float:
        return self.rate_limit_window_ms / 1000

    @property
    def is_serverless(self) -> bool:
        return any(os.getenv(name) for name in SERVERLESS_ENV_VARS)

    @property
    def is_production(self) -> bool:
        """Check if running in production environment"""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment"""
        return self.environment.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()  # type: ignore[call-arg]
