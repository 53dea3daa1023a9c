"""Application configuration using Pydantic Settings"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import ClassVar

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.errors import ConfigurationError

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_file=Path(__file__).parent.parent / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Supabase Auth (verifies the dashboard session JWT)
    supabase_url: str = Field(default="", description="Supabase project URL")
    supabase_jwt_secret: str = Field(default="", description="Supabase JWT signing secret")
    supabase_jwt_audience: str = Field(
        default="authenticated", description="Expected aud claim of session JWTs"
    )

    # Discord application (refresh grant)
    discord_client_id: str = Field(default="", description="Discord OAuth Client ID")
    discord_client_secret: str = Field(default="", description="Discord OAuth Client Secret")

    # Discord bot
    discord_bot_token: str = Field(
        default="",
        validation_alias=AliasChoices("bot_token", "discord_bot_token"),
        description="Bot token for bot-scoped Discord calls",
    )
    discord_bot_permissions: str = Field(
        default="8", description="Permission bitmask requested by the bot invite link"
    )
    discord_timeout: float = Field(default=10.0, description="Timeout for Discord calls (s)")

    # Database (Supabase Postgres)
    database_url: str = Field(default="", description="PostgreSQL database URL")

    # Server
    frontend_url: str = Field(default="http://localhost:3000", description="Frontend URL for CORS")
    environment: str = Field(default="development", description="Environment name")
    log_level: str = Field(default="INFO", description="Logging level")
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")

    # field name -> environment variable shown in error messages
    REQUIRED_ENV: ClassVar[dict[str, str]] = {
        "supabase_jwt_secret": "SUPABASE_JWT_SECRET",
        "discord_client_id": "DISCORD_CLIENT_ID",
        "discord_client_secret": "DISCORD_CLIENT_SECRET",
        "discord_bot_token": "BOT_TOKEN",
        "database_url": "DATABASE_URL",
    }

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

    def require(self, *fields: str) -> None:
        """Raise ConfigurationError if any of *fields* is empty"""
        missing = [self.REQUIRED_ENV.get(f, f.upper()) for f in fields if not getattr(self, f)]
        if missing:
            raise ConfigurationError(
                f"Server configuration error: missing {', '.join(missing)}"
            )

    def missing_required(self) -> list[str]:
        """Names of required environment variables that are not set"""
        return [env for field, env in self.REQUIRED_ENV.items() if not getattr(self, field)]

    @property
    def supabase_issuer(self) -> str | None:
        """Expected iss claim, when the project URL is known"""
        if not self.supabase_url:
            return None
        return f"{self.supabase_url.rstrip('/')}/auth/v1"

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS allowed origins"""
        return [self.frontend_url]

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
    return Settings()
