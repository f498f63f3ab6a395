"""
Configuration management for the GraphGate gateway.
"""

from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with validation."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Environment
    environment: str = Field(default="development", description="Deployment environment")
    debug: bool = Field(default=False, description="Debug mode")

    # Application
    app_name: str = "GraphGate"
    app_version: str = "0.1.0"

    # Shared listener for GraphQL over HTTP and WebSocket
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=4000, ge=1, le=65535)
    graphql_path: str = Field(default="/graphql")
    graphql_ide: bool = Field(default=True, description="Serve GraphiQL on GET requests")
    cors_origins: List[str] = Field(default=["*"])

    # Upstream provider
    upstream_base_url: str = Field(
        default="https://jsonplaceholder.typicode.com",
        description="Base address of the upstream REST provider"
    )
    todos_page_size: int = Field(default=10, ge=1, le=200)

    # Synthetic event stream
    enable_event_producer: bool = Field(default=True)
    event_interval_seconds: float = Field(default=5.0, gt=0)

    # WebSocket subscriptions and shutdown
    connection_init_timeout_seconds: float = Field(default=10.0, gt=0)
    shutdown_drain_timeout_seconds: float = Field(default=10.0, ge=0)

    # Observability
    log_level: str = Field(default="INFO")

    @field_validator("environment")
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        allowed = ["development", "staging", "production", "testing"]
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("log_level")
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v = v.upper()
        if v not in allowed:
            raise ValueError(f"log_level must be one of {allowed}")
        return v

    @field_validator("graphql_path")
    def validate_graphql_path(cls, v: str) -> str:
        """GraphQL path must be absolute."""
        if not v.startswith("/"):
            raise ValueError("graphql_path must start with '/'")
        return v.rstrip("/") or "/"

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
