"""Configuration management using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="ITEMGATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Credentials
    api_key: str | None = Field(
        default=None,
        description="API key clients must present",
    )
    secret: str | None = Field(
        default=None,
        description="Shared secret used as the HMAC key",
    )
    bearer_token: str | None = Field(
        default=None,
        description="Static token for bearer auth mode",
    )

    # Auth
    auth_mode: Literal["signature", "bearer", "none"] = Field(
        default="signature",
        description="Authentication mode for the item API",
    )
    signature_scheme: Literal["base64", "hex-base64"] = Field(
        default="base64",
        description="Signature encoding: base64 of the raw digest, or base64 of the hex digest (legacy)",
    )
    method_policy: Literal["uniform", "get-only"] = Field(
        default="uniform",
        description="Verify every method, or verify GET and stub writes (legacy)",
    )
    protected_path: str = Field(
        default="/items",
        description="Resource path guarded by the gate and mixed into the signed string",
    )
    key_header: str = Field(
        default="access_key",
        description="Header carrying the API key",
    )
    signature_header: str = Field(
        default="access_sign",
        description="Header carrying the base64 signature",
    )
    timestamp_header: str = Field(
        default="access_timestamp",
        description="Header carrying the caller timestamp",
    )
    auth_exempt_paths: tuple[str, ...] = Field(
        default=("/health", "/metrics"),
        description="Paths exempt from authentication",
    )

    # Storage
    item_storage: Literal["memory", "sqlite"] = Field(
        default="memory",
        description="Storage backend for items",
    )
    item_sqlite_path: str = Field(
        default="data/items.sqlite",
        description="SQLite path for the item store",
    )
    item_seed: bool = Field(
        default=True,
        description="Seed an empty store with the example items",
    )

    # Server
    host: str = Field(
        default="0.0.0.0",
        description="Host for the HTTP server",
    )
    port: int = Field(
        default=3000,
        description="Port for the HTTP server",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level",
    )
    log_json: bool = Field(
        default=False,
        description="Render logs as JSON lines instead of console output",
    )

    # Client
    client_base_url: str = Field(
        default="http://localhost:3000",
        description="Base URL used by the signing client",
    )
    http_timeout: float = Field(
        default=30.0,
        description="HTTP request timeout in seconds",
    )

    @field_validator("protected_path")
    @classmethod
    def _normalize_protected_path(cls, value: str) -> str:
        """Store the path with one leading slash and no trailing slash."""
        return "/" + value.strip("/")


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
