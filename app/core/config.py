"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the identity layer and the
subscription lifecycle manager share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal, Optional

import os

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class GraphSettings(BaseSettings):
    """Configuration required for talking to Microsoft identity and Graph."""

    model_config = SettingsConfigDict(populate_by_name=True)

    client_id: str = Field(..., validation_alias="GRAPH_CLIENT_ID")
    client_secret: str = Field(..., validation_alias="GRAPH_CLIENT_SECRET")
    authority: str = Field(
        "https://login.microsoftonline.com/common",
        validation_alias="GRAPH_AUTHORITY",
    )
    base_url: str = Field(
        "https://graph.microsoft.com/v1.0", validation_alias="GRAPH_BASE_URL"
    )
    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        ("https://graph.microsoft.com/Files.ReadWrite",),
        validation_alias="GRAPH_SCOPES",
    )
    timeout_seconds: float = Field(10.0, validation_alias="GRAPH_TIMEOUT_SECONDS")

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing scopes as a comma-separated string."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(value)
        return tuple(scope.strip() for scope in value.split(",") if scope.strip())


class SubscriptionSettings(BaseSettings):
    """Webhook subscription parameters sent to Graph on create and renew."""

    model_config = SettingsConfigDict(populate_by_name=True)

    notification_url: AnyHttpUrl = Field(..., validation_alias="NOTIFICATION_URL")
    resource: str = Field("/me/drive/root", validation_alias="SUBSCRIPTION_RESOURCE")
    change_type: str = Field("updated", validation_alias="SUBSCRIPTION_CHANGE_TYPE")
    expiration_days: int = Field(
        3,
        ge=1,
        validation_alias="SUBSCRIPTION_EXPIRATION_DAYS",
        description="Graph caps drive subscriptions at roughly three days.",
    )
    client_state: str = Field(
        "SecretClientState",
        validation_alias="SUBSCRIPTION_CLIENT_STATE",
        description="Opaque value echoed back by Graph on every notification.",
    )


class StorageSettings(BaseSettings):
    """Selects and configures the keyed store backing tokens and sync state."""

    model_config = SettingsConfigDict(populate_by_name=True)

    backend: Literal["sqlite", "dynamodb"] = Field(
        "sqlite", validation_alias="STORAGE_BACKEND"
    )
    sqlite_path: str = Field(
        "data/robot.db", validation_alias="STORAGE_SQLITE_PATH"
    )
    token_cache_table: str = Field("tokenCache", validation_alias="TOKEN_CACHE_TABLE")
    sync_state_table: str = Field("syncState", validation_alias="SYNC_STATE_TABLE")
    region_name: str = Field("us-east-1", validation_alias="AWS_REGION")


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    model_config = SettingsConfigDict(populate_by_name=True)

    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for sealing token caches at rest."
        ),
    )


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(populate_by_name=True)

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    graph: GraphSettings = Field(default_factory=GraphSettings)
    subscription: SubscriptionSettings = Field(default_factory=SubscriptionSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "GraphSettings",
    "SecuritySettings",
    "StorageSettings",
    "SubscriptionSettings",
    "get_settings",
]
