"""Application settings and configuration.

This module defines all configuration options for the Grove application.
Settings are loaded from environment variables with sensible defaults.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Grove", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Session tokens
    secret_key: str = Field(alias="SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 30,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )

    # Key-value backend selection
    storage_backend: Literal["memory", "firebase", "redis"] = Field(
        default="memory",
        alias="STORAGE_BACKEND",
    )
    storage_namespace: str = Field(default="grove", alias="STORAGE_NAMESPACE")
    backend_timeout_seconds: float = Field(default=10.0, alias="BACKEND_TIMEOUT_SECONDS")

    # Firebase Realtime Database (REST)
    firebase_url: str | None = Field(default=None, alias="FIREBASE_URL")
    firebase_auth: str | None = Field(default=None, alias="FIREBASE_AUTH")

    # Redis, used when STORAGE_BACKEND=redis
    redis_url: str = Field(default="redis://localhost:6379", alias="REDIS_URL")

    # The public post every other post descends from
    root_post_id: str = Field(default="root", alias="ROOT_POST_ID")
    root_post_content: str = Field(
        default="Grove\n\nA public place for posts, comments and accounts.",
        alias="ROOT_POST_CONTENT",
    )

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )


settings = Settings()  # type: ignore[call-arg]
