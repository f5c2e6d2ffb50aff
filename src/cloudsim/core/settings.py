"""Application settings and configuration.

This module defines all configuration options for the CloudSim Stage service.
Settings are loaded from environment variables with sensible defaults.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or a `.env` file.
    """

    # Application metadata
    app_name: str = Field(default="CloudSim Stage", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration
    database_url: str = Field(default="sqlite:///./cloudsim.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")
    auto_create_tables: bool = Field(default=True, alias="AUTO_CREATE_TABLES")
    seed_default_nodes: bool = Field(default=True, alias="SEED_DEFAULT_NODES")

    # Redis backs the verification throttle; unset keeps counters in-process.
    redis_url: str | None = Field(default=None, alias="REDIS_URL")

    # JWT authentication settings
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(default=60, alias="ACCESS_TOKEN_EXPIRE_MINUTES")
    second_factor_ttl_minutes: int = Field(default=60, alias="SECOND_FACTOR_TTL_MINUTES")

    # One-time passcodes
    otp_ttl_seconds: int = Field(default=300, alias="OTP_TTL_SECONDS")
    otp_fingerprint_scheme: Literal["legacy", "blake3"] = Field(
        default="legacy",
        alias="OTP_FINGERPRINT_SCHEME",
    )
    otp_supersede_scope: Literal["subject", "subject_purpose"] = Field(
        default="subject",
        alias="OTP_SUPERSEDE_SCOPE",
    )
    otp_expose_code: bool = Field(default=False, alias="OTP_EXPOSE_CODE")
    otp_max_attempts: int = Field(default=5, alias="OTP_MAX_ATTEMPTS")
    otp_attempt_window_seconds: int = Field(default=300, alias="OTP_ATTEMPT_WINDOW_SECONDS")
    otp_fail_closed_on_mark_error: bool = Field(
        default=False,
        alias="OTP_FAIL_CLOSED_ON_MARK_ERROR",
    )
    otp_sweep_interval_seconds: float = Field(default=900.0, alias="OTP_SWEEP_INTERVAL_SECONDS")

    # Storage simulation
    replica_count: int = Field(default=2, alias="REPLICA_COUNT")
    max_upload_bytes: int = Field(default=100 * 1024 * 1024, alias="MAX_UPLOAD_BYTES")
    blob_root: str = Field(default="./blobs", alias="BLOB_ROOT")

    # CORS configuration for browser-originated calls
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")
    cors_allow_credentials: bool = Field(default=False, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=[
            "authorization",
            "x-client-info",
            "apikey",
            "content-type",
            "x-second-factor",
        ],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )


settings = Settings()  # type: ignore[call-arg]
