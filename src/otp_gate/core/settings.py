"""Application settings and configuration.

This module defines all configuration options for the OTP gate service.
Settings are loaded from environment variables with sensible defaults; the
digest/signing secret has no default and must be provisioned out of band.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="OTP Gate", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")

    # Secret material shared by the code digest and the session token signer
    hmac_secret: str = Field(alias="HMAC_SECRET")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")

    # Database configuration
    database_url: str = Field(default="sqlite:///./otp_gate.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Challenge lifecycle
    otp_ttl_seconds: int = Field(default=5 * 60, alias="OTP_TTL_SECONDS")
    otp_resend_cooldown_seconds: int = Field(default=45, alias="OTP_RESEND_COOLDOWN_SECONDS")
    otp_attempt_limit: int = Field(default=5, alias="OTP_ATTEMPT_LIMIT")
    otp_lock_seconds: int = Field(default=15 * 60, alias="OTP_LOCK_SECONDS")
    verified_ttl_seconds: int = Field(default=30 * 60, alias="VERIFIED_TTL_SECONDS")

    # Abuse control (fixed windows)
    start_ip_minute_limit: int = Field(default=3, alias="START_IP_MINUTE_LIMIT")
    start_ip_hour_limit: int = Field(default=10, alias="START_IP_HOUR_LIMIT")
    start_phone_minute_limit: int = Field(default=3, alias="START_PHONE_MINUTE_LIMIT")
    start_phone_hour_limit: int = Field(default=10, alias="START_PHONE_HOUR_LIMIT")
    verify_ip_minute_limit: int = Field(default=20, alias="VERIFY_IP_MINUTE_LIMIT")
    verify_ip_hour_limit: int = Field(default=100, alias="VERIFY_IP_HOUR_LIMIT")

    # Code delivery
    notifier_backend: str = Field(default="whatsapp", alias="NOTIFIER_BACKEND")
    meta_phone_number_id: str | None = Field(default=None, alias="META_PHONE_NUMBER_ID")
    meta_token: str | None = Field(default=None, alias="META_TOKEN")
    meta_api_version: str = Field(default="v23.0", alias="META_API_VERSION")
    whatsapp_template_name: str = Field(default="otp3", alias="WHATSAPP_TEMPLATE_NAME")
    whatsapp_template_language: str = Field(default="en_US", alias="WHATSAPP_TEMPLATE_LANGUAGE")
    notifier_max_attempts: int = Field(default=3, alias="NOTIFIER_MAX_ATTEMPTS")
    notifier_backoff_base_seconds: float = Field(
        default=0.5,
        alias="NOTIFIER_BACKOFF_BASE_SECONDS",
    )
    notifier_timeout_seconds: float = Field(default=10.0, alias="NOTIFIER_TIMEOUT_SECONDS")

    # Checkout lookup
    shopify_storefront_api_url: str | None = Field(
        default=None,
        alias="SHOPIFY_STOREFRONT_API_URL",
    )
    shopify_storefront_api_token: str | None = Field(
        default=None,
        alias="SHOPIFY_STOREFRONT_API_TOKEN",
    )
    shopify_timeout_seconds: float = Field(default=10.0, alias="SHOPIFY_TIMEOUT_SECONDS")

    # HTTP surface
    allowed_origins: str = Field(default="", alias="ALLOWED_ORIGINS")
    token_cookie_name: str = Field(default="otp_token", alias="TOKEN_COOKIE_NAME")
    token_cookie_secure: bool = Field(default=True, alias="TOKEN_COOKIE_SECURE")
    distinguish_missing_challenge: bool = Field(
        default=False,
        alias="DISTINGUISH_MISSING_CHALLENGE",
    )

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @field_validator("hmac_secret")
    @classmethod
    def _require_secret(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("HMAC_SECRET must be set to a non-empty value")
        return value

    @property
    def cors_origins(self) -> list[str]:
        """Return the configured CORS origins as a list.

        Returns:
            Origins parsed from the comma separated ALLOWED_ORIGINS value
        """
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling such as Alembic."""
        url = self.database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url


settings = Settings()  # type: ignore[call-arg]
