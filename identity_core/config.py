"""
Application configuration using pydantic-settings.
Loads from environment variables with .env file support.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Placeholder shipped for local development only; rejected in production.
DEVELOPMENT_SECRET_KEY = "change-this-in-production-minimum-32-characters-long"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./identity_dev.db"

    # Token signing
    secret_key: str = DEVELOPMENT_SECRET_KEY
    algorithm: str = "HS256"
    admin_token_expire_minutes: int = 1440      # 24 hours
    customer_token_expire_minutes: int = 10080  # 7 days

    # Operator account (provisioned out-of-band)
    admin_email: str = ""
    admin_password_hash: str = ""
    admin_subject_id: str = "admin"

    # Password hashing
    bcrypt_rounds: int = Field(default=12, ge=10, le=16)

    # Password reset
    password_reset_token_expire_minutes: int = 60
    password_reset_url: str = "http://localhost:3000/reset-password"

    # Email
    smtp_host: str = "smtp.example.com"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from_email: str = "noreply@example.com"
    smtp_from_name: str = "Storefront"
    smtp_starttls: bool = True
    smtp_ssl_tls: bool = False
    email_test_mode: bool = True

    # Application
    debug: bool = False
    environment: str = "development"
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR

    # API Settings
    api_v1_prefix: str = "/api/v1"
    project_name: str = "Storefront Identity Service"
    version: str = "1.0.0"
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Rate limiting, one window per route class (per client IP)
    rate_limit_enabled: bool = True
    # Peers (IPs or CIDRs) whose X-Forwarded-For is believed; empty = none
    trusted_proxies: list[str] = []
    rate_limit_login_window_ms: int = 15 * 60 * 1000
    rate_limit_login_max_requests: int = 10
    rate_limit_login_message: str = "Too many login attempts"
    rate_limit_register_window_ms: int = 15 * 60 * 1000
    rate_limit_register_max_requests: int = 5
    rate_limit_register_message: str = "Too many registration attempts"
    rate_limit_forgot_password_window_ms: int = 15 * 60 * 1000
    rate_limit_forgot_password_max_requests: int = 3
    rate_limit_forgot_password_message: str = "Too many password reset attempts"
    rate_limit_reset_password_window_ms: int = 15 * 60 * 1000
    rate_limit_reset_password_max_requests: int = 5
    rate_limit_reset_password_message: str = "Too many password reset attempts"
    rate_limit_admin_login_window_ms: int = 15 * 60 * 1000
    rate_limit_admin_login_max_requests: int = 5
    rate_limit_admin_login_message: str = "Too many login attempts"

    @property
    def admin_configured(self) -> bool:
        return bool(self.admin_email.strip() and self.admin_password_hash.strip())

    @property
    def normalized_admin_email(self) -> Optional[str]:
        email = self.admin_email.strip().lower()
        return email or None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
