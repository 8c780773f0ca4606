"""Application configuration using Pydantic Settings."""
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # App
    app_name: str = "LiveClass Portal"
    debug: bool = False
    org_name: str = "Unknown IITians"

    # MongoDB
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_db_name: str = "liveclass"

    # JWT
    jwt_secret_key: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 60
    jwt_refresh_token_expire_days: int = 30

    # Seed admin (skipped when password is empty)
    admin_email: str = "admin@liveclass.local"
    admin_password: str = ""
    admin_name: str = "Portal Admin"

    # Scheduling: every day-of-week and clock comparison happens in this zone
    timezone: str = "Asia/Kolkata"
    reminder_tolerance_minutes: int = 1
    presence_poll_interval_seconds: float = 5.0
    subject_match_mode: Literal["fuzzy", "exact"] = "fuzzy"
    # Shared secret expected in X-Scheduler-Secret from the cron trigger; empty disables the check
    scheduler_secret: str = ""

    # Jitsi
    jitsi_domain: str = "meet.jit.si"
    jitsi_room_prefix: str = "erp_portal"

    # Resend (transactional email)
    resend_api_key: str = ""
    resend_base_url: str = "https://api.resend.com"
    mail_from: str = "Unknown IITians <notifications@hq.unknowniitians.com>"
    mail_timeout_seconds: float = 10.0

    # Google Workspace groups
    google_groups_domain: str = "unknowniitians.com"

    # CORS (comma-separated origins)
    cors_origins: str = "http://localhost:5173"

    @model_validator(mode="after")
    def _validate_production_secrets(self):
        if not self.debug:
            if self.jwt_secret_key in ("change-me-in-production", ""):
                raise ValueError(
                    "JWT_SECRET_KEY must be set to a strong secret when DEBUG is not enabled. "
                    "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
                )
        if self.reminder_tolerance_minutes < 0:
            raise ValueError("REMINDER_TOLERANCE_MINUTES cannot be negative")
        if self.presence_poll_interval_seconds <= 0:
            raise ValueError("PRESENCE_POLL_INTERVAL_SECONDS must be positive")
        return self


settings = Settings()
