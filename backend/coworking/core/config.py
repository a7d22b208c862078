# backend/coworking/core/config.py
"""
Runtime configuration.

Values come from the environment (case-insensitive) and, outside CI, from
``backend/.env``. Fields are grouped by the subsystem that reads them.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

_IN_CI = bool(os.getenv("CI"))
_ENV_FILE = Path(__file__).resolve().parents[2] / ".env"

if not _IN_CI and _ENV_FILE.exists():
    load_dotenv(_ENV_FILE)
    logger.info(f"[CONFIG] Loaded environment from {_ENV_FILE}")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=None if _IN_CI else str(_ENV_FILE),
        case_sensitive=False,
        extra="ignore",
    )

    environment: str = "development"
    log_level: str = "INFO"
    is_testing: bool = False

    # Persistence
    database_url: str = "sqlite:///./coworking.db"
    database_echo: bool = False

    # JWT; the secret may only be omitted under CI or tests
    secret_key: Optional[SecretStr] = None
    algorithm: str = "HS256"
    access_token_expire_minutes: int = Field(default=60 * 24, ge=1)

    # HTTP surface
    frontend_url: str = "http://localhost:3000"
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    upload_dir: str = Field(default="uploads", description="Served read-only under /uploads")

    # Resend
    resend_api_key: Optional[str] = None
    from_email: str = "Coworking Space <bookings@coworking.example.com>"
    email_enabled: bool = True

    # Stripe
    stripe_secret_key: SecretStr = SecretStr("")
    stripe_webhook_secret: SecretStr = SecretStr("")
    stripe_currency: str = "usd"
    stripe_timeout_seconds: int = Field(default=10, ge=1)
    stripe_max_network_retries: int = Field(default=1, ge=0)

    # Job worker; retries back off from jobs_backoff_base doubling up to jobs_backoff_cap
    scheduler_enabled: bool = True
    jobs_poll_interval: int = Field(default=2, ge=1)
    jobs_batch: int = Field(default=25, ge=1)
    jobs_max_attempts: int = Field(default=5, ge=1)
    jobs_backoff_base: int = Field(default=30, ge=1)
    jobs_backoff_cap: int = Field(default=1800, ge=1)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _comma_separated_origins(cls, value: object) -> object:
        # Accept "a,b" as well as a JSON list
        if isinstance(value, str) and not value.lstrip().startswith("["):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @model_validator(mode="after")
    def _require_secret_key(self) -> "Settings":
        if self.secret_key is None:
            if not (_IN_CI or self.is_testing):
                raise ValueError("SECRET_KEY must be set")
            self.secret_key = SecretStr("ci-test-secret-key-not-for-production")
        return self

    @property
    def stripe_configured(self) -> bool:
        return bool(self.stripe_secret_key.get_secret_value())


settings = Settings()
