from __future__ import annotations

import logging
from functools import lru_cache
from typing import List, Optional

from pydantic import EmailStr, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("physio_funnel.config")

DEFAULT_ACTION_TOKEN_SECRET = "change-me"


class Settings(BaseSettings):
    """
    Central configuration for the funnel backend.

    - Reads from .env (local) and the process environment.
    - Ignores extra env vars so adding new ones doesn't break startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # -------------------------------------------------------------------------
    # Core app
    # -------------------------------------------------------------------------
    app_name: str = Field(default="Physio Funnel Backend", alias="APP_NAME")
    debug: bool = Field(default=False, alias="DEBUG")
    environment: str = Field(default="local", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    cors_origins_raw: str = Field(default="*", alias="CORS_ORIGINS")

    @property
    def cors_origins(self) -> List[str]:
        return [
            origin.strip()
            for origin in self.cors_origins_raw.split(",")
            if origin.strip()
        ]

    # -------------------------------------------------------------------------
    # Database
    # -------------------------------------------------------------------------
    database_url: str = Field(
        default="sqlite:///./physio_funnel.db",
        alias="DATABASE_URL",
    )
    db_pool_timeout_seconds: int = Field(default=10, alias="DB_POOL_TIMEOUT_SECONDS")
    db_connect_timeout_seconds: int = Field(
        default=10,
        alias="DB_CONNECT_TIMEOUT_SECONDS",
    )

    # -------------------------------------------------------------------------
    # Public URLs
    # -------------------------------------------------------------------------
    public_base_url: str = Field(
        default="http://localhost:5000",
        alias="PUBLIC_BASE_URL",
    )
    form_success_redirect: str = Field(
        default="/form.html?ok=1",
        alias="FORM_SUCCESS_REDIRECT",
    )

    # -------------------------------------------------------------------------
    # Admin + action tokens
    # -------------------------------------------------------------------------
    admin_key: Optional[str] = Field(default=None, alias="ADMIN_KEY")

    action_token_secret: str = Field(
        default=DEFAULT_ACTION_TOKEN_SECRET,
        alias="ACTION_TOKEN_SECRET",
    )
    # Shape-only validation is the compatibility default; links already sent
    # by email rely on it.
    action_token_strict: bool = Field(default=False, alias="ACTION_TOKEN_STRICT")

    unknown_practice_code: str = Field(default="UNKNOWN", alias="UNKNOWN_PRACTICE_CODE")

    # -------------------------------------------------------------------------
    # Email (SendGrid)
    # -------------------------------------------------------------------------
    sendgrid_api_key: Optional[str] = Field(default=None, alias="SENDGRID_API_KEY")
    email_from_address: EmailStr = Field(
        default="no-reply@example.com",
        alias="EMAIL_FROM",
    )
    email_from_name: str = Field(
        default="Dynamic Health Consultancy",
        alias="EMAIL_FROM_NAME",
    )
    email_timeout_seconds: int = Field(default=10, alias="EMAIL_TIMEOUT_SECONDS")
    display_timezone: str = Field(default="Europe/Amsterdam", alias="DISPLAY_TIMEZONE")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader so config is evaluated once per process.
    """
    settings = Settings()
    logger.info(
        "Settings loaded (env=%s, debug=%s, strict_tokens=%s)",
        settings.environment,
        settings.debug,
        settings.action_token_strict,
    )
    if settings.action_token_secret == DEFAULT_ACTION_TOKEN_SECRET:
        logger.warning(
            "ACTION_TOKEN_SECRET is not set; action links are signed with the default secret."
        )
    return settings


settings: Settings = get_settings()
