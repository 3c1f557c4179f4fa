import logging
from typing import Optional

from pydantic import BaseModel, EmailStr

from physio_funnel.config import settings

logger = logging.getLogger("physio_funnel.email.config")


class EmailSettings(BaseModel):
    """
    Email configuration derived from Settings.
    """

    from_address: EmailStr
    from_name: Optional[str] = None
    sendgrid_api_key: Optional[str] = None
    timeout_seconds: int = 10
    public_base_url: str
    display_timezone: str = "Europe/Amsterdam"

    @property
    def configured(self) -> bool:
        return bool(self.sendgrid_api_key)


_email_settings: Optional[EmailSettings] = None


def init_email_settings() -> EmailSettings:
    """
    Initialize the global EmailSettings instance from physio_funnel.config.settings.
    Safe to call multiple times; initialization is idempotent.
    """
    global _email_settings

    if _email_settings is not None:
        return _email_settings

    _email_settings = EmailSettings(
        from_address=settings.email_from_address,
        from_name=settings.email_from_name or str(settings.email_from_address),
        sendgrid_api_key=settings.sendgrid_api_key,
        timeout_seconds=settings.email_timeout_seconds,
        public_base_url=settings.public_base_url.rstrip("/"),
        display_timezone=settings.display_timezone,
    )

    if not _email_settings.configured:
        logger.warning("SENDGRID_API_KEY not set; outgoing email will fail and be logged.")

    logger.info(
        "EmailSettings initialized for %s (timeout=%ss)",
        _email_settings.from_address,
        _email_settings.timeout_seconds,
    )
    return _email_settings


def get_email_settings() -> EmailSettings:
    return init_email_settings()
