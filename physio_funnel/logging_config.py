from __future__ import annotations

import logging.config
from typing import Optional

from physio_funnel.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """
    Route application and uvicorn loggers through a single stream handler.

    Must run before uvicorn starts so workers inherit it.
    """
    log_level = (level or settings.log_level or "INFO").upper()

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {"format": LOG_FORMAT},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "stream": "ext://sys.stdout",
                },
            },
            "loggers": {
                "physio_funnel": {
                    "handlers": ["console"],
                    "level": log_level,
                    "propagate": False,
                },
                "uvicorn": {"handlers": ["console"], "level": log_level, "propagate": False},
                "uvicorn.error": {"level": log_level},
                "uvicorn.access": {
                    "handlers": ["console"],
                    "level": log_level,
                    "propagate": False,
                },
                "sqlalchemy.engine": {"level": "WARNING"},
            },
            "root": {"handlers": ["console"], "level": "WARNING"},
        }
    )

    logging.getLogger("physio_funnel.logging").info(
        "Logging configured (level=%s, env=%s)", log_level, settings.environment
    )
