from __future__ import annotations

import logging
from typing import Any, Dict

from dotenv import load_dotenv

# Load environment variables from .env before settings are read.
load_dotenv()

from fastapi import FastAPI  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402

from physio_funnel.clock import utcnow  # noqa: E402
from physio_funnel.config import settings  # noqa: E402
from physio_funnel.db import init_db  # noqa: E402
from physio_funnel.routers import admin as admin_router  # noqa: E402
from physio_funnel.routers import events as events_router  # noqa: E402
from physio_funnel.routers import lead_action as lead_action_router  # noqa: E402
from physio_funnel.routers import leads as leads_router  # noqa: E402
from physio_funnel.routers import metrics as metrics_router  # noqa: E402

logger = logging.getLogger("physio_funnel.main")


def create_app() -> FastAPI:
    app = FastAPI(title=settings.app_name, debug=settings.debug)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    # Public funnel tracking + lead forms
    app.include_router(events_router.router)
    app.include_router(leads_router.router)

    # Email action links
    app.include_router(lead_action_router.router)

    # Dashboard metrics
    app.include_router(metrics_router.router)

    # Admin utilities
    app.include_router(admin_router.router)

    @app.on_event("startup")
    async def on_startup() -> None:
        """Initialize resources on startup."""
        logger.info("Starting %s...", settings.app_name)
        init_db()
        logger.info("%s started.", settings.app_name)

    @app.get("/health")
    async def healthcheck() -> Dict[str, Any]:
        return {"ok": True, "time": utcnow().isoformat(), "app": settings.app_name}

    return app


app = create_app()
