from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Final

from fastapi import Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

logger = logging.getLogger("physio_funnel.services.render")

PACKAGE_DIR: Final[Path] = Path(__file__).resolve().parent.parent
TEMPLATE_DIR: Final[Path] = PACKAGE_DIR / "templates"

templates = Jinja2Templates(directory=str(TEMPLATE_DIR))


def render_page(
    request: Request,
    name: str,
    context: Dict[str, Any],
    status_code: int = 200,
) -> HTMLResponse:
    """
    Thin wrapper around Starlette's TemplateResponse so routers can
    render Jinja templates with a consistent API.
    """
    return templates.TemplateResponse(request, name, context, status_code=status_code)


def render_result_page(
    request: Request,
    *,
    title: str,
    message: str,
    ok: bool,
    status_code: int = 200,
) -> HTMLResponse:
    """Small human-facing page for people arriving from an email link."""
    return render_page(
        request,
        "lead_action_result.html",
        {"title": title, "message": message, "ok": ok},
        status_code=status_code,
    )
