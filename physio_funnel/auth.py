# physio_funnel/auth.py

"""
Admin authentication helpers.

Uses a single shared admin key:
- Set ADMIN_KEY in your environment.
- Send `X-Admin-Key: <that_value>` (or `?key=<that_value>`) on admin requests.

If ADMIN_KEY is not set, authenticated_admin() allows all requests
(useful for local dev).
"""

import hmac
import logging
from typing import Any, Optional

from fastapi import HTTPException, Request, status

from physio_funnel.config import settings

logger = logging.getLogger("physio_funnel.auth")


def _get_admin_key() -> Optional[str]:
    """Return the configured admin key, or None if not set."""
    key = settings.admin_key
    if not key:
        logger.warning(
            "ADMIN_KEY is not set; admin endpoints are effectively unprotected. "
            "Set this env var in production."
        )
    return key


def authenticated_admin(request: Request) -> Any:
    """
    Dependency used on admin routes.

    The response never says which part of the check failed.
    """
    admin_key = _get_admin_key()
    if not admin_key:
        return {"admin": True, "mode": "unprotected"}

    provided = request.headers.get("X-Admin-Key") or request.query_params.get("key") or ""
    if not hmac.compare_digest(provided.encode("utf-8"), admin_key.encode("utf-8")):
        logger.warning(
            "Unauthorized admin access attempt from %s",
            request.client.host if request.client else "unknown",
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )

    return {"admin": True, "mode": "shared-key"}
