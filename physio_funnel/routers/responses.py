from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi.responses import JSONResponse


def error_response(
    status_code: int,
    error: str,
    details: Optional[List[Dict[str, Any]]] = None,
) -> JSONResponse:
    """
    JSON error body read by the public forms and dashboards:
    `{"error": ...}`, plus `details` for per-field validation failures.
    """
    content: Dict[str, Any] = {"error": error}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)
