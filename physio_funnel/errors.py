"""Error taxonomy shared by the services and routers.

Routers map these onto HTTP responses:

- ValidationError    -> 400
- AuthorizationError -> 401
- StorageError       -> 500
- DeliveryError      -> logged only (best-effort email steps)
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class FunnelError(Exception):
    """Base exception for funnel backend failures."""


class ValidationError(FunnelError):
    """Malformed or missing input at a boundary."""

    def __init__(self, message: str, details: Optional[List[Dict[str, Any]]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: List[Dict[str, Any]] = details or []


class StorageError(FunnelError):
    """Reading from or writing to the database failed."""


class DeliveryError(FunnelError):
    """The email transport rejected or could not send a message."""


class AuthorizationError(FunnelError):
    """Admin key or action token rejected."""
