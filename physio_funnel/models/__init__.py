"""
Models package for the funnel backend.

Imports and exposes ORM models so they are registered with Base.metadata.
"""

from physio_funnel.db import Base
from .lead import Lead  # noqa: F401
from .lead_event import EventType, LeadEvent  # noqa: F401
from .practice import Practice  # noqa: F401

__all__ = [
    "Base",
    "EventType",
    "Lead",
    "LeadEvent",
    "Practice",
]
