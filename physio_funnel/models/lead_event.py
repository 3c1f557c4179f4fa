import datetime
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import JSON, BigInteger, CheckConstraint, Column, DateTime, Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB

from physio_funnel.clock import utcnow
from physio_funnel.db import Base


class EventType(str, Enum):
    """
    Funnel stages, in their logical order.
    The store accepts any of them at any time for any lead.
    """

    CLICKED = "clicked"
    LEAD_SUBMITTED = "lead_submitted"
    APPOINTMENT_BOOKED = "appointment_booked"
    REGISTERED = "registered"

    @classmethod
    def values(cls) -> tuple:
        return tuple(member.value for member in cls)


_EVENT_TYPE_CHECK = "event_type IN ({})".format(
    ", ".join(f"'{value}'" for value in EventType.values())
)

# BIGSERIAL on Postgres, plain INTEGER (rowid alias) on SQLite.
_EVENT_ID = BigInteger().with_variant(Integer, "sqlite")


class LeadEvent(Base):
    """Append-only funnel event. `lead_id` is not a foreign key."""

    __tablename__ = "lead_events"

    id: int = Column(_EVENT_ID, primary_key=True)
    lead_id: Optional[int] = Column(BigInteger, index=True, nullable=True)
    practice_code: str = Column(String(64), index=True, nullable=False)
    event_type: str = Column(String(32), nullable=False)
    occurred_at: datetime.datetime = Column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    actor: str = Column(String(64), nullable=False, default="system")
    # "metadata" is reserved on declarative classes, hence the attribute name.
    meta: Dict[str, Any] = Column(
        "metadata",
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
        default=dict,
    )

    __table_args__ = (
        CheckConstraint(_EVENT_TYPE_CHECK, name="ck_lead_events_event_type"),
        Index("ix_lead_events_type_time", "event_type", "occurred_at"),
        Index("ix_lead_events_practice_time", "practice_code", "occurred_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<LeadEvent id={self.id} type={self.event_type} "
            f"practice={self.practice_code!r} lead={self.lead_id}>"
        )
