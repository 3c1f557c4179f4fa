import datetime
from typing import Optional

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String

from physio_funnel.clock import utcnow
from physio_funnel.db import Base


class Lead(Base):
    """Contact submitted through a public practice form."""

    __tablename__ = "leads"

    id: int = Column(Integer, primary_key=True, index=True)
    full_name: str = Column(String(200), nullable=False)
    email: Optional[str] = Column(String(320), index=True, nullable=True)
    phone: Optional[str] = Column(String(50), nullable=True)
    source: Optional[str] = Column(String(100), index=True, nullable=True)
    goal: Optional[str] = Column(String(200), nullable=True)
    consent: bool = Column(Boolean, nullable=False, default=False)
    practice_code: Optional[str] = Column(String(64), index=True, nullable=True)
    created_at: datetime.datetime = Column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )

    __table_args__ = (
        Index("ix_leads_practice_created", "practice_code", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Lead id={self.id} practice={self.practice_code!r}>"
