from typing import Optional

from sqlalchemy import Boolean, Column, String

from physio_funnel.db import Base


class Practice(Base):
    """
    Practice tenant. Managed elsewhere; this service only reads it
    to find notification addresses.
    """

    __tablename__ = "practices"

    code: str = Column(String(64), primary_key=True)
    name: str = Column(String(200), nullable=False)
    email_to: Optional[str] = Column(String(320), nullable=True)
    email_cc: Optional[str] = Column(String(320), nullable=True)
    active: bool = Column(Boolean, nullable=False, default=True)
