from __future__ import annotations

import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class EventIn(BaseModel):
    """
    Public event submission. Fields are checked by the event store so that
    bad input is reported as 400 rather than FastAPI's 422.
    """

    lead_id: Optional[Any] = None
    practice_code: Optional[Any] = None
    event_type: Optional[Any] = None
    metadata: Optional[Any] = Field(default=None, description="Free-form context (referrer, UTM, ...).")


class EventRecorded(BaseModel):
    ok: bool = True
    event_id: int
    occurred_at: datetime.datetime


class MetricsRange(BaseModel):
    from_: str = Field(alias="from", serialization_alias="from")
    to: str

    model_config = {"populate_by_name": True}


class MetricsResponse(BaseModel):
    practice: str
    range: MetricsRange
    totals: Dict[str, int]
    funnel: Dict[str, int]


class SeriesRowOut(BaseModel):
    day: datetime.date
    event_type: str
    count: int


class SeriesResponse(BaseModel):
    practice: str
    from_: str = Field(alias="from", serialization_alias="from")
    to: str
    rows: List[SeriesRowOut]

    model_config = {"populate_by_name": True}
