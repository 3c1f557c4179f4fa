"""
Funnel aggregation over the event ledger.

Stage-pair rates are computed independently rather than as one cumulative
walk: a lead can be submitted without a logged click (click logging fails
silently in browsers), so each ratio only compares its own two counts.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from physio_funnel.errors import StorageError
from physio_funnel.models.lead_event import EventType, LeadEvent
from physio_funnel.services.event_store import DateLike, parse_day, resolve_range

logger = logging.getLogger("physio_funnel.services.funnel")


@dataclass(frozen=True)
class FunnelTotals:
    clicked: int = 0
    lead_submitted: int = 0
    appointment_booked: int = 0
    registered: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class FunnelRates:
    click_to_lead: int = 0
    lead_to_appt: int = 0
    appt_to_reg: int = 0
    click_to_reg: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class SeriesRow:
    day: datetime.date
    event_type: str
    count: int

    def as_dict(self) -> Dict[str, Any]:
        return {"day": self.day.isoformat(), "event_type": self.event_type, "count": self.count}


def percentage(numerator: int, denominator: int) -> int:
    """
    round(100 * numerator / denominator), halves rounded up; 0 when the
    denominator is 0.
    """
    if denominator <= 0:
        return 0
    return (200 * numerator + denominator) // (2 * denominator)


def compute_funnel_rates(totals: FunnelTotals) -> FunnelRates:
    return FunnelRates(
        click_to_lead=percentage(totals.lead_submitted, totals.clicked),
        lead_to_appt=percentage(totals.appointment_booked, totals.lead_submitted),
        appt_to_reg=percentage(totals.registered, totals.appointment_booked),
        click_to_reg=percentage(totals.registered, totals.clicked),
    )


def compute_totals(
    session: Session,
    practice_code: Any,
    from_date: Optional[DateLike],
    to_date: Optional[DateLike],
) -> FunnelTotals:
    """Event counts per stage; stages without events count as 0."""
    code, start, end = resolve_range(practice_code, from_date, to_date)
    stmt = (
        select(LeadEvent.event_type, func.count(LeadEvent.id))
        .where(
            LeadEvent.practice_code == code,
            LeadEvent.occurred_at >= start,
            LeadEvent.occurred_at < end,
        )
        .group_by(LeadEvent.event_type)
    )

    try:
        rows = session.execute(stmt).all()
    except SQLAlchemyError as exc:
        logger.exception("Failed to compute totals for practice=%s", code)
        raise StorageError("Failed to compute metrics") from exc

    counts = {value: 0 for value in EventType.values()}
    for event_type, count in rows:
        if event_type in counts:
            counts[event_type] = int(count)

    totals = FunnelTotals(**counts)
    logger.debug("Totals for %s [%s, %s): %s", code, start, end, totals)
    return totals


def _day_bucket(session: Session):
    """Calendar day (UTC) of `occurred_at` for the bound dialect."""
    if session.get_bind().dialect.name == "postgresql":
        return func.date(func.timezone("UTC", LeadEvent.occurred_at))
    return func.date(LeadEvent.occurred_at)


def _as_date(value: Any) -> datetime.date:
    # SQLite's date() returns text, Postgres returns a date.
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    return datetime.date.fromisoformat(str(value))


def compute_series(
    session: Session,
    practice_code: Any,
    from_date: Optional[DateLike],
    to_date: Optional[DateLike],
) -> List[SeriesRow]:
    """
    Per-day, per-type counts, ascending by day. Sparse: a day/type pair
    without events has no row.
    """
    code, start, end = resolve_range(practice_code, from_date, to_date)
    day = _day_bucket(session).label("day")
    stmt = (
        select(day, LeadEvent.event_type, func.count(LeadEvent.id))
        .where(
            LeadEvent.practice_code == code,
            LeadEvent.occurred_at >= start,
            LeadEvent.occurred_at < end,
        )
        .group_by(day, LeadEvent.event_type)
        .order_by(day.asc(), LeadEvent.event_type.asc())
    )

    try:
        rows = session.execute(stmt).all()
    except SQLAlchemyError as exc:
        logger.exception("Failed to compute series for practice=%s", code)
        raise StorageError("Failed to compute series") from exc

    return [
        SeriesRow(day=_as_date(bucket), event_type=event_type, count=int(count))
        for bucket, event_type, count in rows
    ]


def densify_series(
    rows: Iterable[SeriesRow],
    from_date: DateLike,
    to_date: DateLike,
    event_types: Optional[Iterable[str]] = None,
) -> List[SeriesRow]:
    """Fill the gaps of a sparse series with explicit zero rows."""
    start = parse_day(from_date, "from")
    end = parse_day(to_date, "to")
    kinds = list(event_types) if event_types is not None else list(EventType.values())
    counts = {(row.day, row.event_type): row.count for row in rows}

    dense: List[SeriesRow] = []
    current = start
    while current <= end:
        for kind in kinds:
            dense.append(SeriesRow(day=current, event_type=kind, count=counts.get((current, kind), 0)))
        current += datetime.timedelta(days=1)
    return dense
