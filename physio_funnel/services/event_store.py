"""
Append-only funnel event ledger.

Every write is a plain insert; there is no uniqueness over
(lead, practice, type), so repeated page loads or re-submitted forms
simply add rows. Reads are range scans over `occurred_at`.
"""

from __future__ import annotations

import datetime
import logging
import re
from dataclasses import dataclass
from typing import Any, Iterator, List, Mapping, Optional, Tuple, Union

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from physio_funnel.clock import day_start, ensure_utc, utcnow
from physio_funnel.errors import StorageError, ValidationError
from physio_funnel.models.lead_event import EventType, LeadEvent
from physio_funnel.services.practices import normalize_practice_code

logger = logging.getLogger("physio_funnel.services.event_store")

DateLike = Union[datetime.date, str]

QUERY_BATCH_SIZE = 500

_DAY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass(frozen=True)
class RecordedEvent:
    id: int
    occurred_at: datetime.datetime


def parse_event_type(value: Any) -> EventType:
    if isinstance(value, EventType):
        return value
    try:
        return EventType(str(value).strip())
    except ValueError as exc:
        raise ValidationError(
            "event_type must be one of " + ", ".join(EventType.values())
        ) from exc


def parse_lead_id(value: Any) -> Optional[int]:
    """Accepts ints and digit strings; `None`/blank means no lead."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        raise ValidationError("lead_id must be an integer")
    try:
        lead_id = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError("lead_id must be an integer") from exc
    if isinstance(value, float) and value != lead_id:
        raise ValidationError("lead_id must be an integer")
    if lead_id <= 0:
        raise ValidationError("lead_id must be a positive integer")
    return lead_id


def parse_day(value: Optional[DateLike], field: str) -> datetime.date:
    """Calendar day from a date object or a strict `YYYY-MM-DD` string."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{field} is required")
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    text = str(value).strip()
    if not _DAY_RE.match(text):
        raise ValidationError(f"{field} must be a date (YYYY-MM-DD)")
    try:
        return datetime.date.fromisoformat(text)
    except ValueError as exc:
        raise ValidationError(f"{field} must be a date (YYYY-MM-DD)") from exc


def resolve_range(
    practice_code: Any,
    from_date: Optional[DateLike],
    to_date: Optional[DateLike],
) -> Tuple[str, datetime.datetime, datetime.datetime]:
    """
    Validate a (practice, from, to) query and return the half-open UTC window
    [from 00:00, to + 1 day 00:00), so `to` covers its whole calendar day.
    A `from` after `to` is an empty window, not an error.
    """
    code = normalize_practice_code(practice_code, field="practice")
    start_day = parse_day(from_date, "from")
    end_day = parse_day(to_date, "to")
    return code, day_start(start_day), day_start(end_day + datetime.timedelta(days=1))


def record_event(
    session: Session,
    *,
    lead_id: Optional[int] = None,
    practice_code: Any,
    event_type: Any,
    actor: str = "system",
    metadata: Optional[Mapping[str, Any]] = None,
) -> RecordedEvent:
    """
    Append one event and commit it. The referenced lead does not need to exist.
    """
    code = normalize_practice_code(practice_code)
    kind = parse_event_type(event_type)
    lead_ref = parse_lead_id(lead_id)

    if metadata is not None and not isinstance(metadata, Mapping):
        raise ValidationError("metadata must be an object")

    event = LeadEvent(
        lead_id=lead_ref,
        practice_code=code,
        event_type=kind.value,
        actor=(actor or "system")[:64],
        occurred_at=utcnow(),
        meta=dict(metadata or {}),
    )

    try:
        session.add(event)
        session.flush()
        recorded = RecordedEvent(id=event.id, occurred_at=ensure_utc(event.occurred_at))
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception(
            "Failed to record %s event (practice=%s, lead=%s)", kind.value, code, lead_ref
        )
        raise StorageError("Failed to record event") from exc

    logger.info(
        "Recorded event id=%s type=%s practice=%s lead=%s actor=%s",
        recorded.id,
        kind.value,
        code,
        lead_ref,
        event.actor,
    )
    return recorded


def query_events(
    session: Session,
    practice_code: Any,
    from_date: Optional[DateLike],
    to_date: Optional[DateLike],
) -> Iterator[LeadEvent]:
    """
    Lazily iterate a practice's events in [from_date, to_date] (whole days),
    ordered by occurrence then insertion id.

    Arguments are validated on call; rows are fetched while iterating, and
    every call reads the current state of the table.
    """
    code, start, end = resolve_range(practice_code, from_date, to_date)
    stmt = (
        select(LeadEvent)
        .where(
            LeadEvent.practice_code == code,
            LeadEvent.occurred_at >= start,
            LeadEvent.occurred_at < end,
        )
        .order_by(LeadEvent.occurred_at.asc(), LeadEvent.id.asc())
        .execution_options(yield_per=QUERY_BATCH_SIZE)
    )
    return _iter_events(session, stmt, code)


def _iter_events(session: Session, stmt, code: str) -> Iterator[LeadEvent]:
    try:
        for event in session.execute(stmt).scalars():
            yield event
    except SQLAlchemyError as exc:
        logger.exception("Failed to query events for practice=%s", code)
        raise StorageError("Failed to query events") from exc


def find_events(
    session: Session,
    *,
    lead_id: int,
    practice_code: str,
    event_type: Any,
) -> List[LeadEvent]:
    """All events of one type for a lead within a practice, oldest first."""
    kind = parse_event_type(event_type)
    stmt = (
        select(LeadEvent)
        .where(
            LeadEvent.lead_id == lead_id,
            LeadEvent.practice_code == practice_code,
            LeadEvent.event_type == kind.value,
        )
        .order_by(LeadEvent.id.asc())
    )
    try:
        return list(session.execute(stmt).scalars())
    except SQLAlchemyError as exc:
        logger.exception(
            "Failed to look up %s events for lead=%s practice=%s",
            kind.value,
            lead_id,
            practice_code,
        )
        raise StorageError("Failed to query events") from exc
