import logging
from typing import Any

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from physio_funnel.db import get_db
from physio_funnel.errors import StorageError, ValidationError
from physio_funnel.routers.responses import error_response
from physio_funnel.schemas.events import EventIn, EventRecorded
from physio_funnel.services.event_store import record_event

logger = logging.getLogger("physio_funnel.routers.events")

router = APIRouter(tags=["events"])


@router.post(
    "/events",
    response_model=EventRecorded,
    status_code=status.HTTP_201_CREATED,
    summary="Record a funnel event",
    description=(
        "Append a funnel event (clicked, lead_submitted, appointment_booked, "
        "registered) for a practice. lead_id is optional and not checked."
    ),
)
def create_event(
    payload: EventIn,
    db: Session = Depends(get_db),
) -> Any:
    try:
        recorded = record_event(
            db,
            lead_id=payload.lead_id,
            practice_code=payload.practice_code,
            event_type=payload.event_type,
            actor="public",
            metadata=payload.metadata,
        )
    except ValidationError as exc:
        logger.warning("Rejected event: %s", exc)
        return error_response(status.HTTP_400_BAD_REQUEST, str(exc))
    except StorageError:
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to record event")

    return EventRecorded(event_id=recorded.id, occurred_at=recorded.occurred_at)
