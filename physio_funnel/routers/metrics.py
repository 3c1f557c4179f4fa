import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from physio_funnel.db import get_db
from physio_funnel.errors import StorageError, ValidationError
from physio_funnel.routers.responses import error_response
from physio_funnel.schemas.events import MetricsResponse, SeriesResponse
from physio_funnel.services.funnel import (
    compute_funnel_rates,
    compute_series,
    compute_totals,
    densify_series,
)

logger = logging.getLogger("physio_funnel.routers.metrics")

router = APIRouter(prefix="/api", tags=["metrics"])


@router.get(
    "/metrics",
    response_model=MetricsResponse,
    summary="Funnel totals and stage-pair conversion rates",
)
def get_metrics(
    practice: Optional[str] = Query(default=None),
    from_: Optional[str] = Query(default=None, alias="from"),
    to: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
) -> Any:
    """
    Totals per stage for `practice` between `from` and `to` (inclusive days),
    plus click_to_lead, lead_to_appt, appt_to_reg and click_to_reg percentages.
    """
    try:
        totals = compute_totals(db, practice, from_, to)
    except ValidationError as exc:
        logger.warning("Rejected metrics query: %s", exc)
        return error_response(status.HTTP_400_BAD_REQUEST, str(exc))
    except StorageError:
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to compute metrics")

    rates = compute_funnel_rates(totals)
    logger.info("Metrics for %s [%s..%s]: %s", practice, from_, to, totals.as_dict())

    return MetricsResponse.model_validate(
        {
            "practice": practice,
            "range": {"from": from_, "to": to},
            "totals": totals.as_dict(),
            "funnel": rates.as_dict(),
        }
    )


@router.get(
    "/series",
    response_model=SeriesResponse,
    summary="Per-day event counts",
)
def get_series(
    practice: Optional[str] = Query(default=None),
    from_: Optional[str] = Query(default=None, alias="from"),
    to: Optional[str] = Query(default=None),
    dense: bool = Query(default=False),
    db: Session = Depends(get_db),
) -> Any:
    """
    Days without events of a type are absent unless `dense=1`, which
    fills every day/type pair in the range with an explicit count.
    """
    try:
        rows = compute_series(db, practice, from_, to)
    except ValidationError as exc:
        logger.warning("Rejected series query: %s", exc)
        return error_response(status.HTTP_400_BAD_REQUEST, str(exc))
    except StorageError:
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to compute series")

    if dense:
        rows = densify_series(rows, from_, to)

    return SeriesResponse.model_validate(
        {
            "practice": practice,
            "from": from_,
            "to": to,
            "rows": [row.as_dict() for row in rows],
        }
    )
