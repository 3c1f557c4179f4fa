from __future__ import annotations

import logging
from typing import Any, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from physio_funnel.auth import authenticated_admin
from physio_funnel.config import settings
from physio_funnel.db import get_db, get_session_factory
from physio_funnel.email.service import EmailSender, get_email_sender
from physio_funnel.errors import AuthorizationError, StorageError, ValidationError
from physio_funnel.routers.responses import error_response
from physio_funnel.schemas.lead import LeadCreated, LeadInfo, LeadOut
from physio_funnel.services.action_tokens import ActionTokenCodec, get_token_codec
from physio_funnel.services.intake import LeadIntakePipeline
from physio_funnel.services.lead_actions import authorize, parse_action_request
from physio_funnel.services.leads import MAX_LIST_LIMIT, get_lead, list_leads
from physio_funnel.services.practices import PracticeDirectory, get_practice_directory

logger = logging.getLogger("physio_funnel.routers.leads")

router = APIRouter(tags=["leads"])

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


def get_intake_pipeline(
    background_tasks: BackgroundTasks,
    session_factory: sessionmaker = Depends(get_session_factory),
    practices: PracticeDirectory = Depends(get_practice_directory),
    sender: EmailSender = Depends(get_email_sender),
    codec: ActionTokenCodec = Depends(get_token_codec),
) -> LeadIntakePipeline:
    return LeadIntakePipeline(
        session_factory,
        practices,
        sender,
        codec,
        public_base_url=settings.public_base_url,
        unknown_practice_code=settings.unknown_practice_code,
        schedule=background_tasks.add_task,
    )


async def _read_payload(request: Request) -> Any:
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        return {key: value for key, value in form.items() if isinstance(value, str)}

    try:
        return await request.json()
    except ValueError as exc:
        raise ValidationError(
            "Validation failed",
            details=[{"field": "body", "message": "Invalid JSON body"}],
        ) from exc


@router.post(
    "/leads",
    status_code=status.HTTP_201_CREATED,
    summary="Submit a lead from a public form",
)
async def submit_lead(
    request: Request,
    pipeline: LeadIntakePipeline = Depends(get_intake_pipeline),
) -> Any:
    """
    Public endpoint hit by the practice lead forms.

    - Validates the submission and reports every invalid field.
    - Persists the lead; that is the only step that can fail the request.
    - Records the lead_submitted event and queues the practice email
      without letting their failures reach the browser.
    """
    is_form_post = request.headers.get("content-type", "").startswith(FORM_CONTENT_TYPES)

    try:
        payload = await _read_payload(request)
        result = await run_in_threadpool(pipeline.submit, payload)
    except ValidationError as exc:
        logger.warning(
            "Lead validation failed from %s: %s",
            request.client.host if request.client else "unknown",
            exc.details,
        )
        return error_response(status.HTTP_400_BAD_REQUEST, exc.message, exc.details)
    except StorageError:
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Database insert error")

    if is_form_post:
        return RedirectResponse(settings.form_success_redirect, status_code=status.HTTP_303_SEE_OTHER)

    return {"ok": True, "lead": LeadCreated.model_validate(result.lead)}


@router.get(
    "/api/leads",
    response_model=List[LeadOut],
    summary="Latest leads (admin)",
)
def admin_list_leads(
    practice: Optional[str] = Query(default=None),
    search: Optional[str] = Query(default=None),
    limit: int = Query(default=MAX_LIST_LIMIT, ge=1, le=MAX_LIST_LIMIT),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    _admin: Any = Depends(authenticated_admin),
) -> Any:
    try:
        leads = list_leads(db, limit=limit, offset=offset, practice_code=practice, search=search)
    except StorageError:
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Database error")
    return [LeadOut.model_validate(lead) for lead in leads]


@router.get(
    "/api/lead-info",
    response_model=LeadInfo,
    summary="Contact details behind an action link",
)
def lead_info(
    lead_id: Optional[str] = Query(default=None),
    practice_code: Optional[str] = Query(default=None),
    token: Optional[str] = Query(default=None),
    ts: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    codec: ActionTokenCodec = Depends(get_token_codec),
) -> Any:
    """Lets the appointment form prefill the lead's name, email and phone."""
    try:
        action_request = parse_action_request(
            action="afspraak_gemaakt",
            lead_id=lead_id,
            practice_code=practice_code,
            token=token,
            ts=ts,
        )
        authorize(codec, action_request)
        lead = get_lead(db, action_request.lead_id, action_request.practice_code)
    except ValidationError as exc:
        return error_response(status.HTTP_400_BAD_REQUEST, str(exc))
    except AuthorizationError:
        return error_response(status.HTTP_401_UNAUTHORIZED, "Unauthorized")
    except StorageError:
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Server error")

    if lead is None:
        return error_response(status.HTTP_404_NOT_FOUND, "Lead not found")
    return LeadInfo.model_validate(lead)
