from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from physio_funnel.db import get_db
from physio_funnel.email.service import EmailSender, get_email_sender
from physio_funnel.errors import AuthorizationError, ValidationError
from physio_funnel.services.action_tokens import ActionTokenCodec, get_token_codec
from physio_funnel.services.lead_actions import apply_action, parse_action_request, send_confirmation
from physio_funnel.services.practices import PracticeDirectory, get_practice_directory
from physio_funnel.services.render import render_result_page

logger = logging.getLogger("physio_funnel.routers.lead_action")

router = APIRouter(tags=["lead-action"])


@router.get("/lead-action", response_class=HTMLResponse)
def lead_action(
    request: Request,
    background_tasks: BackgroundTasks,
    action: Optional[str] = Query(default=None),
    lead_id: Optional[str] = Query(default=None),
    practice_code: Optional[str] = Query(default=None),
    token: Optional[str] = Query(default=None),
    ts: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    codec: ActionTokenCodec = Depends(get_token_codec),
    practices: PracticeDirectory = Depends(get_practice_directory),
    sender: EmailSender = Depends(get_email_sender),
) -> HTMLResponse:
    """
    Target of the "Afspraak gemaakt" button in practice emails.

    Records appointment_booked for the lead and queues a confirmation
    email to the lead. The caller is a person, so failures render a page
    instead of JSON.
    """
    try:
        action_request = parse_action_request(
            action=action,
            lead_id=lead_id,
            practice_code=practice_code,
            token=token,
            ts=ts,
        )
        outcome = apply_action(db, codec, action_request)
    except ValidationError as exc:
        logger.warning("Invalid lead-action link: %s", exc)
        return render_result_page(
            request,
            title="Ongeldige link",
            message="Deze link is onvolledig of ongeldig.",
            ok=False,
            status_code=status.HTTP_400_BAD_REQUEST,
        )
    except AuthorizationError:
        return render_result_page(
            request,
            title="Verlopen of ongeldige token",
            message="Deze link kan niet (meer) gebruikt worden.",
            ok=False,
            status_code=status.HTTP_401_UNAUTHORIZED,
        )
    except Exception:  # noqa: BLE001
        logger.exception(
            "Lead action failed (action=%s, lead_id=%s, practice=%s)",
            action,
            lead_id,
            practice_code,
        )
        return render_result_page(
            request,
            title="Er ging iets mis",
            message="De afspraak kon niet worden vastgelegd. Probeer het later opnieuw.",
            ok=False,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if outcome.already_recorded:
        return render_result_page(
            request,
            title="Al verwerkt",
            message="Deze afspraak was al vastgelegd. Er is niets gewijzigd.",
            ok=True,
        )

    send_confirmation(
        db,
        practices,
        sender,
        action_request,
        schedule=background_tasks.add_task,
    )

    logger.info(
        "Lead %s marked %s for practice %s (event %s)",
        action_request.lead_id,
        outcome.event_type.value,
        action_request.practice_code,
        outcome.event_id,
    )
    return render_result_page(
        request,
        title="Afspraak vastgelegd",
        message="Bedankt! De afspraak is geregistreerd en de klant ontvangt een bevestiging.",
        ok=True,
    )
