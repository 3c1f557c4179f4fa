from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from physio_funnel.email.service import EmailSender, build_appointment_confirmation, deliver_quietly
from physio_funnel.errors import AuthorizationError, ValidationError
from physio_funnel.models.lead_event import EventType
from physio_funnel.services.action_tokens import ActionTokenCodec, fingerprint
from physio_funnel.services.event_store import find_events, parse_lead_id, record_event
from physio_funnel.services.intake import Scheduler, run_now
from physio_funnel.services.leads import get_lead
from physio_funnel.services.practices import PracticeDirectory, normalize_practice_code

logger = logging.getLogger("physio_funnel.services.lead_actions")

# Link actions and the funnel stage each one records.
ACTIONS: Mapping[str, EventType] = {
    "afspraak_gemaakt": EventType.APPOINTMENT_BOOKED,
    "appointment_booked": EventType.APPOINTMENT_BOOKED,
}


@dataclass(frozen=True)
class ActionRequest:
    action: str
    lead_id: int
    practice_code: str
    token: str
    issued_at_ms: Optional[int] = None


@dataclass(frozen=True)
class ActionOutcome:
    request: ActionRequest
    event_type: EventType
    event_id: Optional[int]
    already_recorded: bool = False


def _parse_ts(value: Any) -> Optional[int]:
    try:
        return int(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


def parse_action_request(
    *,
    action: Optional[str],
    lead_id: Any,
    practice_code: Optional[str],
    token: Optional[str],
    ts: Any = None,
) -> ActionRequest:
    if not action or lead_id in (None, "") or not practice_code or not token:
        raise ValidationError("action, lead_id, practice_code and token are required")

    action = action.strip()
    if action not in ACTIONS:
        raise ValidationError(f"Unsupported action '{action}'")

    parsed_lead_id = parse_lead_id(lead_id)
    if parsed_lead_id is None:
        raise ValidationError("lead_id is required")

    return ActionRequest(
        action=action,
        lead_id=parsed_lead_id,
        practice_code=normalize_practice_code(practice_code),
        token=token.strip(),
        issued_at_ms=_parse_ts(ts),
    )


def authorize(codec: ActionTokenCodec, request: ActionRequest) -> None:
    if not codec.validate(
        request.token,
        lead_id=request.lead_id,
        practice_code=request.practice_code,
        issued_at_ms=request.issued_at_ms,
    ):
        logger.warning(
            "Rejected action token for lead=%s practice=%s (strict=%s)",
            request.lead_id,
            request.practice_code,
            codec.strict,
        )
        raise AuthorizationError("Unauthorized")


def apply_action(
    session: Session,
    codec: ActionTokenCodec,
    request: ActionRequest,
) -> ActionOutcome:
    """
    Record the stage transition a link authorizes.

    A second click on the same link finds the event carrying the token's
    fingerprint and records nothing. The lead itself does not have to exist.
    """
    authorize(codec, request)
    event_type = ACTIONS[request.action]
    token_tag = fingerprint(request.token)

    for existing in find_events(
        session,
        lead_id=request.lead_id,
        practice_code=request.practice_code,
        event_type=event_type,
    ):
        if (existing.meta or {}).get("token_fingerprint") == token_tag:
            logger.info(
                "Action link for lead=%s practice=%s already used (event %s)",
                request.lead_id,
                request.practice_code,
                existing.id,
            )
            return ActionOutcome(
                request=request,
                event_type=event_type,
                event_id=existing.id,
                already_recorded=True,
            )

    recorded = record_event(
        session,
        lead_id=request.lead_id,
        practice_code=request.practice_code,
        event_type=event_type,
        actor="email_action",
        metadata={
            "via": "lead_action",
            "action": request.action,
            "token_fingerprint": token_tag,
        },
    )
    return ActionOutcome(request=request, event_type=event_type, event_id=recorded.id)


def send_confirmation(
    session: Session,
    practices: PracticeDirectory,
    sender: EmailSender,
    request: ActionRequest,
    schedule: Scheduler = run_now,
) -> bool:
    """
    Queue the lead's confirmation email. Best-effort: returns False and logs
    when the lead is unknown, has no email, or anything fails.
    """
    try:
        lead = get_lead(session, request.lead_id, request.practice_code)
        if lead is None or not lead.email:
            logger.info(
                "No confirmation email for lead=%s practice=%s (lead missing or no email)",
                request.lead_id,
                request.practice_code,
            )
            return False

        practice = practices.get(request.practice_code)
        practice_name = practice.name if practice else request.practice_code
        practice_email = practice.email_to if practice else None

        message = build_appointment_confirmation(lead, practice_name, practice_email)
        schedule(deliver_quietly, sender, message)
    except Exception:  # noqa: BLE001
        logger.exception(
            "Appointment recorded but confirmation email failed for lead=%s",
            request.lead_id,
        )
        return False
    return True
