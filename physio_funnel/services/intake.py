"""
Lead intake: validate -> persist lead -> lead_submitted event -> notify practice.

Only the first two steps can fail the request. The event insert runs in its
own session after the lead is committed, and the practice email is handed
to a background scheduler; both only log their failures.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from sqlalchemy.orm import sessionmaker

from physio_funnel.email.service import (
    EmailMessage,
    EmailSender,
    action_link,
    build_lead_notification,
    deliver_quietly,
)
from physio_funnel.models.lead import Lead
from physio_funnel.models.lead_event import EventType
from physio_funnel.schemas.lead import LeadSubmission, parse_lead_submission
from physio_funnel.services.action_tokens import ActionTokenCodec
from physio_funnel.services.event_store import RecordedEvent, record_event
from physio_funnel.services.leads import create_lead
from physio_funnel.services.practices import PracticeDirectory

logger = logging.getLogger("physio_funnel.services.intake")

Scheduler = Callable[..., Any]


def run_now(func: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
    """Scheduler used outside a request: run the task inline."""
    func(*args, **kwargs)


@dataclass
class IntakeResult:
    lead: Lead
    event: Optional[RecordedEvent] = None
    notification: Optional[EmailMessage] = None


class LeadIntakePipeline:
    def __init__(
        self,
        session_factory: sessionmaker,
        practices: PracticeDirectory,
        sender: EmailSender,
        codec: ActionTokenCodec,
        *,
        public_base_url: str,
        unknown_practice_code: str = "UNKNOWN",
        schedule: Scheduler = run_now,
    ) -> None:
        self._session_factory = session_factory
        self._practices = practices
        self._sender = sender
        self._codec = codec
        self._public_base_url = public_base_url
        self._unknown_practice_code = unknown_practice_code
        self._schedule = schedule

    def submit(self, payload: Any) -> IntakeResult:
        """
        Raises ValidationError (with per-field details) or StorageError.
        Anything after the lead insert is best-effort.
        """
        submission = parse_lead_submission(payload)
        lead = self._persist(submission)
        event = self._emit_submitted(lead, submission)
        notification = self._notify(lead)
        return IntakeResult(lead=lead, event=event, notification=notification)

    def _persist(self, submission: LeadSubmission) -> Lead:
        session = self._session_factory()
        try:
            return create_lead(session, submission)
        finally:
            session.close()

    def _emit_submitted(self, lead: Lead, submission: LeadSubmission) -> Optional[RecordedEvent]:
        session = self._session_factory()
        try:
            return record_event(
                session,
                lead_id=lead.id,
                practice_code=lead.practice_code or self._unknown_practice_code,
                event_type=EventType.LEAD_SUBMITTED,
                actor="system",
                metadata=submission.campaign_metadata(),
            )
        except Exception:  # noqa: BLE001
            logger.exception("Lead %s stored but lead_submitted event failed", lead.id)
            return None
        finally:
            session.close()

    def _notify(self, lead: Lead) -> Optional[EmailMessage]:
        if not lead.practice_code:
            return None

        try:
            practice = self._practices.get(lead.practice_code)
            if practice is None or not practice.notifiable:
                logger.info(
                    "No notification for lead %s: practice %s unknown, inactive or without email",
                    lead.id,
                    lead.practice_code,
                )
                return None

            issued = self._codec.issue(lead.id, practice.code)
            link = action_link(
                self._public_base_url,
                lead_id=lead.id,
                practice_code=practice.code,
                token=issued.token,
                issued_at_ms=issued.issued_at_ms,
            )
            message = build_lead_notification(lead, practice, link)
            self._schedule(deliver_quietly, self._sender, message)
        except Exception:  # noqa: BLE001
            logger.exception("Lead %s stored but practice notification failed", lead.id)
            return None

        logger.info("Practice notification queued for lead %s to %s", lead.id, practice.email_to)
        return message
