from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from physio_funnel.clock import utcnow
from physio_funnel.errors import StorageError
from physio_funnel.models.lead import Lead
from physio_funnel.schemas.lead import LeadSubmission

logger = logging.getLogger("physio_funnel.services.leads")

MAX_LIST_LIMIT = 500


def create_lead(session: Session, submission: LeadSubmission) -> Lead:
    """
    Insert a lead in its own transaction and return it with id and
    created_at populated.
    """
    lead = Lead(
        full_name=submission.full_name,
        email=str(submission.email) if submission.email else None,
        phone=submission.phone,
        source=submission.source,
        goal=submission.goal,
        consent=bool(submission.consent),
        practice_code=submission.practice_code,
        created_at=utcnow(),
    )

    try:
        session.add(lead)
        session.commit()
        session.refresh(lead)
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception(
            "Failed to create lead (practice=%s, source=%s)",
            submission.practice_code,
            submission.source,
        )
        raise StorageError("Failed to store lead") from exc

    logger.info(
        "Created lead id=%s practice=%s source=%s",
        lead.id,
        lead.practice_code,
        lead.source,
    )
    return lead


def get_lead(
    session: Session,
    lead_id: int,
    practice_code: Optional[str] = None,
) -> Optional[Lead]:
    """
    Fetch a lead by id. With `practice_code`, only a lead owned by that
    practice is returned.
    """
    stmt = select(Lead).where(Lead.id == lead_id)
    if practice_code is not None:
        stmt = stmt.where(Lead.practice_code == practice_code)

    try:
        return session.execute(stmt).scalars().first()
    except SQLAlchemyError as exc:
        logger.exception("Failed to load lead id=%s", lead_id)
        raise StorageError("Failed to load lead") from exc


def list_leads(
    session: Session,
    *,
    limit: int = MAX_LIST_LIMIT,
    offset: int = 0,
    practice_code: Optional[str] = None,
    search: Optional[str] = None,
) -> List[Lead]:
    """
    Return the newest leads first with optional filtering.
    """
    limit = max(1, min(limit, MAX_LIST_LIMIT))
    stmt = select(Lead)

    if practice_code:
        stmt = stmt.where(Lead.practice_code == practice_code)

    if search:
        like = f"%{search}%"
        stmt = stmt.where(
            or_(
                Lead.full_name.ilike(like),
                Lead.email.ilike(like),
                Lead.phone.ilike(like),
            )
        )

    stmt = stmt.order_by(Lead.created_at.desc(), Lead.id.desc()).offset(offset).limit(limit)

    try:
        leads: List[Lead] = list(session.execute(stmt).scalars())
    except SQLAlchemyError as exc:
        logger.exception(
            "Error while fetching leads (practice=%s, search=%s, limit=%d, offset=%d)",
            practice_code,
            search,
            limit,
            offset,
        )
        raise StorageError("Failed to list leads") from exc

    logger.debug(
        "Fetched %d leads (practice=%s, search=%s, limit=%d, offset=%d)",
        len(leads),
        practice_code,
        search,
        limit,
        offset,
    )
    return leads
