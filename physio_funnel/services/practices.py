from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from fastapi import Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from physio_funnel.db import get_session_factory
from physio_funnel.errors import StorageError, ValidationError
from physio_funnel.models.practice import Practice

logger = logging.getLogger("physio_funnel.services.practices")

MAX_PRACTICE_CODE_LENGTH = 64
_PRACTICE_CODE_RE = re.compile(r"^[A-Za-z0-9_.\-]+$")


def normalize_practice_code(value: Any, *, field: str = "practice_code") -> str:
    """
    Practice codes are opaque identifiers; only length and charset are checked.
    """
    code = str(value).strip() if value is not None else ""
    if not code:
        raise ValidationError(f"{field} is required")
    if len(code) > MAX_PRACTICE_CODE_LENGTH:
        raise ValidationError(
            f"{field} must be at most {MAX_PRACTICE_CODE_LENGTH} characters"
        )
    if not _PRACTICE_CODE_RE.match(code):
        raise ValidationError(
            f"{field} may only contain letters, digits, '.', '_' and '-'"
        )
    return code


@dataclass(frozen=True)
class PracticeInfo:
    code: str
    name: str
    email_to: Optional[str] = None
    email_cc: Optional[str] = None
    active: bool = True

    @property
    def notifiable(self) -> bool:
        return self.active and bool(self.email_to)


class PracticeDirectory:
    """Looks up display name and notification addresses for a practice code."""

    def get(self, code: str) -> Optional[PracticeInfo]:
        raise NotImplementedError


class SqlPracticeDirectory(PracticeDirectory):
    """Reads the `practices` table with a short-lived session per lookup."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def get(self, code: str) -> Optional[PracticeInfo]:
        session = self._session_factory()
        try:
            practice = session.get(Practice, code)
            if practice is None:
                logger.debug("Practice %s not found", code)
                return None
            return PracticeInfo(
                code=practice.code,
                name=practice.name,
                email_to=practice.email_to,
                email_cc=practice.email_cc,
                active=bool(practice.active),
            )
        except SQLAlchemyError as exc:
            logger.exception("Failed to look up practice %s", code)
            raise StorageError("Failed to look up practice") from exc
        finally:
            session.close()


class StaticPracticeDirectory(PracticeDirectory):
    """In-memory directory for tests and single-practice deployments."""

    def __init__(self, practices: Mapping[str, PracticeInfo]) -> None:
        self._practices = dict(practices)

    def get(self, code: str) -> Optional[PracticeInfo]:
        return self._practices.get(code)


def get_practice_directory(
    session_factory: sessionmaker = Depends(get_session_factory),
) -> PracticeDirectory:
    """FastAPI dependency; overridden in tests."""
    return SqlPracticeDirectory(session_factory)
