"""
Capability tokens for the links in practice notification emails.

A token is HMAC-SHA256(secret, "{lead_id}-{practice_code}-{issued_at_ms}")
as 64 hex characters. The issuance time keeps back-to-back tokens for the
same lead distinct; it is not an expiry.

Two validation modes:

- compatibility (default): only the length is checked. Links already sent
  out depend on this, so it stays the default. Any 64-character string
  passes; the link itself is the secret.
- strict (ACTION_TOKEN_STRICT=true): the HMAC is recomputed from the lead,
  practice and `ts` query parameter and compared in constant time.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import re
import time
from dataclasses import dataclass
from typing import Callable, Optional

from physio_funnel.config import settings

logger = logging.getLogger("physio_funnel.services.action_tokens")

TOKEN_LENGTH = hashlib.sha256().digest_size * 2
_HEX_RE = re.compile(r"^[0-9a-f]+$")


@dataclass(frozen=True)
class IssuedToken:
    token: str
    issued_at_ms: int


class ActionTokenCodec:
    def __init__(
        self,
        secret: str,
        *,
        strict: bool = False,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret:
            raise ValueError("Action token secret must not be empty")
        self._secret = secret.encode("utf-8")
        self.strict = strict
        self._clock = clock

    def _sign(self, lead_id: int, practice_code: str, issued_at_ms: int) -> str:
        payload = f"{lead_id}-{practice_code}-{issued_at_ms}".encode("utf-8")
        return hmac.new(self._secret, payload, hashlib.sha256).hexdigest()

    def issue(self, lead_id: int, practice_code: str) -> IssuedToken:
        issued_at_ms = int(self._clock() * 1000)
        token = self._sign(lead_id, practice_code, issued_at_ms)
        logger.debug("Issued action token for lead=%s practice=%s", lead_id, practice_code)
        return IssuedToken(token=token, issued_at_ms=issued_at_ms)

    def validate(
        self,
        token: Optional[str],
        *,
        lead_id: Optional[int] = None,
        practice_code: Optional[str] = None,
        issued_at_ms: Optional[int] = None,
    ) -> bool:
        if not token or len(token) != TOKEN_LENGTH:
            return False
        if not self.strict:
            return True

        if lead_id is None or not practice_code or issued_at_ms is None:
            logger.info("Strict token check missing lead, practice or ts")
            return False
        if not _HEX_RE.match(token):
            return False
        expected = self._sign(lead_id, practice_code, issued_at_ms)
        return hmac.compare_digest(expected, token)


def fingerprint(token: str) -> str:
    """Short, non-reversible tag for a token, safe to keep in event metadata."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]


def get_token_codec() -> ActionTokenCodec:
    """FastAPI dependency built from settings."""
    return ActionTokenCodec(
        settings.action_token_secret,
        strict=settings.action_token_strict,
    )
