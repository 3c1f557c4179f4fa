import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from physio_funnel.auth import authenticated_admin
from physio_funnel.email.service import EmailSender, build_test_mail, get_email_sender
from physio_funnel.errors import DeliveryError

logger = logging.getLogger("physio_funnel.routers.admin")

router = APIRouter(tags=["admin"])


class SendTestMailIn(BaseModel):
    to: Optional[str] = None


@router.post("/testmail", summary="Send a test email (admin)")
def send_test_mail(
    payload: SendTestMailIn,
    sender: EmailSender = Depends(get_email_sender),
    _admin: Any = Depends(authenticated_admin),
) -> Dict[str, Any]:
    """Sends inline and reports transport errors to the caller."""
    if not payload.to:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Missing "to" in body',
        )

    try:
        sender.send(build_test_mail(payload.to))
    except DeliveryError as exc:
        logger.error("Test mail to %s failed: %s", payload.to, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Test mail failed: {exc}",
        ) from exc

    return {"ok": True, "to": payload.to}
