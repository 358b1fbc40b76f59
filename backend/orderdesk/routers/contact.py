"""Public contact form."""
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from ..config import Settings, get_settings
from ..schemas import ContactRequest, SuccessResponse
from ..security import get_email_client, require_recaptcha
from ..services.email_client import EmailDeliveryError, ResendEmailClient
from ..services.notifications import send_contact_email

router = APIRouter(prefix="/contact", tags=["contact"])
logger = logging.getLogger(__name__)


@router.post("/submit", response_model=SuccessResponse, dependencies=[Depends(require_recaptcha)])
def submit_contact(
    data: ContactRequest,
    settings: Settings = Depends(get_settings),
    email_client: ResendEmailClient = Depends(get_email_client),
):
    try:
        send_contact_email(email_client, settings, name=data.name, email=data.email, message=data.message)
    except EmailDeliveryError:
        logger.exception("Error in contact submission from %s", data.email)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process contact request",
        )
    return SuccessResponse(message="Message sent successfully")
