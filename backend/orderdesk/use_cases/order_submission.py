"""Public order form intake."""
from __future__ import annotations

from dataclasses import dataclass
import logging
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import Settings
from ..models import Order, User
from ..services.email_client import EmailDeliveryError, ResendEmailClient
from ..services.notifications import send_order_email

logger = logging.getLogger(__name__)

ORDER_FORM_FIELDS = (
    "name",
    "email",
    "business_name",
    "project_type",
    "budget",
    "timeline",
    "description",
)


@dataclass(frozen=True)
class HandleOrderResult:
    db_success: bool
    email_success: bool
    order_id: UUID | None = None


def find_customer_id(db: Session, email: str) -> UUID | None:
    """Existing account for the submitting email, if any. Accounts store emails lowercased."""
    user = db.query(User).filter(User.email == email.strip().lower()).first()
    return user.id if user else None


def handle_new_order(
    *,
    db: Session,
    data: dict,
    customer_id: UUID | None,
    settings: Settings,
    email_client: ResendEmailClient,
) -> HandleOrderResult:
    """Persist the order, then independently attempt one notification email.

    The two steps are not transactional together: a stored order whose email
    failed is reported as a partial success rather than rolled back.
    """
    fields = {key: data.get(key) for key in ORDER_FORM_FIELDS}
    logger.info(
        "Handling new order: name=%s email=%s project_type=%s business=%s",
        fields["name"],
        fields["email"],
        fields["project_type"],
        fields["business_name"] or "N/A",
    )

    order_id: UUID | None = None
    db_success = False
    try:
        order = Order(customer_id=customer_id, **fields)
        db.add(order)
        db.commit()
        db.refresh(order)
        order_id = order.id
        db_success = True
        logger.info("Order %s saved to database", order_id)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to save order to database")

    email_success = False
    try:
        send_order_email(email_client, settings, fields)
        email_success = True
    except EmailDeliveryError:
        logger.exception("Failed to send order notification email")

    return HandleOrderResult(db_success=db_success, email_success=email_success, order_id=order_id)
