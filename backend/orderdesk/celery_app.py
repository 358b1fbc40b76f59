"""
Celery worker for fire-and-forget order update notifications.
"""
from __future__ import annotations

import logging
from uuid import UUID

from celery import Celery
from kombu.exceptions import OperationalError as BrokerOperationalError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .config import Settings, get_settings
from .database import SessionLocal, init_engine
from .models import Order, User
from .services.email_client import EmailDeliveryError, ResendEmailClient
from .services.notifications import PREVIEW_LENGTH, build_order_update_email
from .use_cases.order_updates import notification_target

logger = logging.getLogger(__name__)


def celery_config(settings: Settings) -> dict:
    return {
        "broker_url": settings.CELERY_BROKER_URL,
        "result_backend": settings.CELERY_RESULT_BACKEND,
        "task_serializer": "json",
        "accept_content": ["json"],
        "result_serializer": "json",
        "timezone": "UTC",
        "enable_utc": True,
    }


def create_celery(settings: Settings | None = None) -> Celery:
    """Celery app for the notification worker.

    Without explicit settings the configuration is read on first use, so
    importing this module never validates the environment.
    """
    app = Celery("orderdesk")
    if settings is None:
        app.add_defaults(lambda: celery_config(get_settings()))
    else:
        app.add_defaults(celery_config(settings))
    return app


celery_app = create_celery()


def send_order_update_notification(
    db: Session,
    *,
    settings: Settings,
    email_client: ResendEmailClient,
    order_id: UUID,
    actor_user_id: UUID,
    body_preview: str,
) -> bool:
    """Email the other party of the order about a new thread entry.

    Returns False when there is nobody to notify or delivery failed.
    """
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        logger.warning("Order %s not found; skipping update notification", order_id)
        return False

    target_id = notification_target(order, actor_user_id)
    if not target_id:
        logger.info("No notification target for order %s", order_id)
        return False

    target = db.query(User).filter(User.id == target_id).first()
    if not target or not target.email:
        logger.warning("Notification target %s has no email", target_id)
        return False

    actor = db.query(User).filter(User.id == actor_user_id).first()
    actor_label = actor.email if actor and actor.email else "OneGuy Productions"

    subject, html = build_order_update_email(
        settings=settings,
        order_id=order.id,
        actor_label=actor_label,
        body_preview=(body_preview or "")[:PREVIEW_LENGTH],
    )
    try:
        email_client.send(to=target.email, subject=subject, html=html)
    except EmailDeliveryError:
        logger.exception("Failed to send update notification for order %s", order_id)
        return False

    logger.info("Update notification for order %s sent to user %s", order_id, target_id)
    return True


@celery_app.task(name="notify_order_update")
def notify_order_update(order_id: str, actor_user_id: str, body_preview: str) -> bool:
    """Worker entry point. Never raises; failures are logged and reported as False."""
    settings = get_settings()
    if SessionLocal.kw.get("bind") is None:
        init_engine(settings)
    db = SessionLocal()
    try:
        return send_order_update_notification(
            db,
            settings=settings,
            email_client=ResendEmailClient(settings),
            order_id=UUID(order_id),
            actor_user_id=UUID(actor_user_id),
            body_preview=body_preview,
        )
    except SQLAlchemyError:
        logger.exception("Database error while notifying about order %s", order_id)
        return False
    finally:
        db.close()


def dispatch_order_update_notification(*, order_id: UUID, actor_user_id: UUID, body_preview: str) -> bool:
    """Queue the notification. A broker outage is logged, never raised to the request."""
    try:
        notify_order_update.delay(str(order_id), str(actor_user_id), (body_preview or "")[:PREVIEW_LENGTH])
    except BrokerOperationalError:
        logger.exception("Could not enqueue update notification for order %s", order_id)
        return False
    return True
