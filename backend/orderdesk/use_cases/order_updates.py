"""Order thread use-cases: comments, email replies and admin status/assignment events."""
from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..database import ConstraintViolation, translate_integrity_errors
from ..domain_errors import DomainError, order_closed, order_not_found, update_rate_limited
from ..models import (
    ORDER_STATUSES,
    ORDER_UPDATE_RATE_LIMIT_INDEX,
    TERMINAL_ORDER_STATUSES,
    Order,
    OrderUpdate,
    User,
)

logger = logging.getLogger(__name__)


def get_order_or_404(*, db: Session, order_id: UUID) -> Order:
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise order_not_found()
    return order


def create_comment_update(
    *,
    db: Session,
    order_id: UUID,
    author_user_id: UUID,
    body: str,
    requires_customer_response: bool = False,
    commit: bool = True,
) -> OrderUpdate:
    """Append a web comment to an open order's thread.

    The insert runs in a savepoint so a rate-limit rejection leaves the
    caller's transaction usable. Pass commit=False to keep the caller in
    charge of the outer transaction.
    """
    order = get_order_or_404(db=db, order_id=order_id)

    if order.status in TERMINAL_ORDER_STATUSES:
        raise order_closed(order.status)

    update = OrderUpdate(
        order_id=order.id,
        author_user_id=author_user_id,
        body=body,
        source="web",
        event_type="comment",
        requires_customer_response=bool(requires_customer_response),
    )
    try:
        with translate_integrity_errors(), db.begin_nested():
            db.add(update)
    except ConstraintViolation as exc:
        if exc.constraint == ORDER_UPDATE_RATE_LIMIT_INDEX:
            raise update_rate_limited() from exc
        raise

    order.updated_at = func.now()
    if commit:
        db.commit()
    return update


def ingest_email_reply(*, db: Session, order_id: UUID, from_user_id: UUID | None, text_body: str) -> OrderUpdate:
    """Record an inbound email reply.

    Bypasses the closed-order and rate-limit rules that apply to web comments.
    """
    update = OrderUpdate(
        order_id=order_id,
        author_user_id=from_user_id,
        body=text_body,
        source="email",
        event_type="email",
        requires_customer_response=False,
    )
    db.add(update)
    db.commit()
    return update


def set_status(*, db: Session, order_id: UUID, status: str) -> Order:
    """Set any status from the closed set and log a system thread entry."""
    if status not in ORDER_STATUSES:
        raise DomainError(
            code="INVALID_STATUS",
            http_status=400,
            message="Invalid order status.",
            details={"allowed": list(ORDER_STATUSES)},
        )

    order = get_order_or_404(db=db, order_id=order_id)
    old_status = order.status
    order.status = status
    db.add(
        OrderUpdate(
            order_id=order.id,
            author_user_id=None,
            body=f"Status changed to {status}",
            source="system",
            event_type="status",
            requires_customer_response=False,
        )
    )
    db.commit()
    logger.info("Order %s status %s -> %s", order.id, old_status, status)
    return order


def assign_to_admin(*, db: Session, order_id: UUID, admin_user_id: UUID) -> Order:
    """Assign the order and log a system thread entry."""
    order = get_order_or_404(db=db, order_id=order_id)

    admin = db.query(User).filter(User.id == admin_user_id).first()
    if not admin:
        raise DomainError(code="ADMIN_NOT_FOUND", http_status=404, message="Admin user not found.")

    order.assigned_admin_id = admin.id
    db.add(
        OrderUpdate(
            order_id=order.id,
            author_user_id=None,
            body=f"Assigned to admin {admin.email}",
            source="system",
            event_type="status",
            requires_customer_response=False,
        )
    )
    db.commit()
    return order


def get_order_thread(*, db: Session, order_id: UUID) -> list[dict]:
    """Thread entries oldest first, with the author's email when known."""
    rows = (
        db.query(OrderUpdate, User.email)
        .outerjoin(User, OrderUpdate.author_user_id == User.id)
        .filter(OrderUpdate.order_id == order_id)
        .order_by(OrderUpdate.created_at.asc())
        .all()
    )
    return [
        {
            "id": update.id,
            "order_id": update.order_id,
            "author_user_id": update.author_user_id,
            "author_email": author_email,
            "body": update.body or "",
            "source": update.source,
            "event_type": update.event_type,
            "requires_customer_response": bool(update.requires_customer_response),
            "created_at": update.created_at,
        }
        for update, author_email in rows
    ]


def notification_target(order: Order, actor_user_id: UUID) -> UUID | None:
    """Who hears about a new entry: the customer, else the assigned admin."""
    if order.customer_id and order.customer_id != actor_user_id:
        return order.customer_id
    if order.assigned_admin_id and order.assigned_admin_id != actor_user_id:
        return order.assigned_admin_id
    return None
