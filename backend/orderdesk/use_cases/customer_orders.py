"""Customer-side order operations (linking, edits, cancellation, invoice)."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy.orm import Session

from ..domain_errors import DomainError, edit_window_closed, order_not_found
from ..models import Order
from ..services.money import compute_totals, format_money

EDITABLE_FIELDS = ("business_name", "project_type", "budget", "timeline", "description")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def is_within_window(created_at: datetime | None, *, hours: int, now: datetime | None = None) -> bool:
    if created_at is None:
        return False
    return (now or _utc_now()) - _as_utc(created_at) < timedelta(hours=hours)


def get_customer_order(*, db: Session, order_id: UUID, customer_id: UUID) -> Order:
    order = db.query(Order).filter(
        Order.id == order_id,
        Order.customer_id == customer_id,
    ).first()
    if not order:
        raise order_not_found()
    return order


def link_order_to_user(*, db: Session, order_id: UUID, user_id: UUID) -> Order:
    """Attach an anonymously submitted order to the signed-in customer."""
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise order_not_found()

    if order.customer_id and order.customer_id != user_id:
        raise DomainError(
            code="ORDER_ALREADY_LINKED",
            http_status=409,
            message="Order already linked to a different user.",
        )

    order.customer_id = user_id
    db.commit()
    return order


def update_order(
    *,
    db: Session,
    order_id: UUID,
    customer_id: UUID,
    changes: dict,
    edit_window_hours: int,
) -> Order:
    order = get_customer_order(db=db, order_id=order_id, customer_id=customer_id)

    if not is_within_window(order.created_at, hours=edit_window_hours):
        raise edit_window_closed("edited")

    for key in EDITABLE_FIELDS:
        if key in changes:
            setattr(order, key, changes[key])
    db.commit()
    return order


def cancel_order(*, db: Session, order_id: UUID, customer_id: UUID, edit_window_hours: int) -> Order:
    order = get_customer_order(db=db, order_id=order_id, customer_id=customer_id)

    if not is_within_window(order.created_at, hours=edit_window_hours):
        raise edit_window_closed("cancelled")
    if order.status == "cancelled":
        raise DomainError(
            code="ORDER_ALREADY_CANCELLED",
            http_status=409,
            message="Order already cancelled.",
        )

    order.status = "cancelled"
    db.commit()
    return order


def build_invoice(order: Order) -> dict:
    items = list(order.items or [])
    totals = compute_totals(
        items,
        discount_cents=order.discount_cents or 0,
        tax_rate=order.tax_rate or 0,
        shipping_cents=order.shipping_cents or 0,
    )
    lines = []
    for item in items:
        quantity = int(item.get("quantity") or 0)
        unit_price = int(item.get("unit_price_cents") or 0)
        lines.append(
            {
                "description": item.get("description") or "",
                "quantity": quantity,
                "unit_price_cents": unit_price,
                "line_total_cents": quantity * unit_price,
            }
        )
    return {
        "order_id": order.id,
        "customer": order.name,
        "email": order.email,
        "business_name": order.business_name,
        "items": lines,
        "tax_rate": str(order.tax_rate or 0),
        "totals": totals,
        "formatted_total": format_money(totals["total"]),
    }
