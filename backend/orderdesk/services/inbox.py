"""Inbox views: orders with unread thread counts for a viewer."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy import and_, exists, func, or_
from sqlalchemy.orm import Session, aliased, joinedload

from ..models import Order, OrderReadReceipt, OrderUpdate

UPDATED_WITHIN = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}
MAX_PAGE_SIZE = 100


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(dt: datetime | None) -> datetime | None:
    if dt is None:
        return None
    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def unread_counts(db: Session, viewer_id: UUID, order_ids: list[UUID]) -> dict[UUID, int]:
    """Thread entries newer than the viewer's receipt (all entries without one)."""
    if not order_ids:
        return {}
    rows = (
        db.query(OrderUpdate.order_id, func.count(OrderUpdate.id))
        .outerjoin(
            OrderReadReceipt,
            and_(
                OrderReadReceipt.order_id == OrderUpdate.order_id,
                OrderReadReceipt.user_id == viewer_id,
            ),
        )
        .filter(
            OrderUpdate.order_id.in_(order_ids),
            or_(
                OrderReadReceipt.last_read_at.is_(None),
                OrderUpdate.created_at > OrderReadReceipt.last_read_at,
            ),
        )
        .group_by(OrderUpdate.order_id)
        .all()
    )
    return {order_id: int(count) for order_id, count in rows}


def latest_update_times(db: Session, order_ids: list[UUID]) -> dict[UUID, datetime]:
    if not order_ids:
        return {}
    rows = (
        db.query(OrderUpdate.order_id, func.max(OrderUpdate.created_at))
        .filter(OrderUpdate.order_id.in_(order_ids))
        .group_by(OrderUpdate.order_id)
        .all()
    )
    return {order_id: latest for order_id, latest in rows}


def unread_condition(viewer_id: UUID):
    """SQL predicate: the order has at least one entry the viewer has not read."""
    receipt = aliased(OrderReadReceipt)
    return exists().where(
        OrderUpdate.order_id == Order.id,
        ~exists().where(
            receipt.order_id == Order.id,
            receipt.user_id == viewer_id,
            receipt.last_read_at >= OrderUpdate.created_at,
        ),
    )


def get_customer_orders_with_unread(db: Session, user_id: UUID) -> dict:
    orders = (
        db.query(Order)
        .filter(Order.customer_id == user_id)
        .order_by(Order.updated_at.desc())
        .all()
    )
    if not orders:
        return {"orders": [], "unread_order_ids": []}

    ids = [order.id for order in orders]
    receipts = db.query(OrderReadReceipt).filter(
        OrderReadReceipt.user_id == user_id,
        OrderReadReceipt.order_id.in_(ids),
    ).all()
    last_read_by_order = {receipt.order_id: receipt.last_read_at for receipt in receipts}
    latest_by_order = latest_update_times(db, ids)
    count_by_order = unread_counts(db, user_id, ids)

    payload = []
    for order in orders:
        unread = count_by_order.get(order.id, 0)
        payload.append(
            {
                "order": order,
                "last_read_at": last_read_by_order.get(order.id),
                "latest_update_at": latest_by_order.get(order.id),
                "unread_count": unread,
                "is_unread": unread > 0,
            }
        )
    return {
        "orders": payload,
        "unread_order_ids": [item["order"].id for item in payload if item["is_unread"]],
    }


@dataclass
class AdminOrderFilters:
    status: str | None = None
    project_type: str | None = None
    updated_within: str | None = None
    assigned_to: str | None = None
    q: str | None = None
    unread: bool = False


def _apply_admin_filters(query, filters: AdminOrderFilters, viewer_id: UUID):
    if filters.status:
        query = query.filter(Order.status == filters.status)
    if filters.project_type:
        query = query.filter(Order.project_type == filters.project_type)

    window = UPDATED_WITHIN.get(filters.updated_within or "")
    if window:
        query = query.filter(Order.updated_at >= _utc_now() - window)

    if filters.assigned_to:
        if filters.assigned_to == "me":
            query = query.filter(Order.assigned_admin_id == viewer_id)
        else:
            try:
                query = query.filter(Order.assigned_admin_id == UUID(filters.assigned_to))
            except ValueError:
                pass

    if filters.q:
        pattern = f"%{filters.q}%"
        query = query.filter(
            or_(
                Order.name.ilike(pattern),
                Order.email.ilike(pattern),
                Order.business_name.ilike(pattern),
            )
        )

    # Unread filter before pagination keeps pages stable and hole-free.
    if filters.unread:
        query = query.filter(unread_condition(viewer_id))
    return query


def get_admin_orders_with_unread(
    db: Session,
    viewer_id: UUID,
    filters: AdminOrderFilters,
    page: int = 1,
    page_size: int = 20,
) -> dict:
    page = max(page, 1)
    page_size = min(max(page_size, 1), MAX_PAGE_SIZE)

    query = _apply_admin_filters(db.query(Order), filters, viewer_id)
    total = query.count()
    orders = (
        query.options(joinedload(Order.customer))
        .order_by(Order.updated_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )

    ids = [order.id for order in orders]
    latest_by_order = latest_update_times(db, ids)
    count_by_order = unread_counts(db, viewer_id, ids)
    now = _utc_now()

    rows = []
    for order in orders:
        created_at = _as_utc(order.created_at) or now
        customer = getattr(order, "customer", None)
        rows.append(
            {
                "id": order.id,
                "customer_id": order.customer_id,
                "customer_email": customer.email if customer else order.email,
                "name": order.name,
                "project_type": order.project_type,
                "status": order.status,
                "assigned_admin_id": order.assigned_admin_id,
                "updated_at": order.updated_at or order.created_at,
                "latest_update_at": latest_by_order.get(order.id),
                "unread_count": count_by_order.get(order.id, 0),
                "age_hours": max(0, round((now - created_at).total_seconds() / 3600)),
            }
        )
    return {"rows": rows, "total": total, "page": page, "page_size": page_size}
