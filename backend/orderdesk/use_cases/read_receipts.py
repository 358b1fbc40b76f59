"""Per-user read receipts for order threads."""
from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.orm import Session

from ..database import ConstraintViolation, translate_integrity_errors
from ..models import READ_RECEIPT_UNIQUE_CONSTRAINT, OrderReadReceipt


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _find_receipt(db: Session, user_id: UUID, order_id: UUID) -> OrderReadReceipt | None:
    return db.query(OrderReadReceipt).filter(
        OrderReadReceipt.order_id == order_id,
        OrderReadReceipt.user_id == user_id,
    ).first()


def mark_one_read(*, db: Session, user_id: UUID, order_id: UUID) -> datetime:
    """Find-or-create the receipt for (user, order) and stamp it with now.

    A concurrent first mark for the same pair loses the insert to the unique
    constraint; the receipt that won is then stamped instead.
    """
    now = _utc_now()
    receipt = _find_receipt(db, user_id, order_id)

    if receipt is None:
        try:
            with translate_integrity_errors(), db.begin_nested():
                db.add(OrderReadReceipt(order_id=order_id, user_id=user_id, last_read_at=now))
        except ConstraintViolation as exc:
            if exc.constraint != READ_RECEIPT_UNIQUE_CONSTRAINT:
                raise
            receipt = _find_receipt(db, user_id, order_id)

    if receipt is not None:
        receipt.last_read_at = now

    db.commit()
    return now


def mark_all_read(*, db: Session, user_id: UUID) -> int:
    """Refresh every existing receipt of the user. Missing receipts are not created."""
    updated = db.query(OrderReadReceipt).filter(
        OrderReadReceipt.user_id == user_id,
    ).update(
        {"last_read_at": _utc_now()},
        synchronize_session=False,
    )
    db.commit()
    return updated
