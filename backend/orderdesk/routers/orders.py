"""Customer order endpoints: intake, edits, thread and read receipts."""
import json
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..auth import get_current_user_id
from ..celery_app import dispatch_order_update_notification
from ..config import Settings, get_settings
from ..database import get_db
from ..schemas import (
    CommentCreate,
    CustomerOrderItem,
    CustomerOrdersResponse,
    EmailReplyRequest,
    EmailReplyResponse,
    InvoiceResponse,
    OrderActionResponse,
    OrderPatchRequest,
    OrderResponse,
    OrderSubmitRequest,
    OrderSubmitResponse,
    OrderUpdateResponse,
    ReadAllResponse,
    ReadResponse,
)
from ..security import get_email_client, require_recaptcha
from ..services.content_safety import sanitize_body
from ..services.email_client import ResendEmailClient
from ..services.inbox import get_customer_orders_with_unread
from ..use_cases.customer_orders import (
    build_invoice,
    cancel_order,
    get_customer_order,
    link_order_to_user,
    update_order,
)
from ..use_cases.order_submission import find_customer_id, handle_new_order
from ..use_cases.order_updates import create_comment_update, get_order_thread, ingest_email_reply
from ..use_cases.read_receipts import mark_all_read, mark_one_read

router = APIRouter(prefix="/order", tags=["orders"])
logger = logging.getLogger(__name__)

FULL_SHAPE_HINTS = {"full", "withmeta", "with_meta", "object", "new", "v2"}


@router.post(
    "/submit",
    response_model=OrderSubmitResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(require_recaptcha)],
)
def submit_order(
    data: OrderSubmitRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    email_client: ResendEmailClient = Depends(get_email_client),
):
    """Public order form. The order is stored first, then the studio is emailed."""
    customer_id = find_customer_id(db, data.email)
    if customer_id is None:
        logger.warning("Proceeding without linked user for email %s", data.email)

    result = handle_new_order(
        db=db,
        data=data.model_dump(exclude={"captcha_token"}),
        customer_id=customer_id,
        settings=settings,
        email_client=email_client,
    )

    if not result.db_success:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Order could not be saved to the database.",
        )
    if not result.email_success:
        return OrderSubmitResponse(
            success=True,
            warning="Order was saved, but confirmation email failed to send.",
            order_id=result.order_id,
        )
    return OrderSubmitResponse(
        success=True,
        message="Order submitted and confirmation sent.",
        order_id=result.order_id,
        unknown_email=customer_id is None,
    )


@router.get("/my-orders", response_model=None)
def my_orders(
    shape: Optional[str] = Query(None),
    x_response_shape: Optional[str] = Header(None),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Orders of the signed-in customer with unread metadata.

    Plain array by default, unread metadata in X-Unread-* headers. `?shape=full`
    (or the X-Response-Shape header) returns the object shape instead.
    """
    result = get_customer_orders_with_unread(db, user_id)
    items = [
        CustomerOrderItem(
            **OrderResponse.model_validate(entry["order"]).model_dump(),
            last_read_at=entry["last_read_at"],
            latest_update_at=entry["latest_update_at"],
            unread_count=entry["unread_count"],
            is_unread=entry["is_unread"],
        )
        for entry in result["orders"]
    ]

    hint = (shape or x_response_shape or "").lower()
    if hint in FULL_SHAPE_HINTS:
        payload = CustomerOrdersResponse(orders=items, unread_order_ids=result["unread_order_ids"])
        return JSONResponse(
            content=jsonable_encoder(payload.model_dump(by_alias=True)),
            headers={"X-Response-Shape": "full"},
        )

    counts = {str(item.id): item.unread_count for item in items}
    return JSONResponse(
        content=jsonable_encoder([item.model_dump(by_alias=True) for item in items]),
        headers={
            "X-Unread-Order-Ids": ",".join(str(order_id) for order_id in result["unread_order_ids"]),
            "X-Unread-Counts": json.dumps(counts),
            "X-Response-Shape": "array",
        },
    )


@router.post("/read-all", response_model=ReadAllResponse)
def read_all(
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return ReadAllResponse(updated=mark_all_read(db=db, user_id=user_id))


@router.patch("/{order_id}", response_model=OrderActionResponse)
def patch_order(
    order_id: UUID,
    data: OrderPatchRequest,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Edit an own order while it is inside the edit window."""
    update_order(
        db=db,
        order_id=order_id,
        customer_id=user_id,
        changes=data.model_dump(exclude_unset=True),
        edit_window_hours=settings.ORDER_EDIT_WINDOW_HOURS,
    )
    return OrderActionResponse(message="Order updated.", order_id=order_id)


@router.patch("/{order_id}/link-user", response_model=OrderActionResponse)
def link_user(
    order_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    link_order_to_user(db=db, order_id=order_id, user_id=user_id)
    return OrderActionResponse(message="Order linked to user.", order_id=order_id)


@router.patch("/{order_id}/cancel", response_model=OrderActionResponse)
def cancel(
    order_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    order = cancel_order(
        db=db,
        order_id=order_id,
        customer_id=user_id,
        edit_window_hours=settings.ORDER_EDIT_WINDOW_HOURS,
    )
    return OrderActionResponse(message="Order cancelled successfully.", order_id=order_id, status=order.status)


@router.get("/{order_id}/invoice", response_model=InvoiceResponse)
def invoice(
    order_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    order = get_customer_order(db=db, order_id=order_id, customer_id=user_id)
    return InvoiceResponse.model_validate(build_invoice(order))


@router.get("/{order_id}/updates", response_model=list[OrderUpdateResponse])
def list_updates(
    order_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Thread of an own order, oldest first."""
    get_customer_order(db=db, order_id=order_id, customer_id=user_id)
    return get_order_thread(db=db, order_id=order_id)


@router.post("/{order_id}/updates", response_model=OrderUpdateResponse, status_code=status.HTTP_201_CREATED)
def add_update(
    order_id: UUID,
    data: CommentCreate,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Customer comment on an own order; the assigned admin is notified."""
    get_customer_order(db=db, order_id=order_id, customer_id=user_id)
    body = sanitize_body(data.body)
    if not body:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid request.")

    update = create_comment_update(
        db=db,
        order_id=order_id,
        author_user_id=user_id,
        body=body,
        requires_customer_response=data.requires_customer_response,
    )
    dispatch_order_update_notification(order_id=order_id, actor_user_id=user_id, body_preview=body)
    return OrderUpdateResponse.model_validate(update)


@router.post("/{order_id}/read", response_model=ReadResponse)
def read_one(
    order_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    get_customer_order(db=db, order_id=order_id, customer_id=user_id)
    return ReadResponse(last_read_at=mark_one_read(db=db, user_id=user_id, order_id=order_id))


@router.post("/{order_id}/email-reply", response_model=EmailReplyResponse, status_code=status.HTTP_201_CREATED)
def email_reply(
    order_id: UUID,
    data: EmailReplyRequest,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Record a reply that arrived by email. No closed-order or rate-limit checks."""
    get_customer_order(db=db, order_id=order_id, customer_id=user_id)
    body = sanitize_body(data.text_body)
    if not body:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid request.")

    update = ingest_email_reply(db=db, order_id=order_id, from_user_id=user_id, text_body=body)
    return EmailReplyResponse(id=update.id, created_at=update.created_at)
