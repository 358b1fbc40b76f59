"""Admin portal endpoints."""
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ..celery_app import dispatch_order_update_notification
from ..database import get_db
from ..models import User
from ..schemas import (
    AdminOrdersResponse,
    AssignRequest,
    CommentCreate,
    OkResponse,
    OrderUpdateResponse,
    ReadAllResponse,
    ReadResponse,
    StatusRequest,
)
from ..security import require_admin
from ..services.content_safety import sanitize_body
from ..services.inbox import AdminOrderFilters, get_admin_orders_with_unread
from ..use_cases.order_updates import (
    assign_to_admin,
    create_comment_update,
    get_order_or_404,
    get_order_thread,
    set_status,
)
from ..use_cases.read_receipts import mark_all_read, mark_one_read

router = APIRouter(prefix="/admin", tags=["admin"])
logger = logging.getLogger(__name__)


@router.get("/orders", response_model=AdminOrdersResponse)
def list_orders(
    status_filter: Optional[str] = Query(None, alias="status"),
    project_type: Optional[str] = Query(None, alias="projectType"),
    updated_within: Optional[str] = Query(None, alias="updatedWithin"),
    assigned_to: Optional[str] = Query(None, alias="assignedTo"),
    q: Optional[str] = Query(None),
    unread: bool = Query(False),
    page: int = Query(1),
    page_size: int = Query(20, alias="pageSize"),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Inbox of all orders with the viewer's unread counts, newest activity first."""
    filters = AdminOrderFilters(
        status=status_filter,
        project_type=project_type,
        updated_within=updated_within,
        assigned_to=assigned_to,
        q=q,
        unread=unread,
    )
    return get_admin_orders_with_unread(db, admin.id, filters, page=page, page_size=page_size)


@router.post("/orders/read-all", response_model=ReadAllResponse)
def read_all(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return ReadAllResponse(updated=mark_all_read(db=db, user_id=admin.id))


@router.get("/orders/{order_id}/updates", response_model=list[OrderUpdateResponse])
def list_updates(
    order_id: UUID,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    get_order_or_404(db=db, order_id=order_id)
    return get_order_thread(db=db, order_id=order_id)


@router.post("/orders/{order_id}/updates", response_model=OrderUpdateResponse, status_code=status.HTTP_201_CREATED)
def add_update(
    order_id: UUID,
    data: CommentCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Admin comment; the customer is notified."""
    body = sanitize_body(data.body)
    if not body:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid request.")

    update = create_comment_update(
        db=db,
        order_id=order_id,
        author_user_id=admin.id,
        body=body,
        requires_customer_response=data.requires_customer_response,
    )
    dispatch_order_update_notification(order_id=order_id, actor_user_id=admin.id, body_preview=body)
    response = OrderUpdateResponse.model_validate(update)
    response.author_email = admin.email
    return response


@router.api_route("/orders/{order_id}/status", methods=["POST", "PATCH"], response_model=OkResponse)
def change_status(
    order_id: UUID,
    data: StatusRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    set_status(db=db, order_id=order_id, status=data.status)
    logger.info("Admin %s set order %s to %s", admin.id, order_id, data.status)
    return OkResponse()


@router.api_route("/orders/{order_id}/assign", methods=["POST", "PATCH"], response_model=OkResponse)
def assign(
    order_id: UUID,
    data: AssignRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    assign_to_admin(db=db, order_id=order_id, admin_user_id=data.assigned_admin_id)
    return OkResponse()


@router.post("/orders/{order_id}/read", response_model=ReadResponse)
def read_one(
    order_id: UUID,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    get_order_or_404(db=db, order_id=order_id)
    return ReadResponse(last_read_at=mark_one_read(db=db, user_id=admin.id, order_id=order_id))
