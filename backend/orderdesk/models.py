"""SQLAlchemy models."""
import uuid

from sqlalchemy import (
    Boolean, Column, String, Integer, DateTime, Text, Numeric,
    ForeignKey, CheckConstraint, Index, UniqueConstraint, text,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

ORDER_STATUSES = ("pending", "in-progress", "needs-feedback", "complete", "cancelled")
# Orders in these states accept no new conversation comments.
TERMINAL_ORDER_STATUSES = frozenset({"complete", "cancelled"})

UPDATE_SOURCES = ("web", "email", "system")
UPDATE_EVENT_TYPES = ("comment", "status", "email")

# One thread entry per author per order per UTC minute.
ORDER_UPDATE_RATE_LIMIT_INDEX = "idx_order_updates_rate_limit"
READ_RECEIPT_UNIQUE_CONSTRAINT = "uq_order_read_receipts_order_user"


class User(Base):
    """User model."""
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    username = Column(String(40), unique=True, nullable=False)
    email = Column(String(120), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="user", server_default="user")
    email_verified = Column(Boolean, nullable=False, default=False, server_default="false")
    admin_candidate_at = Column(DateTime(timezone=True), nullable=True)
    admin_verified_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(role.in_(["user", "admin"]), name="chk_user_role"),
    )

    # Relationships
    orders = relationship("Order", foreign_keys="Order.customer_id", back_populates="customer")
    assigned_orders = relationship("Order", foreign_keys="Order.assigned_admin_id", back_populates="assigned_admin")


class Order(Base):
    """Project order submitted through the public order form."""
    __tablename__ = "orders"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # Orders can be submitted before the customer has an account.
    customer_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    assigned_admin_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    business_name = Column(String(255), nullable=True)
    project_type = Column(String(100), nullable=False, index=True)
    budget = Column(String(100), nullable=False)
    timeline = Column(String(100), nullable=True)
    description = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default="pending", server_default="pending", index=True)

    # Invoice (currency in cents)
    items = Column(JSONB, nullable=False, default=list, server_default=text("'[]'::jsonb"))
    tax_rate = Column(Numeric(6, 4), nullable=False, default=0, server_default="0")
    discount_cents = Column(Integer, nullable=False, default=0, server_default="0")
    shipping_cents = Column(Integer, nullable=False, default=0, server_default="0")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), index=True)

    __table_args__ = (
        CheckConstraint(status.in_(ORDER_STATUSES), name="chk_order_status"),
        CheckConstraint(discount_cents >= 0, name="chk_order_discount_non_negative"),
        CheckConstraint(shipping_cents >= 0, name="chk_order_shipping_non_negative"),
    )

    # Relationships
    customer = relationship("User", foreign_keys=[customer_id], back_populates="orders")
    assigned_admin = relationship("User", foreign_keys=[assigned_admin_id], back_populates="assigned_orders")
    updates = relationship("OrderUpdate", back_populates="order", order_by="OrderUpdate.created_at")
    read_receipts = relationship("OrderReadReceipt", back_populates="order")


class OrderUpdate(Base):
    """Append-only thread entry on an order (comment, status change or email reply)."""
    __tablename__ = "order_updates"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    author_user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    body = Column(Text, nullable=False)
    source = Column(String(20), nullable=False, default="web", server_default="web")
    event_type = Column(String(20), nullable=False, default="comment", server_default="comment")
    requires_customer_response = Column(Boolean, nullable=False, default=False, server_default="false")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    __table_args__ = (
        CheckConstraint(source.in_(UPDATE_SOURCES), name="chk_order_update_source"),
        CheckConstraint(event_type.in_(UPDATE_EVENT_TYPES), name="chk_order_update_event_type"),
        Index(
            ORDER_UPDATE_RATE_LIMIT_INDEX,
            "order_id",
            "author_user_id",
            text("date_trunc('minute', created_at AT TIME ZONE 'UTC')"),
            unique=True,
        ),
    )

    # Relationships
    order = relationship("Order", back_populates="updates")
    author = relationship("User")


class OrderReadReceipt(Base):
    """Last time a user viewed an order's update thread."""
    __tablename__ = "order_read_receipts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    last_read_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("order_id", "user_id", name=READ_RECEIPT_UNIQUE_CONSTRAINT),
    )

    # Relationships
    order = relationship("Order", back_populates="read_receipts")


class OtpToken(Base):
    """Hashed password-reset code. Keyed by email, not by user."""
    __tablename__ = "otp_tokens"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False)
    otp_hash = Column(String(255), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("idx_otp_tokens_email_created", "email", "created_at"),
    )
