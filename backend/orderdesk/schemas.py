"""Pydantic schemas for API.

Wire format is camelCase (the site's frontend contract); snake_case field
names are accepted on input as well.
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional
from datetime import datetime
from uuid import UUID


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# Auth schemas
class RegisterRequest(ApiModel):
    username: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=8)


class LoginRequest(ApiModel):
    email: str
    password: str
    remember_me: bool = False


class OtpRequest(ApiModel):
    email: str = Field(min_length=3)


class VerifyOtpRequest(ApiModel):
    email: str = Field(min_length=3)
    otp: str = Field(pattern=r"^\d{6}$")
    new_password: str = Field(min_length=8)


class UserResponse(ApiModel):
    id: UUID
    username: str
    email: str
    role: str
    email_verified: bool = False


class AuthResponse(ApiModel):
    success: bool = True
    user: UserResponse


class SuccessResponse(ApiModel):
    success: bool = True
    message: Optional[str] = None


class OrderActionResponse(SuccessResponse):
    order_id: UUID
    status: Optional[str] = None


# Public forms
class OrderSubmitRequest(ApiModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    business_name: Optional[str] = None
    project_type: str = Field(min_length=1)
    budget: str = Field(min_length=1)
    timeline: Optional[str] = None
    description: str = Field(min_length=1)
    # Checked by the CAPTCHA gate before the handler runs.
    captcha_token: Optional[str] = None


class OrderSubmitResponse(ApiModel):
    success: bool
    message: Optional[str] = None
    warning: Optional[str] = None
    order_id: Optional[UUID] = None
    unknown_email: Optional[bool] = None


class ContactRequest(ApiModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    message: str = Field(min_length=1)
    captcha_token: Optional[str] = None


# Orders
class OrderPatchRequest(ApiModel):
    business_name: Optional[str] = None
    project_type: Optional[str] = Field(default=None, min_length=1)
    budget: Optional[str] = Field(default=None, min_length=1)
    timeline: Optional[str] = None
    description: Optional[str] = Field(default=None, min_length=1)

    @field_validator("project_type", "budget", "description")
    @classmethod
    def _reject_null(cls, value: Optional[str]) -> Optional[str]:
        # Required columns: may be omitted, never cleared.
        if value is None:
            raise ValueError("must not be null")
        return value


class OrderResponse(ApiModel):
    id: UUID
    customer_id: Optional[UUID] = None
    assigned_admin_id: Optional[UUID] = None
    name: str
    email: str
    business_name: Optional[str] = None
    project_type: str
    budget: str
    timeline: Optional[str] = None
    description: str
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CustomerOrderItem(OrderResponse):
    last_read_at: Optional[datetime] = None
    latest_update_at: Optional[datetime] = None
    unread_count: int = 0
    is_unread: bool = False


class CustomerOrdersResponse(ApiModel):
    orders: list[CustomerOrderItem]
    unread_order_ids: list[UUID]


class InvoiceLine(ApiModel):
    description: str
    quantity: int
    unit_price_cents: int
    line_total_cents: int


class InvoiceTotals(ApiModel):
    subtotal: int
    discount: int
    tax: int
    shipping: int
    total: int


class InvoiceResponse(ApiModel):
    order_id: UUID
    customer: str
    email: str
    business_name: Optional[str] = None
    items: list[InvoiceLine]
    tax_rate: str
    totals: InvoiceTotals
    formatted_total: str


# Update thread
class CommentCreate(ApiModel):
    body: str = Field(min_length=1, max_length=10000)
    requires_customer_response: bool = False


class EmailReplyRequest(ApiModel):
    text_body: str = Field(min_length=1)


class OrderUpdateResponse(ApiModel):
    id: UUID
    order_id: UUID
    author_user_id: Optional[UUID] = None
    author_email: Optional[str] = None
    body: str
    source: str
    event_type: str
    requires_customer_response: bool = False
    created_at: Optional[datetime] = None


class EmailReplyResponse(ApiModel):
    id: UUID
    created_at: Optional[datetime] = None


class OkResponse(ApiModel):
    ok: bool = True


class ReadResponse(OkResponse):
    last_read_at: datetime


class ReadAllResponse(OkResponse):
    updated: int = 0


# Admin
class StatusRequest(ApiModel):
    status: str


class AssignRequest(ApiModel):
    assigned_admin_id: UUID


class AdminOrderRow(ApiModel):
    id: UUID
    customer_id: Optional[UUID] = None
    customer_email: Optional[str] = None
    name: str
    project_type: str
    status: str
    assigned_admin_id: Optional[UUID] = None
    updated_at: Optional[datetime] = None
    latest_update_at: Optional[datetime] = None
    unread_count: int = 0
    age_hours: int = 0


class AdminOrdersResponse(ApiModel):
    rows: list[AdminOrderRow]
    total: int
    page: int
    page_size: int
