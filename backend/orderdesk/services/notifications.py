"""Email bodies for order, contact, OTP and thread-update notifications."""
from __future__ import annotations

from html import escape

from ..config import Settings
from .email_client import ResendEmailClient

PREVIEW_LENGTH = 240


def _multiline(value: str | None) -> str:
    return escape(value or "").replace("\n", "<br>")


def send_order_email(client: ResendEmailClient, settings: Settings, data: dict) -> str:
    """Notify the studio inbox about a new project inquiry."""
    html = f"""
    <h2>New Web Project Inquiry</h2>
    <p><strong>Name:</strong> {escape(data["name"])}</p>
    <p><strong>Email:</strong> {escape(data["email"])}</p>
    <p><strong>Business:</strong> {escape(data.get("business_name") or "N/A")}</p>
    <p><strong>Project Type:</strong> {escape(data["project_type"])}</p>
    <p><strong>Budget:</strong> {escape(data["budget"])}</p>
    <p><strong>Timeline:</strong> {escape(data.get("timeline") or "N/A")}</p>
    <p><strong>Description:</strong><br>{_multiline(data["description"])}</p>
    """
    return client.send(
        to=settings.RESEND_ORDER_RECEIVER_EMAIL,
        subject=f"New Project Inquiry from {data['name']}",
        html=html,
    )


def send_contact_email(client: ResendEmailClient, settings: Settings, *, name: str, email: str, message: str) -> str:
    html = f"""
    <h2>New Contact Message</h2>
    <p><strong>Name:</strong> {escape(name)}</p>
    <p><strong>Email:</strong> {escape(email)}</p>
    <p><strong>Message:</strong><br>{_multiline(message)}</p>
    """
    return client.send(
        to=settings.RESEND_CONTACT_RECEIVER_EMAIL,
        subject=f"New Contact Message from {name}",
        html=html,
    )


def send_otp_email(client: ResendEmailClient, settings: Settings, *, email: str, otp: str) -> str:
    minutes = max(1, settings.OTP_EXPIRY_SECONDS // 60)
    html = f"""
    <h2>Your password reset code</h2>
    <p style="font-size:24px; letter-spacing:4px;"><strong>{escape(otp)}</strong></p>
    <p>The code expires in {minutes} minute(s). If you did not request it, ignore this email.</p>
    """
    return client.send(to=email, subject="Your password reset code", html=html)


def build_order_update_email(
    *,
    settings: Settings,
    order_id,
    actor_label: str,
    body_preview: str,
) -> tuple[str, str]:
    """Return (subject, html) for a new thread entry."""
    preview = (body_preview or "")[:PREVIEW_LENGTH]
    order_url = f"{settings.PUBLIC_BASE_URL.rstrip('/')}/orders/{order_id}"
    subject = f"Order #{order_id} - New update"
    html = f"""
    <html lang="en-US">
      <body style="font-family: system-ui, sans-serif; font-size: 16px; line-height: 1.5;">
        <h2 style="margin:0 0 12px;">New update on your order</h2>
        <p style="margin:0 0 8px;"><strong>Order:</strong> #{order_id}</p>
        <p style="margin:0 0 8px;"><strong>From:</strong> {escape(actor_label)}</p>
        <p style="margin:16px 0 8px;"><strong>Message preview:</strong></p>
        <blockquote style="margin:0; padding:12px 16px; background:#f6f6f6; border-left:4px solid #999; white-space:pre-wrap;">{escape(preview)}</blockquote>
        <p style="margin:16px 0;"><a href="{escape(order_url)}">Open Order #{order_id}</a></p>
      </body>
    </html>
    """
    return subject, html
