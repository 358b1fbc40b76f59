"""Order-domain errors with stable machine-readable codes.

Use cases raise these; the HTTP layer renders them as problem details.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(eq=False)
class DomainError(Exception):
    code: str
    http_status: int
    message: str
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        return self.message


def order_not_found() -> DomainError:
    return DomainError(code="NOT_FOUND", http_status=404, message="Order not found.")


def order_closed(status: str) -> DomainError:
    return DomainError(
        code="ORDER_CLOSED",
        http_status=409,
        message=f"Order is {status}; updates are not allowed.",
        details={"status": status},
    )


def update_rate_limited() -> DomainError:
    return DomainError(code="RATE_LIMIT", http_status=429, message="Rate limit: one update per minute.")


def edit_window_closed(action: str) -> DomainError:
    """The customer may only edit or cancel shortly after submitting."""
    return DomainError(
        code="ORDER_EDIT_WINDOW_CLOSED",
        http_status=403,
        message=f"Order can no longer be {action}.",
    )
