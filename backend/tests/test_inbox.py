from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from uuid import uuid4

from orderdesk.models import Order, OrderReadReceipt
from orderdesk.services import inbox
from orderdesk.services.inbox import (
    MAX_PAGE_SIZE,
    AdminOrderFilters,
    get_admin_orders_with_unread,
    get_customer_orders_with_unread,
)

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


class _QueryStub:
    """Records the call sequence so pagination order can be asserted."""

    def __init__(self, *, rows=None, total=0):
        self._rows = list(rows or [])
        self._total = total
        self.calls = []

    def filter(self, *args, **_kwargs):
        self.calls.append(("filter", len(args)))
        return self

    def options(self, *_args, **_kwargs):
        return self

    def order_by(self, *_args, **_kwargs):
        return self

    def count(self):
        self.calls.append(("count",))
        return self._total

    def offset(self, value):
        self.calls.append(("offset", value))
        return self

    def limit(self, value):
        self.calls.append(("limit", value))
        return self

    def all(self):
        return self._rows


class _SessionStub:
    def __init__(self, queries):
        self._queries = queries

    def query(self, model):
        return self._queries[model]


def _order(**overrides):
    values = {
        "id": uuid4(),
        "customer_id": uuid4(),
        "customer": SimpleNamespace(email="account@example.com"),
        "name": "Pat Doe",
        "email": "form@example.com",
        "project_type": "website",
        "status": "pending",
        "assigned_admin_id": None,
        "created_at": NOW - timedelta(hours=5),
        "updated_at": None,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def _patch_counts(monkeypatch, *, counts, latest):
    monkeypatch.setattr(inbox, "_utc_now", lambda: NOW)
    monkeypatch.setattr(inbox, "unread_counts", lambda _db, _viewer, _ids: counts)
    monkeypatch.setattr(inbox, "latest_update_times", lambda _db, _ids: latest)


def test_admin_rows_carry_unread_metadata(monkeypatch) -> None:
    order = _order()
    latest = NOW - timedelta(minutes=3)
    _patch_counts(monkeypatch, counts={order.id: 4}, latest={order.id: latest})
    query = _QueryStub(rows=[order], total=1)

    result = get_admin_orders_with_unread(_SessionStub({Order: query}), uuid4(), AdminOrderFilters())

    assert result["total"] == 1
    assert result["page"] == 1
    assert result["page_size"] == 20
    row = result["rows"][0]
    assert row["unread_count"] == 4
    assert row["latest_update_at"] == latest
    assert row["customer_email"] == "account@example.com"
    assert row["updated_at"] == order.created_at
    assert row["age_hours"] == 5


def test_admin_row_without_customer_uses_form_email(monkeypatch) -> None:
    order = _order(customer=None, customer_id=None)
    _patch_counts(monkeypatch, counts={}, latest={})

    result = get_admin_orders_with_unread(
        _SessionStub({Order: _QueryStub(rows=[order], total=1)}), uuid4(), AdminOrderFilters()
    )

    assert result["rows"][0]["customer_email"] == "form@example.com"
    assert result["rows"][0]["unread_count"] == 0


def test_unread_filter_is_applied_before_counting_and_paging(monkeypatch) -> None:
    _patch_counts(monkeypatch, counts={}, latest={})
    query = _QueryStub(rows=[], total=45)

    result = get_admin_orders_with_unread(
        _SessionStub({Order: query}),
        uuid4(),
        AdminOrderFilters(unread=True),
        page=3,
        page_size=10,
    )

    assert query.calls == [("filter", 1), ("count",), ("offset", 20), ("limit", 10)]
    assert result["total"] == 45


def test_page_bounds_are_clamped(monkeypatch) -> None:
    _patch_counts(monkeypatch, counts={}, latest={})
    query = _QueryStub()

    result = get_admin_orders_with_unread(
        _SessionStub({Order: query}), uuid4(), AdminOrderFilters(), page=0, page_size=1000
    )

    assert result["page"] == 1
    assert result["page_size"] == MAX_PAGE_SIZE
    assert ("offset", 0) in query.calls
    assert ("limit", MAX_PAGE_SIZE) in query.calls


def test_unknown_assignee_and_window_filters_are_ignored(monkeypatch) -> None:
    _patch_counts(monkeypatch, counts={}, latest={})
    query = _QueryStub()

    get_admin_orders_with_unread(
        _SessionStub({Order: query}),
        uuid4(),
        AdminOrderFilters(assigned_to="not-a-uuid", updated_within="1y"),
    )

    assert [call for call in query.calls if call[0] == "filter"] == []


def test_customer_orders_flag_unread_ones(monkeypatch) -> None:
    seen, fresh = _order(), _order()
    read_at = NOW - timedelta(hours=1)
    _patch_counts(monkeypatch, counts={fresh.id: 2}, latest={seen.id: read_at, fresh.id: NOW})
    receipts = _QueryStub(rows=[SimpleNamespace(order_id=seen.id, last_read_at=read_at)])
    db = _SessionStub({Order: _QueryStub(rows=[seen, fresh]), OrderReadReceipt: receipts})

    result = get_customer_orders_with_unread(db, uuid4())

    assert result["unread_order_ids"] == [fresh.id]
    first, second = result["orders"]
    assert first["order"] is seen
    assert first["last_read_at"] == read_at
    assert first["is_unread"] is False
    assert second["unread_count"] == 2
    assert second["is_unread"] is True


def test_customer_without_orders_gets_empty_inbox() -> None:
    db = _SessionStub({Order: _QueryStub(rows=[])})

    assert get_customer_orders_with_unread(db, uuid4()) == {"orders": [], "unread_order_ids": []}
