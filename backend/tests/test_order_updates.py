from __future__ import annotations

from types import SimpleNamespace
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from orderdesk.database import ConstraintViolation
from orderdesk.domain_errors import DomainError
from orderdesk.models import ORDER_UPDATE_RATE_LIMIT_INDEX, Order, OrderUpdate, User
from orderdesk.use_cases.order_updates import (
    assign_to_admin,
    create_comment_update,
    ingest_email_reply,
    notification_target,
    set_status,
)


def _integrity_error(constraint_name):
    orig = SimpleNamespace(diag=SimpleNamespace(constraint_name=constraint_name))
    return IntegrityError("INSERT INTO order_updates ...", {}, orig)


class _QueryStub:
    def __init__(self, *, first_result=None):
        self._first_result = first_result

    def filter(self, *_args, **_kwargs):
        return self

    def first(self):
        return self._first_result


class _NestedTransactionStub:
    def __init__(self, error=None):
        self._error = error

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None and self._error is not None:
            raise self._error
        return False


class _SessionStub:
    def __init__(self, *, order=None, user=None, flush_error=None):
        self._order = order
        self._user = user
        self._flush_error = flush_error
        self.added = []
        self.commit_calls = 0

    def query(self, model):
        if model is Order:
            return _QueryStub(first_result=self._order)
        if model is User:
            return _QueryStub(first_result=self._user)
        raise AssertionError(f"Unexpected query model: {model}")

    def begin_nested(self):
        return _NestedTransactionStub(self._flush_error)

    def add(self, obj):
        self.added.append(obj)

    def commit(self):
        self.commit_calls += 1


def _order(*, status="pending", customer_id=None, assigned_admin_id=None):
    return SimpleNamespace(
        id=uuid4(),
        status=status,
        customer_id=customer_id,
        assigned_admin_id=assigned_admin_id,
        updated_at=None,
    )


def test_comment_on_open_order_inserts_web_comment_and_commits() -> None:
    order = _order()
    author_id = uuid4()
    db = _SessionStub(order=order)

    update = create_comment_update(
        db=db,
        order_id=order.id,
        author_user_id=author_id,
        body="Looks great",
        requires_customer_response=True,
    )

    assert db.added == [update]
    assert update.source == "web"
    assert update.event_type == "comment"
    assert update.requires_customer_response is True
    assert update.author_user_id == author_id
    assert order.updated_at is not None
    assert db.commit_calls == 1


def test_comment_without_commit_leaves_transaction_to_caller() -> None:
    order = _order()
    db = _SessionStub(order=order)

    create_comment_update(db=db, order_id=order.id, author_user_id=uuid4(), body="hi", commit=False)

    assert db.commit_calls == 0


def test_comment_on_unknown_order_is_not_found() -> None:
    db = _SessionStub(order=None)

    with pytest.raises(DomainError) as exc:
        create_comment_update(db=db, order_id=uuid4(), author_user_id=uuid4(), body="hi")

    assert exc.value.code == "NOT_FOUND"
    assert exc.value.http_status == 404
    assert db.added == []


@pytest.mark.parametrize("status", ["complete", "cancelled"])
def test_comment_on_closed_order_is_rejected(status) -> None:
    order = _order(status=status)
    db = _SessionStub(order=order)

    with pytest.raises(DomainError) as exc:
        create_comment_update(db=db, order_id=order.id, author_user_id=uuid4(), body="hi")

    assert exc.value.code == "ORDER_CLOSED"
    assert exc.value.http_status == 409
    assert db.added == []
    assert db.commit_calls == 0


def test_rate_limit_index_violation_becomes_rate_limit_error() -> None:
    order = _order()
    db = _SessionStub(order=order, flush_error=_integrity_error(ORDER_UPDATE_RATE_LIMIT_INDEX))

    with pytest.raises(DomainError) as exc:
        create_comment_update(db=db, order_id=order.id, author_user_id=uuid4(), body="second")

    assert exc.value.code == "RATE_LIMIT"
    assert exc.value.http_status == 429
    assert db.commit_calls == 0


def test_other_constraint_violation_propagates_unchanged() -> None:
    order = _order()
    db = _SessionStub(order=order, flush_error=_integrity_error("order_updates_order_id_fkey"))

    with pytest.raises(ConstraintViolation) as exc:
        create_comment_update(db=db, order_id=order.id, author_user_id=uuid4(), body="hi")

    assert exc.value.constraint == "order_updates_order_id_fkey"


def test_unnamed_integrity_error_is_not_translated() -> None:
    order = _order()
    db = _SessionStub(order=order, flush_error=_integrity_error(None))

    with pytest.raises(IntegrityError):
        create_comment_update(db=db, order_id=order.id, author_user_id=uuid4(), body="hi")


def test_email_reply_bypasses_closed_order_rule() -> None:
    db = _SessionStub(order=_order(status="complete"))
    order_id = uuid4()

    update = ingest_email_reply(db=db, order_id=order_id, from_user_id=None, text_body="Thanks!")

    assert update.source == "email"
    assert update.event_type == "email"
    assert update.author_user_id is None
    assert db.commit_calls == 1


def test_set_status_logs_system_entry() -> None:
    order = _order()
    db = _SessionStub(order=order)

    result = set_status(db=db, order_id=order.id, status="needs-feedback")

    assert result is order
    assert order.status == "needs-feedback"
    entries = [item for item in db.added if isinstance(item, OrderUpdate)]
    assert len(entries) == 1
    assert entries[0].source == "system"
    assert entries[0].event_type == "status"
    assert entries[0].body == "Status changed to needs-feedback"
    assert db.commit_calls == 1


def test_set_status_rejects_values_outside_closed_set() -> None:
    order = _order()
    db = _SessionStub(order=order)

    with pytest.raises(DomainError) as exc:
        set_status(db=db, order_id=order.id, status="shipped")

    assert exc.value.code == "INVALID_STATUS"
    assert exc.value.http_status == 400
    assert "pending" in exc.value.details["allowed"]
    assert order.status == "pending"


def test_set_status_on_unknown_order_is_not_found() -> None:
    db = _SessionStub(order=None)

    with pytest.raises(DomainError) as exc:
        set_status(db=db, order_id=uuid4(), status="complete")

    assert exc.value.code == "NOT_FOUND"


def test_assign_to_admin_records_assignment() -> None:
    order = _order()
    admin = SimpleNamespace(id=uuid4(), email="dana@oneguyproductions.com")
    db = _SessionStub(order=order, user=admin)

    assign_to_admin(db=db, order_id=order.id, admin_user_id=admin.id)

    assert order.assigned_admin_id == admin.id
    assert db.added[0].body == "Assigned to admin dana@oneguyproductions.com"
    assert db.commit_calls == 1


def test_notification_goes_to_customer_when_admin_writes() -> None:
    customer_id, admin_id = uuid4(), uuid4()
    order = _order(customer_id=customer_id, assigned_admin_id=admin_id)

    assert notification_target(order, admin_id) == customer_id


def test_notification_goes_to_assigned_admin_when_customer_writes() -> None:
    customer_id, admin_id = uuid4(), uuid4()
    order = _order(customer_id=customer_id, assigned_admin_id=admin_id)

    assert notification_target(order, customer_id) == admin_id


def test_no_notification_without_counterpart() -> None:
    customer_id = uuid4()
    order = _order(customer_id=customer_id)

    assert notification_target(order, customer_id) is None
