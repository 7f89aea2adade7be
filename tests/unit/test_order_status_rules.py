"""Unit tests for the order status workflow rules (no database)."""

import pytest
from services.fulfillment_service.errors import InvalidTransition
from services.fulfillment_service.models import Order, OrderStatus
from services.fulfillment_service.services.order_status import (
    allowed_transitions,
    can_transition,
    is_terminal,
    transition_order_status,
)


class _RecordingSession:
    """Stands in for AsyncSession.add; transitions never touch I/O."""

    def __init__(self):
        self.added = []

    def add(self, obj):
        self.added.append(obj)


def _order(status: OrderStatus) -> Order:
    return Order(order_number="MLA-20250123-0001", status=status)


# ---------------------------------------------------------------------------
# Transition table
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_happy_path_is_allowed():
    path = [
        OrderStatus.PENDING,
        OrderStatus.CONFIRMED,
        OrderStatus.PROCESSING,
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
    ]
    for current, nxt in zip(path, path[1:]):
        assert can_transition(current, nxt)

    assert can_transition(OrderStatus.PROCESSING, OrderStatus.READY_FOR_PICKUP)
    assert can_transition(OrderStatus.READY_FOR_PICKUP, OrderStatus.DELIVERED)


@pytest.mark.unit
def test_cancel_reachable_from_every_non_terminal_status():
    for status in OrderStatus:
        if is_terminal(status):
            assert allowed_transitions(status) == ()
        else:
            assert can_transition(status, OrderStatus.CANCELLED)


@pytest.mark.unit
def test_terminal_statuses():
    assert is_terminal(OrderStatus.DELIVERED)
    assert is_terminal(OrderStatus.CANCELLED)
    assert not is_terminal(OrderStatus.SHIPPED)


@pytest.mark.unit
def test_skipping_steps_not_allowed():
    assert not can_transition(OrderStatus.PENDING, OrderStatus.DELIVERED)
    assert not can_transition(OrderStatus.CONFIRMED, OrderStatus.SHIPPED)
    assert not can_transition(OrderStatus.SHIPPED, OrderStatus.PROCESSING)


# ---------------------------------------------------------------------------
# transition_order_status
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_transition_appends_history_entry():
    db = _RecordingSession()
    order = _order(OrderStatus.PENDING)

    entry = transition_order_status(db, order, OrderStatus.CONFIRMED, actor="staff-1")

    assert order.status == OrderStatus.CONFIRMED
    assert db.added == [entry]
    assert entry.from_status == OrderStatus.PENDING
    assert entry.to_status == OrderStatus.CONFIRMED
    assert entry.changed_by == "staff-1"
    assert entry.is_override is False


@pytest.mark.unit
def test_same_status_is_a_no_op():
    db = _RecordingSession()
    order = _order(OrderStatus.CONFIRMED)

    assert transition_order_status(db, order, OrderStatus.CONFIRMED) is None
    assert db.added == []


@pytest.mark.unit
def test_invalid_transition_raises_and_leaves_order_untouched():
    db = _RecordingSession()
    order = _order(OrderStatus.PENDING)

    with pytest.raises(InvalidTransition) as exc_info:
        transition_order_status(db, order, OrderStatus.DELIVERED)

    assert order.status == OrderStatus.PENDING
    assert db.added == []
    assert exc_info.value.code == "INVALID_TRANSITION"
    assert OrderStatus.CONFIRMED in exc_info.value.allowed


@pytest.mark.unit
def test_delivered_sets_completed_at():
    db = _RecordingSession()
    order = _order(OrderStatus.SHIPPED)

    transition_order_status(db, order, OrderStatus.DELIVERED)

    assert order.completed_at is not None


@pytest.mark.unit
def test_forced_transition_is_flagged():
    db = _RecordingSession()
    order = _order(OrderStatus.PENDING)

    entry = transition_order_status(
        db, order, OrderStatus.DELIVERED, actor="admin-1", force=True
    )

    assert order.status == OrderStatus.DELIVERED
    assert entry.is_override is True
    assert order.completed_at is not None


@pytest.mark.unit
def test_force_on_an_allowed_transition_is_not_an_override():
    db = _RecordingSession()
    order = _order(OrderStatus.PENDING)

    entry = transition_order_status(db, order, OrderStatus.CONFIRMED, force=True)

    assert entry.is_override is False
