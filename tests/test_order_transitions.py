import pytest
from courier.models.order import (
    OrderStatus, TRANSITIONS, TERMINAL_STATUSES, allowed_transitions, is_valid_transition, is_reachable,
)


def test_every_status_has_a_table_entry():
    assert set(TRANSITIONS) == set(OrderStatus)


def test_terminal_statuses():
    assert TERMINAL_STATUSES == {
        OrderStatus.COMPLETED, OrderStatus.REJECTED, OrderStatus.CANCELLED, OrderStatus.FAILED,
    }


@pytest.mark.parametrize("status", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
def test_terminal_statuses_allow_nothing(status):
    for target in OrderStatus:
        assert not is_valid_transition(status, target)


def test_happy_path_is_a_chain_of_valid_edges():
    path = [
        OrderStatus.CREATED, OrderStatus.PENDING_OPERATOR_ACTION, OrderStatus.APPROVED,
        OrderStatus.AWAITING_PAYMENT, OrderStatus.PAID, OrderStatus.ASSIGNED,
        OrderStatus.PICKED_UP, OrderStatus.IN_TRANSIT, OrderStatus.DELIVERED, OrderStatus.COMPLETED,
    ]
    for current, nxt in zip(path, path[1:]):
        assert is_valid_transition(current, nxt)


def test_every_status_is_reachable_from_created():
    for status in OrderStatus:
        assert is_reachable(status)


def test_skipping_steps_is_invalid():
    assert not is_valid_transition(OrderStatus.CREATED, OrderStatus.PAID)
    assert not is_valid_transition(OrderStatus.ASSIGNED, OrderStatus.PAID)
    assert not is_valid_transition(OrderStatus.DELIVERED, OrderStatus.CANCELLED)


def test_only_in_transit_can_fail():
    sources = [s for s in OrderStatus if is_valid_transition(s, OrderStatus.FAILED)]
    assert sources == [OrderStatus.IN_TRANSIT]


def test_status_missing_from_table_is_unrestricted(monkeypatch):
    monkeypatch.delitem(TRANSITIONS, OrderStatus.DELIVERED)
    assert allowed_transitions(OrderStatus.DELIVERED) is None
    assert is_valid_transition(OrderStatus.DELIVERED, OrderStatus.CREATED)
