import pytest

from shibr.core.exceptions import InvalidTransitionError
from shibr.models import ClearanceStatus, OrderStatus, RentalStatus
from shibr.services.clearance import CLEARANCE_WORKFLOW
from shibr.services.orders import ORDER_WORKFLOW
from shibr.services.rentals import RENTAL_WORKFLOW


def test_rental_moves_one_step_at_a_time():
    assert RENTAL_WORKFLOW.next_status(RentalStatus.PENDING) == RentalStatus.ACCEPTED
    assert RENTAL_WORKFLOW.can_move(RentalStatus.ACCEPTED, RentalStatus.PAYMENT_PENDING)
    assert not RENTAL_WORKFLOW.can_move(RentalStatus.ACCEPTED, RentalStatus.ACTIVE)
    assert not RENTAL_WORKFLOW.can_move(RentalStatus.ACTIVE, RentalStatus.ACCEPTED)


def test_rental_side_exits():
    assert RENTAL_WORKFLOW.can_move(RentalStatus.PENDING, RentalStatus.REJECTED)
    assert not RENTAL_WORKFLOW.can_move(RentalStatus.ACCEPTED, RentalStatus.REJECTED)
    assert RENTAL_WORKFLOW.can_move(RentalStatus.PAYMENT_PENDING, RentalStatus.CANCELLED)
    assert not RENTAL_WORKFLOW.can_move(RentalStatus.ACTIVE, RentalStatus.CANCELLED)
    assert RENTAL_WORKFLOW.is_terminal(RentalStatus.REJECTED)
    assert RENTAL_WORKFLOW.is_terminal(RentalStatus.COMPLETED)
    assert not RENTAL_WORKFLOW.is_terminal(RentalStatus.ACTIVE)


def test_check_raises_with_readable_message():
    with pytest.raises(InvalidTransitionError) as exc_info:
        RENTAL_WORKFLOW.check(RentalStatus.PENDING, RentalStatus.ACTIVE)
    assert exc_info.value.status_code == 409
    assert exc_info.value.detail == "Cannot move rental request from 'pending' to 'active'"


def test_clearance_cannot_skip_steps():
    statuses = list(ClearanceStatus)
    for current, target in zip(statuses, statuses[1:]):
        assert CLEARANCE_WORKFLOW.check(current, target) == target
    assert not CLEARANCE_WORKFLOW.can_move(
        ClearanceStatus.PENDING_INVENTORY_CHECK, ClearanceStatus.RETURN_SHIPPED
    )
    assert not CLEARANCE_WORKFLOW.can_move(ClearanceStatus.CLOSED, ClearanceStatus.NOT_STARTED)
    assert CLEARANCE_WORKFLOW.next_status(ClearanceStatus.CLOSED) is None


def test_order_cancel_and_refund():
    assert ORDER_WORKFLOW.can_move(OrderStatus.READY, OrderStatus.CANCELLED)
    assert not ORDER_WORKFLOW.can_move(OrderStatus.DELIVERED, OrderStatus.CANCELLED)
    assert ORDER_WORKFLOW.can_move(OrderStatus.DELIVERED, OrderStatus.REFUNDED)
    assert not ORDER_WORKFLOW.can_move(OrderStatus.PENDING, OrderStatus.REFUNDED)
