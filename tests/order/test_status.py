import pytest

from services.order.app.errors import ErrorKind, InvalidStatusTarget
from services.order.app.status import OrderStatus, transition


def test_initial_status_is_pending():
    assert OrderStatus.values()[0] == "pending"


@pytest.mark.parametrize("current", list(OrderStatus))
@pytest.mark.parametrize("requested", OrderStatus.values())
def test_any_known_status_is_accepted_from_any_state(current, requested):
    assert transition(current, requested) is OrderStatus(requested)


def test_completed_order_can_be_reopened():
    assert transition(OrderStatus.COMPLETED, "pending") is OrderStatus.PENDING


@pytest.mark.parametrize("requested", ["shipped", "", "PENDING", " completed"])
def test_unknown_status_is_rejected(requested):
    with pytest.raises(InvalidStatusTarget) as exc:
        transition(OrderStatus.PENDING, requested)
    assert exc.value.kind is ErrorKind.INVALID_STATUS_TARGET
    assert exc.value.details["allowed"] == ["pending", "completed", "cancelled", "failed"]
