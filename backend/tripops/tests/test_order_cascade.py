"""
Tests for propagating trip type changes onto linked orders.
"""
import pytest

from tripops.core.exceptions import NotFound, PreconditionFailed, StoreFailure
from tripops.schemas.order import Order, OrderStatus
from tripops.schemas.trip import TripType
from tripops.services.cascade_service import (
    INTENT_COMPLETE, INTENT_PENDING, OrderCascadeCoordinator, pending_intent_op, plan_order_transition
)
from tripops.core.utils import utcnow
from tripops.store.base import CASCADE_INTENTS, ORDERS

from conftest import put_link, put_order, read


@pytest.mark.parametrize("trip_type, expected", [
    (TripType.ACTIVE, OrderStatus.IN_TRANSIT),
    (TripType.READY_TO_SHIP, OrderStatus.ASSIGNED),
    (TripType.PAST, OrderStatus.DELIVERED),
])
def test_plan_order_transition(trip_type, expected):
    order = Order(id="o1", status=OrderStatus.ASSIGNED, current_location="Delhi Hub")
    assert plan_order_transition(order, trip_type) == {"status": expected}


def test_plan_transfer_moves_location():
    order = Order(
        id="o1",
        status=OrderStatus.IN_TRANSIT,
        to_be_transferred=True,
        current_location="Delhi Hub",
        transfer_center_location="Jaipur Hub",
    )
    assert plan_order_transition(order, TripType.PAST) == {
        "status": OrderStatus.TRANSFERRED,
        "previous_center_location": "Delhi Hub",
        "current_location": "Jaipur Hub",
    }


def test_plan_transfer_without_center_fails():
    order = Order(id="o1", status=OrderStatus.IN_TRANSIT, to_be_transferred=True, transfer_center_location="NA")
    with pytest.raises(PreconditionFailed):
        plan_order_transition(order, TripType.PAST)


@pytest.mark.parametrize("location", ["", "NA"])
def test_plan_transfer_without_current_location_fails(location):
    order = Order(
        id="o1",
        status=OrderStatus.IN_TRANSIT,
        to_be_transferred=True,
        current_location=location,
        transfer_center_location="Jaipur Hub",
    )
    with pytest.raises(PreconditionFailed):
        plan_order_transition(order, TripType.PAST)


def test_transfer_without_current_location_leaves_order_readable(store):
    put_order(
        store, "o1",
        status=OrderStatus.IN_TRANSIT,
        to_be_transferred=True,
        current_location="",
        transfer_center_location="Jaipur Hub",
    )
    put_link(store, "trip-1", ["o1"])
    coordinator = OrderCascadeCoordinator(store)

    for _ in range(2):
        with pytest.raises(PreconditionFailed):
            coordinator.synchronize("trip-1", TripType.PAST)

    stored = read(store, ORDERS, "o1")
    assert stored["status"] == "In Transit"
    assert Order.model_validate(stored).current_location == ""


def test_past_cascade_delivers_and_transfers(store):
    put_order(store, "o1", status=OrderStatus.IN_TRANSIT)
    put_order(
        store, "o2",
        status=OrderStatus.IN_TRANSIT,
        to_be_transferred=True,
        transfer_center_location="Jaipur Hub",
    )
    put_link(store, "trip-1", ["o1", "o2"])

    result = OrderCascadeCoordinator(store).synchronize("trip-1", TripType.PAST)

    assert result.updated == {"o1": OrderStatus.DELIVERED, "o2": OrderStatus.TRANSFERRED}
    assert read(store, ORDERS, "o1")["status"] == "Delivered"
    assert read(store, ORDERS, "o1")["current_location"] == "Delhi Hub"
    transferred = read(store, ORDERS, "o2")
    assert transferred["status"] == "Transferred"
    assert transferred["previous_center_location"] == "Delhi Hub"
    assert transferred["current_location"] == "Jaipur Hub"


def test_cascade_is_idempotent(store):
    put_order(
        store, "o1",
        status=OrderStatus.IN_TRANSIT,
        to_be_transferred=True,
        transfer_center_location="Jaipur Hub",
    )
    put_link(store, "trip-1", ["o1"])
    coordinator = OrderCascadeCoordinator(store)

    coordinator.synchronize("trip-1", TripType.PAST)
    first = store.get_by_key(ORDERS, "o1")
    second_run = coordinator.synchronize("trip-1", TripType.PAST)
    second = store.get_by_key(ORDERS, "o1")

    assert second_run.updated == {}
    assert second_run.unchanged == ["o1"]
    assert second.version == first.version
    assert second.data == first.data
    assert second.data["previous_center_location"] == "Delhi Hub"


def test_trip_without_orders_is_a_no_op(store):
    result = OrderCascadeCoordinator(store).synchronize("trip-1", TripType.ACTIVE)
    assert result.order_count == 0


def test_missing_order_fails_whole_cascade(store):
    put_order(store, "o1")
    put_link(store, "trip-1", ["o1", "ghost"])

    with pytest.raises(NotFound):
        OrderCascadeCoordinator(store).synchronize("trip-1", TripType.ACTIVE)

    assert read(store, ORDERS, "o1")["status"] == "Assigned"


def test_precondition_failure_leaves_every_order_untouched(store):
    put_order(store, "o1", status=OrderStatus.IN_TRANSIT)
    put_order(store, "o2", status=OrderStatus.IN_TRANSIT, to_be_transferred=True)
    put_link(store, "trip-1", ["o1", "o2"])

    with pytest.raises(PreconditionFailed):
        OrderCascadeCoordinator(store).synchronize("trip-1", TripType.PAST)

    assert read(store, ORDERS, "o1")["status"] == "In Transit"
    assert read(store, ORDERS, "o2")["status"] == "In Transit"


def test_store_failure_writes_nothing(flaky_store):
    put_order(flaky_store, "o1")
    put_order(flaky_store, "o2")
    put_link(flaky_store, "trip-1", ["o1", "o2"])
    flaky_store.fail_collection = ORDERS

    with pytest.raises(StoreFailure):
        OrderCascadeCoordinator(flaky_store).synchronize("trip-1", TripType.ACTIVE)

    assert read(flaky_store, ORDERS, "o1")["status"] == "Assigned"
    assert read(flaky_store, ORDERS, "o2")["status"] == "Assigned"


def test_stale_intent_is_left_for_the_newer_change(store):
    put_order(store, "o1")
    put_link(store, "trip-1", ["o1"])
    store.batch_write([pending_intent_op("trip-1", TripType.PAST, utcnow())])

    OrderCascadeCoordinator(store).synchronize("trip-1", TripType.ACTIVE)

    assert read(store, CASCADE_INTENTS, "trip-1")["state"] == INTENT_PENDING


def test_resume_pending_cascades(store):
    put_order(store, "o1")
    put_link(store, "trip-1", ["o1"])
    put_order(store, "o2", status=OrderStatus.IN_TRANSIT, to_be_transferred=True)
    put_link(store, "trip-2", ["o2"])
    store.batch_write([
        pending_intent_op("trip-1", TripType.ACTIVE, utcnow()),
        pending_intent_op("trip-2", TripType.PAST, utcnow()),
    ])

    report = OrderCascadeCoordinator(store).resume_pending_cascades()

    assert [r.trip_id for r in report.completed] == ["trip-1"]
    assert set(report.failed) == {"trip-2"}
    assert read(store, ORDERS, "o1")["status"] == "In Transit"
    assert read(store, CASCADE_INTENTS, "trip-1")["state"] == INTENT_COMPLETE
    assert read(store, CASCADE_INTENTS, "trip-2")["state"] == INTENT_PENDING
