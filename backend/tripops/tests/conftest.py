"""
Shared fixtures: a fresh in-memory store and helpers to seed documents.
"""
from decimal import Decimal
import pytest

from tripops.core.exceptions import StoreFailure
from tripops.schemas.driver import Driver, LeaveBalance
from tripops.schemas.order import Order, OrderStatus, TripOrderLink
from tripops.schemas.trip import Trip, TripType
from tripops.schemas.wallet import Wallet
from tripops.services.documents import dump
from tripops.store.base import DRIVERS, ORDERS, TRIP_ORDERS, TRIPS, WALLETS, WriteOp
from tripops.store.memory import InMemoryStore


class FlakyStore(InMemoryStore):
    """In-memory store whose batches touching ``fail_collection`` fail."""

    def __init__(self):
        super().__init__()
        self.fail_collection = None
        self.batches = 0

    def batch_write(self, writes):
        if self.fail_collection and any(op.collection == self.fail_collection for op in writes):
            raise StoreFailure(f"simulated outage writing {self.fail_collection}")
        self.batches += 1
        super().batch_write(writes)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def flaky_store():
    return FlakyStore()


def put_trip(store, trip_id="trip-1", **fields):
    data = {
        "id": trip_id,
        "trip_code": fields.pop("trip_code", "TRP-001"),
        "starting_point": "Delhi",
        "destination": "Jaipur",
        "driver": "driver-1",
        "truck": "RJ14-1234",
        "type": TripType.READY_TO_SHIP,
    }
    data.update(fields)
    trip = Trip(**data)
    store.batch_write([WriteOp.set(TRIPS, trip_id, dump(trip))])
    return trip


def put_order(store, order_id, **fields):
    data = {
        "id": order_id,
        "docket_id": f"DKT-{order_id}",
        "status": OrderStatus.ASSIGNED,
        "current_location": "Delhi Hub",
    }
    data.update(fields)
    order = Order(**data)
    store.batch_write([WriteOp.set(ORDERS, order_id, dump(order))])
    return order


def put_link(store, trip_id, order_ids):
    link = TripOrderLink(id=trip_id, trip_id=trip_id, order_ids=order_ids)
    store.batch_write([WriteOp.set(TRIP_ORDERS, trip_id, dump(link))])
    return link


def put_wallet(store, wallet_id="wallet-1", balance="1000.00"):
    wallet = Wallet(id=wallet_id, user_id="manager-1", available_balance=Decimal(balance))
    store.batch_write([WriteOp.set(WALLETS, wallet_id, dump(wallet))])
    return wallet


def put_driver(store, driver_id="driver-1", **balance):
    driver = Driver(id=driver_id, driver_name="Ramesh", leave_balance=LeaveBalance(**balance))
    store.batch_write([WriteOp.set(DRIVERS, driver_id, dump(driver))])
    return driver


def read(store, collection, key):
    return store.get_by_key(collection, key).data
