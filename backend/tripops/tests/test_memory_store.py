"""
Tests for the in-memory document store.
"""
import pytest

from tripops.core.exceptions import ConcurrentModification, NotFound
from tripops.store.base import ORDERS, TRIP_ORDERS, WriteOp


def test_query_by_field_returns_only_matches(store):
    store.batch_write([
        WriteOp.set(TRIP_ORDERS, "t1", {"trip_id": "t1", "order_ids": ["o1"]}),
        WriteOp.set(TRIP_ORDERS, "t2", {"trip_id": "t2", "order_ids": ["o2"]}),
        WriteOp.set(TRIP_ORDERS, "t3", {"order_ids": []}),
        WriteOp.set(ORDERS, "o1", {"trip_id": "t2"}),
    ])

    docs = store.query_by_field(TRIP_ORDERS, "trip_id", "t2")

    assert [(d.collection, d.key) for d in docs] == [(TRIP_ORDERS, "t2")]
    assert store.query_by_field(TRIP_ORDERS, "trip_id", "t9") == []


def test_query_results_are_copies(store):
    store.batch_write([WriteOp.set(TRIP_ORDERS, "t1", {"trip_id": "t1", "order_ids": ["o1"]})])

    store.query_by_field(TRIP_ORDERS, "trip_id", "t1")[0].data["order_ids"].append("o2")

    assert store.get_by_key(TRIP_ORDERS, "t1").data["order_ids"] == ["o1"]


def test_failed_batch_publishes_nothing(store):
    store.batch_write([WriteOp.set(ORDERS, "o1", {"status": "Assigned"})])

    with pytest.raises(ConcurrentModification):
        store.batch_write([
            WriteOp.set(ORDERS, "o2", {"status": "Assigned"}),
            WriteOp.patch(ORDERS, "o1", {"status": "Delivered"}, expected_version=7),
        ])

    assert store.get_by_key(ORDERS, "o2") is None
    assert store.get_by_key(ORDERS, "o1").data["status"] == "Assigned"


def test_patch_of_missing_document_fails(store):
    with pytest.raises(NotFound):
        store.batch_write([WriteOp.patch(ORDERS, "ghost", {"status": "Delivered"})])
