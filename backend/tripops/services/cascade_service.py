"""
Order cascade service: propagates a trip type change onto every order the
trip carries.

The target status of each order depends only on the new trip type and, for
past trips, on the order's own ``to_be_transferred`` flag:

    active        -> In Transit
    ready to ship -> Assigned
    past          -> Delivered, or Transferred (location moves to the transfer center)

All order updates of one cascade are written in a single batch. Running the
same cascade twice leaves the orders exactly as one run does.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from tripops.core.exceptions import NotFound, PreconditionFailed, TripOpsError
from tripops.core.utils import utcnow
from tripops.schemas.common import none_if_sentinel
from tripops.schemas.order import Order, OrderStatus, TripOrderLink
from tripops.schemas.trip import TripType
from tripops.services.documents import parse_document
from tripops.store.base import (
    CASCADE_INTENTS, ORDERS, TRIP_ORDERS, Document, PersistentStore, WriteOp
)

logger = logging.getLogger(__name__)

INTENT_PENDING = "pending"
INTENT_COMPLETE = "complete"

_STATUS_FOR_TRIP_TYPE = {
    TripType.ACTIVE: OrderStatus.IN_TRANSIT,
    TripType.READY_TO_SHIP: OrderStatus.ASSIGNED,
}


@dataclass
class CascadeResult:
    """Outcome of one cascade run."""
    trip_id: str
    trip_type: TripType
    updated: Dict[str, OrderStatus] = field(default_factory=dict)
    unchanged: List[str] = field(default_factory=list)

    @property
    def order_count(self) -> int:
        return len(self.updated) + len(self.unchanged)


@dataclass
class ResumeReport:
    """Outcome of rolling pending cascade intents forward."""
    completed: List[CascadeResult] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)


def plan_order_transition(order: Order, trip_type: TripType) -> Dict[str, Any]:
    """
    Fields an order must hold once its trip has moved to ``trip_type``.

    An order that is already Transferred keeps its locations, so a repeated
    past-trip cascade never swaps them a second time.
    """
    trip_type = TripType(trip_type)
    if trip_type != TripType.PAST:
        return {"status": _STATUS_FOR_TRIP_TYPE[trip_type]}

    if not order.to_be_transferred:
        return {"status": OrderStatus.DELIVERED}

    if order.status == OrderStatus.TRANSFERRED:
        return {"status": OrderStatus.TRANSFERRED}

    if not order.transfer_center_location:
        raise PreconditionFailed(f"Order {order.id} is marked for transfer but has no transfer center")
    # Becomes previous_center_location, which a Transferred order must carry
    if none_if_sentinel(order.current_location) is None:
        raise PreconditionFailed(f"Order {order.id} is marked for transfer but has no current location")

    return {
        "status": OrderStatus.TRANSFERRED,
        "previous_center_location": order.current_location,
        "current_location": order.transfer_center_location,
    }


def pending_intent_op(trip_id: str, trip_type: TripType, requested_at: datetime) -> WriteOp:
    """Intent record written in the same batch as a trip type change."""
    return WriteOp.set(CASCADE_INTENTS, trip_id, {
        "trip_id": trip_id,
        "trip_type": TripType(trip_type).value,
        "state": INTENT_PENDING,
        "requested_at": requested_at.isoformat(),
        "completed_at": None,
    })


class OrderCascadeCoordinator:
    """Applies trip type changes to linked orders."""

    def __init__(self, store: PersistentStore):
        self.store = store

    def find_link(self, trip_id: str) -> Optional[TripOrderLink]:
        docs = self.store.query_by_field(TRIP_ORDERS, "trip_id", trip_id)
        if not docs:
            return None
        if len(docs) > 1:
            logger.warning(f"Trip {trip_id} has {len(docs)} order links, using {docs[0].key}")
        return parse_document(docs[0], TripOrderLink)

    def synchronize(self, trip_id: str, new_trip_type: TripType) -> CascadeResult:
        """Move every order linked to ``trip_id`` to the status implied by ``new_trip_type``."""
        new_trip_type = TripType(new_trip_type)
        result = CascadeResult(trip_id=trip_id, trip_type=new_trip_type)
        now = utcnow()
        writes: List[WriteOp] = []

        link = self.find_link(trip_id)
        order_ids = link.order_ids if link else []
        for order_id in order_ids:
            doc = self.store.get_by_key(ORDERS, order_id)
            if doc is None:
                raise NotFound(ORDERS, order_id)
            order = parse_document(doc, Order)

            changes = self._changed_fields(doc, plan_order_transition(order, new_trip_type))
            if not changes:
                result.unchanged.append(order_id)
                continue

            changes["updated_at"] = now.isoformat()
            # Version check keeps the location swap tied to the value read above
            writes.append(WriteOp.patch(ORDERS, order_id, changes, expected_version=doc.version))
            result.updated[order_id] = OrderStatus(changes["status"]) if "status" in changes else order.status

        intent_write = self._complete_intent_op(trip_id, new_trip_type, now)
        if intent_write is not None:
            writes.append(intent_write)

        if writes:
            self.store.batch_write(writes)

        if link is None:
            logger.info(f"Trip {trip_id} carries no orders, nothing to cascade")
        else:
            logger.info(
                f"Cascaded trip {trip_id} -> {new_trip_type.value}: "
                f"{len(result.updated)} updated, {len(result.unchanged)} unchanged"
            )
        return result

    @staticmethod
    def _changed_fields(doc: Document, target: Dict[str, Any]) -> Dict[str, Any]:
        changes = {}
        for name, value in target.items():
            stored = value.value if isinstance(value, OrderStatus) else value
            if doc.data.get(name) != stored:
                changes[name] = stored
        # Status is always written alongside any location change
        if changes and "status" in target:
            status = target["status"]
            changes["status"] = status.value if isinstance(status, OrderStatus) else status
        return changes

    def _complete_intent_op(self, trip_id: str, trip_type: TripType, now: datetime) -> Optional[WriteOp]:
        doc = self.store.get_by_key(CASCADE_INTENTS, trip_id)
        if doc is None or doc.data.get("state") != INTENT_PENDING:
            return None
        if doc.data.get("trip_type") != trip_type.value:
            # A newer type change owns this intent
            return None
        return WriteOp.patch(
            CASCADE_INTENTS, trip_id,
            {"state": INTENT_COMPLETE, "completed_at": now.isoformat()},
            expected_version=doc.version,
        )

    def resume_pending_cascades(self) -> ResumeReport:
        """Roll forward every cascade whose trip type change was persisted but not cascaded."""
        report = ResumeReport()
        for doc in self.store.query_by_field(CASCADE_INTENTS, "state", INTENT_PENDING):
            trip_id = doc.data["trip_id"]
            try:
                report.completed.append(self.synchronize(trip_id, TripType(doc.data["trip_type"])))
            except TripOpsError as e:
                logger.error(f"Pending cascade for trip {trip_id} failed again: {e.message}")
                report.failed[trip_id] = e.message
        logger.info(f"Resumed {len(report.completed)} cascades, {len(report.failed)} still pending")
        return report
