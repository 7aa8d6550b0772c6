"""
Trip service: the trip lifecycle state machine plus trip scheduling.

Trips move between three types (ready to ship, active, past) in any
direction. Becoming active needs a driver, a truck and a leg
(Delivering/Returning); every other type clears the leg. Once the trip
document is written the linked orders are cascaded. A failing cascade does
not undo the type change: the result carries the error as a warning and a
pending cascade intent stays behind so the cascade can be retried alone.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional, Union
import logging
import uuid

from tripops.core.exceptions import InvalidArgument, NotFound, PreconditionFailed, TripOpsError
from tripops.core.utils import utcnow
from tripops.schemas.order import Order, OrderStatus, TripOrderLink
from tripops.schemas.trip import Trip, TripCreate, TripSubStatus, TripType
from tripops.services.cascade_service import (
    CascadeResult, OrderCascadeCoordinator, pending_intent_op
)
from tripops.services.documents import dump, load, parse_document
from tripops.store.base import (
    CASCADE_INTENTS, ORDERS, TRIP_ORDERS, TRIPS, PersistentStore, WriteOp
)

logger = logging.getLogger(__name__)

# Status an order takes when it is attached to a trip of the given type
_ATTACHED_ORDER_STATUS = {
    TripType.READY_TO_SHIP: OrderStatus.ASSIGNED,
    TripType.ACTIVE: OrderStatus.IN_TRANSIT,
}


@dataclass
class TypeChangeResult:
    """Outcome of a type change request."""
    trip: Trip
    changed: bool
    cascade: Optional[CascadeResult] = None
    cascade_error: Optional[TripOpsError] = None

    @property
    def partial(self) -> bool:
        """Type change persisted but the order cascade did not."""
        return self.cascade_error is not None


def resolve_sub_status(
    trip: Trip,
    new_type: TripType,
    requested_sub_status: Union[TripSubStatus, str, None]
) -> Optional[TripSubStatus]:
    """
    Validate a transition to ``new_type`` and return the resulting leg.

    Raises PreconditionFailed when an active trip lacks driver or truck and
    InvalidArgument when the leg is missing or unknown.
    """
    if new_type != TripType.ACTIVE:
        return None
    if not trip.has_crew:
        raise PreconditionFailed("driver and truck required")
    if requested_sub_status is None or requested_sub_status == "":
        raise InvalidArgument("Active trips need a current status (Delivering or Returning)")
    try:
        return TripSubStatus(requested_sub_status)
    except ValueError:
        raise InvalidArgument(f"Unknown trip status: {requested_sub_status}")


class TripStateMachine:
    """Validates and executes trip type transitions."""

    def __init__(self, store: PersistentStore, cascade: OrderCascadeCoordinator = None):
        self.store = store
        self.cascade = cascade or OrderCascadeCoordinator(store)

    def get_trip(self, trip_id: str) -> Trip:
        trip, _ = load(self.store, TRIPS, trip_id, Trip)
        return trip

    def request_type_change(
        self,
        trip_id: str,
        new_type: Union[TripType, str],
        requested_sub_status: Union[TripSubStatus, str, None] = None
    ) -> TypeChangeResult:
        """Move a trip to ``new_type`` and cascade the change to its orders."""
        try:
            new_type = TripType(new_type)
        except ValueError:
            raise InvalidArgument(f"Unknown trip type: {new_type}")

        trip, version = load(self.store, TRIPS, trip_id, Trip)
        if trip.type == new_type:
            logger.debug(f"Trip {trip_id} already {new_type.value}, nothing to do")
            return TypeChangeResult(trip=trip, changed=False)

        sub_status = resolve_sub_status(trip, new_type, requested_sub_status)
        now = utcnow()
        patch = {
            "type": new_type.value,
            "current_status": sub_status.value if sub_status else None,
            "updated_at": now.isoformat(),
        }
        self.store.batch_write([
            WriteOp.patch(TRIPS, trip_id, patch, expected_version=version),
            pending_intent_op(trip_id, new_type, now),
        ])
        updated = trip.model_copy(update={"type": new_type, "current_status": sub_status, "updated_at": now})
        logger.info(f"Trip {trip.trip_code} moved {trip.type.value} -> {new_type.value}")

        try:
            cascade = self.cascade.synchronize(trip_id, new_type)
        except TripOpsError as e:
            logger.warning(
                f"Trip {trip.trip_code} is {new_type.value} but its order cascade failed: {e.message}"
            )
            return TypeChangeResult(trip=updated, changed=True, cascade_error=e)

        return TypeChangeResult(trip=updated, changed=True, cascade=cascade)

    def retry_cascade(self, trip_id: str) -> CascadeResult:
        """Re-run the order cascade for the trip's current type."""
        trip = self.get_trip(trip_id)
        return self.cascade.synchronize(trip_id, trip.type)

    def set_sub_status(self, trip_id: str, sub_status: Union[TripSubStatus, str]) -> Trip:
        """Switch an active trip between Delivering and Returning."""
        trip, version = load(self.store, TRIPS, trip_id, Trip)
        if trip.type != TripType.ACTIVE:
            raise PreconditionFailed(f"Trip {trip.trip_code} is not active")
        new_status = resolve_sub_status(trip, TripType.ACTIVE, sub_status)
        if new_status == trip.current_status:
            return trip

        now = utcnow()
        self.store.batch_write([
            WriteOp.patch(TRIPS, trip_id, {
                "current_status": new_status.value,
                "updated_at": now.isoformat(),
            }, expected_version=version),
        ])
        logger.info(f"Trip {trip.trip_code} now {new_status.value}")
        return trip.model_copy(update={"current_status": new_status, "updated_at": now})

    # Scheduling

    def create_trip(self, data: TripCreate) -> Trip:
        """Schedule a trip and assign the given orders to it in one batch."""
        if data.type == TripType.PAST:
            raise InvalidArgument("Trips are scheduled ready to ship or active")

        order_ids = _unique(data.order_ids)
        now = utcnow()
        trip = Trip(
            id=data.id or uuid.uuid4().hex,
            trip_code=data.trip_code,
            starting_point=data.starting_point,
            destination=data.destination,
            driver=data.driver,
            truck=data.truck,
            number_of_stops=len(order_ids),
            start_date=data.start_date,
            type=TripType.READY_TO_SHIP,
            created_at=now,
            updated_at=now,
        )
        sub_status = resolve_sub_status(trip, data.type, data.current_status)
        trip = trip.model_copy(update={"type": data.type, "current_status": sub_status})

        writes = [WriteOp.set(TRIPS, trip.id, dump(trip), expected_version=0)]
        if order_ids:
            link = TripOrderLink(id=trip.id, trip_id=trip.id, order_ids=order_ids, updated_at=now)
            writes.append(WriteOp.set(TRIP_ORDERS, link.id, dump(link), expected_version=0))
            writes.extend(self._attach_writes(order_ids, _ATTACHED_ORDER_STATUS[trip.type], now))

        self.store.batch_write(writes)
        logger.info(f"Scheduled trip {trip.trip_code} ({trip.id}) with {len(order_ids)} orders")
        return trip

    def attach_orders(self, trip_id: str, order_ids: List[str]) -> TripOrderLink:
        """
        Replace the set of orders a trip carries.

        Newly attached orders must be ready to transport and take the status
        matching the trip type; dropped orders go back to ready to transport.
        """
        trip, version = load(self.store, TRIPS, trip_id, Trip)
        if trip.type == TripType.PAST:
            raise PreconditionFailed(f"Trip {trip.trip_code} is past, its orders are final")

        order_ids = _unique(order_ids)
        existing = self.cascade.find_link(trip_id)
        previous_ids = existing.order_ids if existing else []
        added = [oid for oid in order_ids if oid not in previous_ids]
        removed = [oid for oid in previous_ids if oid not in order_ids]

        now = utcnow()
        link = TripOrderLink(
            id=existing.id if existing else trip_id,
            trip_id=trip_id,
            order_ids=order_ids,
            updated_at=now,
        )
        writes = [
            WriteOp.set(TRIP_ORDERS, link.id, dump(link)),
            WriteOp.patch(TRIPS, trip_id, {
                "number_of_stops": len(order_ids),
                "updated_at": now.isoformat(),
            }, expected_version=version),
        ]
        writes.extend(self._attach_writes(added, _ATTACHED_ORDER_STATUS[trip.type], now))
        writes.extend(self._detach_writes(removed, now))
        self.store.batch_write(writes)

        logger.info(
            f"Trip {trip.trip_code} now carries {len(order_ids)} orders "
            f"({len(added)} added, {len(removed)} removed)"
        )
        return link

    def delete_trip(self, trip_id: str) -> None:
        """Delete a trip that has not completed, releasing its orders."""
        trip, version = load(self.store, TRIPS, trip_id, Trip)
        if trip.type == TripType.PAST:
            raise PreconditionFailed(f"Trip {trip.trip_code} is past and cannot be deleted")

        now = utcnow()
        link = self.cascade.find_link(trip_id)
        writes = [WriteOp.remove(TRIPS, trip_id, expected_version=version)]
        if link is not None:
            writes.extend(self._detach_writes(link.order_ids, now))
            writes.append(WriteOp.remove(TRIP_ORDERS, link.id))
        if self.store.get_by_key(CASCADE_INTENTS, trip_id) is not None:
            writes.append(WriteOp.remove(CASCADE_INTENTS, trip_id))

        self.store.batch_write(writes)
        logger.info(f"Deleted trip {trip.trip_code} ({trip_id})")

    def _attach_writes(self, order_ids: List[str], status: OrderStatus, now) -> List[WriteOp]:
        writes = []
        orders = self._load_orders(order_ids)
        for order_id, (order, version) in orders.items():
            if order.status != OrderStatus.READY_TO_TRANSPORT:
                raise PreconditionFailed(
                    f"Order {order_id} is {order.status.value}, only ready to transport orders can be attached"
                )
            writes.append(WriteOp.patch(ORDERS, order_id, {
                "status": status.value,
                "updated_at": now.isoformat(),
            }, expected_version=version))
        return writes

    def _detach_writes(self, order_ids: List[str], now) -> List[WriteOp]:
        return [
            WriteOp.patch(ORDERS, order_id, {
                "status": OrderStatus.READY_TO_TRANSPORT.value,
                "updated_at": now.isoformat(),
            }, expected_version=version)
            for order_id, (_, version) in self._load_orders(order_ids).items()
        ]

    def _load_orders(self, order_ids: List[str]) -> Dict[str, tuple]:
        orders = {}
        for order_id in order_ids:
            doc = self.store.get_by_key(ORDERS, order_id)
            if doc is None:
                raise NotFound(ORDERS, order_id)
            orders[order_id] = (parse_document(doc, Order), doc.version)
        return orders


def _unique(ids: List[str]) -> List[str]:
    """Drop duplicates, keeping first occurrence order."""
    return list(dict.fromkeys(ids))
