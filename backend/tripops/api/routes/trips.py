"""
Trip operation routes.
"""
from fastapi import APIRouter, Depends, status
from tripops.schemas.order import OrderAttach, TripOrderLink
from tripops.schemas.trip import (
    AdditionalBalance, CascadeResponse, SubStatusUpdate, Trip, TripCreate,
    TripTypeChange, TypeChangeResponse, VoucherResponse, VoucherUpdate
)
from tripops.services.cascade_service import CascadeResult
from tripops.services.trip_service import TripStateMachine
from tripops.services.voucher_service import VoucherLedgerReconciler
from tripops.api.dependencies import get_trip_state_machine, get_voucher_reconciler

router = APIRouter(prefix="/trips", tags=["trips"])


def cascade_response(result: CascadeResult) -> CascadeResponse:
    return CascadeResponse(
        trip_id=result.trip_id,
        trip_type=result.trip_type,
        updated=result.updated,
        unchanged=result.unchanged
    )


@router.post("", response_model=Trip, status_code=status.HTTP_201_CREATED)
async def create_trip(
    trip_data: TripCreate,
    machine: TripStateMachine = Depends(get_trip_state_machine)
):
    """Schedule a trip with its orders."""
    return machine.create_trip(trip_data)


@router.post("/cascades/resume")
async def resume_cascades(machine: TripStateMachine = Depends(get_trip_state_machine)):
    """Roll forward cascades left pending by earlier failures."""
    report = machine.cascade.resume_pending_cascades()
    return {
        "completed": [cascade_response(r) for r in report.completed],
        "failed": report.failed
    }


@router.get("/{trip_id}", response_model=Trip)
async def get_trip(
    trip_id: str,
    machine: TripStateMachine = Depends(get_trip_state_machine)
):
    """Get trip details."""
    return machine.get_trip(trip_id)


@router.post("/{trip_id}/type", response_model=TypeChangeResponse)
async def change_trip_type(
    trip_id: str,
    change: TripTypeChange,
    machine: TripStateMachine = Depends(get_trip_state_machine)
):
    """Move a trip to another type and cascade it to the trip's orders."""
    result = machine.request_type_change(trip_id, change.type, change.current_status)
    return TypeChangeResponse(
        trip=result.trip,
        changed=result.changed,
        cascade=cascade_response(result.cascade) if result.cascade else None,
        warning=f"Order cascade failed: {result.cascade_error.message}" if result.partial else None
    )


@router.patch("/{trip_id}/status", response_model=Trip)
async def update_trip_status(
    trip_id: str,
    update: SubStatusUpdate,
    machine: TripStateMachine = Depends(get_trip_state_machine)
):
    """Switch an active trip between Delivering and Returning."""
    return machine.set_sub_status(trip_id, update.current_status)


@router.post("/{trip_id}/cascade", response_model=CascadeResponse)
async def retry_cascade(
    trip_id: str,
    machine: TripStateMachine = Depends(get_trip_state_machine)
):
    """Re-run the order cascade for the trip's current type."""
    return cascade_response(machine.retry_cascade(trip_id))


@router.put("/{trip_id}/orders", response_model=TripOrderLink)
async def attach_orders(
    trip_id: str,
    attach: OrderAttach,
    machine: TripStateMachine = Depends(get_trip_state_machine)
):
    """Replace the orders carried by a trip."""
    return machine.attach_orders(trip_id, attach.order_ids)


@router.put("/{trip_id}/voucher", response_model=VoucherResponse)
async def update_voucher(
    trip_id: str,
    voucher: VoucherUpdate,
    reconciler: VoucherLedgerReconciler = Depends(get_voucher_reconciler)
):
    """Edit a trip voucher, charging the manager wallet for the increase."""
    items = [AdditionalBalance(**item.model_dump(exclude_none=True)) for item in voucher.additional_balance]
    result = reconciler.reconcile(trip_id, voucher.advance_balance, items, voucher.wallet_id)
    return VoucherResponse(
        trip_id=result.trip_id,
        wallet_id=result.wallet_id,
        voucher=result.voucher,
        charged=result.charged,
        available_balance=result.available_balance,
        transactions=result.transactions
    )


@router.delete("/{trip_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_trip(
    trip_id: str,
    machine: TripStateMachine = Depends(get_trip_state_machine)
):
    """Delete a trip that has not completed."""
    machine.delete_trip(trip_id)
