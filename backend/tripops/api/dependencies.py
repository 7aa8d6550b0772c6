"""
Shared FastAPI dependencies.
"""
from fastapi import Depends, Request
from tripops.store.base import PersistentStore
from tripops.services.trip_service import TripStateMachine
from tripops.services.voucher_service import VoucherLedgerReconciler
from tripops.services.leave_service import LeaveBalanceAccrual


def get_store(request: Request) -> PersistentStore:
    """Dependency for the store handle opened by the application lifespan."""
    return request.app.state.store


def get_trip_state_machine(store: PersistentStore = Depends(get_store)) -> TripStateMachine:
    return TripStateMachine(store)


def get_voucher_reconciler(store: PersistentStore = Depends(get_store)) -> VoucherLedgerReconciler:
    return VoucherLedgerReconciler(store)


def get_leave_accrual(store: PersistentStore = Depends(get_store)) -> LeaveBalanceAccrual:
    return LeaveBalanceAccrual(store)
