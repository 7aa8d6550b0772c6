"""
Driver leave routes.
"""
from fastapi import APIRouter, Depends
from tripops.schemas.driver import AccrualRun, DriverRequest, DriverRequestIn
from tripops.services.leave_service import LeaveBalanceAccrual
from tripops.api.dependencies import get_leave_accrual

router = APIRouter(prefix="/drivers", tags=["drivers"])


@router.post("/leave-accrual")
async def run_leave_accrual(
    run: AccrualRun,
    accrual: LeaveBalanceAccrual = Depends(get_leave_accrual)
):
    """Run the monthly leave accrual for every driver."""
    report = accrual.run_monthly_accrual(run.period)
    return {"period": report.period, "accrued": report.accrued, "skipped": report.skipped}


@router.get("/{driver_id}/leaves")
async def get_available_leaves(
    driver_id: str,
    accrual: LeaveBalanceAccrual = Depends(get_leave_accrual)
):
    """Get a driver's available leaves."""
    balance = accrual.get_balance(driver_id)
    return {
        "total_available": balance.total_available,
        "current_month_leaves": balance.current_month_leaves,
        "transferred_leaves": balance.transferred_leaves,
    }


@router.post("/{driver_id}/requests")
async def submit_driver_request(
    driver_id: str,
    request_data: DriverRequestIn,
    accrual: LeaveBalanceAccrual = Depends(get_leave_accrual)
):
    """Process a driver request; leave requests deduct from the leave balance."""
    request = DriverRequest(driver_id=driver_id, **request_data.model_dump())
    balance = accrual.process_driver_request(request)
    return {
        "message": f"{request.type.value.capitalize()} request processed",
        "leave_balance": balance.model_dump() if balance else None,
    }
