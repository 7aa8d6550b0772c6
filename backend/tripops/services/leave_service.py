"""
Leave balance service for driver leave accrual and deduction.

Drivers get a fresh monthly quota of leaves. Leaves unused in the first
month of a two-month cycle carry over into the second month; anything
unused at the end of the second month is dropped. Requests consume the
current month's quota first, then carried-over leaves.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional
import logging

from tripops.core.exceptions import InsufficientLeaveBalance, InvalidArgument
from tripops.core.utils import utcnow
from tripops.schemas.driver import (
    MONTHLY_LEAVE_QUOTA, PERIOD_PATTERN, Driver, DriverRequest, LeaveBalance, RequestType
)
from tripops.services.documents import dump, load, parse_document
from tripops.store.base import DRIVERS, PersistentStore, WriteOp

logger = logging.getLogger(__name__)


def accrue_month(balance: LeaveBalance, period: Optional[str] = None) -> LeaveBalance:
    """Balance after the monthly reset."""
    if balance.cycle_month == 1 and balance.current_month_leaves > 0:
        transferred = balance.current_month_leaves
    else:
        transferred = 0
    return LeaveBalance(
        current_month_leaves=MONTHLY_LEAVE_QUOTA,
        transferred_leaves=transferred,
        cycle_month=2 if balance.cycle_month == 1 else 1,
        last_accrued_period=period or balance.last_accrued_period,
    )


def deduct_leave(balance: LeaveBalance, days: int) -> LeaveBalance:
    """Balance after taking ``days`` leaves, current month first."""
    if days < 1:
        raise InvalidArgument("A leave request covers at least one day")
    if days > balance.total_available:
        raise InsufficientLeaveBalance(balance.total_available, days)

    from_current = min(days, balance.current_month_leaves)
    return balance.model_copy(update={
        "current_month_leaves": balance.current_month_leaves - from_current,
        "transferred_leaves": balance.transferred_leaves - (days - from_current),
    })


def leave_days(start_date: date, end_date: Optional[date]) -> int:
    """Number of days a leave covers, both ends included."""
    end_date = end_date or start_date
    if end_date < start_date:
        raise InvalidArgument(
            f"End date ({end_date.isoformat()}) cannot be before start date ({start_date.isoformat()})"
        )
    return (end_date - start_date).days + 1


@dataclass
class AccrualReport:
    """Outcome of one monthly accrual run."""
    period: str
    accrued: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


class LeaveBalanceAccrual:
    """Applies leave deductions and the monthly accrual to driver documents."""

    def __init__(self, store: PersistentStore):
        self.store = store

    def get_balance(self, driver_id: str) -> LeaveBalance:
        driver, _ = load(self.store, DRIVERS, driver_id, Driver)
        return driver.leave_balance

    def apply_leave_request(self, driver_id: str, days: int) -> LeaveBalance:
        """Deduct ``days`` from a driver's balance."""
        driver, version = load(self.store, DRIVERS, driver_id, Driver)
        balance = deduct_leave(driver.leave_balance, days)
        self.store.batch_write([
            WriteOp.patch(DRIVERS, driver_id, {
                "leave_balance": dump(balance),
                "updated_at": utcnow().isoformat(),
            }, expected_version=version),
        ])
        logger.info(
            f"Driver {driver_id} took {days} leave days, "
            f"{balance.total_available} left ({balance.current_month_leaves}+{balance.transferred_leaves})"
        )
        return balance

    def process_driver_request(self, request: DriverRequest) -> Optional[LeaveBalance]:
        """
        Act on a driver request.

        Leave requests deduct the covered days from the driver's balance.
        Money, food and other requests are acknowledged and logged only.
        """
        if request.type == RequestType.LEAVE:
            return self.apply_leave_request(request.driver_id, leave_days(request.start_date, request.end_date))

        logger.info(
            f"Received {request.type.value} request from driver {request.driver_id} "
            f"for {request.start_date.isoformat()}: {request.reason or 'no reason given'}"
        )
        return None

    def run_monthly_accrual(self, period: str) -> AccrualReport:
        """
        Reset every driver's monthly quota for ``period`` (YYYY-MM).

        Drivers already accrued for ``period`` are skipped, so the job can be
        re-run after a failure. All balances are written in one batch.
        """
        if not PERIOD_PATTERN.match(period):
            raise InvalidArgument(f"Accrual period must look like YYYY-MM, got {period!r}")

        report = AccrualReport(period=period)
        now = utcnow().isoformat()
        writes = []
        for doc in self.store.list_collection(DRIVERS):
            driver = parse_document(doc, Driver)
            if driver.leave_balance.last_accrued_period == period:
                report.skipped.append(driver.id)
                continue
            balance = accrue_month(driver.leave_balance, period)
            writes.append(WriteOp.patch(DRIVERS, driver.id, {
                "leave_balance": dump(balance),
                "updated_at": now,
            }, expected_version=doc.version))
            report.accrued.append(driver.id)

        if writes:
            self.store.batch_write(writes)
        logger.info(
            f"Leave accrual for {period}: {len(report.accrued)} drivers accrued, "
            f"{len(report.skipped)} already done"
        )
        return report
