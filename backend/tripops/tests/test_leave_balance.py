"""
Tests for driver leave deduction and the monthly accrual.
"""
from datetime import date
import pytest

from tripops.core.exceptions import InsufficientLeaveBalance, InvalidArgument, NotFound
from tripops.schemas.driver import DriverRequest, LeaveBalance, RequestType
from tripops.services.leave_service import (
    LeaveBalanceAccrual, accrue_month, deduct_leave, leave_days
)
from tripops.store.base import DRIVERS

from conftest import put_driver, read


def test_deduct_uses_current_month_first():
    balance = LeaveBalance(current_month_leaves=2, transferred_leaves=3)

    after = deduct_leave(balance, 4)

    assert after.current_month_leaves == 0
    assert after.transferred_leaves == 1


def test_deduct_more_than_available_fails():
    balance = LeaveBalance(current_month_leaves=2, transferred_leaves=3)

    with pytest.raises(InsufficientLeaveBalance) as exc_info:
        deduct_leave(balance, 6)

    assert exc_info.value.available == 5
    assert exc_info.value.requested == 6


def test_deduct_zero_days_is_invalid():
    with pytest.raises(InvalidArgument):
        deduct_leave(LeaveBalance(), 0)


def test_accrual_in_first_cycle_month_carries_leaves_over():
    after = accrue_month(LeaveBalance(current_month_leaves=3, transferred_leaves=0, cycle_month=1), "2024-03")

    assert after.current_month_leaves == 4
    assert after.transferred_leaves == 3
    assert after.cycle_month == 2
    assert after.last_accrued_period == "2024-03"


def test_accrual_in_second_cycle_month_drops_leftovers():
    after = accrue_month(LeaveBalance(current_month_leaves=3, transferred_leaves=2, cycle_month=2))

    assert after.current_month_leaves == 4
    assert after.transferred_leaves == 0
    assert after.cycle_month == 1


def test_accrual_with_nothing_left_transfers_nothing():
    after = accrue_month(LeaveBalance(current_month_leaves=0, cycle_month=1))
    assert after.transferred_leaves == 0


@pytest.mark.parametrize("start, end, days", [
    (date(2024, 3, 4), None, 1),
    (date(2024, 3, 4), date(2024, 3, 4), 1),
    (date(2024, 3, 4), date(2024, 3, 6), 3),
    (date(2024, 2, 28), date(2024, 3, 1), 3),
])
def test_leave_days_counts_both_ends(start, end, days):
    assert leave_days(start, end) == days


def test_leave_days_rejects_end_before_start():
    with pytest.raises(InvalidArgument):
        leave_days(date(2024, 3, 6), date(2024, 3, 4))


def test_apply_leave_request_persists_balance(store):
    put_driver(store, current_month_leaves=2, transferred_leaves=3)

    balance = LeaveBalanceAccrual(store).apply_leave_request("driver-1", 4)

    assert (balance.current_month_leaves, balance.transferred_leaves) == (0, 1)
    stored = read(store, DRIVERS, "driver-1")["leave_balance"]
    assert (stored["current_month_leaves"], stored["transferred_leaves"]) == (0, 1)


def test_failed_leave_request_leaves_balance_unchanged(store):
    put_driver(store, current_month_leaves=2, transferred_leaves=3)
    before = store.get_by_key(DRIVERS, "driver-1")

    with pytest.raises(InsufficientLeaveBalance):
        LeaveBalanceAccrual(store).apply_leave_request("driver-1", 6)

    assert store.get_by_key(DRIVERS, "driver-1") == before


def test_unknown_driver_is_not_found(store):
    with pytest.raises(NotFound):
        LeaveBalanceAccrual(store).get_balance("nobody")


def test_leave_request_deducts_covered_days(store):
    put_driver(store)
    request = DriverRequest(
        driver_id="driver-1", type=RequestType.LEAVE,
        start_date=date(2024, 3, 4), end_date=date(2024, 3, 6), reason="wedding",
    )

    balance = LeaveBalanceAccrual(store).process_driver_request(request)

    assert balance.current_month_leaves == 1
    assert balance.total_available == 1


def test_money_request_does_not_touch_balance(store):
    put_driver(store)
    before = store.get_by_key(DRIVERS, "driver-1")
    request = DriverRequest(driver_id="driver-1", type=RequestType.MONEY, start_date=date(2024, 3, 4))

    assert LeaveBalanceAccrual(store).process_driver_request(request) is None
    assert store.get_by_key(DRIVERS, "driver-1") == before


def test_monthly_accrual_updates_every_driver(store):
    put_driver(store, "d1", current_month_leaves=3, cycle_month=1)
    put_driver(store, "d2", current_month_leaves=3, transferred_leaves=1, cycle_month=2)

    report = LeaveBalanceAccrual(store).run_monthly_accrual("2024-03")

    assert sorted(report.accrued) == ["d1", "d2"]
    d1 = read(store, DRIVERS, "d1")["leave_balance"]
    d2 = read(store, DRIVERS, "d2")["leave_balance"]
    assert (d1["current_month_leaves"], d1["transferred_leaves"], d1["cycle_month"]) == (4, 3, 2)
    assert (d2["current_month_leaves"], d2["transferred_leaves"], d2["cycle_month"]) == (4, 0, 1)


def test_monthly_accrual_rerun_is_skipped(store):
    put_driver(store, "d1", current_month_leaves=3, cycle_month=1)
    accrual = LeaveBalanceAccrual(store)

    accrual.run_monthly_accrual("2024-03")
    after_first = store.get_by_key(DRIVERS, "d1")
    report = accrual.run_monthly_accrual("2024-03")

    assert report.accrued == []
    assert report.skipped == ["d1"]
    assert store.get_by_key(DRIVERS, "d1") == after_first


@pytest.mark.parametrize("period", ["2024-3", "2024-13", "March"])
def test_monthly_accrual_rejects_bad_period(store, period):
    with pytest.raises(InvalidArgument):
        LeaveBalanceAccrual(store).run_monthly_accrual(period)
