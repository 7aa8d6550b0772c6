"""
Pydantic schemas for drivers, leave balances and driver requests.
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Literal, Optional
from datetime import date
import enum
import re

MONTHLY_LEAVE_QUOTA = 4
PERIOD_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


class LeaveBalance(BaseModel):
    """Leave quota embedded in a driver document."""
    current_month_leaves: int = Field(default=MONTHLY_LEAVE_QUOTA, ge=0, le=MONTHLY_LEAVE_QUOTA)
    transferred_leaves: int = Field(default=0, ge=0, le=MONTHLY_LEAVE_QUOTA)
    cycle_month: Literal[1, 2] = 1
    last_accrued_period: Optional[str] = None  # "YYYY-MM" of the last monthly accrual

    @property
    def total_available(self) -> int:
        return self.current_month_leaves + self.transferred_leaves


class Driver(BaseModel):
    """Driver document; only the fields the coordinator touches are declared."""
    model_config = ConfigDict(extra="allow")

    id: str
    driver_name: str = ""
    status: Optional[str] = None
    leave_balance: LeaveBalance = Field(default_factory=LeaveBalance)


class RequestType(str, enum.Enum):
    LEAVE = "leave"
    MONEY = "money"
    FOOD = "food"
    OTHERS = "others"


class DriverRequest(BaseModel):
    """Request raised by a driver."""
    id: Optional[str] = None
    driver_id: str
    type: RequestType
    start_date: date
    end_date: Optional[date] = None
    reason: str = ""


class DriverRequestIn(BaseModel):
    """Schema for a request submitted on behalf of a driver."""
    type: RequestType
    start_date: date
    end_date: Optional[date] = None
    reason: str = ""


class AccrualRun(BaseModel):
    """Schema for triggering the monthly accrual job."""
    period: str

    @field_validator("period")
    @classmethod
    def check_period(cls, v: str) -> str:
        if not PERIOD_PATTERN.match(v):
            raise ValueError("period must look like YYYY-MM")
        return v
