"""
Pydantic schemas for Trip documents and trip requests.
"""
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Dict, List, Optional
from datetime import date, datetime
from decimal import Decimal
import enum

from tripops.core.utils import utcnow
from tripops.schemas.common import none_if_sentinel
from tripops.schemas.order import OrderStatus
from tripops.schemas.wallet import WalletTransaction


class TripType(str, enum.Enum):
    """Trip lifecycle stage. Ready-to-ship trips are stored as "unassigned"."""
    READY_TO_SHIP = "unassigned"
    ACTIVE = "active"
    PAST = "past"


class TripSubStatus(str, enum.Enum):
    """Leg of an active trip."""
    DELIVERING = "Delivering"
    RETURNING = "Returning"


class OdometerReading(BaseModel):
    """Odometer readings captured at the start and end of a trip."""
    start_reading: Optional[float] = None
    end_reading: Optional[float] = None
    start_photo_url: Optional[str] = None
    end_photo_url: Optional[str] = None

    @field_validator("start_photo_url", "end_photo_url", mode="before")
    @classmethod
    def drop_sentinels(cls, v):
        return none_if_sentinel(v)


class AdditionalBalance(BaseModel):
    """Ad-hoc cash allocation on a trip voucher."""
    amount: Decimal = Field(ge=0)
    reason: str = ""
    timestamp: datetime = Field(default_factory=utcnow)


class TripVoucher(BaseModel):
    """Advance and additional cash drawn against a manager's wallet."""
    advance_balance: Decimal = Field(default=Decimal("0"), ge=0)
    additional_balance: List[AdditionalBalance] = []
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Trip(BaseModel):
    """Trip document."""
    id: str
    trip_code: str
    starting_point: str = ""
    destination: str = ""
    driver: Optional[str] = None
    truck: Optional[str] = None
    number_of_stops: int = Field(default=0, ge=0)
    start_date: Optional[date] = None
    type: TripType = TripType.READY_TO_SHIP
    current_status: Optional[TripSubStatus] = None
    odometer: Optional[OdometerReading] = None
    voucher: Optional[TripVoucher] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("driver", "truck", "current_status", "odometer", "voucher", mode="before")
    @classmethod
    def drop_sentinels(cls, v):
        return none_if_sentinel(v)

    @model_validator(mode="after")
    def check_sub_status(self):
        if self.type != TripType.ACTIVE and self.current_status is not None:
            raise ValueError("current_status only applies to active trips")
        return self

    @property
    def has_crew(self) -> bool:
        """Driver and truck are both assigned."""
        return bool(self.driver) and bool(self.truck)


class TripCreate(BaseModel):
    """Schema for scheduling a trip."""
    id: Optional[str] = None
    trip_code: str
    starting_point: str = ""
    destination: str = ""
    driver: Optional[str] = None
    truck: Optional[str] = None
    start_date: Optional[date] = None
    type: TripType = TripType.READY_TO_SHIP
    current_status: Optional[TripSubStatus] = None
    order_ids: List[str] = []

    @field_validator("driver", "truck", "current_status", mode="before")
    @classmethod
    def drop_sentinels(cls, v):
        return none_if_sentinel(v)


class TripTypeChange(BaseModel):
    """Schema for a trip type transition."""
    type: TripType
    current_status: Optional[str] = None


class SubStatusUpdate(BaseModel):
    """Schema for switching an active trip between legs."""
    current_status: str


class AdditionalBalanceIn(BaseModel):
    """Voucher item as sent by a client; omit timestamp to keep or stamp it."""
    amount: Decimal = Field(ge=0)
    reason: str = ""
    timestamp: Optional[datetime] = None


class VoucherUpdate(BaseModel):
    """Schema for a voucher edit charged to a manager's wallet."""
    wallet_id: str
    advance_balance: Decimal = Field(default=Decimal("0"), ge=0)
    additional_balance: List[AdditionalBalanceIn] = []


class CascadeResponse(BaseModel):
    """Schema for an order cascade outcome."""
    trip_id: str
    trip_type: TripType
    updated: Dict[str, OrderStatus] = {}
    unchanged: List[str] = []


class TypeChangeResponse(BaseModel):
    """Schema for a type change outcome; warning is set when the cascade failed."""
    trip: Trip
    changed: bool
    cascade: Optional[CascadeResponse] = None
    warning: Optional[str] = None


class VoucherResponse(BaseModel):
    """Schema for a voucher edit outcome."""
    trip_id: str
    wallet_id: str
    voucher: TripVoucher
    charged: Decimal
    available_balance: Decimal
    transactions: List[WalletTransaction] = []
