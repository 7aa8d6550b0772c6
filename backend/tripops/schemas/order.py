"""
Pydantic schemas for Order documents.
"""
from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from typing import List, Optional
from datetime import datetime
import enum

from tripops.schemas.common import none_if_sentinel


class OrderStatus(str, enum.Enum):
    """Order status enumeration."""
    READY_TO_TRANSPORT = "Ready To Transport"
    ASSIGNED = "Assigned"
    IN_TRANSIT = "In Transit"
    TRANSFERRED = "Transferred"
    DELIVERED = "Delivered"


class Order(BaseModel):
    """Order carried by a trip. Descriptive fields not listed here are kept as extras."""
    model_config = ConfigDict(extra="allow")

    id: str
    docket_id: Optional[str] = None
    client_details: str = ""
    receiver_details: str = ""
    shipper_details: str = ""
    customer_name: str = ""
    pickup_location: str = ""
    delivery_location: str = ""
    status: OrderStatus = OrderStatus.READY_TO_TRANSPORT
    to_be_transferred: bool = False
    current_location: str = ""
    previous_center_location: Optional[str] = None
    transfer_center_location: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("docket_id", "previous_center_location", "transfer_center_location", mode="before")
    @classmethod
    def drop_sentinels(cls, v):
        return none_if_sentinel(v)

    @model_validator(mode="after")
    def check_transfer_consistency(self):
        if self.status == OrderStatus.TRANSFERRED:
            if not self.to_be_transferred:
                raise ValueError("Transferred orders must be flagged to_be_transferred")
            if not self.previous_center_location or not self.transfer_center_location:
                raise ValueError("Transferred orders need previous and transfer center locations")
        if self.status == OrderStatus.DELIVERED and self.to_be_transferred:
            raise ValueError("Delivered orders cannot be flagged to_be_transferred")
        return self


class OrderAttach(BaseModel):
    """Schema for replacing the set of orders carried by a trip."""
    order_ids: List[str]


class TripOrderLink(BaseModel):
    """Join record mapping one trip to the orders it carries."""
    id: str
    trip_id: str
    order_ids: List[str] = []
    updated_at: Optional[datetime] = None
