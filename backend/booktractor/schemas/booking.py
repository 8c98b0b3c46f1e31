from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List, Union
from datetime import datetime

from ..models.booking_status import BookingAction, BookingStatus
from .base import CamelModel


class BookingMessage(BaseModel):
    # Thread entries keep the snake_case keys of the stored JSON column
    sender_id: str
    content: str
    ts: datetime


class Booking(CamelModel):
    id: str
    template_id: str
    machine_instance_id: Optional[str] = None
    instance_code: Optional[str] = None
    client_account_id: Optional[str] = None
    client_user_id: Optional[str] = None
    client_name: Optional[str] = None
    client_email: Optional[str] = None
    label: Optional[str] = None
    start_time: datetime
    end_time: datetime
    # Unknown strings are kept raw so they render with the fallback badge
    status: Union[BookingStatus, str] = BookingStatus.PENDING_RENTER_APPROVAL
    price_per_hour: Optional[int] = None  # cents
    messages: List[BookingMessage] = []
    machine_name: Optional[str] = None
    machine_code: Optional[str] = None
    total_price: Optional[int] = None
    payment_status: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, v):
        return BookingStatus.parse(v) or v

    @field_validator("messages", mode="before")
    @classmethod
    def none_is_empty_thread(cls, v):
        return [] if v is None else v

    @model_validator(mode="before")
    @classmethod
    def template_name_aliases(cls, data):
        # bookings.* returns templateName/templateCode where owner.* says machineName/Code
        if isinstance(data, dict):
            data = dict(data)
            for source, target, name in (
                ("templateName", "machineName", "machine_name"),
                ("templateCode", "machineCode", "machine_code"),
            ):
                if source in data and target not in data and name not in data:
                    data[target] = data[source]
            # client.bookings.getById nests the template as "machine"
            machine = data.get("machine")
            if isinstance(machine, dict):
                for source, target, name in (
                    ("name", "machineName", "machine_name"),
                    ("code", "machineCode", "machine_code"),
                    ("pricePerHour", "pricePerHour", "price_per_hour"),
                ):
                    if source in machine and target not in data and name not in data:
                        data[target] = machine[source]
        return data


class BookingStatusChange(CamelModel):
    """Input of owner.bookings.approve / reject / sendBack."""
    owner_id: str
    booking_id: str
    new_status: BookingStatus
    message: Optional[str] = None


class BookingCreate(CamelModel):
    template_id: str
    requested_count: int = Field(1, ge=1, le=10)
    start_time: datetime
    end_time: datetime
    label: Optional[str] = None

    @model_validator(mode="after")
    def start_before_end(self) -> "BookingCreate":
        if self.start_time >= self.end_time:
            raise ValueError("End time must be after start time")
        return self


class BookingCreateResult(CamelModel):
    bookings: List[Booking] = []
    assigned_instances: List[str] = []
    total_price: int = 0


# ─── Portal request bodies ──────────────────────────────────────────────────

class ApprovePayload(BaseModel):
    confirmed: bool = False
    message: Optional[str] = None


class ReasonPayload(BaseModel):
    message: str = ""


class MessagePayload(BaseModel):
    content: str = Field(..., min_length=1, max_length=1000)


class CancelPayload(BaseModel):
    reason: Optional[str] = None


# ─── View-models ────────────────────────────────────────────────────────────

class BadgeView(BaseModel):
    label: str
    color: str
    classes: str


class BookingView(BaseModel):
    booking: Booking
    badge: BadgeView
    actions: List[BookingAction]
    duration_hours: float
