from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from .base import CamelModel
from .booking import BookingView
from .machine import Machine


class OwnerDashboardStats(CamelModel):
    total_machines: int = 0
    total_bookings: int = 0
    active_bookings: int = 0
    pending_bookings: int = 0
    total_revenue: float = 0


class RevenuePoint(BaseModel):
    label: str
    month_start: datetime
    revenue: int  # cents


class StatusMixEntry(BaseModel):
    status: str
    label: str
    color: str
    count: int
    ratio: float


class UtilizationEntry(BaseModel):
    machine_id: str
    name: str
    active: int
    total: int
    ratio: float


class OwnerDashboard(BaseModel):
    stats: OwnerDashboardStats
    revenue: List[RevenuePoint]
    status_mix: List[StatusMixEntry]
    utilization: List[UtilizationEntry]
    pending: List[BookingView]
    recent: List[BookingView]


class ClientOverview(BaseModel):
    featured: List[Machine]
    upcoming: List[BookingView]
    attention: List[BookingView]
    next_booking: Optional[BookingView] = None
