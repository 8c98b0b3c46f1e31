from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, Field

from .base import CamelModel


class AvailabilityQuery(CamelModel):
    template_id: str
    start_time: datetime
    end_time: datetime
    requested_count: int = Field(1, ge=1)


class AvailabilityResult(CamelModel):
    available: bool
    available_count: Optional[int] = None
    total_cost: Optional[float] = Field(
        None, validation_alias=AliasChoices("totalCost", "totalPrice", "total_cost")
    )
    requested_count: Optional[int] = None
    price_per_hour: Optional[int] = None
    available_instances: List[str] = []
    reason: Optional[str] = None
