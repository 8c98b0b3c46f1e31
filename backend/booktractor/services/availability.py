import logging
from datetime import datetime
from typing import Optional

from ..schemas.availability import AvailabilityQuery, AvailabilityResult
from ..schemas.booking import BookingCreate
from .query_cache import QueryCache

logger = logging.getLogger(__name__)


class BookingBlockedError(Exception):
    """Booking creation was refused before reaching the backend."""

    def __init__(self, message: str, availability: Optional[AvailabilityResult] = None) -> None:
        super().__init__(message)
        self.message = message
        self.availability = availability


async def check_availability(
    cache: QueryCache,
    template_id: str,
    start_time: Optional[datetime],
    end_time: Optional[datetime],
    requested_count: int = 1,
    *,
    fresh: bool = False,
) -> Optional[AvailabilityResult]:
    """Ask the backend whether ``requested_count`` units are free in the range.

    Returns ``None`` without querying when either bound is missing. Overlap
    and capacity rules live entirely on the backend.
    """
    if start_time is None or end_time is None:
        return None
    query = AvailabilityQuery(
        template_id=template_id,
        start_time=start_time,
        end_time=end_time,
        requested_count=requested_count,
    )
    data = await cache.fetch("client.machines.checkAvailability", query.to_rpc(), fresh=fresh)
    return AvailabilityResult.model_validate(data)


def can_book(result: Optional[AvailabilityResult]) -> bool:
    return result is not None and result.available is True


async def create_booking(cache: QueryCache, booking: BookingCreate, client_id: str):
    """Create a booking after a fresh availability check says it fits."""
    result = await check_availability(
        cache,
        booking.template_id,
        booking.start_time,
        booking.end_time,
        booking.requested_count,
        fresh=True,
    )
    if not can_book(result):
        reason = (result.reason if result else None) or "Machine is not available for the selected time"
        logger.info("booking blocked for template %s: %s", booking.template_id, reason)
        raise BookingBlockedError(reason, result)
    payload = booking.to_rpc()
    payload["clientId"] = client_id
    return await cache.mutate("client.bookings.create", payload)
