import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field, ValidationError

from ..models.booking_status import ActorRole, BookingStatus
from ..schemas.booking import (
    Booking,
    BookingCreate,
    BookingCreateResult,
    CancelPayload,
    MessagePayload,
)
from ..schemas.dashboard import ClientOverview
from ..schemas.machine import CatalogSearch, Machine
from ..schemas.user import Session
from ..services.availability import BookingBlockedError, can_book, check_availability, create_booking
from ..services.booking_lifecycle import (
    BookingActionError,
    build_booking_view,
    build_booking_views,
    cancel_booking,
    send_message,
)
from ..services.query_cache import QueryCache
from ..utils import error_response, validation_field_errors
from .catalog import build_machine_detail, search_machines
from .dependencies import get_query_cache, require_session

logger = logging.getLogger(__name__)

router = APIRouter(tags=["client"])


class BookingRequestBody(BaseModel):
    start_time: datetime
    end_time: datetime
    requested_count: int = Field(1, ge=1, le=10)
    label: Optional[str] = Field(None, max_length=255)


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


async def _my_bookings(
    cache: QueryCache,
    client_id: str,
    booking_status: Optional[BookingStatus] = None,
    include_history: bool = True,
) -> List[Booking]:
    payload = {"clientId": client_id, "includeHistory": include_history}
    if booking_status is not None:
        payload["status"] = booking_status.value
    rows = await cache.fetch("client.bookings.myBookings", payload)
    return [Booking.model_validate(row) for row in rows or []]


async def _get_booking(cache: QueryCache, booking_id: str, client_id: str) -> Booking:
    data = await cache.fetch("client.bookings.getById", {"id": booking_id, "clientId": client_id})
    return Booking.model_validate(data)


@router.get("")
async def client_overview(
    session: Session = Depends(require_session),
    cache: QueryCache = Depends(get_query_cache),
):
    """Home screen for renters: featured machines and bookings needing attention."""
    featured, bookings = await asyncio.gather(
        cache.fetch("client.machines.featured"),
        _my_bookings(cache, session.user.id, include_history=False),
    )
    now = datetime.now(timezone.utc)
    upcoming = sorted(
        (
            b
            for b in bookings
            if _as_utc(b.start_time) >= now
            and b.status in (BookingStatus.PENDING_RENTER_APPROVAL, BookingStatus.APPROVED_BY_RENTER)
        ),
        key=lambda b: _as_utc(b.start_time),
    )
    attention = [b for b in bookings if b.status == BookingStatus.SENT_BACK_TO_CLIENT]
    overview = ClientOverview(
        featured=[Machine.model_validate(row) for row in featured or []],
        upcoming=build_booking_views(upcoming, ActorRole.CLIENT),
        attention=build_booking_views(attention, ActorRole.CLIENT),
        next_booking=build_booking_view(upcoming[0], ActorRole.CLIENT) if upcoming else None,
    )
    return overview.model_dump(mode="json")


@router.get("/machines")
async def client_machines(
    q: Optional[str] = Query(None, max_length=200),
    min_price: Optional[int] = Query(None, ge=0),
    max_price: Optional[int] = Query(None, ge=0),
    sort_by: Literal["price", "name", "availability"] = "name",
    sort_order: Literal["asc", "desc"] = "asc",
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    session: Session = Depends(require_session),
    cache: QueryCache = Depends(get_query_cache),
):
    search = CatalogSearch(
        query=q or None,
        min_price=min_price,
        max_price=max_price,
        sort_by=sort_by,
        sort_order=sort_order,
        limit=limit,
        offset=offset,
    )
    machines = await search_machines(cache, search)
    return [build_machine_detail(m).model_dump(mode="json") for m in machines]


@router.get("/machines/{machine_id}")
async def client_machine_detail(
    machine_id: str,
    session: Session = Depends(require_session),
    cache: QueryCache = Depends(get_query_cache),
):
    data = await cache.fetch("client.machines.getDetails", {"id": machine_id})
    return build_machine_detail(Machine.model_validate(data)).model_dump(mode="json")


@router.get("/machines/{machine_id}/availability")
async def client_machine_availability(
    machine_id: str,
    start_time: Optional[datetime] = None,
    end_time: Optional[datetime] = None,
    requested_count: int = Query(1, ge=1, le=10),
    session: Session = Depends(require_session),
    cache: QueryCache = Depends(get_query_cache),
):
    """Availability for a selected range. No range selected means no query."""
    result = await check_availability(cache, machine_id, start_time, end_time, requested_count)
    return {
        "queried": result is not None,
        "availability": result.model_dump(mode="json") if result else None,
        "can_book": can_book(result),
    }


@router.post("/machines/{machine_id}/book", status_code=status.HTTP_201_CREATED)
async def client_book_machine(
    machine_id: str,
    body: BookingRequestBody,
    session: Session = Depends(require_session),
    cache: QueryCache = Depends(get_query_cache),
):
    try:
        booking = BookingCreate(template_id=machine_id, **body.model_dump())
    except ValidationError as exc:
        raise error_response(
            "Invalid booking request",
            validation_field_errors(exc, default="end_time"),
        )
    try:
        result = await create_booking(cache, booking, session.user.id)
    except BookingBlockedError as exc:
        raise error_response(exc.message, {"availability": "unavailable"}, status.HTTP_409_CONFLICT)
    created = BookingCreateResult.model_validate(result or {})
    logger.info(
        "client %s booked template %s: %s", session.user.id, machine_id, created.assigned_instances
    )
    return {"result": created.model_dump(mode="json"), "redirect_to": "/client/bookings"}


@router.get("/bookings")
async def client_bookings(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    include_history: bool = True,
    session: Session = Depends(require_session),
    cache: QueryCache = Depends(get_query_cache),
):
    bookings = await _my_bookings(cache, session.user.id, status_filter, include_history)
    return [v.model_dump(mode="json") for v in build_booking_views(bookings, ActorRole.CLIENT)]


@router.get("/bookings/{booking_id}")
async def client_booking_detail(
    booking_id: str,
    session: Session = Depends(require_session),
    cache: QueryCache = Depends(get_query_cache),
):
    booking = await _get_booking(cache, booking_id, session.user.id)
    return build_booking_view(booking, ActorRole.CLIENT).model_dump(mode="json")


@router.post("/bookings/{booking_id}/messages")
async def client_booking_message(
    booking_id: str,
    body: MessagePayload,
    session: Session = Depends(require_session),
    cache: QueryCache = Depends(get_query_cache),
):
    try:
        await send_message(
            cache, booking_id, body.content, role=ActorRole.CLIENT, user_id=session.user.id
        )
    except BookingActionError as exc:
        raise error_response(exc.message, {exc.field or "content": "invalid"})
    booking = await _get_booking(cache, booking_id, session.user.id)
    return build_booking_view(booking, ActorRole.CLIENT).model_dump(mode="json")


@router.post("/bookings/{booking_id}/cancel")
async def client_booking_cancel(
    booking_id: str,
    body: CancelPayload,
    session: Session = Depends(require_session),
    cache: QueryCache = Depends(get_query_cache),
):
    booking = await _get_booking(cache, booking_id, session.user.id)
    try:
        await cancel_booking(cache, booking, session.user.id, body.reason)
    except BookingActionError as exc:
        raise error_response(exc.message, {"status": "not_allowed"}, status.HTTP_409_CONFLICT)
    booking = await _get_booking(cache, booking_id, session.user.id)
    return build_booking_view(booking, ActorRole.CLIENT).model_dump(mode="json")
