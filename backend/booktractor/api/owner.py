import asyncio
import logging
from datetime import date, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from ..models.booking_status import ActorRole, BookingAction, BookingStatus
from ..schemas.booking import ApprovePayload, Booking, MessagePayload, ReasonPayload
from ..schemas.dashboard import OwnerDashboardStats
from ..schemas.machine import (
    InstanceGenerate,
    InstanceUpdate,
    Machine,
    MachineCreate,
    MachineInstance,
    MachineUpdate,
)
from ..schemas.user import Session
from ..services.booking_lifecycle import (
    BookingActionError,
    build_booking_view,
    build_booking_views,
    send_message,
    transition_booking,
)
from ..services.dashboard import build_owner_dashboard
from ..services.query_cache import QueryCache
from ..utils import error_response
from .catalog import build_machine_detail
from .dependencies import get_query_cache, require_session

logger = logging.getLogger(__name__)

router = APIRouter(tags=["owner"])

DASHBOARD_BOOKING_LIMIT = 100


async def _list_bookings(
    cache: QueryCache,
    owner_id: str,
    *,
    booking_status: Optional[BookingStatus] = None,
    machine_id: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> List[Booking]:
    payload = {"ownerId": owner_id, "limit": limit, "offset": offset}
    if booking_status is not None:
        payload["status"] = booking_status.value
    if machine_id:
        payload["machineId"] = machine_id
    rows = await cache.fetch("owner.bookings.listAll", payload)
    return [Booking.model_validate(row) for row in rows or []]


async def _list_machines(cache: QueryCache, owner_id: str, include_archived: bool = False) -> List[Machine]:
    rows = await cache.fetch(
        "owner.machines.list", {"ownerId": owner_id, "includeArchived": include_archived}
    )
    return [Machine.model_validate(row) for row in rows or []]


async def _get_booking(cache: QueryCache, booking_id: str, *, fresh: bool = False) -> Booking:
    data = await cache.fetch("bookings.getById", {"id": booking_id}, fresh=fresh)
    return Booking.model_validate(data)


@router.get("")
async def owner_dashboard(
    session: Session = Depends(require_session),
    cache: QueryCache = Depends(get_query_cache),
):
    """Dashboard built from four independent queries issued together."""
    owner_id = session.user.id
    stats, machines, bookings, pending = await asyncio.gather(
        cache.fetch("owner.analytics.dashboardStats", {"ownerId": owner_id}),
        _list_machines(cache, owner_id),
        _list_bookings(cache, owner_id, limit=DASHBOARD_BOOKING_LIMIT),
        _list_bookings(
            cache,
            owner_id,
            booking_status=BookingStatus.PENDING_RENTER_APPROVAL,
            limit=DASHBOARD_BOOKING_LIMIT,
        ),
    )
    dashboard = build_owner_dashboard(
        OwnerDashboardStats.model_validate(stats) if stats is not None else None,
        machines,
        bookings,
        pending,
    )
    if dashboard is None:
        return {"loading": True}
    return dashboard.model_dump(mode="json")


# ─── Machines ──────────────────────────────────────────────────────────────

@router.get("/machines")
async def owner_machines(
    include_archived: bool = False,
    session: Session = Depends(require_session),
    cache: QueryCache = Depends(get_query_cache),
):
    machines = await _list_machines(cache, session.user.id, include_archived)
    return [build_machine_detail(m).model_dump(mode="json") for m in machines]


@router.post("/machines", status_code=status.HTTP_201_CREATED)
async def owner_create_machine(
    body: MachineCreate,
    session: Session = Depends(require_session),
    cache: QueryCache = Depends(get_query_cache),
):
    payload = body.to_rpc()
    payload["ownerId"] = session.user.id
    created = await cache.mutate("owner.machines.create", payload)
    logger.info("machine %s created by owner %s", body.code, session.user.id)
    return created


@router.get("/machines/{machine_id}")
async def owner_machine_detail(
    machine_id: str,
    session: Session = Depends(require_session),
    cache: QueryCache = Depends(get_query_cache),
):
    machine, bookings = await asyncio.gather(
        cache.fetch("machines.getById", {"id": machine_id}),
        cache.fetch("owner.bookings.listByMachine", {"machineId": machine_id, "ownerId": session.user.id}),
    )
    detail = build_machine_detail(Machine.model_validate(machine))
    views = build_booking_views(
        [Booking.model_validate(row) for row in bookings or []], ActorRole.OWNER
    )
    return {
        **detail.model_dump(mode="json"),
        "bookings": [v.model_dump(mode="json") for v in views],
    }


@router.patch("/machines/{machine_id}")
async def owner_update_machine(
    machine_id: str,
    body: MachineUpdate,
    session: Session = Depends(require_session),
    cache: QueryCache = Depends(get_query_cache),
):
    payload = body.to_rpc()
    if not payload:
        raise error_response("No fields to update", {})
    payload.update({"id": machine_id, "ownerId": session.user.id})
    return await cache.mutate("owner.machines.update", payload)


@router.post("/machines/{machine_id}/archive")
async def owner_archive_machine(
    machine_id: str,
    session: Session = Depends(require_session),
    cache: QueryCache = Depends(get_query_cache),
):
    result = await cache.mutate("owner.machines.archive", {"id": machine_id, "ownerId": session.user.id})
    logger.info("machine %s archived by owner %s", machine_id, session.user.id)
    return {"result": result, "redirect_to": "/owner/machines"}


@router.get("/machines/{machine_id}/instances")
async def owner_machine_instances(
    machine_id: str,
    session: Session = Depends(require_session),
    cache: QueryCache = Depends(get_query_cache),
):
    rows = await cache.fetch("machines.instances.listByTemplate", {"templateId": machine_id})
    return [MachineInstance.model_validate(row).model_dump(mode="json") for row in rows or []]


@router.post("/machines/{machine_id}/instances", status_code=status.HTTP_201_CREATED)
async def owner_generate_instances(
    machine_id: str,
    body: InstanceGenerate,
    session: Session = Depends(require_session),
    cache: QueryCache = Depends(get_query_cache),
):
    payload = body.to_rpc()
    payload["templateId"] = machine_id
    return await cache.mutate("machines.instances.generateForTemplate", payload)


@router.patch("/instances/{instance_id}")
async def owner_update_instance(
    instance_id: str,
    body: InstanceUpdate,
    session: Session = Depends(require_session),
    cache: QueryCache = Depends(get_query_cache),
):
    payload = body.to_rpc()
    if not payload:
        raise error_response("No fields to update", {})
    payload["id"] = instance_id
    return await cache.mutate("machines.instances.updateAvailability", payload)


# ─── Bookings ──────────────────────────────────────────────────────────────

@router.get("/bookings")
async def owner_bookings(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    machine_id: Optional[str] = None,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    session: Session = Depends(require_session),
    cache: QueryCache = Depends(get_query_cache),
):
    bookings = await _list_bookings(
        cache,
        session.user.id,
        booking_status=status_filter,
        machine_id=machine_id,
        limit=limit,
        offset=offset,
    )
    return [v.model_dump(mode="json") for v in build_booking_views(bookings, ActorRole.OWNER)]


@router.get("/bookings/{booking_id}")
async def owner_booking_detail(
    booking_id: str,
    session: Session = Depends(require_session),
    cache: QueryCache = Depends(get_query_cache),
):
    booking = await _get_booking(cache, booking_id)
    return build_booking_view(booking, ActorRole.OWNER).model_dump(mode="json")


async def _transition(
    cache: QueryCache,
    booking_id: str,
    action: BookingAction,
    owner_id: str,
    *,
    confirmed: bool = False,
    message: Optional[str] = None,
):
    # Always act on the current status, never on a cached copy
    booking = await _get_booking(cache, booking_id, fresh=True)
    try:
        await transition_booking(
            cache, booking, action, owner_id, confirmed=confirmed, message=message
        )
    except BookingActionError as exc:
        if exc.field:
            raise error_response(exc.message, {exc.field: "required"})
        raise error_response(exc.message, {"status": "not_allowed"}, status.HTTP_409_CONFLICT)
    booking = await _get_booking(cache, booking_id)
    return build_booking_view(booking, ActorRole.OWNER).model_dump(mode="json")


@router.post("/bookings/{booking_id}/approve")
async def owner_approve_booking(
    booking_id: str,
    body: ApprovePayload,
    session: Session = Depends(require_session),
    cache: QueryCache = Depends(get_query_cache),
):
    return await _transition(
        cache,
        booking_id,
        BookingAction.APPROVE,
        session.user.id,
        confirmed=body.confirmed,
        message=body.message,
    )


@router.post("/bookings/{booking_id}/reject")
async def owner_reject_booking(
    booking_id: str,
    body: ReasonPayload,
    session: Session = Depends(require_session),
    cache: QueryCache = Depends(get_query_cache),
):
    return await _transition(
        cache, booking_id, BookingAction.REJECT, session.user.id, message=body.message
    )


@router.post("/bookings/{booking_id}/send-back")
async def owner_send_back_booking(
    booking_id: str,
    body: ReasonPayload,
    session: Session = Depends(require_session),
    cache: QueryCache = Depends(get_query_cache),
):
    return await _transition(
        cache, booking_id, BookingAction.SEND_BACK, session.user.id, message=body.message
    )


@router.post("/bookings/{booking_id}/messages")
async def owner_booking_message(
    booking_id: str,
    body: MessagePayload,
    session: Session = Depends(require_session),
    cache: QueryCache = Depends(get_query_cache),
):
    try:
        await send_message(
            cache, booking_id, body.content, role=ActorRole.OWNER, user_id=session.user.id
        )
    except BookingActionError as exc:
        raise error_response(exc.message, {exc.field or "content": "invalid"})
    booking = await _get_booking(cache, booking_id)
    return build_booking_view(booking, ActorRole.OWNER).model_dump(mode="json")


# ─── Calendar ──────────────────────────────────────────────────────────────

@router.get("/calendar")
async def owner_calendar(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    session: Session = Depends(require_session),
    cache: QueryCache = Depends(get_query_cache),
):
    """Gantt rows per machine instance for a date range (default: next 14 days)."""
    start = start_date or date.today()
    end = end_date or start + timedelta(days=14)
    if end < start:
        raise error_response("End date must not be before start date", {"end_date": "invalid"})
    return await cache.fetch(
        "owner.analytics.ganttData",
        {"ownerId": session.user.id, "startDate": start.isoformat(), "endDate": end.isoformat()},
    )
