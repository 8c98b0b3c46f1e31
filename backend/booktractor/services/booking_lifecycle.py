"""Owner and client actions on a booking.

Every action is checked against the transition table before any RPC call.
Nothing is applied optimistically: the caller sees the new status only by
re-reading after the mutation succeeds and the cache has been invalidated.
"""

import logging
from typing import Any, Iterable, List, Optional

from ..models.booking_status import (
    ActorRole,
    BookingAction,
    BookingStatus,
    allowed_actions,
    rule_for,
    status_badge,
)
from ..schemas.booking import BadgeView, Booking, BookingStatusChange, BookingView
from .query_cache import QueryCache

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 1000


class BookingActionError(Exception):
    """An action is not allowed in the booking's status or lacks its input."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


def duration_hours(booking: Booking) -> float:
    return (booking.end_time - booking.start_time).total_seconds() / 3600


def build_booking_view(booking: Booking, role: ActorRole = ActorRole.OWNER) -> BookingView:
    badge = status_badge(booking.status)
    return BookingView(
        booking=booking,
        badge=BadgeView(
            label=badge.label,
            color=badge.color,
            classes=f"{badge.bg_class} {badge.text_class} {badge.border_class}",
        ),
        actions=list(allowed_actions(booking.status, role)),
        duration_hours=round(duration_hours(booking), 2),
    )


def build_booking_views(bookings: Iterable[Booking], role: ActorRole = ActorRole.OWNER) -> List[BookingView]:
    return [build_booking_view(b, role) for b in bookings]


def _status_value(status: Any) -> str:
    return status.value if isinstance(status, BookingStatus) else str(status)


async def transition_booking(
    cache: QueryCache,
    booking: Booking,
    action: BookingAction,
    owner_id: str,
    *,
    confirmed: bool = False,
    message: Optional[str] = None,
) -> Any:
    """Run an owner action (approve, reject or sendBack) on ``booking``."""
    rule = rule_for(booking.status, action, ActorRole.OWNER)
    if rule is None:
        raise BookingActionError(
            f"Cannot {action.value} a booking that is {_status_value(booking.status)}"
        )
    if rule.requires_confirmation and not confirmed:
        raise BookingActionError("Please confirm before approving this booking", "confirmed")
    text = (message or "").strip()
    if rule.requires_message and not text:
        field_name = "reason" if action == BookingAction.REJECT else "explanation"
        raise BookingActionError(f"Please provide a {field_name}", "message")

    payload = BookingStatusChange(
        owner_id=owner_id,
        booking_id=booking.id,
        new_status=rule.result,
        message=text or None,
    )
    logger.info(
        "booking id=%s status change requested from %s to %s",
        booking.id,
        _status_value(booking.status),
        rule.result.value,
    )
    return await cache.mutate(f"owner.bookings.{action.value}", payload.to_rpc())


async def cancel_booking(
    cache: QueryCache,
    booking: Booking,
    client_id: str,
    reason: Optional[str] = None,
) -> Any:
    rule = rule_for(booking.status, BookingAction.CANCEL, ActorRole.CLIENT)
    if rule is None:
        raise BookingActionError(
            f"Cannot cancel a booking that is {_status_value(booking.status)}"
        )
    payload = {"bookingId": booking.id, "clientId": client_id}
    if reason and reason.strip():
        payload["reason"] = reason.strip()
    logger.info(
        "booking id=%s status change requested from %s to %s",
        booking.id,
        _status_value(booking.status),
        rule.result.value,
    )
    return await cache.mutate("client.bookings.cancel", payload)


async def send_message(
    cache: QueryCache,
    booking_id: str,
    content: str,
    *,
    role: ActorRole,
    user_id: str,
) -> Any:
    """Append a message to the booking thread. Allowed in every status."""
    text = (content or "").strip()
    if not text:
        raise BookingActionError("Message cannot be empty", "content")
    if len(text) > MAX_MESSAGE_LENGTH:
        raise BookingActionError(
            f"Message must be at most {MAX_MESSAGE_LENGTH} characters", "content"
        )
    if role == ActorRole.OWNER:
        return await cache.mutate(
            "owner.bookings.sendMessage",
            {"bookingId": booking_id, "content": text, "ownerId": user_id},
        )
    return await cache.mutate(
        "client.bookings.sendMessage",
        {"bookingId": booking_id, "content": text, "clientId": user_id},
    )
