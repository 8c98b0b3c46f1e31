import enum
from dataclasses import dataclass
from typing import Dict, Optional, Tuple


class BookingStatus(str, enum.Enum):
    """Central booking status enumeration used across the application."""
    PENDING_RENTER_APPROVAL = "pending_renter_approval"
    APPROVED_BY_RENTER = "approved_by_renter"
    REJECTED_BY_RENTER = "rejected_by_renter"
    SENT_BACK_TO_CLIENT = "sent_back_to_client"
    CANCELED_BY_CLIENT = "canceled_by_client"

    @classmethod
    def parse(cls, value: object) -> Optional["BookingStatus"]:
        """Return the member for ``value`` or ``None`` when it is not a known status."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


class BookingAction(str, enum.Enum):
    """Named mutations that move a booking between statuses.

    Values match the RPC procedure names (``owner.bookings.sendBack``).
    """
    APPROVE = "approve"
    REJECT = "reject"
    SEND_BACK = "sendBack"
    CANCEL = "cancel"


class ActorRole(str, enum.Enum):
    OWNER = "owner"
    CLIENT = "client"


@dataclass(frozen=True)
class ActionRule:
    result: BookingStatus
    requires_confirmation: bool = False
    requires_message: bool = False


# current status -> action -> rule, per actor
TRANSITIONS: Dict[ActorRole, Dict[BookingStatus, Dict[BookingAction, ActionRule]]] = {
    ActorRole.OWNER: {
        BookingStatus.PENDING_RENTER_APPROVAL: {
            BookingAction.APPROVE: ActionRule(
                BookingStatus.APPROVED_BY_RENTER, requires_confirmation=True
            ),
            BookingAction.REJECT: ActionRule(
                BookingStatus.REJECTED_BY_RENTER, requires_message=True
            ),
            BookingAction.SEND_BACK: ActionRule(
                BookingStatus.SENT_BACK_TO_CLIENT, requires_message=True
            ),
        },
    },
    ActorRole.CLIENT: {
        BookingStatus.PENDING_RENTER_APPROVAL: {
            BookingAction.CANCEL: ActionRule(BookingStatus.CANCELED_BY_CLIENT),
        },
        BookingStatus.SENT_BACK_TO_CLIENT: {
            BookingAction.CANCEL: ActionRule(BookingStatus.CANCELED_BY_CLIENT),
        },
        BookingStatus.APPROVED_BY_RENTER: {
            BookingAction.CANCEL: ActionRule(BookingStatus.CANCELED_BY_CLIENT),
        },
    },
}


def rule_for(status: object, action: BookingAction, role: ActorRole) -> Optional[ActionRule]:
    parsed = BookingStatus.parse(status)
    if parsed is None:
        return None
    return TRANSITIONS[role].get(parsed, {}).get(action)


def allowed_actions(status: object, role: ActorRole = ActorRole.OWNER) -> Tuple[BookingAction, ...]:
    """Return the actions enabled for a booking in ``status``.

    Unknown status strings yield no actions, so the caller renders no buttons.
    """
    parsed = BookingStatus.parse(status)
    if parsed is None:
        return ()
    return tuple(TRANSITIONS[role].get(parsed, {}).keys())


def next_status(status: object, action: BookingAction, role: ActorRole = ActorRole.OWNER) -> BookingStatus:
    rule = rule_for(status, action, role)
    if rule is None:
        raise ValueError(f"Cannot {action.value} a booking in status {status}")
    return rule.result


def can_transition(current: object, new: object, role: ActorRole) -> bool:
    parsed_new = BookingStatus.parse(new)
    parsed_current = BookingStatus.parse(current)
    if parsed_new is None or parsed_current is None:
        return False
    return any(
        rule.result == parsed_new
        for rule in TRANSITIONS[role].get(parsed_current, {}).values()
    )


@dataclass(frozen=True)
class StatusBadge:
    label: str
    color: str
    bg_class: str
    text_class: str
    border_class: str


_BADGES: Dict[BookingStatus, StatusBadge] = {
    BookingStatus.PENDING_RENTER_APPROVAL: StatusBadge(
        "Pending Approval", "#FFA500", "bg-yellow-100", "text-yellow-800", "border-yellow-200"
    ),
    BookingStatus.APPROVED_BY_RENTER: StatusBadge(
        "Approved", "#22C55E", "bg-green-100", "text-green-800", "border-green-200"
    ),
    BookingStatus.REJECTED_BY_RENTER: StatusBadge(
        "Rejected", "#EF4444", "bg-red-100", "text-red-800", "border-red-200"
    ),
    BookingStatus.SENT_BACK_TO_CLIENT: StatusBadge(
        "Changes Requested", "#F97316", "bg-orange-100", "text-orange-800", "border-orange-200"
    ),
    BookingStatus.CANCELED_BY_CLIENT: StatusBadge(
        "Cancelled", "#9CA3AF", "bg-gray-100", "text-gray-800", "border-gray-200"
    ),
}


def status_badge(status: object) -> StatusBadge:
    parsed = BookingStatus.parse(status)
    if parsed is None:
        return StatusBadge(str(status), "#6B7280", "bg-gray-100", "text-gray-800", "border-gray-200")
    return _BADGES[parsed]
