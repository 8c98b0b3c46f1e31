from .booking_status import (
    ActionRule,
    ActorRole,
    BookingAction,
    BookingStatus,
    StatusBadge,
    allowed_actions,
    can_transition,
    next_status,
    rule_for,
    status_badge,
)

__all__ = [
    "ActionRule",
    "ActorRole",
    "BookingAction",
    "BookingStatus",
    "StatusBadge",
    "allowed_actions",
    "can_transition",
    "next_status",
    "rule_for",
    "status_badge",
]
