"""Owner dashboard aggregations.

All functions here are pure: they derive display data from booking and
machine lists that have already been fetched.
"""

import calendar
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence

from ..models.booking_status import ActorRole, BookingStatus, status_badge
from ..schemas.booking import Booking
from ..schemas.dashboard import (
    OwnerDashboard,
    OwnerDashboardStats,
    RevenuePoint,
    StatusMixEntry,
    UtilizationEntry,
)
from ..schemas.machine import Machine
from .booking_lifecycle import build_booking_views

RECENT_BOOKINGS = 5


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _shift_month(year: int, month: int, delta: int) -> tuple:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def booking_value(booking: Booking) -> int:
    """Revenue contribution of one booking in cents.

    Duration is clamped to at least one hour; a missing or zero price
    contributes nothing.
    """
    if not booking.price_per_hour:
        return 0
    hours = (booking.end_time - booking.start_time).total_seconds() / 3600
    return int(round(max(1.0, hours) * booking.price_per_hour))


def revenue_series(
    bookings: Iterable[Booking], now: Optional[datetime] = None, months: int = 6
) -> List[RevenuePoint]:
    current = _utc(now or datetime.now(timezone.utc))
    starts = []
    for offset in range(months - 1, -1, -1):
        year, month = _shift_month(current.year, current.month, -offset)
        starts.append(datetime(year, month, 1, tzinfo=timezone.utc))
    year, month = _shift_month(current.year, current.month, 1)
    bounds = starts + [datetime(year, month, 1, tzinfo=timezone.utc)]

    totals = [0] * months
    for booking in bookings:
        start = _utc(booking.start_time)
        for i in range(months):
            if bounds[i] <= start < bounds[i + 1]:
                totals[i] += booking_value(booking)
                break

    return [
        RevenuePoint(label=calendar.month_abbr[s.month], month_start=s, revenue=total)
        for s, total in zip(starts, totals)
    ]


def status_mix(bookings: Iterable[Booking]) -> List[StatusMixEntry]:
    counts: Dict[str, int] = {}
    for booking in bookings:
        key = booking.status.value if isinstance(booking.status, BookingStatus) else str(booking.status)
        counts[key] = counts.get(key, 0) + 1
    if not counts:
        return []
    top = max(counts.values())
    entries = []
    for status, count in counts.items():
        badge = status_badge(status)
        entries.append(
            StatusMixEntry(
                status=status,
                label=badge.label,
                color=badge.color,
                count=count,
                ratio=count * 100 / top,
            )
        )
    return entries


def utilization_ranking(machines: Iterable[Machine], limit: int = 5) -> List[UtilizationEntry]:
    entries = []
    for machine in machines:
        active, total = machine.instance_counts()
        entries.append(
            UtilizationEntry(
                machine_id=machine.id,
                name=machine.name,
                active=active,
                total=total,
                ratio=active / total if total else 0.0,
            )
        )
    # sorted() is stable, so ties keep the server's order
    entries = sorted(entries, key=lambda e: e.ratio, reverse=True)
    return entries[:limit]


def build_owner_dashboard(
    stats: Optional[OwnerDashboardStats],
    machines: Optional[Sequence[Machine]],
    bookings: Optional[Sequence[Booking]],
    pending: Optional[Sequence[Booking]],
    now: Optional[datetime] = None,
) -> Optional[OwnerDashboard]:
    """Compose the dashboard once every query has produced data."""
    if stats is None or machines is None or bookings is None or pending is None:
        return None
    recent = sorted(bookings, key=lambda b: _utc(b.start_time), reverse=True)[:RECENT_BOOKINGS]
    return OwnerDashboard(
        stats=stats,
        revenue=revenue_series(bookings, now=now),
        status_mix=status_mix(bookings),
        utilization=utilization_ranking(machines),
        pending=build_booking_views(pending, ActorRole.OWNER),
        recent=build_booking_views(recent, ActorRole.OWNER),
    )
