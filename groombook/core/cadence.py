"""Overdue and due-soon rules for clients with a grooming cadence.

Day counts are whole calendar days between ``now.date()`` and the
appointment date; the time of day of ``now`` never moves a client across a
threshold.
"""

from dataclasses import dataclass
from datetime import datetime

DEFAULT_CEILING_DAYS = 30
DEFAULT_HORIZON_DAYS = 7


@dataclass(frozen=True)
class CadenceStatus:
    overdue: bool
    due_soon: bool

    @property
    def on_track(self) -> bool:
        return not (self.overdue or self.due_soon)


def _has_cadence(view) -> bool:
    return bool(view.frequency_days) and view.frequency_days > 0


def days_since(appointment, now: datetime) -> int:
    return (now.date() - appointment.date).days


def is_overdue(view, now: datetime, ceiling_days: int = DEFAULT_CEILING_DAYS) -> bool:
    if not _has_cadence(view):
        return False
    if view.last_appointment is None:
        return True

    nxt = view.next_appointment
    stale_booking = nxt is not None and nxt.date < now.date()
    elapsed = days_since(view.last_appointment, now)
    return stale_booking or elapsed > ceiling_days or elapsed > view.frequency_days


def is_due_soon(view, now: datetime, horizon_days: int = DEFAULT_HORIZON_DAYS) -> bool:
    if not _has_cadence(view) or view.last_appointment is None:
        return False

    nxt = view.next_appointment
    if nxt is not None and (nxt.date - now.date()).days <= horizon_days:
        return False

    days_until_due = view.frequency_days - days_since(view.last_appointment, now)
    return 0 <= days_until_due <= horizon_days


def classify_cadence(
    view,
    now: datetime,
    ceiling_days: int = DEFAULT_CEILING_DAYS,
    horizon_days: int = DEFAULT_HORIZON_DAYS,
) -> CadenceStatus:
    return CadenceStatus(
        overdue=is_overdue(view, now, ceiling_days=ceiling_days),
        due_soon=is_due_soon(view, now, horizon_days=horizon_days),
    )
