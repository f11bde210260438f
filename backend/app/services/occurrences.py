"""Resolve availability slot definitions into concrete calendar occurrences.

Everything here is pure: callers hand in a slot (an ``AvailabilitySlot`` row or any
object with the same attributes) and a reference time expressed as a naive datetime in
the slot's own timezone. ``local_now`` performs that conversion.

Weekdays follow the 0 = Sunday .. 6 = Saturday convention stored on slots.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .. import models
from .errors import ValidationError

# purpose: occurrence arithmetic shared by the slot manager, conflict detector and scheduler
# status: active
# depends_on: backend.app.models.AvailabilitySlot


@dataclass(frozen=True)
class Occurrence:
    """A concrete date and time produced by resolving a slot."""

    slot_id: UUID | None
    date: date
    start_time: time
    end_time: time
    timezone: str
    is_recurring: bool

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.date, self.start_time)


def weekday_index(day: date) -> int:
    """Return the weekday of ``day`` with Sunday as 0 and Saturday as 6."""

    return (day.weekday() + 1) % 7


def resolve_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValidationError(f"unknown timezone {name!r}") from exc


def local_now(tz_name: str, now: datetime | None = None) -> datetime:
    """Return ``now`` (UTC when naive or omitted) as a naive wall-clock time in ``tz_name``."""

    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(resolve_timezone(tz_name)).replace(tzinfo=None)


def within_validity(slot: models.AvailabilitySlot, day: date) -> bool:
    if slot.valid_from is not None and day < slot.valid_from:
        return False
    if slot.valid_until is not None and day > slot.valid_until:
        return False
    return True


def is_valid_on(slot: models.AvailabilitySlot, day: date) -> bool:
    """Return whether ``slot`` yields an occurrence on ``day``."""

    if slot.is_recurring:
        return slot.day_of_week == weekday_index(day) and within_validity(slot, day)
    return slot.specific_date == day


def next_occurrence(slot: models.AvailabilitySlot, as_of: datetime) -> date | None:
    """Return the next date ``slot`` can be booked on, or ``None``.

    A recurring slot whose window already started today rolls over to the same weekday
    next week. When that date falls outside the slot's validity bounds the slot
    contributes no occurrence. A one-time slot resolves to its own date until its start
    time has passed.
    """

    if slot.is_recurring:
        today = as_of.date()
        delta = (slot.day_of_week - weekday_index(today)) % 7
        if delta == 0 and slot.start_time <= as_of.time():
            delta = 7
        candidate = today + timedelta(days=delta)
        if not within_validity(slot, candidate):
            return None
        return candidate

    if datetime.combine(slot.specific_date, slot.start_time) < as_of:
        return None
    return slot.specific_date


def is_expired(slot: models.AvailabilitySlot, as_of: datetime) -> bool:
    """Return whether ``slot`` can never produce another occurrence after ``as_of``."""

    if slot.is_recurring:
        return slot.valid_until is not None and slot.valid_until < as_of.date()
    return datetime.combine(slot.specific_date, slot.start_time) < as_of


def occurrences_between(
    slot: models.AvailabilitySlot,
    start: date,
    end: date,
    *,
    as_of: datetime | None = None,
) -> list[Occurrence]:
    """Enumerate every occurrence of ``slot`` with a date in ``[start, end]``.

    With ``as_of`` set, occurrences that are no longer bookable are dropped: recurring
    windows that already started and one-time windows whose start is strictly past.
    """

    if end < start:
        return []

    def _make(day: date) -> Occurrence:
        return Occurrence(
            slot_id=slot.id,
            date=day,
            start_time=slot.start_time,
            end_time=slot.end_time,
            timezone=slot.timezone,
            is_recurring=bool(slot.is_recurring),
        )

    if not slot.is_recurring:
        day = slot.specific_date
        if day is None or not (start <= day <= end):
            return []
        occurrence = _make(day)
        if as_of is not None and occurrence.starts_at < as_of:
            return []
        return [occurrence]

    lo = max(start, slot.valid_from) if slot.valid_from else start
    hi = min(end, slot.valid_until) if slot.valid_until else end
    day = lo + timedelta(days=(slot.day_of_week - weekday_index(lo)) % 7)
    found: list[Occurrence] = []
    while day <= hi:
        occurrence = _make(day)
        if as_of is None or occurrence.starts_at > as_of:
            found.append(occurrence)
        day += timedelta(days=7)
    return found
