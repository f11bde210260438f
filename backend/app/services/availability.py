"""Mentor availability slots and the booked/free projection over their occurrences."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from uuid import UUID

from sqlalchemy.orm import Session, joinedload

from .. import audit, models, schemas
from . import occurrences
from .errors import NotFound, ValidationError

# purpose: slot CRUD with structural validation plus the read-only booking conflict detector
# status: active
# depends_on: backend.app.services.occurrences, backend.app.models.ScheduledSession

logger = logging.getLogger(__name__)

_MAX_RANGE_DAYS = 366
_REQUIRED_FIELDS = ("is_recurring", "start_time", "end_time", "timezone")
# fields whose change re-triggers the "not in the past" checks on update
_TEMPORAL_FIELDS = {"is_recurring", "day_of_week", "specific_date", "start_time", "valid_from", "timezone"}


def _validate_slot(
    slot: models.AvailabilitySlot,
    *,
    now: datetime | None = None,
    check_temporal: bool = True,
) -> None:
    if slot.start_time >= slot.end_time:
        raise ValidationError("start_time must be before end_time")
    if slot.is_recurring:
        if slot.day_of_week is None or slot.specific_date is not None:
            raise ValidationError("recurring slots take day_of_week and no specific_date")
        if not 0 <= slot.day_of_week <= 6:
            raise ValidationError("day_of_week must be between 0 (Sunday) and 6 (Saturday)")
    elif slot.specific_date is None or slot.day_of_week is not None:
        raise ValidationError("one-time slots take specific_date and no day_of_week")
    if slot.valid_from and slot.valid_until and slot.valid_from > slot.valid_until:
        raise ValidationError("valid_from must not be after valid_until")

    local = occurrences.local_now(slot.timezone, now)
    if not check_temporal:
        return
    if slot.is_recurring:
        if slot.valid_from is not None and slot.valid_from < local.date():
            raise ValidationError("valid_from is in the past")
    elif datetime.combine(slot.specific_date, slot.start_time) < local:
        raise ValidationError("slot starts in the past")


def _get_owned_slot(db: Session, slot_id: UUID, mentor_id: UUID) -> models.AvailabilitySlot:
    slot = db.get(models.AvailabilitySlot, slot_id)
    if slot is None or slot.mentor_id != mentor_id:
        raise NotFound(f"availability slot {slot_id} not found")
    return slot


def _require_mentor(db: Session, mentor_id: UUID) -> models.User:
    mentor = db.get(models.User, mentor_id)
    if mentor is None or mentor.role != models.UserRole.MENTOR:
        raise NotFound(f"mentor {mentor_id} not found")
    return mentor


def _slot_details(slot: models.AvailabilitySlot) -> dict:
    return {
        "is_recurring": bool(slot.is_recurring),
        "day_of_week": slot.day_of_week,
        "specific_date": slot.specific_date.isoformat() if slot.specific_date else None,
        "start_time": slot.start_time.isoformat(),
        "end_time": slot.end_time.isoformat(),
        "timezone": slot.timezone,
    }


def create_slot(
    db: Session,
    mentor_id: UUID,
    payload: schemas.AvailabilitySlotCreate,
    *,
    now: datetime | None = None,
) -> models.AvailabilitySlot:
    slot = models.AvailabilitySlot(mentor_id=mentor_id, **payload.model_dump())
    _validate_slot(slot, now=now)
    db.add(slot)
    db.flush()
    audit.log_action(
        db, mentor_id, "availability.slot_created", "availability_slot", slot.id, _slot_details(slot)
    )
    logger.info("mentor %s published availability slot %s", mentor_id, slot.id)
    return slot


def update_slot(
    db: Session,
    slot_id: UUID,
    mentor_id: UUID,
    payload: schemas.AvailabilitySlotUpdate,
    *,
    now: datetime | None = None,
) -> models.AvailabilitySlot:
    """Apply a partial edit and re-validate the merged slot.

    Switching ``is_recurring`` clears the field that belongs to the other kind unless
    the edit sets it explicitly.
    """

    slot = _get_owned_slot(db, slot_id, mentor_id)
    changes = payload.model_dump(exclude_unset=True)
    for field in _REQUIRED_FIELDS:
        if field in changes and changes[field] is None:
            raise ValidationError(f"{field} cannot be cleared")
    if changes.get("is_recurring") is True and "specific_date" not in changes:
        changes["specific_date"] = None
    if changes.get("is_recurring") is False and "day_of_week" not in changes:
        changes["day_of_week"] = None

    for field, value in changes.items():
        setattr(slot, field, value)
    _validate_slot(slot, now=now, check_temporal=bool(_TEMPORAL_FIELDS & changes.keys()))
    db.flush()
    audit.log_action(
        db, mentor_id, "availability.slot_updated", "availability_slot", slot.id, _slot_details(slot)
    )
    return slot


def set_slot_active(
    db: Session,
    slot_id: UUID,
    mentor_id: UUID,
    active: bool,
) -> models.AvailabilitySlot:
    slot = _get_owned_slot(db, slot_id, mentor_id)
    if slot.is_active != active:
        slot.is_active = active
        db.flush()
        action = "availability.slot_activated" if active else "availability.slot_deactivated"
        audit.log_action(db, mentor_id, action, "availability_slot", slot.id)
    return slot


def activate_slot(db: Session, slot_id: UUID, mentor_id: UUID) -> models.AvailabilitySlot:
    return set_slot_active(db, slot_id, mentor_id, True)


def deactivate_slot(db: Session, slot_id: UUID, mentor_id: UUID) -> models.AvailabilitySlot:
    return set_slot_active(db, slot_id, mentor_id, False)


def delete_slot(db: Session, slot_id: UUID, mentor_id: UUID) -> None:
    """Hard delete. Sessions booked from the slot keep their own copy of date and time."""

    slot = _get_owned_slot(db, slot_id, mentor_id)
    details = _slot_details(slot)
    db.delete(slot)
    db.flush()
    audit.log_action(db, mentor_id, "availability.slot_deleted", "availability_slot", slot_id, details)
    logger.info("mentor %s deleted availability slot %s", mentor_id, slot_id)


def _booked_lookup(
    db: Session,
    mentor_id: UUID,
    start: date,
    end: date,
) -> dict[tuple[date, object], str]:
    """Map each scheduled (date, time) of the mentor to the booking startup's name."""

    sessions = (
        db.query(models.ScheduledSession)
        .options(joinedload(models.ScheduledSession.startup))
        .filter(
            models.ScheduledSession.mentor_id == mentor_id,
            models.ScheduledSession.status == models.SessionStatus.SCHEDULED,
            models.ScheduledSession.session_date >= start,
            models.ScheduledSession.session_date <= end,
        )
        .all()
    )
    return {
        (session.session_date, session.session_time): session.startup.name
        if session.startup is not None
        else "Booked"
        for session in sessions
    }


def list_slots(
    db: Session,
    mentor_id: UUID,
    *,
    now: datetime | None = None,
) -> list[schemas.AvailabilitySlotOut]:
    """Owner view of every slot that can still produce an occurrence."""

    slots = (
        db.query(models.AvailabilitySlot)
        .filter(models.AvailabilitySlot.mentor_id == mentor_id)
        .order_by(models.AvailabilitySlot.created_at.asc())
        .all()
    )
    live: list[tuple[models.AvailabilitySlot, date | None]] = []
    for slot in slots:
        as_of = occurrences.local_now(slot.timezone, now)
        if occurrences.is_expired(slot, as_of):
            continue
        live.append((slot, occurrences.next_occurrence(slot, as_of)))

    upcoming = [nxt for _, nxt in live if nxt is not None]
    booked = _booked_lookup(db, mentor_id, min(upcoming), max(upcoming)) if upcoming else {}

    result: list[schemas.AvailabilitySlotOut] = []
    for slot, nxt in live:
        booked_by = booked.get((nxt, slot.start_time)) if nxt else None
        result.append(
            schemas.AvailabilitySlotOut.model_validate(slot).model_copy(
                update={
                    "next_occurrence": nxt,
                    "is_booked": booked_by is not None,
                    "booked_by": booked_by,
                }
            )
        )
    return result


def resolve_availability(
    db: Session,
    mentor_id: UUID,
    start: date,
    end: date,
    *,
    now: datetime | None = None,
) -> list[schemas.SlotOccurrenceOut]:
    """Project the mentor's active slots onto ``[start, end]`` and label booked occurrences.

    Read-only. Occurrences that already started are dropped, evaluated against the
    wall clock of each slot's timezone.
    """

    if end < start:
        raise ValidationError("range end must not precede its start")
    if (end - start) > timedelta(days=_MAX_RANGE_DAYS):
        raise ValidationError(f"range may span at most {_MAX_RANGE_DAYS} days")
    _require_mentor(db, mentor_id)

    slots = (
        db.query(models.AvailabilitySlot)
        .filter(
            models.AvailabilitySlot.mentor_id == mentor_id,
            models.AvailabilitySlot.is_active.is_(True),
        )
        .all()
    )
    booked = _booked_lookup(db, mentor_id, start, end)

    found: list[schemas.SlotOccurrenceOut] = []
    for slot in slots:
        as_of = occurrences.local_now(slot.timezone, now)
        for occ in occurrences.occurrences_between(slot, start, end, as_of=as_of):
            booked_by = booked.get((occ.date, occ.start_time))
            found.append(
                schemas.SlotOccurrenceOut(
                    slot_id=occ.slot_id,
                    date=occ.date,
                    start_time=occ.start_time,
                    end_time=occ.end_time,
                    timezone=occ.timezone,
                    is_recurring=occ.is_recurring,
                    is_booked=booked_by is not None,
                    booked_by=booked_by,
                )
            )
    found.sort(key=lambda item: (item.date, item.start_time))
    return found


def expire_stale_slots(db: Session, *, now: datetime | None = None) -> int:
    """Deactivate recurring slots whose ``valid_until`` has passed; returns how many."""

    candidates = (
        db.query(models.AvailabilitySlot)
        .filter(
            models.AvailabilitySlot.is_recurring.is_(True),
            models.AvailabilitySlot.is_active.is_(True),
            models.AvailabilitySlot.valid_until.isnot(None),
        )
        .all()
    )
    expired = 0
    for slot in candidates:
        if occurrences.is_expired(slot, occurrences.local_now(slot.timezone, now)):
            slot.is_active = False
            audit.log_action(db, None, "availability.slot_expired", "availability_slot", slot.id)
            expired += 1
    db.flush()
    if expired:
        logger.info("deactivated %d expired availability slots", expired)
    return expired
