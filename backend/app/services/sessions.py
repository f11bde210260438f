"""Booking and lifecycle of mentoring sessions."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timezone
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from .. import audit, models, schemas
from . import assignments, occurrences
from .errors import InvalidState, NotFound, SlotAlreadyBooked, ValidationError

# purpose: book sessions into free slot occurrences and move them to a terminal state
# status: active
# depends_on: backend.app.services.occurrences, backend.app.models.ScheduledSession

logger = logging.getLogger(__name__)


def _window_minutes(slot: models.AvailabilitySlot) -> int:
    start = datetime.combine(datetime.min.date(), slot.start_time)
    end = datetime.combine(datetime.min.date(), slot.end_time)
    return int((end - start).total_seconds() // 60)


def _describe(session: models.ScheduledSession) -> str:
    return f"{session.session_date.isoformat()} {session.session_time.strftime('%H:%M')} ({session.timezone})"


def _occurrence_taken(db: Session, mentor_id: UUID, day: date, at: time) -> bool:
    return (
        db.query(models.ScheduledSession.id)
        .filter(
            models.ScheduledSession.mentor_id == mentor_id,
            models.ScheduledSession.session_date == day,
            models.ScheduledSession.session_time == at,
            models.ScheduledSession.status == models.SessionStatus.SCHEDULED,
        )
        .first()
        is not None
    )


def book_session(
    db: Session,
    owner_id: UUID,
    payload: schemas.SessionBookingCreate,
    *,
    now: datetime | None = None,
) -> models.ScheduledSession:
    """Claim one occurrence of a mentor's slot for an active engagement.

    The earlier read of existing bookings is only a courtesy; the partial unique index on
    scheduled sessions decides which of several concurrent bookers wins.
    """

    assignment = assignments.get_for_startup_owner(db, payload.assignment_id, owner_id)
    if assignment.status != models.AssignmentStatus.ACTIVE:
        raise InvalidState(f"assignment is {assignment.status.value}; sessions need an active engagement")

    slot = db.get(models.AvailabilitySlot, payload.slot_id)
    if slot is None or not slot.is_active or slot.mentor_id != assignment.mentor_id:
        raise NotFound(f"availability slot {payload.slot_id} not found")

    starts_at = datetime.combine(payload.session_date, payload.session_time)
    if starts_at < occurrences.local_now(slot.timezone, now):
        raise ValidationError("cannot book a session in the past")
    if not occurrences.is_valid_on(slot, payload.session_date) or payload.session_time != slot.start_time:
        raise ValidationError("the slot has no occurrence at the requested date and time")

    window = _window_minutes(slot)
    duration = payload.duration_minutes or window
    if duration <= 0 or duration > window:
        raise ValidationError(f"duration must be between 1 and {window} minutes for this slot")

    if _occurrence_taken(db, assignment.mentor_id, payload.session_date, payload.session_time):
        raise SlotAlreadyBooked("this occurrence is already booked")

    session = models.ScheduledSession(
        mentor_id=assignment.mentor_id,
        startup_id=assignment.startup_id,
        assignment_id=assignment.id,
        slot_id=slot.id,
        session_date=payload.session_date,
        session_time=payload.session_time,
        duration_minutes=duration,
        timezone=slot.timezone,
        status=models.SessionStatus.SCHEDULED,
        agenda=payload.agenda,
    )
    try:
        # the savepoint absorbs a lost race; the caller keeps its transaction
        with db.begin_nested():
            db.add(session)
            db.flush()
    except IntegrityError as exc:
        logger.info(
            "booking conflict for mentor %s at %s %s",
            assignment.mentor_id,
            payload.session_date,
            payload.session_time,
        )
        raise SlotAlreadyBooked("this occurrence is already booked") from exc

    audit.log_action(
        db,
        owner_id,
        "session.booked",
        "scheduled_session",
        session.id,
        {"assignment_id": str(assignment.id), "slot_id": str(slot.id), "when": _describe(session)},
    )
    logger.info("session %s booked with mentor %s", session.id, session.mentor_id)
    return session


def get_session(db: Session, session_id: UUID) -> models.ScheduledSession:
    session = db.get(models.ScheduledSession, session_id)
    if session is None:
        raise NotFound(f"session {session_id} not found")
    return session


def _get_for_mentor(db: Session, session_id: UUID, mentor_id: UUID) -> models.ScheduledSession:
    session = get_session(db, session_id)
    if session.mentor_id != mentor_id:
        raise NotFound(f"session {session_id} not found")
    return session


def _get_for_participant(db: Session, session_id: UUID, user_id: UUID) -> models.ScheduledSession:
    session = get_session(db, session_id)
    if session.mentor_id == user_id:
        return session
    if session.startup is not None and session.startup.owner_id == user_id:
        return session
    raise NotFound(f"session {session_id} not found")


def _ensure_scheduled(session: models.ScheduledSession) -> None:
    if session.status != models.SessionStatus.SCHEDULED:
        raise InvalidState(f"session is {session.status.value}; only scheduled sessions change")


def cancel_session(db: Session, session_id: UUID, user_id: UUID) -> models.ScheduledSession:
    """Either participant may cancel. Cancellation frees the occurrence for rebooking."""

    session = _get_for_participant(db, session_id, user_id)
    _ensure_scheduled(session)
    session.status = models.SessionStatus.CANCELLED
    session.cancelled_at = datetime.now(timezone.utc)
    db.flush()
    audit.log_action(db, user_id, "session.cancelled", "scheduled_session", session.id)
    return session


def complete_session(
    db: Session,
    session_id: UUID,
    mentor_id: UUID,
    feedback: str | None = None,
) -> models.ScheduledSession:
    session = _get_for_mentor(db, session_id, mentor_id)
    _ensure_scheduled(session)
    session.status = models.SessionStatus.COMPLETED
    session.completed_at = datetime.now(timezone.utc)
    if feedback is not None:
        session.feedback = feedback
    db.flush()
    audit.log_action(db, mentor_id, "session.completed", "scheduled_session", session.id)
    return session


def set_conferencing_link(
    db: Session,
    session_id: UUID,
    mentor_id: UUID,
    link: str,
) -> models.ScheduledSession:
    session = _get_for_mentor(db, session_id, mentor_id)
    _ensure_scheduled(session)
    session.conferencing_link = link
    db.flush()
    audit.log_action(db, mentor_id, "session.link_set", "scheduled_session", session.id)
    return session


def display_status(session: models.ScheduledSession, *, now: datetime | None = None) -> str:
    """Read-time label; a scheduled session whose start has passed is never rewritten."""

    if session.status != models.SessionStatus.SCHEDULED:
        return session.status.value
    starts_at = datetime.combine(session.session_date, session.session_time)
    if starts_at < occurrences.local_now(session.timezone, now):
        return "past_not_completed"
    return "upcoming"


def serialize_session(
    session: models.ScheduledSession,
    viewer_id: UUID,
    *,
    now: datetime | None = None,
) -> schemas.SessionOut:
    if session.mentor_id == viewer_id:
        counterpart = session.startup.name if session.startup else None
    else:
        counterpart = session.mentor.display_name if session.mentor else None
    return schemas.SessionOut.model_validate(session).model_copy(
        update={
            "display_status": display_status(session, now=now),
            "counterpart_name": counterpart,
        }
    )


def list_sessions(
    db: Session,
    user: models.User,
    status: models.SessionStatus | None = None,
    *,
    now: datetime | None = None,
) -> list[schemas.SessionOut]:
    query = db.query(models.ScheduledSession).options(
        joinedload(models.ScheduledSession.startup),
        joinedload(models.ScheduledSession.mentor),
    )
    if user.role == models.UserRole.MENTOR:
        query = query.filter(models.ScheduledSession.mentor_id == user.id)
    else:
        owned = sa.select(models.Startup.id).where(models.Startup.owner_id == user.id)
        query = query.filter(models.ScheduledSession.startup_id.in_(owned))
    if status is not None:
        query = query.filter(models.ScheduledSession.status == status)
    sessions = query.order_by(
        models.ScheduledSession.session_date.asc(),
        models.ScheduledSession.session_time.asc(),
    ).all()
    return [serialize_session(session, user.id, now=now) for session in sessions]
