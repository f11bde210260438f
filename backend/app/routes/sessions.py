"""Mentoring session API routes."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.orm import Session

from .. import models, notify, pubsub, schemas
from ..auth import get_current_user
from ..database import get_db
from ..rbac import check_role
from ..services import sessions
from ..services.errors import MentorshipError
from ._errors import http_error

# purpose: booking plus the scheduled -> completed | cancelled transitions
# status: active
# depends_on: backend.app.services.sessions, backend.app.pubsub

router = APIRouter(prefix="/api/sessions", tags=["sessions", "scheduling"])


async def _publish_session_event(session: models.ScheduledSession, event_type: str) -> None:
    await pubsub.publish_availability_event(
        session.mentor_id,
        {
            "type": event_type,
            "mentor_id": session.mentor_id,
            "session_id": session.id,
            "date": session.session_date,
            "time": session.session_time,
        },
    )


@router.post("", status_code=status.HTTP_201_CREATED, response_model=schemas.SessionOut)
async def book_session(
    payload: schemas.SessionBookingCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    check_role(user, models.UserRole.STARTUP)
    try:
        session = sessions.book_session(db, user.id, payload)
        db.commit()
        db.refresh(session)
    except MentorshipError as exc:
        db.rollback()
        raise http_error(exc) from exc
    await _publish_session_event(session, "session_booked")
    background_tasks.add_task(
        notify.session_booked,
        session.mentor.email,
        session.startup.name,
        f"{session.session_date.isoformat()} {session.session_time.strftime('%H:%M')}",
    )
    return sessions.serialize_session(session, user.id)


@router.get("", response_model=list[schemas.SessionOut])
def list_sessions(
    status_filter: models.SessionStatus | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return sessions.list_sessions(db, user, status_filter)


@router.post("/{session_id}/cancel", response_model=schemas.SessionOut)
async def cancel_session(
    session_id: UUID,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    try:
        session = sessions.cancel_session(db, session_id, user.id)
        db.commit()
        db.refresh(session)
    except MentorshipError as exc:
        db.rollback()
        raise http_error(exc) from exc
    await _publish_session_event(session, "session_cancelled")
    when = f"{session.session_date.isoformat()} {session.session_time.strftime('%H:%M')}"
    other = session.startup.owner if session.mentor_id == user.id else session.mentor
    background_tasks.add_task(notify.session_cancelled, other.email, when)
    return sessions.serialize_session(session, user.id)


@router.post("/{session_id}/complete", response_model=schemas.SessionOut)
def complete_session(
    session_id: UUID,
    payload: schemas.SessionCompletion,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    check_role(user, models.UserRole.MENTOR)
    try:
        session = sessions.complete_session(db, session_id, user.id, payload.feedback)
        db.commit()
        db.refresh(session)
    except MentorshipError as exc:
        db.rollback()
        raise http_error(exc) from exc
    return sessions.serialize_session(session, user.id)


@router.put("/{session_id}/link", response_model=schemas.SessionOut)
def set_conferencing_link(
    session_id: UUID,
    payload: schemas.ConferencingLinkUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    check_role(user, models.UserRole.MENTOR)
    try:
        session = sessions.set_conferencing_link(db, session_id, user.id, payload.conferencing_link)
        db.commit()
        db.refresh(session)
    except MentorshipError as exc:
        db.rollback()
        raise http_error(exc) from exc
    return sessions.serialize_session(session, user.id)
