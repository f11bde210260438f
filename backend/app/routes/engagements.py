"""Engagement request API routes."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.orm import Session

from .. import models, notify, schemas
from ..auth import get_current_user
from ..database import get_db
from ..rbac import check_role
from ..services import assignments, engagements
from ..services.errors import MentorshipError
from ._errors import http_error

# purpose: expose the request lifecycle to startups (create, cancel, delete) and mentors (accept, reject)
# status: active
# depends_on: backend.app.services.engagements

router = APIRouter(prefix="/api/engagements", tags=["engagements"])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=schemas.EngagementRequestOut)
def create_request(
    payload: schemas.EngagementRequestCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    check_role(user, models.UserRole.STARTUP)
    try:
        request = engagements.create_request(db, user.id, payload)
        db.commit()
        db.refresh(request)
    except MentorshipError as exc:
        db.rollback()
        raise http_error(exc) from exc
    background_tasks.add_task(notify.request_created, request.mentor.email, request.startup.name)
    return request


@router.get("", response_model=list[schemas.EngagementRequestOut])
def list_requests(
    status_filter: models.RequestStatus | None = Query(default=None, alias="status"),
    startup_id: UUID | None = None,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    try:
        if user.role == models.UserRole.MENTOR:
            return engagements.list_for_mentor(db, user.id, status_filter)
        return engagements.list_for_startup(db, user.id, startup_id, status_filter)
    except MentorshipError as exc:
        raise http_error(exc) from exc


@router.post("/{request_id}/accept", response_model=schemas.AssignmentOut)
def accept_request(
    request_id: UUID,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    check_role(user, models.UserRole.MENTOR)
    try:
        assignment = engagements.accept_request(db, request_id, user.id)
        db.commit()
        db.refresh(assignment)
    except MentorshipError as exc:
        db.rollback()
        raise http_error(exc) from exc
    startup = assignment.linked_startup
    background_tasks.add_task(notify.request_answered, startup.owner.email, user.display_name, True)
    if assignments.is_ready(assignment):
        background_tasks.add_task(notify.assignment_ready, user.email, startup.name)
    return assignments.serialize_assignment(assignment)


@router.post("/{request_id}/reject", response_model=schemas.EngagementRequestOut)
def reject_request(
    request_id: UUID,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    check_role(user, models.UserRole.MENTOR)
    try:
        request = engagements.reject_request(db, request_id, user.id)
        db.commit()
        db.refresh(request)
    except MentorshipError as exc:
        db.rollback()
        raise http_error(exc) from exc
    background_tasks.add_task(
        notify.request_answered, request.startup.owner.email, user.display_name, False
    )
    return request


@router.post("/{request_id}/cancel", response_model=schemas.EngagementRequestOut)
def cancel_request(
    request_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    try:
        request = engagements.cancel_request(db, request_id, user.id)
        db.commit()
        db.refresh(request)
    except MentorshipError as exc:
        db.rollback()
        raise http_error(exc) from exc
    return request


@router.delete("/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_request(
    request_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    check_role(user, models.UserRole.STARTUP)
    try:
        engagements.delete_request(db, request_id, user.id)
        db.commit()
    except MentorshipError as exc:
        db.rollback()
        raise http_error(exc) from exc
