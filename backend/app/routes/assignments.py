"""Assignment lifecycle and agreement workflow API routes."""

from __future__ import annotations

from typing import Literal
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session

from .. import audit, models, notify, schemas
from ..auth import get_current_user
from ..database import get_db
from ..rbac import check_role
from ..services import agreements, assignments
from ..services.errors import MentorshipError
from ._errors import http_error

# purpose: named lifecycle operations over assignments; no raw field updates are exposed
# status: active
# depends_on: backend.app.services.assignments, backend.app.services.agreements

router = APIRouter(prefix="/api/assignments", tags=["assignments"])


def _was_ready(db: Session, assignment_id: UUID) -> bool:
    assignment = db.get(models.Assignment, assignment_id)
    return assignment is not None and assignments.is_ready(assignment)


def _notify_if_ready(
    background_tasks: BackgroundTasks,
    assignment: models.Assignment,
    was_ready: bool,
) -> None:
    if not was_ready and assignments.is_ready(assignment):
        background_tasks.add_task(
            notify.assignment_ready, assignment.mentor.email, assignment.startup_name or "A startup"
        )


@router.get("", response_model=list[schemas.AssignmentOut])
def list_assignments(
    scope: Literal["current", "pending", "previous"] | None = None,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return [assignments.serialize_assignment(a) for a in assignments.list_assignments(db, user, scope)]


@router.post("/manual", status_code=status.HTTP_201_CREATED, response_model=schemas.AssignmentOut)
def record_manual_engagement(
    payload: schemas.ManualEngagementCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    check_role(user, models.UserRole.MENTOR)
    assignment = assignments.record_manual_engagement(db, user.id, payload)
    db.commit()
    db.refresh(assignment)
    return assignments.serialize_assignment(assignment)


@router.get("/{assignment_id}", response_model=schemas.AssignmentOut)
def get_assignment(
    assignment_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    try:
        assignment = assignments.get_for_participant(db, assignment_id, user.id)
    except MentorshipError as exc:
        raise http_error(exc) from exc
    return assignments.serialize_assignment(assignment)


@router.get("/{assignment_id}/history", response_model=list[schemas.AuditLogOut])
def assignment_history(
    assignment_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    try:
        assignments.get_for_participant(db, assignment_id, user.id)
    except MentorshipError as exc:
        raise http_error(exc) from exc
    return audit.list_history(db, "assignment", assignment_id)


@router.post("/{assignment_id}/payment", response_model=schemas.AssignmentOut)
def mark_payment_completed(
    assignment_id: UUID,
    payload: schemas.PaymentCompletion,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    check_role(user, models.UserRole.MENTOR)
    was_ready = _was_ready(db, assignment_id)
    try:
        assignment = assignments.mark_payment_completed(
            db, assignment_id, user.id, payment_reference=payload.payment_reference
        )
        db.commit()
        db.refresh(assignment)
    except MentorshipError as exc:
        db.rollback()
        raise http_error(exc) from exc
    _notify_if_ready(background_tasks, assignment, was_ready)
    return assignments.serialize_assignment(assignment)


@router.post("/{assignment_id}/activate", response_model=schemas.AssignmentOut)
def final_accept(
    assignment_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    check_role(user, models.UserRole.MENTOR)
    try:
        assignment = assignments.final_accept(db, assignment_id, user.id)
        db.commit()
        db.refresh(assignment)
    except MentorshipError as exc:
        db.rollback()
        raise http_error(exc) from exc
    return assignments.serialize_assignment(assignment)


@router.post("/{assignment_id}/complete", response_model=schemas.AssignmentOut)
def complete_assignment(
    assignment_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    check_role(user, models.UserRole.MENTOR)
    try:
        assignment = assignments.complete(db, assignment_id, user.id)
        db.commit()
        db.refresh(assignment)
    except MentorshipError as exc:
        db.rollback()
        raise http_error(exc) from exc
    return assignments.serialize_assignment(assignment)


@router.delete("/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_assignment(
    assignment_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    check_role(user, models.UserRole.MENTOR)
    try:
        assignments.delete(db, assignment_id, user.id)
        db.commit()
    except MentorshipError as exc:
        db.rollback()
        raise http_error(exc) from exc


@router.post("/{assignment_id}/agreement", response_model=schemas.AssignmentOut)
def upload_agreement(
    assignment_id: UUID,
    payload: schemas.AgreementUpload,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    check_role(user, models.UserRole.STARTUP)
    try:
        assignment = agreements.upload_agreement(db, assignment_id, user.id, payload.agreement_url)
        db.commit()
        db.refresh(assignment)
    except MentorshipError as exc:
        db.rollback()
        raise http_error(exc) from exc
    return assignments.serialize_assignment(assignment)


@router.post("/{assignment_id}/agreement/signed", response_model=schemas.AssignmentOut)
def upload_signed_agreement(
    assignment_id: UUID,
    payload: schemas.SignedAgreementUpload,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    check_role(user, models.UserRole.MENTOR)
    was_ready = _was_ready(db, assignment_id)
    try:
        assignment = agreements.upload_signed_agreement(
            db,
            assignment_id,
            user.id,
            payload.signed_agreement_url,
            auto_approve=payload.auto_approve,
        )
        db.commit()
        db.refresh(assignment)
    except MentorshipError as exc:
        db.rollback()
        raise http_error(exc) from exc
    _notify_if_ready(background_tasks, assignment, was_ready)
    return assignments.serialize_assignment(assignment)


@router.post("/{assignment_id}/agreement/approve", response_model=schemas.AssignmentOut)
def approve_agreement(
    assignment_id: UUID,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    check_role(user, models.UserRole.MENTOR)
    was_ready = _was_ready(db, assignment_id)
    try:
        assignment = agreements.approve_agreement(db, assignment_id, user.id)
        db.commit()
        db.refresh(assignment)
    except MentorshipError as exc:
        db.rollback()
        raise http_error(exc) from exc
    _notify_if_ready(background_tasks, assignment, was_ready)
    return assignments.serialize_assignment(assignment)


@router.post("/{assignment_id}/agreement/reject", response_model=schemas.AssignmentOut)
def reject_agreement(
    assignment_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    check_role(user, models.UserRole.MENTOR)
    try:
        assignment = agreements.reject_agreement(db, assignment_id, user.id)
        db.commit()
        db.refresh(assignment)
    except MentorshipError as exc:
        db.rollback()
        raise http_error(exc) from exc
    return assignments.serialize_assignment(assignment)
