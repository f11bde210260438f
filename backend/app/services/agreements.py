"""Agreement upload, mentor signature and approval for equity-bearing engagements."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.orm import Session

from .. import audit, models
from . import assignments
from .errors import InvalidState, PreconditionFailed

# purpose: drive agreement_status and hand gate changes back to the lifecycle controller
# status: active
# depends_on: backend.app.services.assignments

logger = logging.getLogger(__name__)

_UPLOADABLE = {None, models.AgreementStatus.REJECTED, models.AgreementStatus.PENDING_MENTOR_SIGNATURE}
_AWAITING_MENTOR = {
    models.AgreementStatus.PENDING_MENTOR_SIGNATURE,
    models.AgreementStatus.PENDING_MENTOR_APPROVAL,
}


def _require_agreement_gate(assignment: models.Assignment) -> None:
    if assignments.AGREEMENT_GATE not in assignments.required_gates(assignment.fee_type):
        raise PreconditionFailed(f"{assignment.fee_type.value} engagements need no agreement")
    if assignment.status not in assignments.GATING_STATUSES:
        raise InvalidState(f"assignment is {assignment.status.value}; the agreement is settled")


def _set_agreement_status(
    db: Session,
    assignment: models.Assignment,
    actor_id: UUID,
    new_status: models.AgreementStatus,
    action: str,
) -> None:
    previous = assignment.agreement_status
    assignment.agreement_status = new_status
    audit.log_action(
        db,
        actor_id,
        action,
        "assignment",
        assignment.id,
        {"from": previous.value if previous else None, "to": new_status.value},
    )
    assignments.recompute_status(db, assignment, actor_id)
    db.flush()


def upload_agreement(
    db: Session,
    assignment_id: UUID,
    owner_id: UUID,
    agreement_url: str,
) -> models.Assignment:
    """Startup side submits (or resubmits after rejection) the agreement document."""

    assignment = assignments.get_for_startup_owner(db, assignment_id, owner_id)
    _require_agreement_gate(assignment)
    if assignment.agreement_status not in _UPLOADABLE:
        raise InvalidState(
            f"agreement is {assignment.agreement_status.value}; upload is closed"
        )
    assignment.agreement_url = agreement_url
    assignment.agreement_uploaded_at = datetime.now(timezone.utc)
    # a fresh document invalidates any earlier mentor signature
    assignment.mentor_signed_agreement_url = None
    assignment.mentor_signed_agreement_uploaded_at = None
    _set_agreement_status(
        db,
        assignment,
        owner_id,
        models.AgreementStatus.PENDING_MENTOR_SIGNATURE,
        "agreement.uploaded",
    )
    return assignment


def upload_signed_agreement(
    db: Session,
    assignment_id: UUID,
    mentor_id: UUID,
    signed_url: str,
    *,
    auto_approve: bool = True,
) -> models.Assignment:
    """Store the mentor's signed copy; approval follows unless ``auto_approve`` is off."""

    assignment = assignments.get_for_mentor(db, assignment_id, mentor_id)
    _require_agreement_gate(assignment)
    if not assignment.agreement_url:
        raise PreconditionFailed("no agreement has been uploaded yet")
    if assignment.agreement_status not in _AWAITING_MENTOR:
        state = assignment.agreement_status.value if assignment.agreement_status else "missing"
        raise InvalidState(f"agreement is {state}; nothing to sign")

    assignment.mentor_signed_agreement_url = signed_url
    assignment.mentor_signed_agreement_uploaded_at = datetime.now(timezone.utc)
    _set_agreement_status(
        db,
        assignment,
        mentor_id,
        models.AgreementStatus.PENDING_MENTOR_APPROVAL,
        "agreement.signed",
    )
    if auto_approve:
        return approve_agreement(db, assignment_id, mentor_id)
    return assignment


def approve_agreement(db: Session, assignment_id: UUID, mentor_id: UUID) -> models.Assignment:
    assignment = assignments.get_for_mentor(db, assignment_id, mentor_id)
    if assignment.agreement_status == models.AgreementStatus.APPROVED:
        return assignment
    _require_agreement_gate(assignment)
    if not assignment.mentor_signed_agreement_url:
        raise PreconditionFailed("a signed agreement must be uploaded before approval")
    if assignment.agreement_status == models.AgreementStatus.REJECTED:
        raise InvalidState("agreement was rejected; a new upload is required")

    _set_agreement_status(
        db,
        assignment,
        mentor_id,
        models.AgreementStatus.APPROVED,
        "agreement.approved",
    )
    logger.info("agreement approved for assignment %s", assignment.id)
    return assignment


def reject_agreement(db: Session, assignment_id: UUID, mentor_id: UUID) -> models.Assignment:
    assignment = assignments.get_for_mentor(db, assignment_id, mentor_id)
    _require_agreement_gate(assignment)
    if assignment.agreement_status not in _AWAITING_MENTOR:
        state = assignment.agreement_status.value if assignment.agreement_status else "missing"
        raise InvalidState(f"agreement is {state}; nothing to reject")

    _set_agreement_status(
        db,
        assignment,
        mentor_id,
        models.AgreementStatus.REJECTED,
        "agreement.rejected",
    )
    return assignment
