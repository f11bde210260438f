"""Assignment lifecycle: gate computation, activation, completion and reporting."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Literal
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.orm import Session, joinedload

from .. import audit, models, schemas
from .errors import GateNotCleared, InvalidState, NotFound, PreconditionFailed

# purpose: single source of truth for assignment status transitions
# status: active
# depends_on: backend.app.models.Assignment, backend.app.services.errors

logger = logging.getLogger(__name__)

PAYMENT_GATE = "payment"
AGREEMENT_GATE = "agreement"

_FEE_GATES: dict[models.FeeType, frozenset[str]] = {
    models.FeeType.FREE: frozenset(),
    models.FeeType.FEES: frozenset({PAYMENT_GATE}),
    models.FeeType.EQUITY: frozenset({AGREEMENT_GATE}),
    models.FeeType.HYBRID: frozenset({PAYMENT_GATE, AGREEMENT_GATE}),
}

_PENDING_STATUS: dict[frozenset[str], models.AssignmentStatus] = {
    frozenset({PAYMENT_GATE}): models.AssignmentStatus.PENDING_PAYMENT,
    frozenset({AGREEMENT_GATE}): models.AssignmentStatus.PENDING_AGREEMENT,
    frozenset({PAYMENT_GATE, AGREEMENT_GATE}): models.AssignmentStatus.PENDING_PAYMENT_AND_AGREEMENT,
}

GATING_STATUSES = frozenset(_PENDING_STATUS.values())

Scope = Literal["current", "pending", "previous"]

_SCOPE_STATUSES: dict[str, frozenset[models.AssignmentStatus]] = {
    "current": frozenset({models.AssignmentStatus.ACTIVE}),
    "pending": GATING_STATUSES | {models.AssignmentStatus.READY_FOR_ACTIVATION},
    "previous": frozenset({models.AssignmentStatus.COMPLETED}),
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def required_gates(fee_type: models.FeeType) -> frozenset[str]:
    return _FEE_GATES[models.FeeType(fee_type)]


def unmet_gates(assignment: models.Assignment) -> frozenset[str]:
    gates = required_gates(assignment.fee_type)
    unmet = set()
    if PAYMENT_GATE in gates and assignment.payment_status != models.PaymentStatus.COMPLETED:
        unmet.add(PAYMENT_GATE)
    if AGREEMENT_GATE in gates and assignment.agreement_status != models.AgreementStatus.APPROVED:
        unmet.add(AGREEMENT_GATE)
    return frozenset(unmet)


def compute_gated_status(assignment: models.Assignment) -> models.AssignmentStatus:
    """Derive the pre-activation status from the gate fields.

    While any gate is open the status names every gate the fee type requires, so a
    Hybrid engagement stays ``pending_payment_and_agreement`` until both clear.
    """

    if not unmet_gates(assignment):
        return models.AssignmentStatus.READY_FOR_ACTIVATION
    return _PENDING_STATUS[required_gates(assignment.fee_type)]


def initialize_gates(assignment: models.Assignment) -> None:
    """Seed gate fields for a freshly accepted engagement and derive its status."""

    gates = required_gates(assignment.fee_type)
    assignment.payment_status = models.PaymentStatus.PENDING if PAYMENT_GATE in gates else None
    assignment.agreement_status = None
    assignment.status = compute_gated_status(assignment)


def recompute_status(db: Session, assignment: models.Assignment, actor_id: UUID | None) -> None:
    """Re-derive status after a gate field changed. No-op once activated."""

    if assignment.status not in GATING_STATUSES:
        return
    previous = assignment.status
    assignment.status = compute_gated_status(assignment)
    if assignment.status != previous:
        audit.log_action(
            db,
            actor_id,
            "assignment.status_changed",
            "assignment",
            assignment.id,
            {"from": previous.value, "to": assignment.status.value},
        )
        logger.info("assignment %s moved %s -> %s", assignment.id, previous.value, assignment.status.value)


def is_ready(assignment: models.Assignment) -> bool:
    return assignment.status == models.AssignmentStatus.READY_FOR_ACTIVATION


def get_assignment(db: Session, assignment_id: UUID) -> models.Assignment:
    assignment = db.get(models.Assignment, assignment_id)
    if assignment is None:
        raise NotFound(f"assignment {assignment_id} not found")
    return assignment


def get_for_mentor(db: Session, assignment_id: UUID, mentor_id: UUID) -> models.Assignment:
    assignment = get_assignment(db, assignment_id)
    if assignment.mentor_id != mentor_id:
        raise NotFound(f"assignment {assignment_id} not found")
    return assignment


def get_for_startup_owner(db: Session, assignment_id: UUID, owner_id: UUID) -> models.Assignment:
    assignment = get_assignment(db, assignment_id)
    startup = assignment.linked_startup
    if startup is None or startup.owner_id != owner_id:
        raise NotFound(f"assignment {assignment_id} not found")
    return assignment


def get_for_participant(db: Session, assignment_id: UUID, user_id: UUID) -> models.Assignment:
    assignment = get_assignment(db, assignment_id)
    if assignment.mentor_id == user_id:
        return assignment
    startup = assignment.linked_startup
    if startup is not None and startup.owner_id == user_id:
        return assignment
    raise NotFound(f"assignment {assignment_id} not found")


def mark_payment_completed(
    db: Session,
    assignment_id: UUID,
    mentor_id: UUID,
    *,
    payment_reference: str | None = None,
) -> models.Assignment:
    """Record the mentor's confirmation that the fee arrived and advance the gate.

    Only the receiving mentor can clear the payment gate; the paying startup cannot.
    Repeating the call for an already paid assignment is a no-op.
    """

    assignment = get_for_mentor(db, assignment_id, mentor_id)
    if PAYMENT_GATE not in required_gates(assignment.fee_type):
        raise PreconditionFailed(f"{assignment.fee_type.value} engagements take no payment")
    if assignment.payment_status == models.PaymentStatus.COMPLETED:
        return assignment
    if assignment.status not in GATING_STATUSES:
        raise InvalidState(f"assignment is {assignment.status.value}; payment no longer applies")

    assignment.payment_status = models.PaymentStatus.COMPLETED
    assignment.payment_reference = payment_reference
    audit.log_action(
        db,
        mentor_id,
        "assignment.payment_completed",
        "assignment",
        assignment.id,
        {"payment_reference": payment_reference},
    )
    recompute_status(db, assignment, mentor_id)
    db.flush()
    return assignment


def final_accept(db: Session, assignment_id: UUID, mentor_id: UUID) -> models.Assignment:
    assignment = get_for_mentor(db, assignment_id, mentor_id)
    if not is_ready(assignment):
        raise GateNotCleared(
            f"assignment is {assignment.status.value}; only ready_for_activation can be activated"
        )
    assignment.status = models.AssignmentStatus.ACTIVE
    assignment.activated_at = _now()
    db.flush()
    audit.log_action(db, mentor_id, "assignment.activated", "assignment", assignment.id)
    logger.info("assignment %s activated by mentor %s", assignment.id, mentor_id)
    return assignment


def complete(db: Session, assignment_id: UUID, mentor_id: UUID) -> models.Assignment:
    assignment = get_for_mentor(db, assignment_id, mentor_id)
    if assignment.status != models.AssignmentStatus.ACTIVE:
        raise InvalidState(f"assignment is {assignment.status.value}; only active engagements complete")
    assignment.status = models.AssignmentStatus.COMPLETED
    assignment.completed_at = _now()
    db.flush()
    audit.log_action(db, mentor_id, "assignment.completed", "assignment", assignment.id)
    return assignment


def delete(db: Session, assignment_id: UUID, mentor_id: UUID) -> None:
    """Remove a manually recorded engagement. Platform engagements are permanent history."""

    assignment = get_for_mentor(db, assignment_id, mentor_id)
    if not assignment.is_manual:
        raise InvalidState("only manually recorded engagements can be deleted")
    details = {"startup_name": assignment.manual_startup_name, "status": assignment.status.value}
    db.delete(assignment)
    db.flush()
    audit.log_action(db, mentor_id, "assignment.deleted", "assignment", assignment_id, details)


def record_manual_engagement(
    db: Session,
    mentor_id: UUID,
    payload: schemas.ManualEngagementCreate,
) -> models.Assignment:
    """Store an engagement with a startup that is not on the platform."""

    status = models.AssignmentStatus(payload.status)
    now = _now()
    assignment = models.Assignment(
        mentor_id=mentor_id,
        status=status,
        fee_type=_infer_fee_type(payload.fee_amount, payload.esop_percentage),
        fee_amount=payload.fee_amount,
        fee_currency=payload.fee_currency,
        esop_percentage=payload.esop_percentage,
        esop_value=payload.esop_value,
        assigned_at=now,
        activated_at=now,
        completed_at=now if status == models.AssignmentStatus.COMPLETED else None,
    )
    assignment.startup = models.ManualStartup(
        name=payload.startup.name,
        email=payload.startup.email,
        website=payload.startup.website,
        sector=payload.startup.sector,
    )
    db.add(assignment)
    db.flush()
    audit.log_action(
        db,
        mentor_id,
        "assignment.manual_recorded",
        "assignment",
        assignment.id,
        {"startup_name": payload.startup.name, "status": status.value},
    )
    return assignment


def _infer_fee_type(fee_amount: float, esop_percentage: float) -> models.FeeType:
    if fee_amount and esop_percentage:
        return models.FeeType.HYBRID
    if fee_amount:
        return models.FeeType.FEES
    if esop_percentage:
        return models.FeeType.EQUITY
    return models.FeeType.FREE


def _participant_query(db: Session, user: models.User):
    query = db.query(models.Assignment).options(joinedload(models.Assignment.linked_startup))
    if user.role == models.UserRole.MENTOR:
        return query.filter(models.Assignment.mentor_id == user.id)
    owned = sa.select(models.Startup.id).where(models.Startup.owner_id == user.id)
    return query.filter(models.Assignment.startup_id.in_(owned))


def list_assignments(
    db: Session,
    user: models.User,
    scope: Scope | None = None,
) -> list[models.Assignment]:
    query = _participant_query(db, user)
    if scope is not None:
        query = query.filter(models.Assignment.status.in_(sorted(_SCOPE_STATUSES[scope])))
    return query.order_by(models.Assignment.assigned_at.desc()).all()


def serialize_assignment(assignment: models.Assignment) -> schemas.AssignmentOut:
    if assignment.is_manual:
        startup = schemas.ManualStartupIn(
            name=assignment.manual_startup_name,
            email=assignment.manual_startup_email,
            website=assignment.manual_startup_website,
            sector=assignment.manual_startup_sector,
        )
    else:
        startup = schemas.LinkedStartupOut(
            startup_id=assignment.startup_id,
            name=assignment.startup_name,
        )
    return schemas.AssignmentOut(
        id=assignment.id,
        mentor_id=assignment.mentor_id,
        startup=startup,
        request_id=assignment.request_id,
        status=assignment.status,
        fee_type=assignment.fee_type,
        fee_amount=assignment.fee_amount or 0,
        fee_currency=assignment.fee_currency,
        esop_percentage=assignment.esop_percentage or 0,
        esop_value=assignment.esop_value or 0,
        payment_status=assignment.payment_status,
        agreement_status=assignment.agreement_status,
        agreement_url=assignment.agreement_url,
        mentor_signed_agreement_url=assignment.mentor_signed_agreement_url,
        assigned_at=assignment.assigned_at,
        activated_at=assignment.activated_at,
        completed_at=assignment.completed_at,
    )


def get_mentor_metrics(db: Session, mentor_id: UUID) -> schemas.MentorMetricsOut:
    """Dashboard counters for one mentor. Fees and ESOP sum active and completed work."""

    requests_received = (
        db.query(sa.func.count(models.EngagementRequest.id))
        .filter(models.EngagementRequest.mentor_id == mentor_id)
        .scalar()
    )
    pending_requests = (
        db.query(models.EngagementRequest)
        .filter(
            models.EngagementRequest.mentor_id == mentor_id,
            models.EngagementRequest.status == models.RequestStatus.PENDING,
        )
        .order_by(models.EngagementRequest.requested_at.desc())
        .all()
    )
    engaged = (
        db.query(models.Assignment)
        .options(joinedload(models.Assignment.linked_startup))
        .filter(
            models.Assignment.mentor_id == mentor_id,
            models.Assignment.status.in_(
                [models.AssignmentStatus.ACTIVE, models.AssignmentStatus.COMPLETED]
            ),
        )
        .order_by(models.Assignment.assigned_at.desc())
        .all()
    )
    active = [a for a in engaged if a.status == models.AssignmentStatus.ACTIVE]
    completed = [a for a in engaged if a.status == models.AssignmentStatus.COMPLETED]
    return schemas.MentorMetricsOut(
        requests_received=requests_received or 0,
        startups_mentoring=len(active),
        startups_mentored_previously=len(completed),
        total_fees=sum(a.fee_amount or 0 for a in engaged),
        total_esop_value=sum(a.esop_value or 0 for a in engaged),
        pending_requests=[schemas.EngagementRequestOut.model_validate(r) for r in pending_requests],
        active_assignments=[serialize_assignment(a) for a in active],
        completed_assignments=[serialize_assignment(a) for a in completed],
    )
