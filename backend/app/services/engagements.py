"""Engagement requests from startups to mentors."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.orm import Session, joinedload

from .. import audit, models, schemas
from . import assignments
from .errors import InvalidState, NotFound, ValidationError

# purpose: request lifecycle (pending -> accepted | rejected | cancelled) and assignment creation
# status: active
# depends_on: backend.app.services.assignments

logger = logging.getLogger(__name__)

_OPEN_ASSIGNMENT_STATUSES = [
    status for status in models.AssignmentStatus if status != models.AssignmentStatus.COMPLETED
]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _resolve_terms(
    payload: schemas.EngagementRequestCreate,
    profile: models.MentorProfile | None,
) -> dict:
    """Merge proposed terms over the mentor's published defaults and check completeness."""

    fee_type = payload.fee_type or (profile.fee_type if profile else models.FeeType.FREE)
    fee_amount = payload.proposed_fee_amount
    if fee_amount is None and profile is not None:
        fee_amount = profile.fee_amount
    esop = payload.proposed_esop_percentage
    if esop is None and profile is not None:
        esop = profile.equity_percentage
    currency = payload.fee_currency or (profile.fee_currency if profile else "USD")

    gates = assignments.required_gates(fee_type)
    if assignments.PAYMENT_GATE in gates and not fee_amount:
        raise ValidationError(f"{fee_type.value} engagements need a fee amount")
    if assignments.AGREEMENT_GATE in gates and not esop and not payload.proposed_equity_amount:
        raise ValidationError(f"{fee_type.value} engagements need an equity or ESOP proposal")

    return {
        "fee_type": fee_type,
        "proposed_fee_amount": fee_amount,
        "proposed_equity_amount": payload.proposed_equity_amount,
        "proposed_esop_percentage": esop,
        "fee_currency": currency.upper(),
    }


def create_request(
    db: Session,
    requester_id: UUID,
    payload: schemas.EngagementRequestCreate,
) -> models.EngagementRequest:
    startup = db.get(models.Startup, payload.startup_id)
    if startup is None or startup.owner_id != requester_id:
        raise NotFound(f"startup {payload.startup_id} not found")
    mentor = db.get(models.User, payload.mentor_id)
    if mentor is None or mentor.role != models.UserRole.MENTOR:
        raise NotFound(f"mentor {payload.mentor_id} not found")

    duplicate = (
        db.query(models.EngagementRequest.id)
        .filter(
            models.EngagementRequest.startup_id == startup.id,
            models.EngagementRequest.mentor_id == mentor.id,
            models.EngagementRequest.status == models.RequestStatus.PENDING,
        )
        .first()
    )
    if duplicate:
        raise InvalidState("a pending request to this mentor already exists")
    engaged = (
        db.query(models.Assignment.id)
        .filter(
            models.Assignment.startup_id == startup.id,
            models.Assignment.mentor_id == mentor.id,
            models.Assignment.status.in_(_OPEN_ASSIGNMENT_STATUSES),
        )
        .first()
    )
    if engaged:
        raise InvalidState("this mentor is already engaged with the startup")

    request = models.EngagementRequest(
        startup_id=startup.id,
        mentor_id=mentor.id,
        requester_id=requester_id,
        status=models.RequestStatus.PENDING,
        message=payload.message,
        requested_at=_now(),
        **_resolve_terms(payload, mentor.mentor_profile),
    )
    db.add(request)
    db.flush()
    audit.log_action(
        db,
        requester_id,
        "engagement.requested",
        "engagement_request",
        request.id,
        {"mentor_id": str(mentor.id), "fee_type": request.fee_type.value},
    )
    logger.info("startup %s requested mentor %s", startup.id, mentor.id)
    return request


def get_request(db: Session, request_id: UUID) -> models.EngagementRequest:
    request = db.get(models.EngagementRequest, request_id)
    if request is None:
        raise NotFound(f"engagement request {request_id} not found")
    return request


def _get_for_mentor(db: Session, request_id: UUID, mentor_id: UUID) -> models.EngagementRequest:
    request = get_request(db, request_id)
    if request.mentor_id != mentor_id:
        raise NotFound(f"engagement request {request_id} not found")
    return request


def _get_for_owner(db: Session, request_id: UUID, owner_id: UUID) -> models.EngagementRequest:
    request = get_request(db, request_id)
    if request.startup is None or request.startup.owner_id != owner_id:
        raise NotFound(f"engagement request {request_id} not found")
    return request


def _ensure_pending(request: models.EngagementRequest) -> None:
    if request.status != models.RequestStatus.PENDING:
        raise InvalidState(f"request is {request.status.value}; only pending requests change")


def _close(
    db: Session,
    request: models.EngagementRequest,
    status: models.RequestStatus,
    actor_id: UUID,
) -> None:
    request.status = status
    request.responded_at = _now()
    db.flush()
    audit.log_action(db, actor_id, f"engagement.{status.value}", "engagement_request", request.id)


def accept_request(db: Session, request_id: UUID, mentor_id: UUID) -> models.Assignment:
    """Accept a pending request. This is the only path creating a platform assignment."""

    request = _get_for_mentor(db, request_id, mentor_id)
    _ensure_pending(request)

    assignment = models.Assignment(
        mentor_id=request.mentor_id,
        request_id=request.id,
        fee_type=request.fee_type,
        fee_amount=request.proposed_fee_amount or 0,
        fee_currency=request.fee_currency,
        esop_percentage=request.proposed_esop_percentage or 0,
        esop_value=request.proposed_equity_amount or 0,
        assigned_at=_now(),
    )
    assignment.startup = models.LinkedStartup(startup_id=request.startup_id)
    assignments.initialize_gates(assignment)
    db.add(assignment)
    _close(db, request, models.RequestStatus.ACCEPTED, mentor_id)
    audit.log_action(
        db,
        mentor_id,
        "assignment.created",
        "assignment",
        assignment.id,
        {"request_id": str(request.id), "status": assignment.status.value},
    )
    logger.info("request %s accepted; assignment %s starts %s", request.id, assignment.id, assignment.status.value)
    return assignment


def reject_request(db: Session, request_id: UUID, mentor_id: UUID) -> models.EngagementRequest:
    request = _get_for_mentor(db, request_id, mentor_id)
    _ensure_pending(request)
    _close(db, request, models.RequestStatus.REJECTED, mentor_id)
    return request


def cancel_request(db: Session, request_id: UUID, owner_id: UUID) -> models.EngagementRequest:
    request = _get_for_owner(db, request_id, owner_id)
    _ensure_pending(request)
    _close(db, request, models.RequestStatus.CANCELLED, owner_id)
    return request


def delete_request(db: Session, request_id: UUID, owner_id: UUID) -> None:
    request = _get_for_owner(db, request_id, owner_id)
    if request.status != models.RequestStatus.CANCELLED:
        raise InvalidState(f"request is {request.status.value}; only cancelled requests can be deleted")
    db.delete(request)
    db.flush()
    audit.log_action(db, owner_id, "engagement.deleted", "engagement_request", request_id)


def list_for_mentor(
    db: Session,
    mentor_id: UUID,
    status: models.RequestStatus | None = None,
) -> list[models.EngagementRequest]:
    query = db.query(models.EngagementRequest).filter(models.EngagementRequest.mentor_id == mentor_id)
    if status is not None:
        query = query.filter(models.EngagementRequest.status == status)
    return query.order_by(models.EngagementRequest.requested_at.desc()).all()


def list_for_startup(
    db: Session,
    owner_id: UUID,
    startup_id: UUID | None = None,
    status: models.RequestStatus | None = None,
) -> list[models.EngagementRequest]:
    """Requests sent by the owner's startups, optionally narrowed to one startup."""

    query = (
        db.query(models.EngagementRequest)
        .join(models.Startup, models.Startup.id == models.EngagementRequest.startup_id)
        .options(joinedload(models.EngagementRequest.startup))
        .filter(models.Startup.owner_id == owner_id)
    )
    if startup_id is not None:
        startup = db.get(models.Startup, startup_id)
        if startup is None or startup.owner_id != owner_id:
            raise NotFound(f"startup {startup_id} not found")
        query = query.filter(models.EngagementRequest.startup_id == startup_id)
    if status is not None:
        query = query.filter(models.EngagementRequest.status == status)
    return query.order_by(models.EngagementRequest.requested_at.desc()).all()
