"""Availability slot API routes."""

from __future__ import annotations

from datetime import date, timedelta
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from .. import models, pubsub, schemas
from ..auth import get_current_user
from ..database import get_db
from ..rbac import check_role
from ..services import availability
from ..services.errors import MentorshipError
from ._errors import http_error

# purpose: mentor slot management and the startup-facing occurrence calendar
# status: active
# depends_on: backend.app.services.availability, backend.app.pubsub

router = APIRouter(prefix="/api/availability", tags=["availability", "scheduling"])

_DEFAULT_WINDOW_DAYS = 28


async def _publish_slot_event(mentor_id: UUID, event_type: str, slot_id: UUID) -> None:
    await pubsub.publish_availability_event(
        mentor_id,
        {"type": event_type, "mentor_id": mentor_id, "slot_id": slot_id},
    )


@router.post("/slots", status_code=status.HTTP_201_CREATED, response_model=schemas.AvailabilitySlotOut)
async def create_slot(
    payload: schemas.AvailabilitySlotCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    check_role(user, models.UserRole.MENTOR)
    try:
        slot = availability.create_slot(db, user.id, payload)
        db.commit()
        db.refresh(slot)
    except MentorshipError as exc:
        db.rollback()
        raise http_error(exc) from exc
    await _publish_slot_event(user.id, "slot_created", slot.id)
    return slot


@router.get("/slots", response_model=list[schemas.AvailabilitySlotOut])
def list_my_slots(
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    check_role(user, models.UserRole.MENTOR)
    return availability.list_slots(db, user.id)


@router.patch("/slots/{slot_id}", response_model=schemas.AvailabilitySlotOut)
async def update_slot(
    slot_id: UUID,
    payload: schemas.AvailabilitySlotUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    check_role(user, models.UserRole.MENTOR)
    try:
        slot = availability.update_slot(db, slot_id, user.id, payload)
        db.commit()
        db.refresh(slot)
    except MentorshipError as exc:
        db.rollback()
        raise http_error(exc) from exc
    await _publish_slot_event(user.id, "slot_updated", slot.id)
    return slot


@router.post("/slots/{slot_id}/activate", response_model=schemas.AvailabilitySlotOut)
async def activate_slot(
    slot_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    check_role(user, models.UserRole.MENTOR)
    try:
        slot = availability.activate_slot(db, slot_id, user.id)
        db.commit()
        db.refresh(slot)
    except MentorshipError as exc:
        db.rollback()
        raise http_error(exc) from exc
    await _publish_slot_event(user.id, "slot_activated", slot.id)
    return slot


@router.post("/slots/{slot_id}/deactivate", response_model=schemas.AvailabilitySlotOut)
async def deactivate_slot(
    slot_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    check_role(user, models.UserRole.MENTOR)
    try:
        slot = availability.deactivate_slot(db, slot_id, user.id)
        db.commit()
        db.refresh(slot)
    except MentorshipError as exc:
        db.rollback()
        raise http_error(exc) from exc
    await _publish_slot_event(user.id, "slot_deactivated", slot.id)
    return slot


@router.delete("/slots/{slot_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_slot(
    slot_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    check_role(user, models.UserRole.MENTOR)
    try:
        availability.delete_slot(db, slot_id, user.id)
        db.commit()
    except MentorshipError as exc:
        db.rollback()
        raise http_error(exc) from exc
    await _publish_slot_event(user.id, "slot_deleted", slot_id)


@router.get("/mentors/{mentor_id}", response_model=list[schemas.SlotOccurrenceOut])
def mentor_occurrences(
    mentor_id: UUID,
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    """Bookable calendar of one mentor, with booked occurrences attributed."""

    start = start or date.today()
    end = end or start + timedelta(days=_DEFAULT_WINDOW_DAYS)
    try:
        return availability.resolve_availability(db, mentor_id, start, end)
    except MentorshipError as exc:
        raise http_error(exc) from exc
