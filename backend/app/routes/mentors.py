"""Mentor directory, published terms and dashboard metrics."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session, joinedload

from .. import models, schemas
from ..auth import get_current_user
from ..database import get_db
from ..rbac import check_role
from ..services import assignments
from ..services.errors import MentorshipError
from ..services.occurrences import resolve_timezone
from ._errors import http_error

router = APIRouter(prefix="/api/mentors", tags=["mentors"])


@router.get("", response_model=list[schemas.MentorProfileOut])
def list_mentors(
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return (
        db.query(models.MentorProfile)
        .join(models.User, models.User.id == models.MentorProfile.user_id)
        .filter(models.User.is_active.is_(True), models.User.role == models.UserRole.MENTOR)
        .options(joinedload(models.MentorProfile.user))
        .order_by(models.MentorProfile.display_name.asc())
        .all()
    )


@router.put("/me/profile", response_model=schemas.MentorProfileOut)
def update_my_profile(
    payload: schemas.MentorProfileUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    check_role(user, models.UserRole.MENTOR)
    try:
        resolve_timezone(payload.timezone)
    except MentorshipError as exc:
        raise http_error(exc) from exc
    profile = user.mentor_profile or models.MentorProfile(user_id=user.id)
    for field, value in payload.model_dump().items():
        setattr(profile, field, value)
    profile.fee_currency = payload.fee_currency.upper()
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile


@router.get("/me/metrics", response_model=schemas.MentorMetricsOut)
def my_metrics(
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    check_role(user, models.UserRole.MENTOR)
    return assignments.get_mentor_metrics(db, user.id)


@router.get("/{mentor_id}", response_model=schemas.MentorProfileOut)
def get_mentor(
    mentor_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    profile = db.get(models.MentorProfile, mentor_id)
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Mentor not found")
    return profile
