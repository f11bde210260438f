from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import audit, models, schemas
from ..auth import get_current_user
from ..database import get_db
from ..rbac import check_role

router = APIRouter(prefix="/api/startups", tags=["startups"])


@router.post("", response_model=schemas.StartupOut)
def create_startup(
    payload: schemas.StartupCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    check_role(user, models.UserRole.STARTUP)
    startup = models.Startup(owner_id=user.id, **payload.model_dump())
    db.add(startup)
    db.flush()
    audit.log_action(db, user.id, "startup.created", "startup", startup.id)
    db.commit()
    db.refresh(startup)
    return startup


@router.get("", response_model=list[schemas.StartupOut])
def list_my_startups(
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return (
        db.query(models.Startup)
        .filter(models.Startup.owner_id == user.id)
        .order_by(models.Startup.created_at.asc())
        .all()
    )
