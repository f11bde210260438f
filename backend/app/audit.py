from datetime import datetime, timezone
from uuid import UUID
from sqlalchemy.orm import Session
from . import models


def log_action(
    db: Session,
    user_id: str | UUID | None,
    action: str,
    target_type: str | None = None,
    target_id: str | UUID | None = None,
    details: dict | None = None,
):
    # flushed, not committed: the entry lands in the caller's transaction
    log = models.AuditLog(
        user_id=UUID(str(user_id)) if user_id else None,
        action=action,
        target_type=target_type,
        target_id=UUID(str(target_id)) if target_id else None,
        details=details or {},
        created_at=datetime.now(timezone.utc),
    )
    db.add(log)
    db.flush()
    return log


def list_history(
    db: Session,
    target_type: str,
    target_id: UUID,
):
    return (
        db.query(models.AuditLog)
        .filter(
            models.AuditLog.target_type == target_type,
            models.AuditLog.target_id == target_id,
        )
        .order_by(models.AuditLog.created_at.asc())
        .all()
    )
