import json
from datetime import datetime, time, timedelta, timezone
from uuid import uuid4

from typer.testing import CliRunner

from app import models
from app.cli import maintenance
from .conftest import TestingSessionLocal, utc_today


def _lapsed_slot(session) -> models.AvailabilitySlot:
    mentor = models.User(
        email=f"cli-mentor-{uuid4()}@example.com",
        hashed_password="placeholder",
        role=models.UserRole.MENTOR,
    )
    session.add(mentor)
    session.flush()
    slot = models.AvailabilitySlot(
        mentor_id=mentor.id,
        is_recurring=True,
        day_of_week=4,
        start_time=time(8, 0),
        end_time=time(9, 0),
        timezone="UTC",
        valid_until=utc_today() - timedelta(days=3),
    )
    session.add(slot)
    session.commit()
    return slot


def test_expire_slots_dry_run_changes_nothing(monkeypatch):
    monkeypatch.setattr(maintenance, "SessionLocal", TestingSessionLocal)
    session = TestingSessionLocal()
    try:
        slot = _lapsed_slot(session)
        summary = maintenance.expire_slots(dry_run=True, now=datetime.now(timezone.utc))
        assert summary["dry_run"] is True
        assert summary["expired"] >= 1
        session.refresh(slot)
        assert slot.is_active is True
    finally:
        session.close()


def test_expire_slots_command_deactivates(monkeypatch):
    monkeypatch.setattr(maintenance, "SessionLocal", TestingSessionLocal)
    session = TestingSessionLocal()
    try:
        slot = _lapsed_slot(session)
        result = CliRunner().invoke(maintenance.app, [])
        assert result.exit_code == 0, result.output
        summary = json.loads(result.output.strip().splitlines()[-1])
        assert summary["expired"] >= 1
        session.expire_all()
        refreshed = session.get(models.AvailabilitySlot, slot.id)
        assert refreshed.is_active is False
        history = (
            session.query(models.AuditLog)
            .filter(models.AuditLog.target_id == slot.id, models.AuditLog.action == "availability.slot_expired")
            .count()
        )
        assert history == 1
    finally:
        session.close()
