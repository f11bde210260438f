from datetime import date, datetime, time, timedelta
import uuid

import pytest

from .conftest import (
    TestingSessionLocal,
    active_engagement,
    client,
    create_one_time_slot,
    ensure_auth_headers,
    open_request,
    utc_today,
    weekday_of,
)
from app import audit, models, notify, schemas
from app.services import sessions
from app.services.errors import SlotAlreadyBooked, ValidationError


def booking_for(ctx, slot, **extra):
    return {
        "assignment_id": ctx["assignment_id"],
        "slot_id": slot["id"],
        "session_date": slot["specific_date"],
        "session_time": slot["start_time"],
        **extra,
    }


def test_book_session_and_notify_mentor(client):
    ctx = active_engagement(client)
    slot = create_one_time_slot(client, ctx["mentor_headers"], days_ahead=5)
    resp = client.post("/api/sessions", json=booking_for(ctx, slot, agenda="pitch review"), headers=ctx["startup_headers"])
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["status"] == "scheduled"
    assert body["display_status"] == "upcoming"
    assert body["duration_minutes"] == 60
    assert body["counterpart_name"] == "Test mentor"
    assert any(subject == "Mentoring session booked" for _, subject, _ in notify.EMAIL_OUTBOX)

    mentor_view = client.get("/api/sessions", headers=ctx["mentor_headers"]).json()
    assert [s["id"] for s in mentor_view] == [body["id"]]
    assert mentor_view[0]["counterpart_name"] == ctx["startup_name"]


def test_double_booking_rejected(client):
    ctx = active_engagement(client)
    slot = create_one_time_slot(client, ctx["mentor_headers"], days_ahead=5)
    first = client.post("/api/sessions", json=booking_for(ctx, slot), headers=ctx["startup_headers"])
    assert first.status_code == 201
    second = client.post("/api/sessions", json=booking_for(ctx, slot), headers=ctx["startup_headers"])
    assert second.status_code == 409


def test_cancelled_occurrence_can_be_rebooked(client):
    ctx = active_engagement(client)
    slot = create_one_time_slot(client, ctx["mentor_headers"], days_ahead=5)
    first = client.post("/api/sessions", json=booking_for(ctx, slot), headers=ctx["startup_headers"])
    cancelled = client.post(f"/api/sessions/{first.json()['id']}/cancel", headers=ctx["mentor_headers"])
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"
    assert any(subject == "Mentoring session cancelled" for _, subject, _ in notify.EMAIL_OUTBOX)

    again = client.post("/api/sessions", json=booking_for(ctx, slot), headers=ctx["startup_headers"])
    assert again.status_code == 201


def test_booking_requires_active_assignment(client):
    ctx = open_request(client, fee_type="Fees", proposed_fee_amount=100)
    accepted = client.post(f"/api/engagements/{ctx['request_id']}/accept", headers=ctx["mentor_headers"])
    ctx["assignment_id"] = accepted.json()["id"]
    slot = create_one_time_slot(client, ctx["mentor_headers"], days_ahead=5)
    resp = client.post("/api/sessions", json=booking_for(ctx, slot), headers=ctx["startup_headers"])
    assert resp.status_code == 409


def test_booking_rejects_date_without_occurrence(client):
    ctx = active_engagement(client)
    target = utc_today() + timedelta(days=2)
    recurring = client.post(
        "/api/availability/slots",
        json={
            "is_recurring": True,
            "day_of_week": weekday_of(target),
            "start_time": "15:00:00",
            "end_time": "16:00:00",
        },
        headers=ctx["mentor_headers"],
    ).json()
    wrong_day = {
        "assignment_id": ctx["assignment_id"],
        "slot_id": recurring["id"],
        "session_date": (target + timedelta(days=1)).isoformat(),
        "session_time": "15:00:00",
    }
    assert client.post("/api/sessions", json=wrong_day, headers=ctx["startup_headers"]).status_code == 400

    wrong_time = {**wrong_day, "session_date": target.isoformat(), "session_time": "15:30:00"}
    assert client.post("/api/sessions", json=wrong_time, headers=ctx["startup_headers"]).status_code == 400

    too_long = {**wrong_day, "session_date": target.isoformat(), "duration_minutes": 90}
    assert client.post("/api/sessions", json=too_long, headers=ctx["startup_headers"]).status_code == 400

    ok = {**wrong_day, "session_date": target.isoformat(), "duration_minutes": 30}
    resp = client.post("/api/sessions", json=ok, headers=ctx["startup_headers"])
    assert resp.status_code == 201
    assert resp.json()["duration_minutes"] == 30


def test_mentor_cannot_book(client):
    ctx = active_engagement(client)
    slot = create_one_time_slot(client, ctx["mentor_headers"], days_ahead=5)
    resp = client.post("/api/sessions", json=booking_for(ctx, slot), headers=ctx["mentor_headers"])
    assert resp.status_code == 403


def test_booking_in_the_past_rejected(client):
    ctx = active_engagement(client)
    slot = create_one_time_slot(client, ctx["mentor_headers"], days_ahead=1)
    payload = schemas.SessionBookingCreate(**booking_for(ctx, slot))
    later = datetime.combine(date.fromisoformat(slot["specific_date"]) + timedelta(days=1), time(9, 0))

    db = TestingSessionLocal()
    try:
        with pytest.raises(ValidationError):
            sessions.book_session(db, uuid.UUID(ctx["owner_id"]), payload, now=later)
    finally:
        db.rollback()
        db.close()


def test_complete_and_terminal_states(client):
    ctx = active_engagement(client)
    slot = create_one_time_slot(client, ctx["mentor_headers"], days_ahead=5)
    session = client.post("/api/sessions", json=booking_for(ctx, slot), headers=ctx["startup_headers"]).json()

    startup_complete = client.post(
        f"/api/sessions/{session['id']}/complete", json={}, headers=ctx["startup_headers"]
    )
    assert startup_complete.status_code == 403

    done = client.post(
        f"/api/sessions/{session['id']}/complete",
        json={"feedback": "Great progress on pricing"},
        headers=ctx["mentor_headers"],
    )
    assert done.status_code == 200
    assert done.json()["status"] == "completed"
    assert done.json()["display_status"] == "completed"
    assert done.json()["feedback"] == "Great progress on pricing"

    cancel = client.post(f"/api/sessions/{session['id']}/cancel", headers=ctx["startup_headers"])
    assert cancel.status_code == 409
    link = client.put(
        f"/api/sessions/{session['id']}/link",
        json={"conferencing_link": "https://meet.example.com/abc"},
        headers=ctx["mentor_headers"],
    )
    assert link.status_code == 409


def test_conferencing_link(client):
    ctx = active_engagement(client)
    slot = create_one_time_slot(client, ctx["mentor_headers"], days_ahead=5)
    session = client.post("/api/sessions", json=booking_for(ctx, slot), headers=ctx["startup_headers"]).json()
    resp = client.put(
        f"/api/sessions/{session['id']}/link",
        json={"conferencing_link": "https://meet.example.com/abc"},
        headers=ctx["mentor_headers"],
    )
    assert resp.status_code == 200
    assert resp.json()["conferencing_link"] == "https://meet.example.com/abc"

    outsider, _ = ensure_auth_headers(client, role="mentor")
    hidden = client.put(
        f"/api/sessions/{session['id']}/link",
        json={"conferencing_link": "https://evil.example.com"},
        headers=outsider,
    )
    assert hidden.status_code == 404


def test_past_scheduled_session_is_labelled_not_rewritten(client):
    ctx = active_engagement(client)
    slot = create_one_time_slot(client, ctx["mentor_headers"], days_ahead=3)
    booked = client.post("/api/sessions", json=booking_for(ctx, slot), headers=ctx["startup_headers"]).json()
    later = datetime.combine(date.fromisoformat(slot["specific_date"]) + timedelta(days=2), time(12, 0))

    db = TestingSessionLocal()
    try:
        session = db.get(models.ScheduledSession, uuid.UUID(booked["id"]))
        assert sessions.display_status(session, now=later) == "past_not_completed"
        assert sessions.display_status(session) == "upcoming"
        assert session.status == models.SessionStatus.SCHEDULED
    finally:
        db.close()


def test_status_filter(client):
    ctx = active_engagement(client)
    first = create_one_time_slot(client, ctx["mentor_headers"], days_ahead=5)
    second = create_one_time_slot(client, ctx["mentor_headers"], days_ahead=6)
    keep = client.post("/api/sessions", json=booking_for(ctx, first), headers=ctx["startup_headers"]).json()
    drop = client.post("/api/sessions", json=booking_for(ctx, second), headers=ctx["startup_headers"]).json()
    client.post(f"/api/sessions/{drop['id']}/cancel", headers=ctx["startup_headers"])

    scheduled = client.get("/api/sessions", params={"status": "scheduled"}, headers=ctx["startup_headers"]).json()
    assert [s["id"] for s in scheduled] == [keep["id"]]


def test_service_conflict_error_on_direct_double_booking(client):
    ctx = active_engagement(client)
    slot = create_one_time_slot(client, ctx["mentor_headers"], days_ahead=4)
    payload = schemas.SessionBookingCreate(**booking_for(ctx, slot))
    owner_id = uuid.UUID(ctx["owner_id"])

    db = TestingSessionLocal()
    try:
        sessions.book_session(db, owner_id, payload)
        db.commit()
        with pytest.raises(SlotAlreadyBooked):
            sessions.book_session(db, owner_id, payload)
    finally:
        db.rollback()
        db.close()


def test_lost_booking_race_keeps_callers_transaction(client, monkeypatch):
    ctx = active_engagement(client)
    slot = create_one_time_slot(client, ctx["mentor_headers"], days_ahead=4)
    booked = client.post("/api/sessions", json=booking_for(ctx, slot), headers=ctx["startup_headers"])
    assert booked.status_code == 201
    payload = schemas.SessionBookingCreate(**booking_for(ctx, slot))
    owner_id = uuid.UUID(ctx["owner_id"])
    # skip the read-side check so the unique index is what rejects the insert
    monkeypatch.setattr(sessions, "_occurrence_taken", lambda *args: False)

    db = TestingSessionLocal()
    try:
        marker = audit.log_action(db, owner_id, "test.marker", "user", owner_id)
        with pytest.raises(SlotAlreadyBooked):
            sessions.book_session(db, owner_id, payload)
        assert db.get(models.AuditLog, marker.id) is not None
        still_there = (
            db.query(models.AuditLog)
            .filter(models.AuditLog.action == "test.marker", models.AuditLog.target_id == owner_id)
            .count()
        )
        assert still_there == 1
    finally:
        db.rollback()
        db.close()
