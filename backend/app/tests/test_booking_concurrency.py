import threading
import uuid
from concurrent.futures import ThreadPoolExecutor

from .conftest import TestingSessionLocal, active_engagement, client, create_one_time_slot
from app import models, schemas
from app.services import sessions
from app.services.errors import SlotAlreadyBooked

BOOKERS = 10


def test_concurrent_bookings_yield_exactly_one_session(client):
    ctx = active_engagement(client)
    slot = create_one_time_slot(client, ctx["mentor_headers"], days_ahead=10)
    payload = schemas.SessionBookingCreate(
        assignment_id=ctx["assignment_id"],
        slot_id=slot["id"],
        session_date=slot["specific_date"],
        session_time=slot["start_time"],
    )
    owner_id = uuid.UUID(ctx["owner_id"])
    barrier = threading.Barrier(BOOKERS)

    def attempt():
        db = TestingSessionLocal()
        try:
            barrier.wait()
            booked = sessions.book_session(db, owner_id, payload)
            db.commit()
            return booked.id
        except SlotAlreadyBooked:
            return None
        finally:
            db.close()

    with ThreadPoolExecutor(max_workers=BOOKERS) as pool:
        outcomes = list(pool.map(lambda _: attempt(), range(BOOKERS)))

    winners = [outcome for outcome in outcomes if outcome is not None]
    assert len(winners) == 1
    assert outcomes.count(None) == BOOKERS - 1

    db = TestingSessionLocal()
    try:
        stored = (
            db.query(models.ScheduledSession)
            .filter(
                models.ScheduledSession.mentor_id == uuid.UUID(ctx["mentor_id"]),
                models.ScheduledSession.status == models.SessionStatus.SCHEDULED,
            )
            .all()
        )
        assert [s.id for s in stored] == winners
    finally:
        db.close()
