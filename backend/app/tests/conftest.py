import os
os.environ["TESTING"] = "1"
os.environ.setdefault("SECRET_KEY", "test-secret")
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import sys
from pathlib import Path

import uuid
from datetime import date, datetime, timedelta, timezone

sys.path.append(str(Path(__file__).resolve().parents[2]))

from app.main import app
from app.database import Base, get_db
from app import notify, pubsub

SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False, "timeout": 30},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base.metadata.drop_all(bind=engine)
Base.metadata.create_all(bind=engine)

def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def clear_outbox():
    notify.EMAIL_OUTBOX.clear()
    yield
    notify.EMAIL_OUTBOX.clear()

@pytest.fixture
def client():
    # each TestClient runs its own event loop; a cached redis client would be bound to a stale one
    pubsub._redis = None
    with TestClient(app) as c:
        yield c
    pubsub._redis = None


def ensure_access_token(client, *, email: str | None = None, password: str = "secret", role: str = "startup"):
    """
    purpose: ensure deterministic access tokens for tests while tolerating reused accounts
    inputs: fastapi TestClient, optional email override, password string, account role
    outputs: tuple(access_token str, normalized email str)
    status: active
    """

    normalized_email = email or f"{role}-{uuid.uuid4()}@example.com"
    payload = {"email": normalized_email, "password": password, "role": role, "full_name": f"Test {role}"}
    resp = client.post("/api/auth/register", json=payload)
    if resp.status_code == 200:
        data = resp.json()
    else:
        body = resp.json() if resp.headers.get("content-type", "").startswith("application/json") else {}
        if resp.status_code == 400 and body.get("detail") == "Email already registered":
            login_resp = client.post("/api/auth/login", json={"email": normalized_email, "password": password})
            assert login_resp.status_code == 200, f"Login failed for existing user {normalized_email}: {login_resp.text}"
            data = login_resp.json()
        else:
            raise AssertionError(f"Unexpected auth bootstrap failure for {normalized_email}: {resp.status_code} {resp.text}")
    token = data.get("access_token")
    if not token:
        raise AssertionError(f"Authentication response missing token for {normalized_email}: {data}")
    return token, normalized_email


def ensure_auth_headers(client, *, email: str | None = None, password: str = "secret", role: str = "startup"):
    """
    purpose: convenience wrapper returning authorization headers plus the principal id
    depends_on: ensure_access_token
    outputs: tuple(headers dict, user id str)
    status: active
    """

    token, _ = ensure_access_token(client, email=email, password=password, role=role)
    headers = {"Authorization": f"Bearer {token}"}
    me = client.get("/api/users/me", headers=headers)
    assert me.status_code == 200, me.text
    return headers, me.json()["id"]


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def weekday_of(day: date) -> int:
    """Sunday-based weekday index used by availability slots."""

    return (day.weekday() + 1) % 7


def open_request(client, *, fee_type: str = "Free", **terms):
    """
    purpose: register a mentor and a startup owner and file one engagement request
    outputs: dict with mentor/startup headers, ids and the request payload
    status: active
    """

    mentor_headers, mentor_id = ensure_auth_headers(client, role="mentor")
    startup_headers, owner_id = ensure_auth_headers(client, role="startup")
    startup = client.post(
        "/api/startups",
        json={"name": f"Startup {uuid.uuid4().hex[:6]}", "sector": "fintech"},
        headers=startup_headers,
    )
    assert startup.status_code == 200, startup.text
    payload = {
        "mentor_id": mentor_id,
        "startup_id": startup.json()["id"],
        "fee_type": fee_type,
        **terms,
    }
    request = client.post("/api/engagements", json=payload, headers=startup_headers)
    assert request.status_code == 201, request.text
    return {
        "mentor_headers": mentor_headers,
        "mentor_id": mentor_id,
        "startup_headers": startup_headers,
        "owner_id": owner_id,
        "startup_id": startup.json()["id"],
        "startup_name": startup.json()["name"],
        "request_id": request.json()["id"],
    }


def active_engagement(client):
    """
    purpose: drive a free engagement all the way to active for scheduling tests
    depends_on: open_request
    status: active
    """

    ctx = open_request(client)
    accepted = client.post(
        f"/api/engagements/{ctx['request_id']}/accept", headers=ctx["mentor_headers"]
    )
    assert accepted.status_code == 200, accepted.text
    assignment_id = accepted.json()["id"]
    activated = client.post(
        f"/api/assignments/{assignment_id}/activate", headers=ctx["mentor_headers"]
    )
    assert activated.status_code == 200, activated.text
    ctx["assignment_id"] = assignment_id
    return ctx


def create_one_time_slot(client, headers, *, days_ahead: int = 7, start: str = "10:00:00", end: str = "11:00:00"):
    day = utc_today() + timedelta(days=days_ahead)
    resp = client.post(
        "/api/availability/slots",
        json={
            "is_recurring": False,
            "specific_date": day.isoformat(),
            "start_time": start,
            "end_time": end,
            "timezone": "UTC",
        },
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()
