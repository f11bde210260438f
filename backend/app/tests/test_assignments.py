from .conftest import active_engagement, client, ensure_auth_headers, open_request
from app import notify


def accept(client, ctx):
    resp = client.post(f"/api/engagements/{ctx['request_id']}/accept", headers=ctx["mentor_headers"])
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_fees_engagement_waits_for_payment(client):
    ctx = open_request(client, fee_type="Fees", proposed_fee_amount=500)
    assignment = accept(client, ctx)
    assert assignment["status"] == "pending_payment"
    assert assignment["payment_status"] == "pending"

    early = client.post(f"/api/assignments/{assignment['id']}/activate", headers=ctx["mentor_headers"])
    assert early.status_code == 409

    self_paid = client.post(
        f"/api/assignments/{assignment['id']}/payment",
        json={"payment_reference": "made-up"},
        headers=ctx["startup_headers"],
    )
    assert self_paid.status_code == 403
    still_pending = client.get(f"/api/assignments/{assignment['id']}", headers=ctx["startup_headers"])
    assert still_pending.json()["payment_status"] == "pending"
    assert still_pending.json()["status"] == "pending_payment"

    paid = client.post(
        f"/api/assignments/{assignment['id']}/payment",
        json={"payment_reference": "pi_123"},
        headers=ctx["mentor_headers"],
    )
    assert paid.status_code == 200
    assert paid.json()["status"] == "ready_for_activation"
    assert any(subject == "Engagement ready for activation" for _, subject, _ in notify.EMAIL_OUTBOX)

    active = client.post(f"/api/assignments/{assignment['id']}/activate", headers=ctx["mentor_headers"])
    assert active.status_code == 200
    assert active.json()["status"] == "active"
    assert active.json()["activated_at"] is not None


def test_repeated_payment_is_a_no_op(client):
    ctx = open_request(client, fee_type="Fees", proposed_fee_amount=500)
    assignment = accept(client, ctx)
    url = f"/api/assignments/{assignment['id']}/payment"
    first = client.post(url, json={}, headers=ctx["mentor_headers"])
    second = client.post(url, json={}, headers=ctx["mentor_headers"])
    assert first.json()["status"] == second.json()["status"] == "ready_for_activation"

    history = client.get(f"/api/assignments/{assignment['id']}/history", headers=ctx["mentor_headers"])
    actions = [entry["action"] for entry in history.json()]
    assert actions.count("assignment.payment_completed") == 1


def test_payment_rejected_for_free_engagement(client):
    ctx = open_request(client)
    assignment = accept(client, ctx)
    resp = client.post(f"/api/assignments/{assignment['id']}/payment", json={}, headers=ctx["mentor_headers"])
    assert resp.status_code == 412


def test_hybrid_keeps_combined_status_until_both_gates_clear(client):
    ctx = open_request(client, fee_type="Hybrid", proposed_fee_amount=500, proposed_esop_percentage=2)
    assignment = accept(client, ctx)
    assert assignment["status"] == "pending_payment_and_agreement"
    assignment_id = assignment["id"]

    paid = client.post(f"/api/assignments/{assignment_id}/payment", json={}, headers=ctx["mentor_headers"])
    assert paid.json()["status"] == "pending_payment_and_agreement"
    assert paid.json()["payment_status"] == "completed"

    client.post(
        f"/api/assignments/{assignment_id}/agreement",
        json={"agreement_url": "https://files.example.com/term-sheet.pdf"},
        headers=ctx["startup_headers"],
    )
    signed = client.post(
        f"/api/assignments/{assignment_id}/agreement/signed",
        json={"signed_agreement_url": "https://files.example.com/term-sheet-signed.pdf"},
        headers=ctx["mentor_headers"],
    )
    assert signed.status_code == 200
    assert signed.json()["agreement_status"] == "approved"
    assert signed.json()["status"] == "ready_for_activation"


def test_complete_only_from_active(client):
    ctx = open_request(client)
    assignment = accept(client, ctx)
    early = client.post(f"/api/assignments/{assignment['id']}/complete", headers=ctx["mentor_headers"])
    assert early.status_code == 409

    client.post(f"/api/assignments/{assignment['id']}/activate", headers=ctx["mentor_headers"])
    done = client.post(f"/api/assignments/{assignment['id']}/complete", headers=ctx["mentor_headers"])
    assert done.status_code == 200
    assert done.json()["status"] == "completed"

    again = client.post(f"/api/assignments/{assignment['id']}/activate", headers=ctx["mentor_headers"])
    assert again.status_code == 409


def test_startup_cannot_activate(client):
    ctx = open_request(client)
    assignment = accept(client, ctx)
    resp = client.post(f"/api/assignments/{assignment['id']}/activate", headers=ctx["startup_headers"])
    assert resp.status_code == 403


def test_manual_engagement_record_and_delete(client):
    headers, mentor_id = ensure_auth_headers(client, role="mentor")
    created = client.post(
        "/api/assignments/manual",
        json={
            "startup": {"kind": "manual", "name": "Offline Co", "sector": "retail"},
            "status": "completed",
            "fee_amount": 1200,
        },
        headers=headers,
    )
    assert created.status_code == 201, created.text
    body = created.json()
    assert body["startup"]["kind"] == "manual"
    assert body["startup"]["name"] == "Offline Co"
    assert body["fee_type"] == "Fees"
    assert body["status"] == "completed"

    previous = client.get("/api/assignments", params={"scope": "previous"}, headers=headers)
    assert [a["id"] for a in previous.json()] == [body["id"]]

    deleted = client.delete(f"/api/assignments/{body['id']}", headers=headers)
    assert deleted.status_code == 204
    assert client.get(f"/api/assignments/{body['id']}", headers=headers).status_code == 404


def test_platform_assignment_cannot_be_deleted(client):
    ctx = active_engagement(client)
    resp = client.delete(f"/api/assignments/{ctx['assignment_id']}", headers=ctx["mentor_headers"])
    assert resp.status_code == 409


def test_scopes_partition_assignments(client):
    ctx = active_engagement(client)
    pending_ctx = open_request(client, fee_type="Fees", proposed_fee_amount=100)
    # reuse the first mentor for a second engagement
    second = client.post(
        "/api/engagements",
        json={"mentor_id": ctx["mentor_id"], "startup_id": pending_ctx["startup_id"], "fee_type": "Fees", "proposed_fee_amount": 100},
        headers=pending_ctx["startup_headers"],
    )
    assert second.status_code == 201
    client.post(f"/api/engagements/{second.json()['id']}/accept", headers=ctx["mentor_headers"])

    current = client.get("/api/assignments", params={"scope": "current"}, headers=ctx["mentor_headers"]).json()
    pending = client.get("/api/assignments", params={"scope": "pending"}, headers=ctx["mentor_headers"]).json()
    assert [a["id"] for a in current] == [ctx["assignment_id"]]
    assert len(pending) == 1 and pending[0]["status"] == "pending_payment"

    startup_view = client.get("/api/assignments", headers=ctx["startup_headers"]).json()
    assert [a["id"] for a in startup_view] == [ctx["assignment_id"]]


def test_assignment_hidden_from_outsiders(client):
    ctx = active_engagement(client)
    outsider, _ = ensure_auth_headers(client)
    assert client.get(f"/api/assignments/{ctx['assignment_id']}", headers=outsider).status_code == 404


def test_mentor_metrics(client):
    ctx = open_request(client, fee_type="Fees", proposed_fee_amount=300)
    assignment = accept(client, ctx)
    client.post(f"/api/assignments/{assignment['id']}/payment", json={}, headers=ctx["mentor_headers"])
    client.post(f"/api/assignments/{assignment['id']}/activate", headers=ctx["mentor_headers"])
    client.post(
        "/api/assignments/manual",
        json={"startup": {"name": "Side Project"}, "status": "completed", "fee_amount": 200, "esop_value": 1000},
        headers=ctx["mentor_headers"],
    )

    metrics = client.get("/api/mentors/me/metrics", headers=ctx["mentor_headers"])
    assert metrics.status_code == 200
    data = metrics.json()
    assert data["requests_received"] == 1
    assert data["startups_mentoring"] == 1
    assert data["startups_mentored_previously"] == 1
    assert data["total_fees"] == 500
    assert data["total_esop_value"] == 1000
    assert data["pending_requests"] == []


def test_only_the_engaged_mentor_confirms_payment(client):
    ctx = open_request(client, fee_type="Fees", proposed_fee_amount=250)
    assignment = accept(client, ctx)
    other_mentor, _ = ensure_auth_headers(client, role="mentor")
    resp = client.post(
        f"/api/assignments/{assignment['id']}/payment",
        json={"payment_reference": "pi_other"},
        headers=other_mentor,
    )
    assert resp.status_code == 404
    history = client.get(f"/api/assignments/{assignment['id']}/history", headers=ctx["mentor_headers"])
    assert "assignment.payment_completed" not in [entry["action"] for entry in history.json()]
