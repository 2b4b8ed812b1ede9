"""HTTP tests: routing, error mapping and a full ticket walk-through."""

import uuid

import pytest


@pytest.mark.asyncio
async def test_health_check(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "X-Request-ID" in response.headers


@pytest.mark.asyncio
async def test_request_id_is_echoed(client):
    response = await client.get("/health", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"


@pytest.mark.asyncio
async def test_register_account_hides_password_hash(client):
    response = await client.post("/accounts", json={
        "username": "dana",
        "role": "customer",
        "password_hash": "pbkdf2$secret",
        "display_name": "Dana",
    })

    assert response.status_code == 201
    body = response.json()
    assert body["role"] == "customer"
    assert body["display_name"] == "Dana"
    assert "password_hash" not in body


@pytest.mark.asyncio
async def test_error_mapping(client, world, ticket):
    missing = await client.get(f"/tickets/{uuid.uuid4()}")
    assert missing.status_code == 404

    duplicate = await client.post("/accounts", json={"username": "carla", "role": "customer"})
    assert duplicate.status_code == 409

    blank = await client.post("/tickets", json={
        "customer_id": str(world.customer.id),
        "business_id": str(world.business.id),
        "title": " ",
        "description": "d",
    })
    assert blank.status_code == 400
    assert "Title is required" in blank.json()["detail"]

    denied = await client.post(
        f"/tickets/{ticket.id}/claim", json={"employee_id": str(world.outsider.id)}
    )
    assert denied.status_code == 403
    assert denied.json() == {"detail": "Not authorized"}

    malformed = await client.post(f"/tickets/{ticket.id}/claim", json={"employee_id": "nope"})
    assert malformed.status_code == 422


@pytest.mark.asyncio
async def test_second_claim_conflicts(client, world, ticket):
    first = await client.post(f"/tickets/{ticket.id}/claim", json={"employee_id": str(world.employee.id)})
    second = await client.post(
        f"/tickets/{ticket.id}/claim", json={"employee_id": str(world.second_employee.id)}
    )

    assert first.status_code == 200
    assert second.status_code == 409


@pytest.mark.asyncio
async def test_escalating_to_none_is_rejected(client, world, claimed_ticket):
    response = await client.post(f"/tickets/{claimed_ticket.id}/escalate", json={
        "level": "none",
        "reason": "reset",
        "by_id": str(world.employee.id),
    })

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_feedback_rating_out_of_range(client, world, resolved_ticket):
    response = await client.post(f"/tickets/{resolved_ticket.id}/feedback", json={"rating": 9})

    assert response.status_code == 400
    assert response.json()["detail"] == "Rating must be a number between 1 and 5"


@pytest.mark.asyncio
async def test_ticket_walkthrough(client, world):
    created = await client.post("/tickets", json={
        "customer_id": str(world.customer.id),
        "business_id": str(world.business.id),
        "title": "Refund",
        "description": "Charged twice",
        "category": "billing",
        "priority": "high",
    })
    assert created.status_code == 201
    ticket_id = created.json()["id"]
    assert created.json()["status"] == "open"

    claimed = await client.post(f"/tickets/{ticket_id}/claim", json={"employee_id": str(world.employee.id)})
    assert claimed.json()["status"] == "in_progress"
    assert claimed.json()["claimed_by_id"] == str(world.employee.id)

    escalated = await client.post(f"/tickets/{ticket_id}/escalate", json={
        "level": "high",
        "reason": "needs manager",
        "by_id": str(world.employee.id),
    })
    assert escalated.json()["escalation_level"] == "high"
    assert escalated.json()["previous_assignee_id"] == str(world.employee.id)

    note = await client.post(f"/tickets/{ticket_id}/notes", json={
        "business_id": str(world.business.id),
        "content": "Refund approved",
        "author_id": str(world.owner.id),
    })
    assert note.status_code == 201

    resolved = await client.post(f"/tickets/{ticket_id}/resolve", json={"by_id": str(world.owner.id)})
    assert resolved.json()["status"] == "resolved"
    assert resolved.json()["resolved_by_id"] == str(world.owner.id)

    feedback = await client.post(f"/tickets/{ticket_id}/feedback", json={
        "rating": 5,
        "customer_id": str(world.customer.id),
    })
    assert feedback.status_code == 201

    again = await client.post(f"/tickets/{ticket_id}/feedback", json={"rating": 4})
    assert again.status_code == 409

    summary = await client.get(f"/businesses/{world.business.id}/analytics/feedback")
    assert summary.json()["total"] == 1
    assert summary.json()["average_rating"] == 5

    notes = await client.get(f"/tickets/{ticket_id}/notes", params={"business_id": str(world.business.id)})
    assert [n["content"] for n in notes.json()] == ["Refund approved"]

    listed = await client.get("/tickets", params={"account_id": str(world.customer.id)})
    assert [t["id"] for t in listed.json()] == [ticket_id]


@pytest.mark.asyncio
async def test_invitation_over_http(client, world):
    invited = await client.post(f"/businesses/{world.business.id}/invitations", json={
        "employee_id": str(world.outsider.id),
        "invited_by_id": str(world.owner.id),
    })
    assert invited.status_code == 201
    invitation_id = invited.json()["id"]

    pending = await client.get(f"/accounts/{world.outsider.id}/invitations", params={"status": "pending"})
    assert [i["id"] for i in pending.json()] == [invitation_id]

    accepted = await client.post(f"/invitations/{invitation_id}/resolve", json={
        "accept": True,
        "by_id": str(world.outsider.id),
    })
    assert accepted.status_code == 200
    assert accepted.json()["is_active"] is True

    repeat = await client.post(f"/invitations/{invitation_id}/resolve", json={"accept": False})
    assert repeat.status_code == 409


@pytest.mark.asyncio
async def test_messaging_over_http(client, world):
    sent = await client.post("/messages", json={
        "sender_id": str(world.customer.id),
        "receiver_id": str(world.owner.id),
        "content": "Hello?",
    })
    assert sent.status_code == 201
    assert sent.json()["status"] == "sent"

    delivered = await client.post(f"/accounts/{world.owner.id}/messages/deliver")
    assert [m["status"] for m in delivered.json()] == ["delivered"]

    read = await client.post(f"/messages/{sent.json()['id']}/ack", json={
        "status": "read",
        "by_id": str(world.owner.id),
    })
    assert read.json()["status"] == "read"

    stale = await client.post(f"/messages/{sent.json()['id']}/ack", json={"status": "delivered"})
    assert stale.json()["status"] == "read"

    unread = await client.get(f"/accounts/{world.owner.id}/unread")
    assert unread.json() == []


@pytest.mark.asyncio
async def test_business_queue(client, world, ticket, claimed_ticket):
    queue = await client.get(f"/businesses/{world.business.id}/tickets")
    assert [t["id"] for t in queue.json()] == [str(ticket.id)]

    open_only = await client.get(f"/businesses/{world.business.id}/tickets", params={"status": "open"})
    assert open_only.json() == []

    unknown = await client.get(f"/businesses/{uuid.uuid4()}/tickets")
    assert unknown.status_code == 404


@pytest.mark.asyncio
async def test_unknown_actor_maps_to_404(client, world, claimed_ticket):
    resolve = await client.post(f"/tickets/{claimed_ticket.id}/resolve", json={"by_id": str(uuid.uuid4())})
    assert resolve.status_code == 404

    invite = await client.post(f"/businesses/{world.business.id}/invitations", json={
        "employee_id": str(world.outsider.id),
        "invited_by_id": str(uuid.uuid4()),
    })
    assert invite.status_code == 404

    note = await client.post(f"/tickets/{claimed_ticket.id}/notes", json={
        "business_id": str(world.business.id),
        "content": "ghost note",
        "author_id": str(uuid.uuid4()),
    })
    assert note.status_code == 404


@pytest.mark.asyncio
async def test_ticket_list_filters(client, world, ticket, services):
    billing = await services.tickets.create_ticket(
        world.customer.id, world.business.id, "Invoice wrong", "VAT missing", category="billing"
    )
    await services.tickets.claim_ticket(billing.id, world.employee.id)

    unclaimed = await client.get(f"/businesses/{world.business.id}/tickets", params={"unclaimed": "true"})
    assert [t["id"] for t in unclaimed.json()] == [str(ticket.id)]

    mine = await client.get("/tickets", params={
        "account_id": str(world.employee.id),
        "claimed_by_id": str(world.employee.id),
        "status": "in_progress",
    })
    assert [t["id"] for t in mine.json()] == [str(billing.id)]

    searched = await client.get("/tickets", params={
        "account_id": str(world.customer.id),
        "search": "VAT",
        "category": "billing",
    })
    assert [t["id"] for t in searched.json()] == [str(billing.id)]

    contradictory = await client.get(f"/businesses/{world.business.id}/tickets", params={
        "unclaimed": "true",
        "claimed_by_id": str(world.employee.id),
    })
    assert contradictory.status_code == 400

    bad_category = await client.get("/tickets", params={
        "account_id": str(world.customer.id),
        "category": "gardening",
    })
    assert bad_category.status_code == 422
