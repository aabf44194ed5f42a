import pytest


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.mark.asyncio
async def test_room_lifecycle(client, seeded, make_user):
    host, host_token = await make_user("host")
    guest, guest_token = await make_user("guest")

    created = await client.post("/api/rooms", json={}, headers=bearer(host_token))
    assert created.status_code == 201
    room = created.json()
    assert room["status"] == "waiting"

    joined = await client.post(
        "/api/rooms/join",
        json={"room_code": room["room_code"].lower()},
        headers=bearer(guest_token),
    )
    assert joined.status_code == 200
    assert joined.json()["current_participants"] == 2

    denied = await client.post(f"/api/rooms/{room['id']}/start", json={}, headers=bearer(guest_token))
    assert denied.status_code == 403

    started = await client.post(f"/api/rooms/{room['id']}/start", json={}, headers=bearer(host_token))
    assert started.status_code == 200
    assert started.json()["status"] == "active"
    assert started.json()["challenge_id"]

    progress = await client.patch(
        f"/api/rooms/{room['id']}/progress",
        json={"attempts": 1, "tests_passed": 2, "total_tests": 5, "status": "testing"},
        headers=bearer(guest_token),
    )
    assert progress.status_code == 200
    assert progress.json()["status"] == "testing"

    won = await client.post(f"/api/rooms/{room['id']}/complete", headers=bearer(guest_token))
    assert won.status_code == 200
    assert won.json()["winner_id"] == str(guest.id)

    late = await client.post(f"/api/rooms/{room['id']}/complete", headers=bearer(host_token))
    assert late.status_code == 409
    assert late.headers["X-Error-Code"] == "conflict"

    details = await client.get(f"/api/rooms/{room['id']}", headers=bearer(host_token))
    assert details.status_code == 200
    body = details.json()
    assert body["status"] == "completed"
    assert body["challenge"]["id"] == started.json()["challenge_id"]
    assert {p["user"]["username"] for p in body["participants"]} == {"host", "guest"}


@pytest.mark.asyncio
async def test_join_errors(client, seeded, make_user):
    host, host_token = await make_user("host")
    guest, guest_token = await make_user("guest")
    late, late_token = await make_user("late")
    room = (await client.post("/api/rooms", json={}, headers=bearer(host_token))).json()

    short = await client.post("/api/rooms/join", json={"room_code": "AB"}, headers=bearer(guest_token))
    assert short.status_code == 400
    assert short.json()["detail"] == "Room code must be 6 characters long"

    missing = await client.post("/api/rooms/join", json={"room_code": "ZZZZZZ"}, headers=bearer(guest_token))
    assert missing.status_code == 404
    assert missing.headers["X-Error-Code"] == "room_not_available"

    again = await client.post(
        "/api/rooms/join", json={"room_code": room["room_code"]}, headers=bearer(host_token)
    )
    assert again.status_code == 409
    assert again.headers["X-Error-Code"] == "already_in_room"

    await client.post("/api/rooms/join", json={"room_code": room["room_code"]}, headers=bearer(guest_token))
    full = await client.post(
        "/api/rooms/join", json={"room_code": room["room_code"]}, headers=bearer(late_token)
    )
    assert full.status_code == 409
    assert full.json()["detail"] == "Room is full"


@pytest.mark.asyncio
async def test_rooms_require_auth(client):
    response = await client.post("/api/rooms", json={})
    assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_room_by_code_and_recent(client, seeded, make_user):
    host, host_token = await make_user("host")
    room = (await client.post("/api/rooms", json={"use_demo_bot": True}, headers=bearer(host_token))).json()

    by_code = await client.get(f"/api/rooms/code/{room['room_code'].lower()}", headers=bearer(host_token))
    assert by_code.status_code == 200
    assert by_code.json()["id"] == room["id"]
    assert by_code.json()["demo_bot"] is not None

    recent = await client.get("/api/rooms/recent", headers=bearer(host_token))
    assert recent.status_code == 200
    assert recent.json()[0]["room_code"] == room["room_code"]


@pytest.mark.asyncio
async def test_demo_bot_progress(client, seeded, make_user):
    host, host_token = await make_user("host")
    room = (await client.post("/api/rooms", json={"use_demo_bot": True}, headers=bearer(host_token))).json()
    await client.post(f"/api/rooms/{room['id']}/start", json={}, headers=bearer(host_token))

    response = await client.get(f"/api/rooms/{room['id']}/demo-bot-progress", headers=bearer(host_token))

    assert response.status_code == 200
    data = response.json()
    assert data["is_bot"] is True
    assert data["status"] == "coding"
    assert data["id"] == room["demo_bot_id"]


@pytest.mark.asyncio
async def test_cancel_room(client, seeded, make_user):
    host, host_token = await make_user("host")
    room = (await client.post("/api/rooms", json={}, headers=bearer(host_token))).json()

    response = await client.post(f"/api/rooms/{room['id']}/cancel", headers=bearer(host_token))

    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"


@pytest.mark.asyncio
async def test_unknown_room(client, make_user):
    _, token = await make_user("host")
    response = await client.get(
        "/api/rooms/00000000-0000-0000-0000-000000000000", headers=bearer(token)
    )
    assert response.status_code == 404
    assert response.json()["detail"] == "Room not found"
