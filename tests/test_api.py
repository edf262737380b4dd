import asyncio
import concurrent.futures
from contextlib import contextmanager

import httpx
import pytest
from fastapi import WebSocketDisconnect, status
from fastapi.testclient import TestClient

from core.security import sign_external_id
from main import app
from schemas.match import RankingBatch
from services.realtime import dispatcher
from services.scoring import get_scoring_engine


@pytest.fixture
async def client(database):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


async def _login(client, external_id):
    resp = await client.post("/auth/", json={
        "external_id": external_id,
        "signature": sign_external_id(external_id),
    })
    assert resp.status_code == 200, resp.text
    body = resp.json()
    return {"Authorization": f"Bearer {body['access_token']}"}, body


async def _register(client, external_id, gender, looking_for, username=None):
    headers, _ = await _login(client, external_id)
    resp = await client.post("/profile/", headers=headers, json={
        "username": username or external_id.replace("|", "_"),
        "display_name": "Sam",
        "date_of_birth": "1996-03-02",
        "gender": gender,
        "looking_for": looking_for,
        "interests": ["hiking", "jazz"],
    })
    assert resp.status_code == 201, resp.text
    return headers, resp.json()["id"]


async def test_login_creates_user_once(client):
    _, first = await _login(client, "provider|1")
    _, second = await _login(client, "provider|1")

    assert first["has_profile"] is False
    assert second["has_profile"] is False
    assert first["token_type"] == "bearer"


async def test_login_with_bad_signature(client):
    resp = await client.post("/auth/", json={"external_id": "provider|1", "signature": "0" * 64})

    assert resp.status_code == 403


async def test_requests_without_token_are_rejected(client):
    resp = await client.get("/feed/")

    assert resp.status_code == 401


async def test_feed_requires_profile(client):
    headers, _ = await _login(client, "provider|1")

    resp = await client.get("/feed/", headers=headers)

    assert resp.status_code == 412


async def test_deactivated_profile_cannot_browse(client):
    headers, _ = await _register(client, "provider|1", "male", ["female"])
    resp = await client.post("/profile/me/deactivate", headers=headers)
    assert resp.json()["is_active"] is False

    assert (await client.get("/feed/", headers=headers)).status_code == 412

    await client.post("/profile/me/activate", headers=headers)
    assert (await client.get("/feed/", headers=headers)).status_code == 200


async def test_profile_read_and_update(client):
    headers, user_id = await _register(client, "provider|1", "female", ["male"])

    resp = await client.patch("/profile/me", headers=headers, json={"bio": "Coffee first"})
    body = resp.json()

    assert resp.status_code == 200
    assert body["id"] == user_id
    assert body["bio"] == "Coffee first"
    assert 0 < body["profile_completeness"] <= 100

    resp = await client.patch("/profile/me", headers=headers, json={"looking_for": []})
    assert resp.status_code == 422


async def test_feed_limit_is_capped(client):
    headers, _ = await _register(client, "provider|1", "male", ["female"])

    resp = await client.get("/feed/", headers=headers, params={"limit": 500})

    assert resp.status_code == 422


async def test_like_match_and_chat_flow(client):
    alice, alice_id = await _register(client, "provider|alice", "female", ["male"])
    bob, bob_id = await _register(client, "provider|bob", "male", ["female"])

    feed = (await client.get("/feed/", headers=alice)).json()
    assert [entry["id"] for entry in feed["matches"]] == [bob_id]

    first = (await client.post(f"/interactions/like/{bob_id}", headers=alice)).json()
    assert first["matched"] is False

    second = (await client.post(f"/interactions/like/{alice_id}", headers=bob)).json()
    assert second["matched"] is True
    assert second["new_match"] is True
    conversation_id = second["conversation_id"]

    mutual = (await client.get(f"/interactions/mutual/{bob_id}", headers=alice)).json()
    assert mutual == {"user_id": bob_id, "matched": True}

    matches = (await client.get("/matches/", headers=alice)).json()
    assert [m["profile"]["id"] for m in matches] == [bob_id]
    assert matches[0]["conversation_id"] == conversation_id

    opened = await client.post(f"/matches/{matches[0]['match_id']}/conversation", headers=bob)
    assert opened.json()["id"] == conversation_id

    for headers, text in ((alice, "hi"), (bob, "hey!"), (alice, "coffee?")):
        resp = await client.post(
            f"/conversations/{conversation_id}/messages", headers=headers, json={"content": text}
        )
        assert resp.status_code == 201

    history = (await client.get(f"/conversations/{conversation_id}/messages", headers=bob)).json()
    assert [m["content"] for m in history] == ["hi", "hey!", "coffee?"]
    assert [m["sender_id"] for m in history] == [alice_id, bob_id, alice_id]

    receipt = (await client.post(f"/conversations/{conversation_id}/read", headers=bob)).json()
    assert receipt["marked"] == 2


async def test_outsider_cannot_touch_conversation(client):
    alice, alice_id = await _register(client, "provider|alice", "female", ["male"])
    bob, bob_id = await _register(client, "provider|bob", "male", ["female"])
    eve, _ = await _register(client, "provider|eve", "female", ["male"])

    await client.post(f"/interactions/like/{bob_id}", headers=alice)
    result = (await client.post(f"/interactions/like/{alice_id}", headers=bob)).json()
    conversation_id = result["conversation_id"]

    send = await client.post(
        f"/conversations/{conversation_id}/messages", headers=eve, json={"content": "hi"}
    )
    read = await client.get(f"/conversations/{conversation_id}/messages", headers=eve)
    opened = await client.post(f"/matches/{result['match_id']}/conversation", headers=eve)

    assert send.status_code == 403
    assert read.status_code == 403
    assert opened.status_code == 403


async def test_block_hides_user_and_rejects_like(client):
    alice, alice_id = await _register(client, "provider|alice", "female", ["male"])
    bob, bob_id = await _register(client, "provider|bob", "male", ["female"])

    resp = await client.post(f"/interactions/block/{bob_id}", headers=alice, json={"reason": "spam"})
    assert resp.status_code == 204

    feed = (await client.get("/feed/", headers=bob)).json()
    assert feed["matches"] == []
    assert (await client.post(f"/interactions/like/{alice_id}", headers=bob)).status_code == 404


async def test_compute_without_engine_is_unavailable(client):
    headers, _ = await _register(client, "provider|1", "male", ["female"])

    resp = await client.post("/matches/compute", headers=headers, json={})

    assert resp.status_code == 503
    assert resp.headers["Retry-After"] == "5"


async def test_compute_fills_precomputed_feed(client):
    alice, alice_id = await _register(client, "provider|alice", "female", ["male"])
    bob, bob_id = await _register(client, "provider|bob", "male", ["female"])

    class StaticEngine:
        async def compute(self, batch_size, top_n):
            return RankingBatch.model_validate({"rankings": [{
                "user_id": alice_id,
                "candidates": [{"candidate_id": bob_id, "score": 77, "reasons": ["Both like jazz"]}],
            }]})

    app.dependency_overrides[get_scoring_engine] = lambda: StaticEngine()

    resp = await client.post("/matches/compute", headers=alice, json={"batch_size": 10})
    assert resp.json() == {"users": 1, "entries": 1}

    feed = (await client.get("/feed/", headers=alice, params={"mode": "precomputed"})).json()
    assert feed["mode"] == "precomputed"
    assert [(e["id"], e["score"], e["reasons"]) for e in feed["matches"]] == [
        (bob_id, 77, ["Both like jazz"])
    ]


async def test_health(client):
    resp = await client.get("/health")

    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.fixture
def sync_client(database):
    with TestClient(app) as c:
        yield c


def _register_sync(client, external_id, gender, looking_for):
    resp = client.post("/auth/", json={
        "external_id": external_id,
        "signature": sign_external_id(external_id),
    })
    token = resp.json()["access_token"]
    headers = {"Authorization": f"Bearer {token}"}
    resp = client.post("/profile/", headers=headers, json={
        "username": external_id.replace("|", "_"),
        "display_name": "Sam",
        "date_of_birth": "1996-03-02",
        "gender": gender,
        "looking_for": looking_for,
    })
    assert resp.status_code == 201, resp.text
    return token, headers, resp.json()["id"]


def _matched_conversation(client):
    alice_token, alice, alice_id = _register_sync(client, "provider|alice", "female", ["male"])
    bob_token, bob, bob_id = _register_sync(client, "provider|bob", "male", ["female"])
    client.post(f"/interactions/like/{bob_id}", headers=alice)
    result = client.post(f"/interactions/like/{alice_id}", headers=bob).json()
    return (alice_token, alice), (bob_token, bob), result["conversation_id"]


@contextmanager
def _stream(client, conversation_id, token):
    try:
        with client.websocket_connect(f"/conversations/{conversation_id}/ws?token={token}") as ws:
            yield ws
    except (asyncio.CancelledError, concurrent.futures.CancelledError):
        # TestClient отменяет обработчик на выходе, если тот ещё ждёт сообщений
        pass


def _send(client, conversation_id, headers, text):
    resp = client.post(
        f"/conversations/{conversation_id}/messages", headers=headers, json={"content": text}
    )
    assert resp.status_code == 201, resp.text


def test_stream_delivers_new_messages_in_order(sync_client):
    (_, alice), (bob_token, bob), conversation_id = _matched_conversation(sync_client)
    _send(sync_client, conversation_id, alice, "before")

    with _stream(sync_client, conversation_id, bob_token) as ws:
        _send(sync_client, conversation_id, alice, "after1")
        _send(sync_client, conversation_id, bob, "after2")
        received = [ws.receive_json(), ws.receive_json()]

    assert [m["content"] for m in received] == ["after1", "after2"]
    assert dispatcher.subscriber_count(conversation_id) == 0


def test_stream_rejects_outsider(sync_client):
    _, _, conversation_id = _matched_conversation(sync_client)
    eve_token, _, _ = _register_sync(sync_client, "provider|eve", "female", ["male"])

    with pytest.raises(WebSocketDisconnect) as exc_info:
        with sync_client.websocket_connect(f"/conversations/{conversation_id}/ws?token={eve_token}"):
            pass

    assert exc_info.value.code == status.WS_1008_POLICY_VIOLATION
    assert dispatcher.subscriber_count(conversation_id) == 0


def test_stream_rejects_bad_token(sync_client):
    _, _, conversation_id = _matched_conversation(sync_client)

    with pytest.raises(WebSocketDisconnect) as exc_info:
        with sync_client.websocket_connect(f"/conversations/{conversation_id}/ws?token=not-a-jwt"):
            pass

    assert exc_info.value.code == status.WS_1008_POLICY_VIOLATION
